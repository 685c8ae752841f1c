"""ModbusSpecClient: load a specification, then read/write devices by function, accessor or register name."""

import logging
import os
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from contextlib import contextmanager
from typing import Any, ContextManager, Iterator, Union

from .config import ConnectionConfig
from .errors import AccessDeniedError, DeviceNotFoundError, RegisterNotFoundError
from .operation import AsyncModbusOperation, ModbusOperation
from .parser import ParseResult, SpecParser, Source
from .pool import ConnectionPool
from .repository import SpecRepository
from .resolver import OperationDescriptor, OperationResolver
from .transport import Transport, create_transport
from .types import Device, FunctionCode, RegisterCategory, standard_function_codes

logger = logging.getLogger(__name__)

# register table -> (read function code, write function code or None)
_REGISTER_FUNCTIONS: dict[RegisterCategory, tuple[str, str | None]] = {
    RegisterCategory.HOLDING_REGISTER: ("3", "6"),
    RegisterCategory.INPUT_REGISTER: ("4", None),
    RegisterCategory.COIL: ("1", "5"),
    RegisterCategory.DISCRETE_INPUT: ("2", None),
}
_BIT_CATEGORIES = frozenset({RegisterCategory.COIL, RegisterCategory.DISCRETE_INPUT})


class ModbusSpecClient:
    """
    High-level entry point: holds one loaded specification and hands out
    ModbusOperation builders bound to a connection source.

    Connection source, first match wins: a transport given to use_transport(),
    a pool given to use_pool(), a transport built lazily from the connection
    config (constructor argument or the document's <Connection> block), and
    finally UnconfiguredTransport, which fails every request.

    A single transport is shared by all operations of this client and guarded
    by a lock; use a ConnectionPool for parallel requests.
    """

    def __init__(
        self,
        *,
        transport: Transport | None = None,
        pool: ConnectionPool | None = None,
        connection_config: ConnectionConfig | None = None,
        executor: Executor | None = None,
        max_workers: int = 4,
    ) -> None:
        self._repository = SpecRepository()
        self._resolver = OperationResolver(self._repository)
        self._parser = SpecParser()
        self._transport = transport
        self._pool = pool
        self._config_override = connection_config
        self._owned_transport: Transport | None = None
        self._lock = threading.RLock()
        self._executor = executor
        self._owns_executor = executor is None
        self._max_workers = max_workers

    @classmethod
    def from_file(cls, path: Union[str, "os.PathLike[str]"], **kwargs: Any) -> "ModbusSpecClient":
        client = cls(**kwargs)
        client.load_file(path)
        return client

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self, source: Source) -> "ModbusSpecClient":
        """Parse a specification and replace the loaded one. A failed parse keeps the previous load."""
        result = self._parser.parse(source)
        self._replace(result)
        return self

    def load_file(self, path: Union[str, "os.PathLike[str]"]) -> "ModbusSpecClient":
        result = self._parser.parse_file(path)
        self._replace(result)
        logger.info("Loaded specification %s: %d devices", os.fspath(path), len(result.devices))
        return self

    def _replace(self, result: ParseResult) -> None:
        with self._lock:
            self._repository.load(result)
            # a new document may carry a different <Connection>
            self._close_owned_transport()

    # ------------------------------------------------------------------
    # Connection selection
    # ------------------------------------------------------------------

    @property
    def connection_config(self) -> ConnectionConfig | None:
        if self._config_override is not None:
            return self._config_override
        return self._repository.connection_config

    def use_transport(self, transport: Transport) -> "ModbusSpecClient":
        """Send all requests through this transport (caller keeps ownership)."""
        self._transport = transport
        return self

    def use_pool(self, pool: ConnectionPool) -> "ModbusSpecClient":
        """Borrow a pooled connection per request (ignored while a transport is set)."""
        self._pool = pool
        return self

    @contextmanager
    def _locked(self, transport: Transport) -> Iterator[Transport]:
        with self._lock:
            if not transport.is_connected():
                transport.connect()
            yield transport

    def _default_transport(self) -> Transport:
        with self._lock:
            if self._owned_transport is None:
                self._owned_transport = create_transport(self.connection_config)
                logger.debug("Created %s", type(self._owned_transport).__name__)
            return self._owned_transport

    def _connection_source(self) -> ContextManager[Transport]:
        if self._transport is not None:
            return self._locked(self._transport)
        if self._pool is not None:
            return self._pool.borrow()
        return self._locked(self._default_transport())

    def connect(self) -> None:
        """Open the shared transport now instead of on first request. No-op when using a pool."""
        if self._transport is None and self._pool is not None:
            return
        with self._connection_source():
            pass

    def _close_owned_transport(self) -> None:
        if self._owned_transport is not None:
            self._owned_transport.close()
            self._owned_transport = None

    def close(self) -> None:
        """Close the transport this client created and stop its executor."""
        with self._lock:
            self._close_owned_transport()
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> "ModbusSpecClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def function(self, identifier: str) -> ModbusOperation:
        """Low-level builder for a function code given by number ("3") or name ("ReadHoldingRegisters")."""
        return ModbusOperation(self._resolver.resolve_function(identifier), self._connection_source)

    def accessor(self, name: str, device_id: str | None = None) -> ModbusOperation:
        """Builder bound to a named accessor; device_id is required when the name is not unique."""
        return ModbusOperation(self._resolver.resolve_accessor(name, device_id), self._connection_source)

    def _get_executor(self) -> Executor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers, thread_name_prefix="modbus-spec"
                )
            return self._executor

    def function_async(self, identifier: str) -> AsyncModbusOperation:
        return AsyncModbusOperation(self.function(identifier), self._get_executor())

    def accessor_async(self, name: str, device_id: str | None = None) -> AsyncModbusOperation:
        return AsyncModbusOperation(self.accessor(name, device_id), self._get_executor())

    def _function_for(self, code: str) -> FunctionCode:
        declared = self._repository.by_function_code(code)
        if declared is not None:
            return declared
        return next(fc for fc in standard_function_codes() if fc.code == code)

    def _register_operation(
        self, device_id: str, register_name: str, access: str
    ) -> tuple[RegisterCategory, ModbusOperation]:
        device = self.get_device(device_id)
        if device is None:
            raise DeviceNotFoundError(device_id)
        found = device.find_register(register_name)
        if found is None:
            raise RegisterNotFoundError(register_name, device_id)
        category, register = found

        read_code, write_code = _REGISTER_FUNCTIONS[category]
        if access == "readable":
            allowed, code = register.is_readable, read_code
        else:
            allowed, code = register.is_writable and write_code is not None, write_code
        if not allowed or code is None:
            raise AccessDeniedError(register_name, access)

        descriptor = OperationDescriptor(
            function_code=self._function_for(code),
            device_id=device.id,
            device_unit_id=device.unit_id,
        )
        operation = ModbusOperation(descriptor, self._connection_source).address(register.address)
        return category, operation

    def read_register(self, device_id: str, register_name: str) -> int | bool:
        """Read one named register: bool for coils and discrete inputs, int otherwise."""
        category, operation = self._register_operation(device_id, register_name, "readable")
        if category in _BIT_CATEGORIES:
            return operation.read_booleans()[0]
        return operation.read_single()

    def write_register(self, device_id: str, register_name: str, value: int | bool) -> None:
        """Write one named holding register or coil."""
        category, operation = self._register_operation(device_id, register_name, "writable")
        if category == RegisterCategory.COIL:
            operation.write(bool(value))
        else:
            operation.write(int(value))

    # ------------------------------------------------------------------
    # Specification queries
    # ------------------------------------------------------------------

    @property
    def repository(self) -> SpecRepository:
        return self._repository

    def get_device(self, device_id: str) -> Device | None:
        return self._repository.device_by_id(device_id)

    def get_device_by_unit_id(self, unit_id: int) -> Device | None:
        return self._repository.device_by_unit_id(unit_id)

    def get_function_code(self, code: str) -> FunctionCode | None:
        return self._repository.by_function_code(code)

    def all_devices(self) -> tuple[Device, ...]:
        return self._repository.all_devices()

    def all_function_codes(self) -> tuple[FunctionCode, ...]:
        return self._repository.all_function_codes()
