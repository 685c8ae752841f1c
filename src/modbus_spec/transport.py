"""Transport boundary: the eight Modbus requests plus connection lifecycle.

PymodbusTransport does the real framing and I/O through pymodbus. SimulatedTransport
keeps in-memory tables for tests and dry runs; UnconfiguredTransport stands in
until a connection has been configured.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Sequence

from pymodbus import FramerType
from pymodbus.client import ModbusSerialClient, ModbusTcpClient
from pymodbus.exceptions import ModbusException as PymodbusException

from .config import ConnectionConfig, SerialConfig, TcpConfig
from .errors import TransportError
from .types import RegisterCategory

logger = logging.getLogger(__name__)


class Transport(ABC):
    """
    One Modbus connection. Not safe for concurrent in-flight requests; borrow
    distinct connections from a ConnectionPool for parallel callers.
    """

    @abstractmethod
    def connect(self) -> None:
        """Open the connection; raise TransportError on failure."""

    @abstractmethod
    def disconnect(self) -> None:
        pass

    @abstractmethod
    def is_connected(self) -> bool:
        pass

    @abstractmethod
    def read_coils(self, unit_id: int, address: int, quantity: int) -> list[bool]:
        pass

    @abstractmethod
    def read_discrete_inputs(self, unit_id: int, address: int, quantity: int) -> list[bool]:
        pass

    @abstractmethod
    def read_holding_registers(self, unit_id: int, address: int, quantity: int) -> list[int]:
        pass

    @abstractmethod
    def read_input_registers(self, unit_id: int, address: int, quantity: int) -> list[int]:
        pass

    @abstractmethod
    def write_single_coil(self, unit_id: int, address: int, value: bool) -> None:
        pass

    @abstractmethod
    def write_single_register(self, unit_id: int, address: int, value: int) -> None:
        pass

    @abstractmethod
    def write_multiple_coils(self, unit_id: int, address: int, values: Sequence[bool]) -> None:
        pass

    @abstractmethod
    def write_multiple_registers(self, unit_id: int, address: int, values: Sequence[int]) -> None:
        pass

    def close(self) -> None:
        self.disconnect()

    def __enter__(self) -> "Transport":
        if not self.is_connected():
            self.connect()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


class PymodbusTransport(Transport):
    """Transport over a pymodbus TCP or serial (RTU/ASCII) client built from a ConnectionConfig."""

    def __init__(self, config: ConnectionConfig) -> None:
        self._config = config
        self._client: ModbusTcpClient | ModbusSerialClient | None = None

    @property
    def config(self) -> ConnectionConfig:
        return self._config

    def _build_client(self) -> ModbusTcpClient | ModbusSerialClient:
        config = self._config
        if isinstance(config, TcpConfig):
            return ModbusTcpClient(
                host=config.host,
                port=config.port,
                timeout=config.timeout_s,
                retries=0,
                reconnect_delay=0.1 if config.reconnect else 0,
            )
        if isinstance(config, SerialConfig):
            return ModbusSerialClient(
                port=config.port_name,
                framer=FramerType.ASCII if config.framer == "ascii" else FramerType.RTU,
                baudrate=config.baud_rate,
                bytesize=config.data_bits,
                parity=config.parity.code,
                stopbits=config.stop_bits,
                timeout=config.timeout_s,
                retries=0,
            )
        raise TypeError(f"Unsupported connection config: {type(config).__name__}")

    def _describe(self) -> str:
        if isinstance(self._config, TcpConfig):
            return f"{self._config.host}:{self._config.port}"
        return f"{self._config.port_name} ({self._config.type.value})"

    def connect(self) -> None:
        if self._client is None:
            self._client = self._build_client()
        try:
            ok = self._client.connect()
        except PymodbusException as e:
            raise TransportError(f"Failed to connect to {self._describe()}: {e}", operation="connect", cause=e) from e
        if not ok:
            raise TransportError(f"Failed to connect to {self._describe()}", operation="connect")
        logger.debug("Connected to %s", self._describe())

    def disconnect(self) -> None:
        if self._client is not None:
            try:
                self._client.close()
            except Exception as e:
                logger.warning("Error closing Modbus client: %s", e)
            self._client = None

    def is_connected(self) -> bool:
        return self._client is not None and bool(self._client.connected)

    def _call(self, operation: str, unit_id: int, address: int, method: str, *args: Any, **kwargs: Any) -> Any:
        if self._client is None:
            raise TransportError(
                f"{operation}: not connected to {self._describe()}",
                operation=operation,
                unit_id=unit_id,
                address=address,
            )
        try:
            rr = getattr(self._client, method)(address, *args, device_id=unit_id, **kwargs)
        except PymodbusException as e:
            raise TransportError(
                f"{operation} failed at address {address}: {e}",
                operation=operation,
                unit_id=unit_id,
                address=address,
                cause=e,
            ) from e
        if rr.isError():
            raise TransportError(
                f"{operation} failed at address {address}: {rr}",
                operation=operation,
                unit_id=unit_id,
                address=address,
                cause=getattr(rr, "exception", None),
            )
        return rr

    def read_coils(self, unit_id: int, address: int, quantity: int) -> list[bool]:
        rr = self._call("read_coils", unit_id, address, "read_coils", count=quantity)
        # bit responses are padded to whole bytes
        return [bool(b) for b in (rr.bits or [])[:quantity]]

    def read_discrete_inputs(self, unit_id: int, address: int, quantity: int) -> list[bool]:
        rr = self._call("read_discrete_inputs", unit_id, address, "read_discrete_inputs", count=quantity)
        return [bool(b) for b in (rr.bits or [])[:quantity]]

    def read_holding_registers(self, unit_id: int, address: int, quantity: int) -> list[int]:
        rr = self._call("read_holding_registers", unit_id, address, "read_holding_registers", count=quantity)
        return [int(r) for r in (rr.registers or [])]

    def read_input_registers(self, unit_id: int, address: int, quantity: int) -> list[int]:
        rr = self._call("read_input_registers", unit_id, address, "read_input_registers", count=quantity)
        return [int(r) for r in (rr.registers or [])]

    def write_single_coil(self, unit_id: int, address: int, value: bool) -> None:
        self._call("write_single_coil", unit_id, address, "write_coil", bool(value))

    def write_single_register(self, unit_id: int, address: int, value: int) -> None:
        self._call("write_single_register", unit_id, address, "write_register", int(value))

    def write_multiple_coils(self, unit_id: int, address: int, values: Sequence[bool]) -> None:
        self._call("write_multiple_coils", unit_id, address, "write_coils", [bool(v) for v in values])

    def write_multiple_registers(self, unit_id: int, address: int, values: Sequence[int]) -> None:
        self._call("write_multiple_registers", unit_id, address, "write_registers", [int(v) for v in values])


class SimulatedTransport(Transport):
    """
    In-memory device tables shared by all unit ids. Unset addresses read as 0 / False.
    Every request is appended to `calls` as (operation, unit_id, address, argument).
    """

    def __init__(self, *, connected: bool = True) -> None:
        self._connected = connected
        self.tables: dict[RegisterCategory, dict[int, int]] = {category: {} for category in RegisterCategory}
        self.calls: list[tuple[str, int, int, Any]] = []

    def set_value(self, category: RegisterCategory, address: int, value: int | bool) -> None:
        self.tables[category][address] = int(value)

    def get_value(self, category: RegisterCategory, address: int) -> int:
        return self.tables[category].get(address, 0)

    def connect(self) -> None:
        self._connected = True

    def disconnect(self) -> None:
        self._connected = False

    def is_connected(self) -> bool:
        return self._connected

    def _record(self, operation: str, unit_id: int, address: int, argument: Any) -> None:
        if not self._connected:
            raise TransportError(
                f"{operation}: simulated transport is disconnected",
                operation=operation,
                unit_id=unit_id,
                address=address,
            )
        self.calls.append((operation, unit_id, address, argument))
        logger.debug("[simulated] %s unit=%d address=%d %r", operation, unit_id, address, argument)

    def _read(self, category: RegisterCategory, address: int, quantity: int) -> list[int]:
        table = self.tables[category]
        return [table.get(address + i, 0) for i in range(quantity)]

    def read_coils(self, unit_id: int, address: int, quantity: int) -> list[bool]:
        self._record("read_coils", unit_id, address, quantity)
        return [bool(v) for v in self._read(RegisterCategory.COIL, address, quantity)]

    def read_discrete_inputs(self, unit_id: int, address: int, quantity: int) -> list[bool]:
        self._record("read_discrete_inputs", unit_id, address, quantity)
        return [bool(v) for v in self._read(RegisterCategory.DISCRETE_INPUT, address, quantity)]

    def read_holding_registers(self, unit_id: int, address: int, quantity: int) -> list[int]:
        self._record("read_holding_registers", unit_id, address, quantity)
        return self._read(RegisterCategory.HOLDING_REGISTER, address, quantity)

    def read_input_registers(self, unit_id: int, address: int, quantity: int) -> list[int]:
        self._record("read_input_registers", unit_id, address, quantity)
        return self._read(RegisterCategory.INPUT_REGISTER, address, quantity)

    def write_single_coil(self, unit_id: int, address: int, value: bool) -> None:
        self._record("write_single_coil", unit_id, address, bool(value))
        self.set_value(RegisterCategory.COIL, address, bool(value))

    def write_single_register(self, unit_id: int, address: int, value: int) -> None:
        self._record("write_single_register", unit_id, address, int(value))
        self.set_value(RegisterCategory.HOLDING_REGISTER, address, int(value))

    def write_multiple_coils(self, unit_id: int, address: int, values: Sequence[bool]) -> None:
        self._record("write_multiple_coils", unit_id, address, [bool(v) for v in values])
        for i, v in enumerate(values):
            self.set_value(RegisterCategory.COIL, address + i, bool(v))

    def write_multiple_registers(self, unit_id: int, address: int, values: Sequence[int]) -> None:
        self._record("write_multiple_registers", unit_id, address, [int(v) for v in values])
        for i, v in enumerate(values):
            self.set_value(RegisterCategory.HOLDING_REGISTER, address + i, int(v))


class UnconfiguredTransport(Transport):
    """Placeholder used before any connection is configured; every request fails."""

    _MESSAGE = "No Modbus connection configured; load a specification with a <Connection> block or call use_transport()"

    def _fail(self, operation: str, unit_id: int | None = None, address: int | None = None) -> TransportError:
        return TransportError(self._MESSAGE, operation=operation, unit_id=unit_id, address=address)

    def connect(self) -> None:
        raise self._fail("connect")

    def disconnect(self) -> None:
        pass

    def is_connected(self) -> bool:
        return False

    def read_coils(self, unit_id: int, address: int, quantity: int) -> list[bool]:
        raise self._fail("read_coils", unit_id, address)

    def read_discrete_inputs(self, unit_id: int, address: int, quantity: int) -> list[bool]:
        raise self._fail("read_discrete_inputs", unit_id, address)

    def read_holding_registers(self, unit_id: int, address: int, quantity: int) -> list[int]:
        raise self._fail("read_holding_registers", unit_id, address)

    def read_input_registers(self, unit_id: int, address: int, quantity: int) -> list[int]:
        raise self._fail("read_input_registers", unit_id, address)

    def write_single_coil(self, unit_id: int, address: int, value: bool) -> None:
        raise self._fail("write_single_coil", unit_id, address)

    def write_single_register(self, unit_id: int, address: int, value: int) -> None:
        raise self._fail("write_single_register", unit_id, address)

    def write_multiple_coils(self, unit_id: int, address: int, values: Sequence[bool]) -> None:
        raise self._fail("write_multiple_coils", unit_id, address)

    def write_multiple_registers(self, unit_id: int, address: int, values: Sequence[int]) -> None:
        raise self._fail("write_multiple_registers", unit_id, address)


def create_transport(config: ConnectionConfig | None) -> Transport:
    """Unconnected transport for a config; UnconfiguredTransport when config is None."""
    if config is None:
        return UnconfiguredTransport()
    return PymodbusTransport(config)


def connection_factory(config: ConnectionConfig) -> Callable[[], Transport]:
    """Zero-argument factory returning connected PymodbusTransports, for ConnectionPool."""

    def factory() -> Transport:
        transport = PymodbusTransport(config)
        transport.connect()
        return transport

    return factory
