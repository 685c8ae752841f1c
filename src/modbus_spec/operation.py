"""ModbusOperation: fluent call builder dispatching a function code onto a Transport request."""

import logging
from collections.abc import Iterable
from concurrent.futures import Executor, Future
from typing import Any, Callable, ContextManager, Sequence, Union

from .errors import (
    ArrayLengthMismatchError,
    OperationStateError,
    OutOfRangeError,
    TransportError,
    UnexpectedResultCountError,
    UnsupportedOperationError,
    ValidationError,
)
from .normalize import MAX_ADDRESS, MIN_ADDRESS, normalize_name
from .resolver import OperationDescriptor
from .transport import Transport
from .types import MAX_UNIT_ID, MIN_UNIT_ID, Accessor, FunctionCode

logger = logging.getLogger(__name__)

DEFAULT_UNIT_ID = 1
MIN_QUANTITY = 1
MAX_QUANTITY = 2000
MIN_REGISTER_VALUE = 0
MAX_REGISTER_VALUE = 65535

ConnectionSource = Callable[[], ContextManager[Transport]]
WriteValue = Union[bool, int, Sequence[bool], Sequence[int]]

# Terminal operation names, as reported by UnsupportedOperationError
READ = "read"
READ_SINGLE = "read_single"
READ_BOOLEANS = "read_booleans"
WRITE_BOOL = "write(bool)"
WRITE_INT = "write(int)"
WRITE_BOOL_ARRAY = "write(bool[])"
WRITE_INT_ARRAY = "write(int[])"

# function code -> Transport read method
_READ_METHODS: dict[int, str] = {
    1: "read_coils",
    2: "read_discrete_inputs",
    3: "read_holding_registers",
    4: "read_input_registers",
}
_BIT_READS = frozenset({1, 2})

# function code -> (allowed write form, Transport write method)
_WRITE_METHODS: dict[int, tuple[str, str]] = {
    5: (WRITE_BOOL, "write_single_coil"),
    6: (WRITE_INT, "write_single_register"),
    15: (WRITE_BOOL_ARRAY, "write_multiple_coils"),
    16: (WRITE_INT_ARRAY, "write_multiple_registers"),
}

# canonical names, for specifications declaring non-numeric codes
_NAME_TO_CODE: dict[str, int] = {
    "readcoils": 1,
    "readdiscreteinputs": 2,
    "readholdingregisters": 3,
    "readinputregisters": 4,
    "writesinglecoil": 5,
    "writesingleregister": 6,
    "writemultiplecoils": 15,
    "writemultipleregisters": 16,
}


def _dispatch_code(function_code: FunctionCode) -> int | None:
    """Standard code number used for dispatch: numeric code if known, else the canonical name."""
    number = function_code.number
    if number in _READ_METHODS or number in _WRITE_METHODS:
        return number
    return _NAME_TO_CODE.get(normalize_name(function_code.name))


def _check_range(field: str, value: int, low: int, high: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{field} must be an int, got {type(value).__name__}")
    if value < low or value > high:
        raise OutOfRangeError(field, value, low, high)
    return value


def _classify_write(value: Any, code: int | None) -> tuple[str, list[Any] | Any]:
    """Return (write form, payload). bool is checked before int since bool subclasses int."""
    if isinstance(value, bool):
        return WRITE_BOOL, value
    if isinstance(value, int):
        return WRITE_INT, value
    if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
        raise TypeError(f"Unsupported write value: {type(value).__name__}")
    values = list(value)
    if not values:
        # an empty array takes whichever array form the function allows
        return (WRITE_BOOL_ARRAY if code == 15 else WRITE_INT_ARRAY), values
    if all(isinstance(v, bool) for v in values):
        return WRITE_BOOL_ARRAY, values
    if all(isinstance(v, int) for v in values):
        return WRITE_INT_ARRAY, values
    raise TypeError("Write arrays must contain only bools or only ints")


class ModbusOperation:
    """
    Two-phase builder for one Modbus request.

    Configuration phase: unit_id(), address() and quantity() may be called in
    any order and any number of times; a rejected value leaves the previous one
    in place. The first terminal call (read, read_single, read_booleans, write)
    freezes the parameters; terminal calls may then be repeated, setters raise
    OperationStateError.

    Accessor-bound operations take address and quantity from the accessor and
    default the unit id to the owning device's unit id.

    All validation happens before the connection source is touched.
    """

    def __init__(self, descriptor: OperationDescriptor, connection_source: ConnectionSource) -> None:
        self._descriptor = descriptor
        self._connection_source = connection_source
        self._code = _dispatch_code(descriptor.function_code)
        accessor = descriptor.accessor
        self._unit_id = descriptor.device_unit_id if descriptor.device_unit_id is not None else DEFAULT_UNIT_ID
        self._address = accessor.start_address if accessor is not None else MIN_ADDRESS
        self._quantity = accessor.register_count if accessor is not None else MIN_QUANTITY
        self._executed = False

    @property
    def descriptor(self) -> OperationDescriptor:
        return self._descriptor

    @property
    def function_code(self) -> FunctionCode:
        return self._descriptor.function_code

    @property
    def accessor(self) -> Accessor | None:
        return self._descriptor.accessor

    @property
    def parameters(self) -> tuple[int, int, int]:
        """Current (unit_id, address, quantity)."""
        return self._unit_id, self._address, self._quantity

    @property
    def executed(self) -> bool:
        return self._executed

    # ------------------------------------------------------------------
    # Configuration phase
    # ------------------------------------------------------------------

    def _check_configurable(self, field: str) -> None:
        if self._executed:
            raise OperationStateError(f"Cannot set {field} after the operation has been executed")

    def _check_not_fixed(self, field: str) -> None:
        if self._descriptor.is_accessor_bound:
            raise ValidationError(f"{field} is fixed by accessor {self._descriptor.accessor.name!r}")

    def unit_id(self, value: int) -> "ModbusOperation":
        self._check_configurable("unit_id")
        self._unit_id = _check_range("unit_id", value, MIN_UNIT_ID, MAX_UNIT_ID)
        return self

    def address(self, value: int) -> "ModbusOperation":
        self._check_configurable("address")
        self._check_not_fixed("address")
        self._address = _check_range("address", value, MIN_ADDRESS, MAX_ADDRESS)
        return self

    def quantity(self, value: int) -> "ModbusOperation":
        self._check_configurable("quantity")
        self._check_not_fixed("quantity")
        self._quantity = _check_range("quantity", value, MIN_QUANTITY, MAX_QUANTITY)
        return self

    # ------------------------------------------------------------------
    # Terminal operations
    # ------------------------------------------------------------------

    def read(self) -> list[int]:
        """Read quantity values; bit tables come back as 0/1."""
        return [int(v) for v in self._read(READ)]

    def read_single(self) -> int:
        """Read exactly one value; the quantity must be 1."""
        return int(self._read(READ_SINGLE)[0])

    def read_booleans(self) -> list[bool]:
        """Read coils or discrete inputs as bools."""
        return [bool(v) for v in self._read(READ_BOOLEANS)]

    def write(self, value: WriteValue) -> None:
        """
        Write one value or an array. The form must match the function code:
        bool -> WriteSingleCoil, int -> WriteSingleRegister, bools ->
        WriteMultipleCoils, ints -> WriteMultipleRegisters.
        """
        self._executed = True
        form, payload = _classify_write(value, self._code)
        entry = _WRITE_METHODS.get(self._code) if self._code is not None else None
        if entry is None or entry[0] != form:
            raise UnsupportedOperationError(self.function_code.code, form)
        method = entry[1]

        if form == WRITE_INT:
            _check_range("value", payload, MIN_REGISTER_VALUE, MAX_REGISTER_VALUE)
        elif form in (WRITE_BOOL_ARRAY, WRITE_INT_ARRAY):
            if self._descriptor.is_accessor_bound:
                self._check_quantity()
                if len(payload) != self._quantity:
                    raise ArrayLengthMismatchError(self._quantity, len(payload))
            elif len(payload) < MIN_QUANTITY or len(payload) > MAX_QUANTITY:
                raise OutOfRangeError("quantity", len(payload), MIN_QUANTITY, MAX_QUANTITY)
            if form == WRITE_INT_ARRAY:
                for v in payload:
                    _check_range("value", v, MIN_REGISTER_VALUE, MAX_REGISTER_VALUE)

        self._execute(method, payload)

    def _check_quantity(self) -> None:
        # accessor spans bypass the quantity() setter
        if not MIN_QUANTITY <= self._quantity <= MAX_QUANTITY:
            raise OutOfRangeError("quantity", self._quantity, MIN_QUANTITY, MAX_QUANTITY)

    def _read(self, operation: str) -> list[Any]:
        self._executed = True
        code = self._code
        if code not in _READ_METHODS or (operation == READ_BOOLEANS and code not in _BIT_READS):
            raise UnsupportedOperationError(self.function_code.code, operation)
        self._check_quantity()
        if operation == READ_SINGLE and self._quantity != 1:
            raise UnexpectedResultCountError(1, self._quantity)

        values = self._execute(_READ_METHODS[code], self._quantity)
        if values is None or len(values) < self._quantity:
            raise TransportError(
                f"Short response from {_READ_METHODS[code]}: expected {self._quantity} values, "
                f"got {0 if values is None else len(values)}",
                operation=_READ_METHODS[code],
                unit_id=self._unit_id,
                address=self._address,
            )
        return list(values)[: self._quantity]

    def _execute(self, method: str, argument: Any) -> Any:
        logger.debug(
            "%s unit=%d address=%d %s=%r",
            method,
            self._unit_id,
            self._address,
            "quantity" if method.startswith("read") else "value",
            argument,
        )
        with self._connection_source() as transport:
            try:
                return getattr(transport, method)(self._unit_id, self._address, argument)
            except TransportError:
                raise
            except Exception as e:
                raise TransportError(
                    f"{method} failed at address {self._address}: {e}",
                    operation=method,
                    unit_id=self._unit_id,
                    address=self._address,
                    cause=e,
                ) from e

    def __repr__(self) -> str:
        accessor = self._descriptor.accessor
        return (
            f"ModbusOperation(function={self.function_code.name!r}, "
            f"accessor={accessor.name if accessor else None!r}, unit_id={self._unit_id}, "
            f"address={self._address}, quantity={self._quantity}, executed={self._executed})"
        )


def _log_failure(future: Future) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error("Asynchronous Modbus operation failed: %s", exc)


class AsyncModbusOperation:
    """
    Runs a ModbusOperation's terminal calls on an Executor and returns Futures.

    Setters run immediately in the caller's thread. Failures (validation,
    transport, pool) are delivered through the Future and logged.
    """

    def __init__(self, operation: ModbusOperation, executor: Executor) -> None:
        self._operation = operation
        self._executor = executor

    @property
    def operation(self) -> ModbusOperation:
        return self._operation

    def unit_id(self, value: int) -> "AsyncModbusOperation":
        self._operation.unit_id(value)
        return self

    def address(self, value: int) -> "AsyncModbusOperation":
        self._operation.address(value)
        return self

    def quantity(self, value: int) -> "AsyncModbusOperation":
        self._operation.quantity(value)
        return self

    def _submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        future = self._executor.submit(fn, *args)
        future.add_done_callback(_log_failure)
        return future

    def read_async(self) -> "Future[list[int]]":
        return self._submit(self._operation.read)

    def read_single_async(self) -> "Future[int]":
        return self._submit(self._operation.read_single)

    def read_booleans_async(self) -> "Future[list[bool]]":
        return self._submit(self._operation.read_booleans)

    def write_async(self, value: WriteValue) -> "Future[None]":
        return self._submit(self._operation.write, value)
