"""Exceptions for modbus-spec: parse, resolution, validation, transport and pool errors."""

from collections.abc import Sequence


class ModbusSpecError(Exception):
    """Base exception for modbus-spec."""

    pass


# ---------------------------------------------------------------------------
# Parse errors (raised while loading a specification document)
# ---------------------------------------------------------------------------


class ParseError(ModbusSpecError):
    """Raised when a specification document cannot be loaded. Fails the whole load."""

    pass


class MalformedDocumentError(ParseError):
    """Raised for documents that are not well-formed or use forbidden XML constructs."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or "Malformed specification document")


class InvalidFieldError(ParseError):
    """Raised when a field is present but its value is unusable (bad number, out of range, ...)."""

    def __init__(self, field: str, value: object, message: str | None = None) -> None:
        self.field = field
        self.value = value
        super().__init__(message or f"Invalid value for {field}: {value!r}")


class DuplicateAccessorNameError(ParseError):
    """Raised when one device declares two accessors with the same name."""

    def __init__(self, device: str, name: str) -> None:
        self.device = device
        self.name = name
        super().__init__(f"Duplicate accessor name {name!r} in device {device!r}")


class MissingRequiredFieldError(ParseError):
    """Raised when a required attribute or child element is absent or blank."""

    def __init__(self, element: str, field: str) -> None:
        self.element = element
        self.field = field
        super().__init__(f"{element}: required field {field!r} is missing or blank")


# ---------------------------------------------------------------------------
# Resolution errors (caller intent does not match the loaded specification)
# ---------------------------------------------------------------------------


class ResolutionError(ModbusSpecError):
    """Raised when a function, device, accessor or register cannot be resolved."""

    pass


class DeviceNotFoundError(ResolutionError):
    def __init__(self, device_id: str) -> None:
        self.device_id = device_id
        super().__init__(f"Device not found: {device_id!r}")


class AccessorNotFoundError(ResolutionError):
    def __init__(self, name: str, device_id: str | None = None) -> None:
        self.name = name
        self.device_id = device_id
        if device_id is None:
            msg = f"Accessor not found: {name!r}"
        else:
            msg = f"Accessor not found: {name!r} in device {device_id!r}"
        super().__init__(msg)


class AmbiguousAccessorError(ResolutionError):
    """Raised when an unqualified accessor name exists on more than one device."""

    def __init__(self, name: str, device_ids: Sequence[str]) -> None:
        self.name = name
        self.device_ids = tuple(device_ids)
        super().__init__(
            f"Accessor {name!r} is defined on several devices {list(self.device_ids)}; "
            "pass device_id to choose one"
        )


class FunctionNotFoundError(ResolutionError):
    def __init__(self, identifier: str) -> None:
        self.identifier = identifier
        super().__init__(f"Function not found: {identifier!r}")


class RegisterNotFoundError(ResolutionError):
    def __init__(self, name: str, device_id: str) -> None:
        self.name = name
        self.device_id = device_id
        super().__init__(f"Register not found: {name!r} in device {device_id!r}")


# ---------------------------------------------------------------------------
# Validation errors (bad call parameters, always raised before any I/O)
# ---------------------------------------------------------------------------


class ValidationError(ModbusSpecError, ValueError):
    """Raised when call parameters are rejected before any transport call."""

    pass


class BlankArgumentError(ValidationError):
    def __init__(self, argument: str) -> None:
        self.argument = argument
        super().__init__(f"{argument} must not be blank")


class OutOfRangeError(ValidationError):
    def __init__(self, field: str, value: int, low: int, high: int) -> None:
        self.field = field
        self.value = value
        self.low = low
        self.high = high
        super().__init__(f"{field} must be between {low} and {high}, got: {value}")


class ArrayLengthMismatchError(ValidationError):
    """Raised when an array write does not cover exactly the accessor's address span."""

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Array length mismatch: expected {expected} values, got {actual}")


class UnsupportedOperationError(ValidationError):
    def __init__(self, code: str, operation: str) -> None:
        self.code = code
        self.operation = operation
        super().__init__(f"Function code {code} does not support {operation}")


class UnexpectedResultCountError(ValidationError):
    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Expected {expected} value(s) but the operation covers {actual}")


class OperationStateError(ValidationError):
    """Raised when an operation is reconfigured after it has been executed."""

    pass


class AccessDeniedError(ValidationError):
    def __init__(self, register: str, access: str) -> None:
        self.register = register
        self.access = access
        super().__init__(f"Register {register!r} is not {access}")


# ---------------------------------------------------------------------------
# Transport and pool errors
# ---------------------------------------------------------------------------


class TransportError(ModbusSpecError):
    """Raised when a Modbus read/write fails (wraps pymodbus or connection errors)."""

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        unit_id: int | None = None,
        address: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.operation = operation
        self.unit_id = unit_id
        self.address = address
        self.cause = cause
        super().__init__(message)


class PoolError(ModbusSpecError):
    """Base exception for connection pool failures."""

    pass


class BorrowTimeoutError(PoolError):
    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout:.3f}s waiting for a pooled connection")


class PoolClosedError(PoolError):
    def __init__(self) -> None:
        super().__init__("Connection pool is closed")


class ConnectionCreationError(PoolError):
    """Raised when the connection factory fails to produce a connection."""

    pass
