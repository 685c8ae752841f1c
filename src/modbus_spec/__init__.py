"""modbus-spec: declarative Modbus device specifications with fluent, validated read/write calls."""

__version__ = "0.1.0"

from .client import ModbusSpecClient
from .config import (
    ConnectionConfig,
    ConnectionType,
    Parity,
    SerialConfig,
    TcpConfig,
    connection_config_from_env,
)
from .errors import (
    AccessDeniedError,
    AccessorNotFoundError,
    AmbiguousAccessorError,
    ArrayLengthMismatchError,
    BlankArgumentError,
    BorrowTimeoutError,
    ConnectionCreationError,
    DeviceNotFoundError,
    DuplicateAccessorNameError,
    FunctionNotFoundError,
    InvalidFieldError,
    MalformedDocumentError,
    MissingRequiredFieldError,
    ModbusSpecError,
    OperationStateError,
    OutOfRangeError,
    ParseError,
    PoolClosedError,
    PoolError,
    RegisterNotFoundError,
    ResolutionError,
    TransportError,
    UnexpectedResultCountError,
    UnsupportedOperationError,
    ValidationError,
)
from .operation import AsyncModbusOperation, ModbusOperation
from .parser import ParseResult, SpecParser
from .pool import ConnectionPool, LeasedConnection
from .repository import SpecRepository
from .resolver import OperationDescriptor, OperationResolver
from .transport import (
    PymodbusTransport,
    SimulatedTransport,
    Transport,
    UnconfiguredTransport,
    connection_factory,
    create_transport,
)
from .types import (
    Access,
    Accessor,
    Device,
    FunctionCode,
    Register,
    RegisterCategory,
    standard_function_codes,
)

__all__ = [
    "__version__",
    "ModbusSpecClient",
    "ConnectionConfig",
    "ConnectionType",
    "Parity",
    "SerialConfig",
    "TcpConfig",
    "connection_config_from_env",
    "AccessDeniedError",
    "AccessorNotFoundError",
    "AmbiguousAccessorError",
    "ArrayLengthMismatchError",
    "BlankArgumentError",
    "BorrowTimeoutError",
    "ConnectionCreationError",
    "DeviceNotFoundError",
    "DuplicateAccessorNameError",
    "FunctionNotFoundError",
    "InvalidFieldError",
    "MalformedDocumentError",
    "MissingRequiredFieldError",
    "ModbusSpecError",
    "OperationStateError",
    "OutOfRangeError",
    "ParseError",
    "PoolClosedError",
    "PoolError",
    "RegisterNotFoundError",
    "ResolutionError",
    "TransportError",
    "UnexpectedResultCountError",
    "UnsupportedOperationError",
    "ValidationError",
    "AsyncModbusOperation",
    "ModbusOperation",
    "ParseResult",
    "SpecParser",
    "ConnectionPool",
    "LeasedConnection",
    "SpecRepository",
    "OperationDescriptor",
    "OperationResolver",
    "PymodbusTransport",
    "SimulatedTransport",
    "Transport",
    "UnconfiguredTransport",
    "connection_factory",
    "create_transport",
    "Access",
    "Accessor",
    "Device",
    "FunctionCode",
    "Register",
    "RegisterCategory",
    "standard_function_codes",
]
