"""Connection settings: TCP or serial (RTU/ASCII), from the specification document or the environment."""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Union

from .normalize import is_blank, parse_bool, parse_int

DEFAULT_ENV_PREFIX = "MODBUS_SPEC_"


class ConnectionType(str, Enum):
    TCP = "TCP"
    RTU = "RTU"
    ASCII = "ASCII"

    @classmethod
    def parse(cls, raw: str | None) -> "ConnectionType":
        """Blank means TCP; otherwise the name is matched case-insensitively."""
        if is_blank(raw):
            return cls.TCP
        try:
            return cls(raw.strip().upper())
        except ValueError:
            raise ValueError(f"Unknown connection type: {raw!r}") from None


class Parity(int, Enum):
    NONE = 0
    ODD = 1
    EVEN = 2

    @property
    def code(self) -> str:
        """Single-letter parity as used by pyserial/pymodbus."""
        return "NOE"[self.value]

    @classmethod
    def parse(cls, raw: str | None) -> "Parity":
        """Accepts none/odd/even (any case) or 0/1/2; blank means NONE."""
        if is_blank(raw):
            return cls.NONE
        s = raw.strip()
        if s.isdigit():
            return cls(int(s))
        try:
            return cls[s.upper()]
        except KeyError:
            raise ValueError(f"Unknown parity: {raw!r}") from None


@dataclass(frozen=True)
class TcpConfig:
    host: str = "localhost"
    port: int = 502
    timeout_ms: int = 3000
    reconnect: bool = True
    type: ConnectionType = field(default=ConnectionType.TCP, init=False)

    def __post_init__(self) -> None:
        if is_blank(self.host):
            raise ValueError("TCP host must not be blank")
        if self.port < 1 or self.port > 65535:
            raise ValueError(f"TCP port must be between 1 and 65535, got {self.port}")
        if self.timeout_ms < 0:
            raise ValueError(f"Timeout must be >= 0 ms, got {self.timeout_ms}")

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000.0


@dataclass(frozen=True)
class SerialConfig:
    port_name: str
    baud_rate: int = 9600
    data_bits: int = 8
    stop_bits: int = 1
    parity: Parity = Parity.NONE
    type: ConnectionType = ConnectionType.RTU
    timeout_ms: int = 3000

    def __post_init__(self) -> None:
        if is_blank(self.port_name):
            raise ValueError("Serial port name must not be blank")
        if self.type == ConnectionType.TCP:
            raise ValueError("SerialConfig type must be RTU or ASCII")
        if self.baud_rate <= 0:
            raise ValueError(f"Baud rate must be positive, got {self.baud_rate}")
        if self.data_bits not in (5, 6, 7, 8):
            raise ValueError(f"Data bits must be 5-8, got {self.data_bits}")
        if self.stop_bits not in (1, 2):
            raise ValueError(f"Stop bits must be 1 or 2, got {self.stop_bits}")
        if self.timeout_ms < 0:
            raise ValueError(f"Timeout must be >= 0 ms, got {self.timeout_ms}")

    @property
    def framer(self) -> str:
        """Serial encoding name: "rtu" or "ascii"."""
        return "ascii" if self.type == ConnectionType.ASCII else "rtu"

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000.0


ConnectionConfig = Union[TcpConfig, SerialConfig]


def connection_config_from_env(
    prefix: str = DEFAULT_ENV_PREFIX,
    environ: Mapping[str, str] | None = None,
) -> ConnectionConfig | None:
    """
    Build a ConnectionConfig from environment variables, or None if neither
    {prefix}HOST nor {prefix}PORT_NAME is set.

    Recognised variables: TYPE, HOST, PORT, TIMEOUT_MS, RECONNECT, PORT_NAME,
    BAUD_RATE, DATA_BITS, STOP_BITS, PARITY. Raises ValueError for bad values.
    """
    env = os.environ if environ is None else environ

    def get(name: str) -> str | None:
        value = env.get(prefix + name)
        return None if is_blank(value) else value

    host = get("HOST")
    port_name = get("PORT_NAME")
    if host is None and port_name is None:
        return None

    conn_type = ConnectionType.parse(get("TYPE") or ("TCP" if host is not None else "RTU"))
    timeout = get("TIMEOUT_MS")

    if conn_type == ConnectionType.TCP:
        if host is None:
            raise ValueError(f"{prefix}HOST is required for TCP connections")
        port = get("PORT")
        reconnect = get("RECONNECT")
        return TcpConfig(
            host=host.strip(),
            port=parse_int(port) if port else 502,
            timeout_ms=parse_int(timeout) if timeout else 3000,
            reconnect=parse_bool(reconnect) if reconnect else True,
        )

    if port_name is None:
        raise ValueError(f"{prefix}PORT_NAME is required for serial connections")
    baud = get("BAUD_RATE")
    data_bits = get("DATA_BITS")
    stop_bits = get("STOP_BITS")
    return SerialConfig(
        port_name=port_name.strip(),
        baud_rate=parse_int(baud) if baud else 9600,
        data_bits=parse_int(data_bits) if data_bits else 8,
        stop_bits=parse_int(stop_bits) if stop_bits else 1,
        parity=Parity.parse(get("PARITY")),
        type=conn_type,
        timeout_ms=parse_int(timeout) if timeout else 3000,
    )
