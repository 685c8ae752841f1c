"""Tests for connection settings and environment-driven configuration."""

import pytest

from modbus_spec import ConnectionType, Parity, SerialConfig, TcpConfig, connection_config_from_env


def test_tcp_defaults() -> None:
    c = TcpConfig()
    assert (c.host, c.port, c.timeout_ms, c.reconnect) == ("localhost", 502, 3000, True)
    assert c.type == ConnectionType.TCP
    assert c.timeout_s == 3.0


def test_serial_defaults() -> None:
    c = SerialConfig(port_name="/dev/ttyUSB0")
    assert (c.baud_rate, c.data_bits, c.stop_bits, c.parity) == (9600, 8, 1, Parity.NONE)
    assert c.type == ConnectionType.RTU
    assert c.framer == "rtu"
    assert SerialConfig(port_name="COM3", type=ConnectionType.ASCII).framer == "ascii"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"port": 0},
        {"port": 65536},
        {"host": " "},
        {"timeout_ms": -1},
    ],
)
def test_tcp_rejects_bad_values(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        TcpConfig(**kwargs)


def test_serial_rejects_tcp_type_and_bad_bits() -> None:
    with pytest.raises(ValueError):
        SerialConfig(port_name="COM1", type=ConnectionType.TCP)
    with pytest.raises(ValueError):
        SerialConfig(port_name="COM1", data_bits=9)
    with pytest.raises(ValueError):
        SerialConfig(port_name="COM1", stop_bits=3)


@pytest.mark.parametrize(
    ("raw", "expected", "code"),
    [(None, Parity.NONE, "N"), ("odd", Parity.ODD, "O"), ("EVEN", Parity.EVEN, "E"), ("2", Parity.EVEN, "E")],
)
def test_parity_parse(raw: str | None, expected: Parity, code: str) -> None:
    p = Parity.parse(raw)
    assert p == expected
    assert p.code == code


def test_connection_type_parse() -> None:
    assert ConnectionType.parse("") == ConnectionType.TCP
    assert ConnectionType.parse("rtu") == ConnectionType.RTU
    with pytest.raises(ValueError):
        ConnectionType.parse("udp")


def test_env_none_when_unset() -> None:
    assert connection_config_from_env(environ={}) is None


def test_env_tcp() -> None:
    env = {"MODBUS_SPEC_HOST": "10.0.0.5", "MODBUS_SPEC_PORT": "1502", "MODBUS_SPEC_RECONNECT": "no"}
    c = connection_config_from_env(environ=env)
    assert c == TcpConfig(host="10.0.0.5", port=1502, reconnect=False)


def test_env_serial_with_custom_prefix() -> None:
    env = {"PLC_PORT_NAME": "/dev/ttyS1", "PLC_TYPE": "ascii", "PLC_BAUD_RATE": "19200", "PLC_PARITY": "even"}
    c = connection_config_from_env(prefix="PLC_", environ=env)
    assert isinstance(c, SerialConfig)
    assert c.type == ConnectionType.ASCII
    assert c.baud_rate == 19200
    assert c.parity == Parity.EVEN
