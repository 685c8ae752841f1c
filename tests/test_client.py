"""Tests for ModbusSpecClient: loading, connection selection, named registers."""

from unittest.mock import MagicMock, patch

import pytest

from modbus_spec import (
    AccessDeniedError,
    AmbiguousAccessorError,
    ArrayLengthMismatchError,
    ConnectionPool,
    DeviceNotFoundError,
    ModbusSpecClient,
    ParseError,
    PymodbusTransport,
    RegisterCategory,
    RegisterNotFoundError,
    SimulatedTransport,
    TcpConfig,
    TransportError,
    UnconfiguredTransport,
)


def test_accessor_read_through_client(plant_client: ModbusSpecClient, simulated: SimulatedTransport) -> None:
    for i, v in enumerate([210, 215, 220, 225]):
        simulated.set_value(RegisterCategory.HOLDING_REGISTER, 39 + i, v)
    assert plant_client.accessor("getAllTemperatures", "Boiler").read() == [210, 215, 220, 225]
    assert plant_client.accessor("getTemperature1").read_single() == 210
    assert simulated.calls[-1] == ("read_holding_registers", 1, 39, 1)


def test_function_write_through_client(plant_client: ModbusSpecClient, simulated: SimulatedTransport) -> None:
    plant_client.function("16").unit_id(2).address(100).write([5, 6])
    assert simulated.calls == [("write_multiple_registers", 2, 100, [5, 6])]
    assert plant_client.function("ReadHoldingRegisters").address(100).quantity(2).read() == [5, 6]


def test_set_valves_mismatch_issues_no_calls(plant_client: ModbusSpecClient, simulated: SimulatedTransport) -> None:
    with pytest.raises(ArrayLengthMismatchError):
        plant_client.accessor("setValvePositions").write([1, 0, 1])
    assert simulated.calls == []


def test_ambiguous_accessor_through_client(plant_client: ModbusSpecClient) -> None:
    with pytest.raises(AmbiguousAccessorError):
        plant_client.accessor("getAllTemperatures")


def test_read_and_write_named_registers(plant_client: ModbusSpecClient, simulated: SimulatedTransport) -> None:
    simulated.set_value(RegisterCategory.INPUT_REGISTER, 5, 88)
    simulated.set_value(RegisterCategory.DISCRETE_INPUT, 10, 1)
    assert plant_client.read_register("Boiler", "Flow") == 88
    assert plant_client.read_register("Boiler", "Alarm1") is True
    plant_client.write_register("Boiler", "Setpoint", 450)
    plant_client.write_register("Boiler", "Pump1", 1)
    assert plant_client.read_register("Boiler", "Setpoint") == 450
    assert plant_client.read_register("Boiler", "Pump1") is True
    assert ("write_single_register", 1, 50, 450) in simulated.calls
    assert ("write_single_coil", 1, 0, True) in simulated.calls


def test_named_register_errors(plant_client: ModbusSpecClient, simulated: SimulatedTransport) -> None:
    with pytest.raises(AccessDeniedError):
        plant_client.write_register("Boiler", "Temperature1", 1)
    with pytest.raises(AccessDeniedError):
        plant_client.write_register("Boiler", "Flow", 1)
    with pytest.raises(RegisterNotFoundError):
        plant_client.read_register("Boiler", "Pressure")
    with pytest.raises(DeviceNotFoundError):
        plant_client.read_register("Turbine", "Flow")
    assert simulated.calls == []


def test_failed_reload_keeps_previous_specification(plant_client: ModbusSpecClient) -> None:
    with pytest.raises(ParseError):
        plant_client.load("<ModbusSpec><RegisterMap><Device id='X'/></RegisterMap></ModbusSpec>")
    assert plant_client.get_device("Boiler") is not None
    assert len(plant_client.all_devices()) == 2
    assert plant_client.get_function_code("3").name == "ReadHoldingRegisters"
    assert len(plant_client.all_function_codes()) == 8


def test_without_connection_uses_unconfigured_transport() -> None:
    client = ModbusSpecClient().load(
        '<ModbusSpec><RegisterMap><Device id="A" unitId="1"/></RegisterMap></ModbusSpec>'
    )
    assert client.connection_config is None
    with pytest.raises(TransportError):
        client.function("3").read()
    assert isinstance(client._owned_transport, UnconfiguredTransport)


def test_lazy_transport_from_document(plant_xml: str) -> None:
    mock_modbus_client = MagicMock()
    mock_modbus_client.connect.return_value = True
    mock_modbus_client.connected = True
    mock_modbus_client.read_holding_registers.return_value = MagicMock(isError=lambda: False, registers=[321])
    with patch("modbus_spec.transport.ModbusTcpClient", return_value=mock_modbus_client) as cls:
        with ModbusSpecClient() as client:
            client.load(plant_xml)
            assert client.accessor("getTemperature1").read_single() == 321
            assert isinstance(client._owned_transport, PymodbusTransport)
    assert cls.call_args.kwargs["host"] == "192.168.1.10"
    assert cls.call_args.kwargs["port"] == 5020
    mock_modbus_client.read_holding_registers.assert_called_once_with(39, count=1, device_id=1)
    mock_modbus_client.close.assert_called_once()


def test_constructor_config_overrides_document(plant_xml: str) -> None:
    client = ModbusSpecClient(connection_config=TcpConfig(host="127.0.0.1", port=15020)).load(plant_xml)
    assert client.connection_config == TcpConfig(host="127.0.0.1", port=15020)


def test_use_pool_borrows_per_request(plant_xml: str) -> None:
    created: list[SimulatedTransport] = []

    def factory() -> SimulatedTransport:
        t = SimulatedTransport()
        created.append(t)
        return t

    pool = ConnectionPool(factory, size=2)
    client = ModbusSpecClient().load(plant_xml).use_pool(pool)
    client.function("6").address(3).write(9)
    client.function("6").address(4).write(10)
    assert pool.available == 2
    assert sum(len(t.calls) for t in created) == 2
    pool.close()


def test_explicit_transport_wins_over_pool(plant_xml: str, simulated: SimulatedTransport) -> None:
    pool = MagicMock()
    client = ModbusSpecClient(pool=pool).load(plant_xml).use_transport(simulated)
    client.function("1").read()
    pool.borrow.assert_not_called()
    assert len(simulated.calls) == 1


def test_explicit_transport_connected_on_demand(plant_xml: str) -> None:
    sim = SimulatedTransport(connected=False)
    client = ModbusSpecClient(transport=sim).load(plant_xml)
    client.connect()
    assert sim.is_connected()


def test_async_operations(plant_client: ModbusSpecClient, simulated: SimulatedTransport) -> None:
    simulated.set_value(RegisterCategory.COIL, 1, 1)
    try:
        bits = plant_client.accessor_async("getPumpStates").read_booleans_async().result(timeout=5)
        assert bits == [False, True, False, False]
        plant_client.function_async("WriteSingleCoil").address(3).write_async(True).result(timeout=5)
        assert simulated.get_value(RegisterCategory.COIL, 3) == 1
    finally:
        plant_client.close()


def test_from_file(tmp_path, plant_xml: str, simulated: SimulatedTransport) -> None:
    path = tmp_path / "plant.xml"
    path.write_text(plant_xml, encoding="utf-8")
    client = ModbusSpecClient.from_file(path, transport=simulated)
    assert client.get_device_by_unit_id(2).id == "Chiller"
    assert client.repository.device_count == 2
