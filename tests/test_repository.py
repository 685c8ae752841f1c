"""Tests for SpecRepository indexes and reload semantics."""

from modbus_spec import Device, FunctionCode, SpecParser, SpecRepository, TcpConfig


def test_lookups(plant_repository: SpecRepository) -> None:
    assert plant_repository.by_function_code("3").name == "ReadHoldingRegisters"
    assert plant_repository.by_function_code(" 16 ").name == "WriteMultipleRegisters"
    assert plant_repository.by_function_name("readholdingregisters").code == "3"
    assert plant_repository.by_function_name("READCOILS").code == "1"
    assert plant_repository.device_by_id("Boiler").unit_id == 1
    assert plant_repository.device_by_unit_id(2).id == "Chiller"


def test_misses_return_none(plant_repository: SpecRepository) -> None:
    assert plant_repository.by_function_code("99") is None
    assert plant_repository.by_function_name("Holding") is None
    assert plant_repository.device_by_id("boiler") is None
    assert plant_repository.device_by_unit_id(17) is None


def test_counts_and_collections(plant_repository: SpecRepository) -> None:
    assert plant_repository.function_code_count == 8
    assert plant_repository.device_count == 2
    assert len(plant_repository) == 2
    assert [d.id for d in plant_repository.all_devices()] == ["Boiler", "Chiller"]
    assert len(plant_repository.all_function_codes()) == 8
    assert plant_repository.connection_config == TcpConfig(
        host="192.168.1.10", port=5020, timeout_ms=1500, reconnect=False
    )


def test_load_replaces_previous_content(plant_repository: SpecRepository) -> None:
    other = SpecParser().parse('<ModbusSpec><RegisterMap><Device id="Solo" unitId="9"/></RegisterMap></ModbusSpec>')
    plant_repository.load(other)
    assert plant_repository.device_by_id("Boiler") is None
    assert plant_repository.device_by_unit_id(1) is None
    assert plant_repository.device_by_id("Solo").unit_id == 9
    assert plant_repository.connection_config is None


def test_clear() -> None:
    repo = SpecRepository()
    repo.add_function_codes([FunctionCode("3", "ReadHoldingRegisters")])
    repo.add_devices([Device(id="A", unit_id=1)])
    repo.clear()
    assert len(repo) == 0
    assert repo.function_code_count == 0
    assert repo.by_function_name("ReadHoldingRegisters") is None


def test_later_device_wins_unit_id_index() -> None:
    repo = SpecRepository()
    repo.add_devices([Device(id="A", unit_id=5), Device(id="B", unit_id=5)])
    assert repo.device_by_unit_id(5).id == "B"
    assert repo.device_by_id("A") is not None
