"""Shared fixtures: a two-device plant specification and a simulated transport."""

import pytest

from modbus_spec import ModbusSpecClient, SimulatedTransport, SpecParser, SpecRepository

PLANT_SPEC = """<?xml version="1.0" encoding="UTF-8"?>
<ModbusSpec>
  <Connection type="TCP">
    <Host>192.168.1.10</Host>
    <Port>5020</Port>
    <Timeout>1500</Timeout>
    <Reconnect>false</Reconnect>
  </Connection>
  <FunctionCodes>
    <FunctionCode code="1" name="ReadCoils"><Description>Read coil status</Description></FunctionCode>
    <FunctionCode code="2" name="ReadDiscreteInputs"><Description>Read discrete inputs</Description></FunctionCode>
    <FunctionCode code="3" name="ReadHoldingRegisters"><Description>Read holding registers</Description></FunctionCode>
    <FunctionCode code="4" name="ReadInputRegisters"><Description>Read input registers</Description></FunctionCode>
    <FunctionCode code="5" name="WriteSingleCoil"><Description>Write one coil</Description></FunctionCode>
    <FunctionCode code="6" name="WriteSingleRegister"><Description>Write one register</Description></FunctionCode>
    <FunctionCode code="15" name="WriteMultipleCoils"><Description>Write coils</Description></FunctionCode>
    <FunctionCode code="16" name="WriteMultipleRegisters"><Description>Write registers</Description></FunctionCode>
  </FunctionCodes>
  <RegisterMap>
    <Device id="Boiler" unitId="1">
      <Accessors>
        <Accessor name="getTemperature1">
          <Function>ReadHoldingRegisters</Function>
          <DataClass>Temperature</DataClass>
          <AddressRange>39</AddressRange>
        </Accessor>
        <Accessor name="getAllTemperatures">
          <Function>ReadHoldingRegisters</Function>
          <DataClass>Temperature</DataClass>
          <AddressRange>39-42</AddressRange>
        </Accessor>
        <Accessor name="setValvePositions">
          <Function>WriteMultipleRegisters</Function>
          <DataClass>Valve</DataClass>
          <AddressRange>70-85</AddressRange>
        </Accessor>
        <Accessor name="setSetpoint">
          <Function>WriteSingleRegister</Function>
          <DataClass>Setpoint</DataClass>
          <AddressRange>50</AddressRange>
        </Accessor>
        <Accessor name="getPumpStates">
          <Function>ReadCoils</Function>
          <DataClass>Pump</DataClass>
          <AddressRange>0-3</AddressRange>
        </Accessor>
        <Accessor name="setPump1">
          <Function>WriteSingleCoil</Function>
          <DataClass>Pump</DataClass>
          <AddressRange>0</AddressRange>
        </Accessor>
        <Accessor name="setPumps">
          <Function>WriteMultipleCoils</Function>
          <DataClass>Pump</DataClass>
          <AddressRange>0-3</AddressRange>
        </Accessor>
        <Accessor name="getAlarms">
          <Function>ReadDiscreteInputs</Function>
          <DataClass>Alarm</DataClass>
          <AddressRange>10-11</AddressRange>
        </Accessor>
        <Accessor name="getFlow">
          <Function>ReadInputRegisters</Function>
          <DataClass>Flow</DataClass>
          <AddressRange>5</AddressRange>
        </Accessor>
      </Accessors>
      <HoldingRegisters>
        <Register name="Temperature1" address="39"><DataType>UINT16</DataType><Access>R</Access></Register>
        <Register name="Setpoint" address="50"><DataType>UINT16</DataType><Access>RW</Access></Register>
      </HoldingRegisters>
      <InputRegisters>
        <Register name="Flow" address="5"><DataType>UINT16</DataType><Access>ReadOnly</Access></Register>
      </InputRegisters>
      <Coils>
        <Register name="Pump1" address="0"><DataType>BOOL</DataType><Access>ReadWrite</Access></Register>
      </Coils>
      <DiscreteInputs>
        <Register name="Alarm1" address="10"><DataType>BOOL</DataType><Access>R</Access></Register>
      </DiscreteInputs>
    </Device>
    <Device id="Chiller" unitId="2">
      <Accessors>
        <Accessor name="getStatus">
          <Function>ReadHoldingRegisters</Function>
          <DataClass>Status</DataClass>
          <AddressRange>100</AddressRange>
        </Accessor>
        <Accessor name="getAllTemperatures">
          <Function>readholdingregisters</Function>
          <DataClass>Temperature</DataClass>
          <AddressRange>10-11</AddressRange>
        </Accessor>
      </Accessors>
    </Device>
  </RegisterMap>
</ModbusSpec>
"""


@pytest.fixture
def plant_xml() -> str:
    return PLANT_SPEC


@pytest.fixture
def plant_repository() -> SpecRepository:
    repo = SpecRepository()
    repo.load(SpecParser().parse(PLANT_SPEC))
    return repo


@pytest.fixture
def simulated() -> SimulatedTransport:
    return SimulatedTransport()


@pytest.fixture
def plant_client(simulated: SimulatedTransport) -> ModbusSpecClient:
    client = ModbusSpecClient(transport=simulated)
    client.load(PLANT_SPEC)
    return client
