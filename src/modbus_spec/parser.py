"""SpecParser: turn a Modbus specification XML document into domain objects.

The document is treated as untrusted input. It is parsed through defusedxml with
DTDs, entity declarations and external references all forbidden, and every
structural check happens here so that a document either loads completely or not
at all.
"""

import logging
import os
from dataclasses import dataclass
from typing import IO, Union
from xml.etree.ElementTree import Element

from defusedxml import DefusedXmlException
from defusedxml.ElementTree import ParseError as XMLParseError
from defusedxml.ElementTree import fromstring

from .config import ConnectionConfig, ConnectionType, Parity, SerialConfig, TcpConfig
from .errors import (
    DuplicateAccessorNameError,
    InvalidFieldError,
    MalformedDocumentError,
    MissingRequiredFieldError,
)
from .normalize import (
    check_address,
    is_blank,
    normalize_name,
    parse_address_range,
    parse_bool,
    parse_int,
)
from .types import (
    MAX_UNIT_ID,
    MIN_UNIT_ID,
    Accessor,
    Device,
    FunctionCode,
    Register,
    RegisterCategory,
    standard_function_codes,
)

logger = logging.getLogger(__name__)

Source = Union[str, bytes, IO[str], IO[bytes]]

# Container element for each register table, in declaration order
_REGISTER_CONTAINERS: tuple[tuple[RegisterCategory, str], ...] = (
    (RegisterCategory.HOLDING_REGISTER, "HoldingRegisters"),
    (RegisterCategory.INPUT_REGISTER, "InputRegisters"),
    (RegisterCategory.COIL, "Coils"),
    (RegisterCategory.DISCRETE_INPUT, "DiscreteInputs"),
)


@dataclass(frozen=True)
class ParseResult:
    """Everything a specification document declares."""

    connection_config: ConnectionConfig | None
    function_codes: tuple[FunctionCode, ...]
    devices: tuple[Device, ...]


def _child_text(parent: Element, tag: str) -> str:
    """Stripped text of the first direct child named tag, or "" if absent."""
    child = parent.find(tag)
    if child is None:
        return ""
    return "".join(child.itertext()).strip()


def _int_field(field: str, raw: str) -> int:
    try:
        return parse_int(raw)
    except ValueError as e:
        raise InvalidFieldError(field, raw) from e


class SpecParser:
    """Parses specification XML into a ParseResult; raises ParseError subclasses on failure."""

    def parse(self, source: Source) -> ParseResult:
        """Parse XML given as text, bytes or an open file object."""
        data = source.read() if hasattr(source, "read") else source
        if isinstance(data, (str, bytes)):
            data = data.strip()
        else:
            raise TypeError(f"Unsupported specification source: {type(source).__name__}")
        if not data:
            raise MalformedDocumentError("Specification document is empty")

        try:
            root = fromstring(data, forbid_dtd=True, forbid_entities=True, forbid_external=True)
        except DefusedXmlException as e:
            raise MalformedDocumentError(f"Forbidden XML construct in specification: {e}") from e
        except XMLParseError as e:
            raise MalformedDocumentError(f"Specification is not well-formed XML: {e}") from e

        result = self._parse_document(root)
        logger.debug(
            "Parsed specification: %d function codes, %d devices, connection=%s",
            len(result.function_codes),
            len(result.devices),
            result.connection_config.type.value if result.connection_config else None,
        )
        return result

    def parse_file(self, path: Union[str, "os.PathLike[str]"]) -> ParseResult:
        """Read and parse a specification file."""
        try:
            with open(path, "rb") as f:
                return self.parse(f)
        except OSError as e:
            raise MalformedDocumentError(f"Cannot read specification file {os.fspath(path)!r}: {e}") from e

    # ------------------------------------------------------------------
    # Document sections
    # ------------------------------------------------------------------

    def _parse_document(self, root: Element) -> ParseResult:
        connection_config = self._parse_connection(root)
        function_codes = self._parse_function_codes(root)
        known_functions = {normalize_name(fc.name) for fc in function_codes}
        devices = self._parse_devices(root, known_functions)
        return ParseResult(
            connection_config=connection_config,
            function_codes=function_codes,
            devices=devices,
        )

    def _parse_connection(self, root: Element) -> ConnectionConfig | None:
        element = next(root.iter("Connection"), None)
        if element is None:
            return None

        try:
            conn_type = ConnectionType.parse(element.get("type"))
        except ValueError as e:
            raise InvalidFieldError("Connection.type", element.get("type")) from e

        timeout_raw = _child_text(element, "Timeout")
        timeout_ms = _int_field("Connection.Timeout", timeout_raw) if timeout_raw else 3000

        try:
            if conn_type == ConnectionType.TCP:
                host = _child_text(element, "Host") or "localhost"
                port_raw = _child_text(element, "Port")
                reconnect_raw = _child_text(element, "Reconnect")
                try:
                    reconnect = parse_bool(reconnect_raw) if reconnect_raw else True
                except ValueError as e:
                    raise InvalidFieldError("Connection.Reconnect", reconnect_raw) from e
                return TcpConfig(
                    host=host,
                    port=_int_field("Connection.Port", port_raw) if port_raw else 502,
                    timeout_ms=timeout_ms,
                    reconnect=reconnect,
                )

            port_name = _child_text(element, "PortName")
            if not port_name:
                raise MissingRequiredFieldError("Connection", "PortName")
            baud_raw = _child_text(element, "BaudRate")
            data_bits_raw = _child_text(element, "DataBits")
            stop_bits_raw = _child_text(element, "StopBits")
            parity_raw = _child_text(element, "Parity")
            try:
                parity = Parity.parse(parity_raw)
            except ValueError as e:
                raise InvalidFieldError("Connection.Parity", parity_raw) from e
            return SerialConfig(
                port_name=port_name,
                baud_rate=_int_field("Connection.BaudRate", baud_raw) if baud_raw else 9600,
                data_bits=_int_field("Connection.DataBits", data_bits_raw) if data_bits_raw else 8,
                stop_bits=_int_field("Connection.StopBits", stop_bits_raw) if stop_bits_raw else 1,
                parity=parity,
                type=conn_type,
                timeout_ms=timeout_ms,
            )
        except ValueError as e:
            # range checks from the config dataclasses
            raise InvalidFieldError("Connection", conn_type.value, f"Invalid connection settings: {e}") from e

    def _parse_function_codes(self, root: Element) -> tuple[FunctionCode, ...]:
        declared: dict[str, FunctionCode] = {}
        for element in root.iter("FunctionCode"):
            code = (element.get("code") or "").strip()
            name = (element.get("name") or "").strip()
            if not code:
                raise MissingRequiredFieldError("FunctionCode", "code")
            if not name:
                raise MissingRequiredFieldError(f"FunctionCode {code!r}", "name")
            if code in declared:
                raise InvalidFieldError("FunctionCode.code", code, f"Duplicate function code: {code!r}")
            declared[code] = FunctionCode(code=code, name=name, description=_child_text(element, "Description"))

        if not declared:
            return standard_function_codes()
        return tuple(declared.values())

    def _parse_devices(self, root: Element, known_functions: set[str]) -> tuple[Device, ...]:
        devices: list[Device] = []
        seen_ids: set[str] = set()
        for element in root.iter("Device"):
            device = self._parse_device(element, known_functions)
            if device.id in seen_ids:
                raise InvalidFieldError("Device.id", device.id, f"Duplicate device id: {device.id!r}")
            seen_ids.add(device.id)
            devices.append(device)
        return tuple(devices)

    def _parse_device(self, element: Element, known_functions: set[str]) -> Device:
        device_id = (element.get("id") or "").strip()
        if not device_id:
            raise MissingRequiredFieldError("Device", "id")

        unit_raw = element.get("unitId")
        if is_blank(unit_raw):
            raise MissingRequiredFieldError(f"Device {device_id!r}", "unitId")
        field = f"Device {device_id!r} unitId"
        unit_id = _int_field(field, unit_raw)
        if unit_id < MIN_UNIT_ID or unit_id > MAX_UNIT_ID:
            raise InvalidFieldError(
                field, unit_raw, f"{field} out of range ({MIN_UNIT_ID}-{MAX_UNIT_ID}): {unit_id}"
            )

        accessors = self._parse_accessors(element, device_id, known_functions)
        registers = {
            category: self._parse_registers(element, tag, device_id)
            for category, tag in _REGISTER_CONTAINERS
        }

        try:
            return Device(
                id=device_id,
                unit_id=unit_id,
                accessors=accessors,
                holding_registers=registers[RegisterCategory.HOLDING_REGISTER],
                input_registers=registers[RegisterCategory.INPUT_REGISTER],
                coils=registers[RegisterCategory.COIL],
                discrete_inputs=registers[RegisterCategory.DISCRETE_INPUT],
            )
        except ValueError as e:
            raise InvalidFieldError("Device", device_id, f"Invalid device {device_id!r}: {e}") from e

    def _parse_accessors(
        self, device_element: Element, device_id: str, known_functions: set[str]
    ) -> list[Accessor]:
        container = device_element.find("Accessors")
        if container is None:
            return []

        accessors: list[Accessor] = []
        names: set[str] = set()
        for element in container.findall("Accessor"):
            accessor = self._parse_accessor(element, known_functions)
            if accessor.name in names:
                raise DuplicateAccessorNameError(device_id, accessor.name)
            names.add(accessor.name)
            accessors.append(accessor)
        return accessors

    def _parse_accessor(self, element: Element, known_functions: set[str]) -> Accessor:
        name = (element.get("name") or "").strip()
        if not name:
            raise MissingRequiredFieldError("Accessor", "name")

        owner = f"Accessor {name!r}"
        function = _child_text(element, "Function")
        data_class = _child_text(element, "DataClass")
        address_range = _child_text(element, "AddressRange")
        if not function:
            raise MissingRequiredFieldError(owner, "Function")
        if not data_class:
            raise MissingRequiredFieldError(owner, "DataClass")
        if not address_range:
            raise MissingRequiredFieldError(owner, "AddressRange")

        # Exact (case-insensitive) match against a declared function name
        if normalize_name(function) not in known_functions:
            raise InvalidFieldError(f"{owner} Function", function, f"{owner}: unknown function {function!r}")

        try:
            start, end = parse_address_range(address_range)
        except ValueError as e:
            raise InvalidFieldError(f"{owner} AddressRange", address_range, f"{owner}: {e}") from e
        return Accessor(
            name=name,
            function=function,
            data_class=data_class,
            start_address=start,
            end_address=end,
        )

    def _parse_registers(self, device_element: Element, container_tag: str, device_id: str) -> list[Register]:
        container = device_element.find(container_tag)
        if container is None:
            return []

        registers: list[Register] = []
        for element in container.findall("Register"):
            name = (element.get("name") or "").strip()
            if not name:
                raise MissingRequiredFieldError(f"Device {device_id!r} {container_tag} Register", "name")
            address_raw = element.get("address")
            if is_blank(address_raw):
                raise MissingRequiredFieldError(f"Register {name!r}", "address")
            field = f"Register {name!r} address"
            address = _int_field(field, address_raw)
            try:
                check_address(address, field)
            except ValueError as e:
                raise InvalidFieldError(field, address_raw, str(e)) from e
            registers.append(
                Register(
                    name=name,
                    address=address,
                    data_type=_child_text(element, "DataType"),
                    access=_child_text(element, "Access"),
                )
            )
        return registers
