"""Core data model: registers, function codes, accessors and devices."""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum, Flag
from functools import lru_cache
from importlib import resources
from typing import Any, Iterable

from .normalize import check_address, is_blank, normalize_name, parse_access, parse_address_range

logger = logging.getLogger(__name__)

MIN_UNIT_ID = 0
MAX_UNIT_ID = 247

_FUNCTION_CODES_RESOURCE = "function_codes.json"


class RegisterCategory(str, Enum):
    """The four Modbus data tables a device register can live in."""

    HOLDING_REGISTER = "holding_register"
    INPUT_REGISTER = "input_register"
    COIL = "coil"
    DISCRETE_INPUT = "discrete_input"


class Access(Flag):
    NONE = 0
    READABLE = 1
    WRITABLE = 2


# Canonical function names, compared case-insensitively
READ_FUNCTIONS = frozenset(
    {"readcoils", "readdiscreteinputs", "readholdingregisters", "readinputregisters"}
)
WRITE_FUNCTIONS = frozenset(
    {"writesinglecoil", "writesingleregister", "writemultiplecoils", "writemultipleregisters"}
)


@dataclass(frozen=True)
class Register:
    """A named register, coil or input at a fixed address. Identity is (name, address)."""

    name: str
    address: int
    data_type: str = field(default="", compare=False)
    access: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        if is_blank(self.name):
            raise ValueError("Register name must not be blank")
        check_address(self.address, f"Register {self.name!r} address")

    @property
    def flags(self) -> Access:
        readable, writable = parse_access(self.access)
        flags = Access.NONE
        if readable:
            flags |= Access.READABLE
        if writable:
            flags |= Access.WRITABLE
        return flags

    @property
    def is_readable(self) -> bool:
        return Access.READABLE in self.flags

    @property
    def is_writable(self) -> bool:
        return Access.WRITABLE in self.flags


@dataclass(frozen=True)
class FunctionCode:
    """A Modbus function code, e.g. code "3" / name "ReadHoldingRegisters". Identity is code."""

    code: str
    name: str = field(compare=False)
    description: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        if is_blank(self.code):
            raise ValueError("Function code must not be blank")
        if is_blank(self.name):
            raise ValueError(f"Function code {self.code!r} must have a name")

    @property
    def number(self) -> int | None:
        """Numeric value of the code, or None for non-numeric identifiers."""
        try:
            return int(self.code.strip())
        except ValueError:
            return None


@dataclass(frozen=True)
class Accessor:
    """
    Named shortcut over a function and an address span.

    Identity for equality is (name, start_address, end_address); name uniqueness
    is only enforced within a single device.
    """

    name: str
    function: str = field(compare=False)
    data_class: str = field(compare=False)
    start_address: int
    end_address: int

    def __post_init__(self) -> None:
        if is_blank(self.name):
            raise ValueError("Accessor name must not be blank")
        if is_blank(self.function):
            raise ValueError(f"Accessor {self.name!r} must name a function")
        check_address(self.start_address, "start address")
        check_address(self.end_address, "end address")
        if self.end_address < self.start_address:
            raise ValueError(
                f"Accessor {self.name!r}: end address {self.end_address} "
                f"is lower than start address {self.start_address}"
            )

    @classmethod
    def from_range(cls, name: str, function: str, data_class: str, address_range: str) -> "Accessor":
        """Build an accessor from an "N" or "N-M" address range string."""
        start, end = parse_address_range(address_range)
        return cls(name=name, function=function, data_class=data_class, start_address=start, end_address=end)

    @property
    def register_count(self) -> int:
        return self.end_address - self.start_address + 1

    @property
    def is_read_function(self) -> bool:
        return normalize_name(self.function) in READ_FUNCTIONS

    @property
    def is_write_function(self) -> bool:
        return normalize_name(self.function) in WRITE_FUNCTIONS


@dataclass(frozen=True)
class Device:
    """
    A Modbus device: id, unit id, accessors and the four register tables.

    Input sequences are copied into tuples, so a Device never changes after
    construction. Identity is id.
    """

    id: str
    unit_id: int = field(compare=False)
    accessors: tuple[Accessor, ...] = field(default=(), compare=False)
    holding_registers: tuple[Register, ...] = field(default=(), compare=False)
    input_registers: tuple[Register, ...] = field(default=(), compare=False)
    coils: tuple[Register, ...] = field(default=(), compare=False)
    discrete_inputs: tuple[Register, ...] = field(default=(), compare=False)
    _accessor_index: dict[str, Accessor] = field(init=False, repr=False, compare=False)
    _register_index: dict[RegisterCategory, dict[str, Register]] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        if is_blank(self.id):
            raise ValueError("Device id must not be blank")
        if self.unit_id < MIN_UNIT_ID or self.unit_id > MAX_UNIT_ID:
            raise ValueError(
                f"Device {self.id!r}: unit id must be between {MIN_UNIT_ID} and {MAX_UNIT_ID}, "
                f"got {self.unit_id}"
            )
        for name in ("accessors", "holding_registers", "input_registers", "coils", "discrete_inputs"):
            object.__setattr__(self, name, tuple(getattr(self, name)))

        by_name: dict[str, Accessor] = {}
        for accessor in self.accessors:
            if accessor.name in by_name:
                raise ValueError(f"Duplicate accessor name {accessor.name!r} in device {self.id!r}")
            by_name[accessor.name] = accessor
        object.__setattr__(self, "_accessor_index", by_name)

        registers: dict[RegisterCategory, dict[str, Register]] = {}
        for category in RegisterCategory:
            index: dict[str, Register] = {}
            for register in self.registers(category):
                index.setdefault(register.name, register)  # first declaration wins
            registers[category] = index
        object.__setattr__(self, "_register_index", registers)

    def registers(self, category: RegisterCategory) -> tuple[Register, ...]:
        """Return the registers of one table."""
        if category == RegisterCategory.HOLDING_REGISTER:
            return self.holding_registers
        if category == RegisterCategory.INPUT_REGISTER:
            return self.input_registers
        if category == RegisterCategory.COIL:
            return self.coils
        return self.discrete_inputs

    def find_accessor(self, name: str) -> Accessor | None:
        return self._accessor_index.get(name)

    def find_register(
        self, name: str, category: RegisterCategory | None = None
    ) -> tuple[RegisterCategory, Register] | None:
        """
        Find a register by name, in one table or in all of them (holding, input,
        coil, discrete input order). Returns (category, register) or None.
        """
        categories: Iterable[RegisterCategory] = (category,) if category is not None else RegisterCategory
        for cat in categories:
            register = self._register_index[cat].get(name)
            if register is not None:
                return cat, register
        return None

    def is_readable(self, register_name: str) -> bool:
        """True if a register with this name exists and is readable."""
        found = self.find_register(register_name)
        return found is not None and found[1].is_readable

    def is_writable(self, register_name: str) -> bool:
        """True if a register with this name exists and is writable."""
        found = self.find_register(register_name)
        return found is not None and found[1].is_writable


def _parse_function_code_entry(raw: dict[str, Any]) -> FunctionCode:
    """Build FunctionCode from a JSON entry (code, name, description)."""
    return FunctionCode(
        code=str(raw["code"]),
        name=raw["name"],
        description=raw.get("description") or "",
    )


@lru_cache(maxsize=None)
def standard_function_codes() -> tuple[FunctionCode, ...]:
    """Return the eight standard Modbus function codes bundled with the package."""
    path = resources.files(__package__).joinpath("data").joinpath(_FUNCTION_CODES_RESOURCE)
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"Function code resource not found: {__package__}/data/{_FUNCTION_CODES_RESOURCE}") from None

    entries = data["entries"] if isinstance(data, dict) else data
    codes = tuple(_parse_function_code_entry(entry) for entry in entries)
    logger.debug("Loaded %d standard function codes", len(codes))
    return codes
