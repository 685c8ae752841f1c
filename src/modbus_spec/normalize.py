"""Normalize and validate raw specification text: integers, address ranges, access strings."""

import re

MIN_ADDRESS = 0
MAX_ADDRESS = 65535

# "N" or "N-M", whitespace allowed around the dash
_ADDRESS_RANGE_PATTERN = re.compile(r"^(\d+)(?:\s*-\s*(\d+))?$")

# Optional sign then digits
_INT_PATTERN = re.compile(r"^[+-]?\d+$")

# Access strings built only from R/W letters (R, W, RW, WR, R/W)
_ACCESS_LETTERS_PATTERN = re.compile(r"^[RW]+$")
_ACCESS_SEPARATORS_PATTERN = re.compile(r"[\s/,_|-]+")

_TRUE_VALUES = frozenset({"true", "1", "yes", "on"})
_FALSE_VALUES = frozenset({"false", "0", "no", "off"})


def parse_int(raw: str) -> int:
    """
    Parse a decimal integer field.

    Leading and trailing whitespace is ignored. Raises ValueError for anything
    that is not an optionally signed run of digits (no floats, no hex).
    """
    s = raw.strip()
    if not _INT_PATTERN.match(s):
        raise ValueError(f"Not an integer: {raw!r}")
    return int(s)


def parse_bool(raw: str) -> bool:
    """Parse true/false, 1/0, yes/no, on/off (case-insensitive)."""
    v = raw.strip().lower()
    if v in _TRUE_VALUES:
        return True
    if v in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean value: {raw!r}")


def check_address(address: int, what: str = "address") -> int:
    """Return address unchanged if it lies in 0..65535, else raise ValueError."""
    if address < MIN_ADDRESS or address > MAX_ADDRESS:
        raise ValueError(f"{what} out of range ({MIN_ADDRESS}-{MAX_ADDRESS}): {address}")
    return address


def parse_address_range(raw: str) -> tuple[int, int]:
    """
    Parse an accessor address range.

    - "N" is shorthand for N-N.
    - "N-M" requires N <= M.
    - Both ends must lie in 0..65535.

    Returns (start, end); raises ValueError otherwise.
    """
    s = raw.strip()
    if not s:
        raise ValueError("Address range cannot be empty")

    m = _ADDRESS_RANGE_PATTERN.match(s)
    if not m:
        raise ValueError(f"Malformed address range: {raw!r}")

    start = check_address(int(m.group(1)), "start address")
    end = check_address(int(m.group(2)), "end address") if m.group(2) is not None else start
    if end < start:
        raise ValueError(f"End address {end} is lower than start address {start}")
    return start, end


def parse_access(raw: str) -> tuple[bool, bool]:
    """
    Derive (readable, writable) from an access string.

    Letter forms ("R", "W", "RW", "R/W", "R, W") are mapped letter by letter
    once separators are dropped; anything else is searched for the words
    READ / WRITE ("ReadWrite", "read-only", ...).
    """
    s = raw.strip().upper()
    letters = _ACCESS_SEPARATORS_PATTERN.sub("", s)
    if _ACCESS_LETTERS_PATTERN.match(letters):
        return "R" in letters, "W" in letters
    return "READ" in s, "WRITE" in s


def normalize_name(raw: str) -> str:
    """Key used for case-insensitive name lookups."""
    return raw.strip().lower()


def is_blank(value: str | None) -> bool:
    return value is None or not value.strip()
