"""SpecRepository: in-memory indexes over a loaded specification, O(1) lookup."""

import logging
from typing import Iterable

from .config import ConnectionConfig
from .normalize import normalize_name
from .parser import ParseResult
from .types import Device, FunctionCode

logger = logging.getLogger(__name__)


class SpecRepository:
    """
    Function codes and devices of one specification, indexed by code, name, id
    and unit id. Lookups return None on a miss; the resolver turns misses into
    errors.

    Read-only after a load. load() is a single clear-then-repopulate step that
    callers must not interleave with lookups from other threads.
    """

    def __init__(self) -> None:
        self._by_code: dict[str, FunctionCode] = {}
        self._by_name: dict[str, FunctionCode] = {}
        self._by_id: dict[str, Device] = {}
        self._by_unit_id: dict[int, Device] = {}
        self._connection_config: ConnectionConfig | None = None

    def load(self, result: ParseResult) -> None:
        """Replace the whole repository content with a parse result."""
        self.clear()
        self.add_function_codes(result.function_codes)
        self.add_devices(result.devices)
        self._connection_config = result.connection_config
        logger.debug(
            "Repository loaded: %d function codes, %d devices",
            len(self._by_code),
            len(self._by_id),
        )

    def clear(self) -> None:
        self._by_code.clear()
        self._by_name.clear()
        self._by_id.clear()
        self._by_unit_id.clear()
        self._connection_config = None

    def add_function_codes(self, codes: Iterable[FunctionCode]) -> None:
        for fc in codes:
            self._by_code[fc.code.strip()] = fc
            self._by_name[normalize_name(fc.name)] = fc

    def add_devices(self, devices: Iterable[Device]) -> None:
        for device in devices:
            if device.unit_id in self._by_unit_id and self._by_unit_id[device.unit_id].id != device.id:
                logger.debug(
                    "Unit id %d shared by devices %r and %r; %r is indexed",
                    device.unit_id,
                    self._by_unit_id[device.unit_id].id,
                    device.id,
                    device.id,
                )
            self._by_id[device.id] = device
            self._by_unit_id[device.unit_id] = device  # later device wins

    def by_function_code(self, code: str) -> FunctionCode | None:
        return self._by_code.get(code.strip())

    def by_function_name(self, name: str) -> FunctionCode | None:
        """Case-insensitive lookup by function name."""
        return self._by_name.get(normalize_name(name))

    def device_by_id(self, device_id: str) -> Device | None:
        return self._by_id.get(device_id)

    def device_by_unit_id(self, unit_id: int) -> Device | None:
        return self._by_unit_id.get(unit_id)

    def all_function_codes(self) -> tuple[FunctionCode, ...]:
        return tuple(self._by_code.values())

    def all_devices(self) -> tuple[Device, ...]:
        return tuple(self._by_id.values())

    @property
    def connection_config(self) -> ConnectionConfig | None:
        return self._connection_config

    @property
    def function_code_count(self) -> int:
        return len(self._by_code)

    @property
    def device_count(self) -> int:
        return len(self._by_id)

    def __len__(self) -> int:
        return len(self._by_id)
