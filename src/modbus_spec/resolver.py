"""OperationResolver: map a function identifier or accessor name onto an operation descriptor."""

import logging
from dataclasses import dataclass

from .errors import (
    AccessorNotFoundError,
    AmbiguousAccessorError,
    BlankArgumentError,
    DeviceNotFoundError,
    FunctionNotFoundError,
)
from .normalize import is_blank
from .repository import SpecRepository
from .types import Accessor, Device, FunctionCode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperationDescriptor:
    """A resolved call target: a function code, plus the accessor and device when bound to one."""

    function_code: FunctionCode
    accessor: Accessor | None = None
    device_id: str | None = None
    device_unit_id: int | None = None

    @property
    def is_accessor_bound(self) -> bool:
        return self.accessor is not None


class OperationResolver:
    """Resolves caller intent against a SpecRepository. Never performs I/O."""

    def __init__(self, repository: SpecRepository) -> None:
        self._repository = repository

    def resolve_function(self, identifier: str) -> OperationDescriptor:
        """
        Resolve a function by numeric code first ("3"), then by case-insensitive
        name ("readholdingregisters"). Raises FunctionNotFoundError.
        """
        if is_blank(identifier):
            raise BlankArgumentError("function identifier")
        return OperationDescriptor(function_code=self._lookup_function(identifier))

    def resolve_accessor(self, name: str, device_id: str | None = None) -> OperationDescriptor:
        """
        Resolve a named accessor, optionally qualified by device id.

        Without device_id the name must be defined on exactly one device;
        several matches raise AmbiguousAccessorError listing the device ids.
        """
        if is_blank(name):
            raise BlankArgumentError("accessor name")
        if device_id is not None and is_blank(device_id):
            raise BlankArgumentError("device id")

        if device_id is not None:
            device = self._repository.device_by_id(device_id)
            if device is None:
                raise DeviceNotFoundError(device_id)
            accessor = device.find_accessor(name)
            if accessor is None:
                raise AccessorNotFoundError(name, device_id)
        else:
            device, accessor = self._find_unique_accessor(name)

        # The function of an accessor matches by name only, never by code or substring
        function_code = self._repository.by_function_name(accessor.function)
        if function_code is None:
            raise FunctionNotFoundError(accessor.function)

        logger.debug(
            "Resolved accessor %r on device %r -> %s (%d-%d)",
            name,
            device.id,
            function_code.name,
            accessor.start_address,
            accessor.end_address,
        )
        return OperationDescriptor(
            function_code=function_code,
            accessor=accessor,
            device_id=device.id,
            device_unit_id=device.unit_id,
        )

    def _find_unique_accessor(self, name: str) -> tuple[Device, Accessor]:
        matches: list[tuple[Device, Accessor]] = []
        for device in self._repository.all_devices():
            accessor = device.find_accessor(name)
            if accessor is not None:
                matches.append((device, accessor))
        if not matches:
            raise AccessorNotFoundError(name)
        if len(matches) > 1:
            raise AmbiguousAccessorError(name, [device.id for device, _ in matches])
        return matches[0]

    def _lookup_function(self, identifier: str) -> FunctionCode:
        function_code = self._repository.by_function_code(identifier)
        if function_code is None:
            function_code = self._repository.by_function_name(identifier)
        if function_code is None:
            raise FunctionNotFoundError(identifier)
        return function_code
