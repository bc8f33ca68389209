"""Resource managers: a named set of devices with request validation and allocation."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Callable, Sequence

from gpuplugin.rm.allocate import distributed_alloc
from gpuplugin.rm.devices import Devices, any_has_annotations

NVML_CONTROL_DEVICE_PATHS = (
    "/dev/nvidiactl",
    "/dev/nvidia-uvm",
    "/dev/nvidia-uvm-tools",
    "/dev/nvidia-modeset",
)

AlignedAllocator = Callable[[Sequence[str], Sequence[str], int], list[str]]


class SharingStrategy(enum.Enum):
    """How devices of a resource are shared between containers."""

    NONE = "none"
    TIME_SLICING = "time-slicing"
    MPS = "mps"


class InvalidRequestError(ValueError):
    """A device request that the resource manager cannot accept."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"invalid request: {detail}")
        self.detail = detail


@dataclass
class ResourceManager:
    """Manages the devices advertised under one resource name."""

    resource: str
    devices: Devices
    sharing_strategy: SharingStrategy = SharingStrategy.NONE
    fail_requests_greater_than_one: bool = False
    aligned_allocator: AlignedAllocator | None = None

    def validate_request(self, ids: Sequence[str]) -> None:
        """Check that every ID is known and the request suits the sharing settings."""
        for device_id in ids:
            if not self.devices.contains(device_id):
                raise InvalidRequestError(f"unknown device: {device_id}")

        includes_replicas = any_has_annotations(ids)
        count = len(ids)
        too_many = includes_replicas and count > 1
        if self.sharing_strategy is SharingStrategy.TIME_SLICING:
            if too_many and self.fail_requests_greater_than_one:
                raise InvalidRequestError(
                    f"maximum request size for shared resources is 1; found {count}"
                )
        elif self.sharing_strategy is SharingStrategy.MPS:
            # MPS ignores fail_requests_greater_than_one and always limits requests to one.
            if too_many:
                raise InvalidRequestError(
                    f"maximum request size for shared resources is 1; found {count}"
                )

    def get_preferred_allocation(
        self, available: Sequence[str], required: Sequence[str], size: int
    ) -> list[str]:
        """Pick devices: aligned over full GPUs when possible, otherwise spread evenly."""
        if (
            self.aligned_allocator is not None
            and self.devices.aligned_allocation_supported()
            and not any_has_annotations(available)
        ):
            return list(self.aligned_allocator(available, required, size))
        return distributed_alloc(self.devices, available, required, size)

    def get_device_paths(self, ids: Sequence[str]) -> list[str]:
        """The device nodes needed for the requested devices."""
        return nvml_device_paths(self.devices, ids)


def nvml_device_paths(devices: Devices, ids: Sequence[str]) -> list[str]:
    """The driver control nodes followed by the nodes of the requested devices."""
    return [*NVML_CONTROL_DEVICE_PATHS, *devices.subset(ids).paths()]


def mig_resource_name(profile: str) -> str:
    """The default resource name for a MIG profile."""
    return ("mig-" + profile).replace("+", ".")