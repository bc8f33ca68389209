"""Devices and resource managers for Tegra systems."""

from __future__ import annotations

from fnmatch import fnmatchcase
from typing import Iterable

from gpuplugin.rm.device_map import (
    DeviceMap,
    ReplicatedResource,
    update_device_map_with_replicas,
)
from gpuplugin.rm.manager import ResourceManager, SharingStrategy

TEGRA_DEVICE_NAME = "tegra"


class TegraDevice:
    """Device info for the single integrated Tegra GPU."""

    def get_uuid(self) -> str:
        return TEGRA_DEVICE_NAME

    def get_paths(self) -> list[str]:
        """A Tegra device has no device nodes of its own."""
        return []

    def get_numa_node(self) -> tuple[bool, int]:
        """NUMA placement is not supported on Tegra."""
        return False, -1

    def get_total_memory(self) -> int:
        return 0

    def get_compute_capability(self) -> str:
        return "0.0"


def build_tegra_device_map(gpu_resources: Iterable[tuple[str, str]]) -> DeviceMap:
    """Build a device map from (pattern, resource name) pairs matching the Tegra device."""
    devices = DeviceMap()
    index = 0
    for pattern, resource_name in gpu_resources:
        if fnmatchcase(TEGRA_DEVICE_NAME, pattern):
            devices.set_entry(resource_name, str(index), TegraDevice())
            index += 1
    return devices


class TegraResourceManager(ResourceManager):
    """Resource manager for Tegra resources; allocation is always distributed."""

    def get_device_paths(self, ids) -> list[str]:
        return []


def new_tegra_resource_managers(
    gpu_resources: Iterable[tuple[str, str]],
    replicated_resources: Iterable[ReplicatedResource],
    sharing_strategy: SharingStrategy,
    fail_requests_greater_than_one: bool,
) -> list[TegraResourceManager]:
    """One resource manager for each Tegra resource that has devices."""
    try:
        device_map = build_tegra_device_map(gpu_resources)
    except Exception as err:
        raise RuntimeError(f"error building Tegra device map: {err}") from err

    try:
        device_map = update_device_map_with_replicas(replicated_resources, device_map)
    except Exception as err:
        raise RuntimeError(
            f"error updating device map with replicas from sharing resources: {err}"
        ) from err

    return [
        TegraResourceManager(
            resource=name,
            devices=devices,
            sharing_strategy=sharing_strategy,
            fail_requests_greater_than_one=fail_requests_greater_than_one,
        )
        for name, devices in device_map.items()
        if devices
    ]