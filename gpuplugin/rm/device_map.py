"""Mapping of resource names to devices, including replication of shared devices."""

from __future__ import annotations

import dataclasses
import re
from dataclasses import dataclass, field
from typing import Iterable

from gpuplugin.rm.devices import Device, DeviceInfo, Devices, build_device, new_annotated_id

_GPU_INDEX = re.compile(r"[0-9]+")
_MIG_INDEX = re.compile(r"[0-9]+:[0-9]+")


def _is_index_ref(ref: str) -> bool:
    return bool(_GPU_INDEX.fullmatch(ref) or _MIG_INDEX.fullmatch(ref))


@dataclass
class ReplicatedResource:
    """A resource whose devices are advertised several times each.

    The devices to replicate are chosen by ``all_devices``, then
    ``device_count`` (the first N devices), then ``device_list`` (device
    indices such as ``"0"`` or ``"0:1"``, or device UUIDs).
    """

    name: str
    replicas: int
    rename: str = ""
    all_devices: bool = True
    device_count: int = 0
    device_list: list[str] = field(default_factory=list)


class DeviceMap(dict[str, Devices]):
    """A set of devices per resource name."""

    def insert(self, name: str, device: Device) -> None:
        """Add a device under a resource name, replacing any with the same ID."""
        self.setdefault(name, Devices())[device.id] = device

    def set_entry(self, name: str, index: str, info: DeviceInfo) -> None:
        """Build a device from its info and add it under a resource name."""
        try:
            device = build_device(index, info)
        except Exception as err:
            raise RuntimeError(f"error building Device: {err}") from err
        self.insert(name, device)

    def merge(self, other: DeviceMap) -> None:
        """Add every device of another map to this one."""
        for name, devices in other.items():
            for device in devices.values():
                self.insert(name, device)

    def is_empty(self) -> bool:
        """Whether no resource holds any device."""
        return not any(self.values())

    def ids_to_replicate(self, resource: ReplicatedResource) -> list[str]:
        """The IDs of the devices of a resource that are to be replicated."""
        devices = self.get(resource.name)
        if devices is None:
            return []

        if resource.all_devices:
            return devices.ids()

        if resource.device_count > 0:
            if resource.device_count > len(devices):
                raise ValueError(
                    f"requested {resource.device_count} devices to be replicated, "
                    f"but only {len(devices)} devices available"
                )
            return devices.ids()[: resource.device_count]

        if resource.device_list:
            ids: list[str] = []
            for ref in resource.device_list:
                if _is_index_ref(ref):
                    device = devices.get_by_index(ref)
                    if device is None:
                        raise ValueError(f"no matching device at index: {ref}")
                else:
                    device = devices.get_by_id(ref)
                    if device is None:
                        raise ValueError(f"no matching device with UUID: {ref}")
                ids.append(device.id)
            return ids

        raise ValueError("unexpected error")


def update_device_map_with_replicas(
    replicated_resources: Iterable[ReplicatedResource], device_map: DeviceMap
) -> DeviceMap:
    """A new device map in which the selected devices are replaced by their replicas."""
    resources = list(replicated_resources)
    result = DeviceMap()

    names = {r.name for r in resources}
    for name, devices in device_map.items():
        if name not in names:
            result[name] = devices

    for resource in resources:
        try:
            ids = device_map.ids_to_replicate(resource)
        except ValueError as err:
            raise ValueError(
                f"unable to get IDs of devices to replicate for '{resource.name}' resource: {err}"
            ) from err
        if not ids:
            continue

        original = device_map[resource.name]
        for device in original.difference(original.subset(ids)).values():
            result.insert(resource.name, device)

        name = resource.rename or resource.name
        for device_id in ids:
            for replica in range(resource.replicas):
                replicated = dataclasses.replace(
                    original[device_id],
                    id=new_annotated_id(device_id, replica),
                    replicas=resource.replicas,
                )
                result.insert(name, replicated)

    return result