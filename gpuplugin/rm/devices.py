"""Devices managed by a resource manager, and the replica-annotated IDs used for them."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Protocol

HEALTHY = "Healthy"
UNHEALTHY = "Unhealthy"

_ANNOTATION_SEPARATOR = "::"
_INT_PATTERN = re.compile(r"[+-]?[0-9]+")
_INT64_MAX = 2**63 - 1
_INT64_MIN = -(2**63)


class DeviceInfo(Protocol):
    """The information needed to build a Device."""

    def get_uuid(self) -> str: ...

    def get_paths(self) -> list[str]: ...

    def get_numa_node(self) -> tuple[bool, int]: ...

    def get_total_memory(self) -> int: ...

    def get_compute_capability(self) -> str: ...


@dataclass
class Device:
    """A device advertised to the kubelet, with extra metadata."""

    id: str
    index: str = ""
    paths: list[str] = field(default_factory=list)
    health: str = HEALTHY
    numa_node: int | None = None
    total_memory: int = 0
    compute_capability: str = ""
    # Total number of times this device is replicated; 0 or 1 means not shared.
    replicas: int = 0

    def is_mig_device(self) -> bool:
        """Whether this device is a MIG device."""
        return ":" in self.index

    def uuid(self) -> str:
        """The UUID of the device, without any replica annotation."""
        return annotated_base_id(self.id)

    def aligned_allocation_supported(self) -> bool:
        """Whether the device supports an aligned allocation."""
        if self.is_mig_device():
            return False
        return "/dev/dxg" not in self.paths


class Devices(dict[str, Device]):
    """A mapping of device ID to Device."""

    def contains(self, *args: str) -> bool:
        """Whether every given ID is present."""
        return all(device_id in self for device_id in args)

    def get_by_id(self, device_id: str) -> Device | None:
        return self.get(device_id)

    def get_by_index(self, index: str) -> Device | None:
        return next((d for d in self.values() if d.index == index), None)

    def subset(self, ids: Iterable[str]) -> Devices:
        """The devices matching the given IDs; unknown IDs are ignored."""
        return Devices({i: self[i] for i in ids if i in self})

    def difference(self, other: Devices) -> Devices:
        """The devices in this set but not in other."""
        return Devices({i: d for i, d in self.items() if i not in other})

    def ids(self) -> list[str]:
        return [d.id for d in self.values()]

    def uuids(self) -> list[str]:
        """The distinct UUIDs of the devices, in order of first appearance."""
        return list(dict.fromkeys(d.uuid() for d in self.values()))

    def indices(self) -> list[str]:
        return [d.index for d in self.values()]

    def paths(self) -> list[str]:
        return [p for d in self.values() for p in d.paths]

    def aligned_allocation_supported(self) -> bool:
        return all(d.aligned_allocation_supported() for d in self.values())


def build_device(index: str, info: DeviceInfo) -> Device:
    """Build a healthy Device at the given index from its device info."""
    try:
        uuid = info.get_uuid()
    except Exception as err:
        raise RuntimeError(f"error getting UUID device: {err}") from err
    try:
        paths = info.get_paths()
    except Exception as err:
        raise RuntimeError(f"error getting device paths: {err}") from err
    try:
        has_numa, numa = info.get_numa_node()
    except Exception as err:
        raise RuntimeError(f"error getting device NUMA node: {err}") from err
    try:
        total_memory = info.get_total_memory()
    except Exception as err:
        raise RuntimeError(f"error getting device memory: {err}") from err
    try:
        compute_capability = info.get_compute_capability()
    except Exception as err:
        raise RuntimeError(f"error getting device compute capability: {err}") from err

    return Device(
        id=uuid,
        index=index,
        paths=list(paths or []),
        health=HEALTHY,
        numa_node=numa if has_numa else None,
        total_memory=total_memory,
        compute_capability=compute_capability,
    )


def new_annotated_id(device_id: str, replica: int) -> str:
    """Embed a replica number in a device ID."""
    return f"{device_id}{_ANNOTATION_SEPARATOR}{replica}"


def has_annotations(annotated_id: str) -> bool:
    return _ANNOTATION_SEPARATOR in annotated_id


def split_annotated_id(annotated_id: str) -> tuple[str, int]:
    """Split an annotated ID into its ID and replica number (0 if absent or invalid)."""
    base, sep, replica_text = annotated_id.partition(_ANNOTATION_SEPARATOR)
    if not sep:
        return annotated_id, 0
    if not _INT_PATTERN.fullmatch(replica_text):
        return base, 0
    replica = max(_INT64_MIN, min(_INT64_MAX, int(replica_text)))
    return base, replica


def annotated_base_id(annotated_id: str) -> str:
    return split_annotated_id(annotated_id)[0]


def any_has_annotations(ids: Iterable[str]) -> bool:
    return any(has_annotations(i) for i in ids)


def base_ids(ids: Iterable[str]) -> list[str]:
    return [annotated_base_id(i) for i in ids]


def c_string(values: Iterable[int]) -> str:
    """Turn a NUL-terminated sequence of C chars into a string."""
    raw = bytearray()
    for value in values:
        if value == 0:
            break
        raw.append(value & 0xFF)
    return raw.decode("utf-8", errors="replace")