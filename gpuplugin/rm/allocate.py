"""Allocation that spreads replicated devices evenly over their GPUs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from gpuplugin.rm.devices import Devices, annotated_base_id


@dataclass
class _ReplicaCount:
    total: int = 0
    available: int = 0

    @property
    def used(self) -> int:
        return self.total - self.available


def distributed_alloc(
    devices: Devices,
    available: Sequence[str],
    required: Sequence[str],
    size: int,
) -> list[str]:
    """Choose devices so that replicas are balanced across the underlying GPUs.

    The required devices come first, followed by the chosen candidates.
    """
    candidates = devices.subset(available).difference(devices.subset(required)).ids()
    needed = size - len(required)

    if len(candidates) < needed:
        raise ValueError("not enough available devices to satisfy allocation")

    replicas: dict[str, _ReplicaCount] = {}
    for candidate in candidates:
        replicas.setdefault(annotated_base_id(candidate), _ReplicaCount()).available += 1
    for device_id in devices:
        count = replicas.get(annotated_base_id(device_id))
        if count is not None:
            count.total += 1

    chosen: list[str] = []
    for _ in range(needed):
        candidates.sort(key=lambda c: replicas[annotated_base_id(c)].used)
        pick = candidates.pop(0)
        replicas[annotated_base_id(pick)].available -= 1
        chosen.append(pick)

    return list(required) + chosen