"""Attributes, memory and names of MIG devices."""

from __future__ import annotations

from typing import Any, Mapping

_ATTRIBUTE_FIELDS = {
    "memory": "memory_size_mb",
    "multiprocessors": "multiprocessor_count",
    "slices.gi": "gpu_instance_slice_count",
    "slices.ci": "compute_instance_slice_count",
    "engines.copy": "shared_copy_engine_count",
    "engines.decoder": "shared_decoder_count",
    "engines.encoder": "shared_encoder_count",
    "engines.jpeg": "shared_jpeg_count",
    "engines.ofa": "shared_ofa_count",
}


def mig_attributes(attributes: Any) -> dict[str, Any]:
    """The labelled attributes of a MIG device.

    ``attributes`` is any object carrying the device attribute fields
    (``memory_size_mb``, ``multiprocessor_count``, ``gpu_instance_slice_count``,
    ``compute_instance_slice_count`` and the ``shared_*_count`` engine counts).
    """
    return {key: getattr(attributes, name) for key, name in _ATTRIBUTE_FIELDS.items()}


def total_memory(attributes: Mapping[str, Any]) -> int:
    """The total memory in MB from a MIG device's attributes."""
    try:
        memory = attributes["memory"]
    except KeyError:
        raise KeyError("no 'memory' attribute available") from None

    if isinstance(memory, bool) or not isinstance(memory, int):
        raise TypeError(f"unsupported attribute type {type(memory).__name__}")
    return memory


def mig_device_name(profile: object) -> str:
    """The name of a MIG device: its profile with '+' replaced by '.'."""
    return str(profile).replace("+", ".")