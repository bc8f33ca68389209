"""Helpers that decide which Xid events are ignored and where a device is placed."""

from __future__ import annotations

import logging
import re

from gpuplugin.rm.devices import Device

logger = logging.getLogger(__name__)

# Environment variable checked to decide whether health checks are disabled.
# "all" or any value containing "xids" disables them entirely; otherwise the
# value is read as a comma-separated list of additional Xids to ignore.
DISABLE_HEALTH_CHECKS_ENV = "DP_DISABLE_HEALTHCHECKS"
ALL_HEALTH_CHECKS = "xids"

# Placement value used for the GI and CI of a full (non-MIG) device.
NO_INSTANCE_ID = 0xFFFFFFFF

# Application errors: the GPU should still be healthy.
APPLICATION_ERROR_XIDS = frozenset(
    {
        13,  # Graphics Engine Exception
        31,  # GPU memory page fault
        43,  # GPU stopped processing
        45,  # Preemptive cleanup, due to previous errors
        68,  # Video processor exception
    }
)

_UINT64_MAX = 2**64 - 1
_UINT_PATTERN = re.compile(r"[0-9]+")
_INT_PATTERN = re.compile(r"[+-]?[0-9]+")


def _normalise(value: str | None) -> str:
    lowered = (value or "").lower()
    return ALL_HEALTH_CHECKS if lowered == "all" else lowered


def health_checks_disabled(value: str | None) -> bool:
    """Whether the given setting disables health checks entirely."""
    return ALL_HEALTH_CHECKS in _normalise(value)


def get_additional_xids(value: str | None) -> list[int]:
    """Parse a comma-separated list of Xids; malformed entries are ignored."""
    if not value:
        return []

    xids: list[int] = []
    for item in value.split(","):
        trimmed = item.strip()
        if not trimmed:
            continue
        if not _UINT_PATTERN.fullmatch(trimmed) or int(trimmed) > _UINT64_MAX:
            logger.info("Ignoring malformed Xid value %s", trimmed)
            continue
        xids.append(int(trimmed))
    return xids


def skipped_xids(value: str | None) -> frozenset[int]:
    """The Xids to skip: application errors plus those named in the setting."""
    return APPLICATION_ERROR_XIDS | frozenset(get_additional_xids(_normalise(value)))


def parse_mig_device_uuid(uuid: str) -> tuple[str, int, int]:
    """Split a MIG device UUID into its parent UUID, GPU instance and compute instance."""
    error = ValueError("Unable to parse UUID as MIG device")

    prefix, sep, rest = uuid.partition("-")
    if not sep or prefix != "MIG":
        raise error

    tokens = rest.split("/", 2)
    if len(tokens) != 3 or not tokens[0].startswith("GPU-"):
        raise error

    parent, gi_text, ci_text = tokens
    if not _INT_PATTERN.fullmatch(gi_text) or not _INT_PATTERN.fullmatch(ci_text):
        raise error

    return parent, int(gi_text), int(ci_text)


def device_placement(device: Device) -> tuple[str, int, int]:
    """The (parent UUID, GI, CI) placement of a device.

    A full device is placed at its own UUID with no instance IDs.
    """
    if not device.is_mig_device():
        return device.uuid(), NO_INSTANCE_ID, NO_INSTANCE_ID
    return parse_mig_device_uuid(device.uuid())