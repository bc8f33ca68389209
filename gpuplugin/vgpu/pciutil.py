"""Reading NVIDIA PCI devices and their configuration space from sysfs."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

# Base path for all PCI devices under sysfs.
PCI_DEVICES_ROOT = "/sys/bus/pci/devices"
# Offset of the status byte.
PCI_STATUS_BYTE = 0x06
# Status bit set when a capability list is supported.
PCI_STATUS_CAPABILITY_LIST = 0x10
# Offset of the first capability list entry.
PCI_CAPABILITY_LIST = 0x34
# Offsets within a capability entry.
PCI_CAPABILITY_LIST_ID = 0
PCI_CAPABILITY_LIST_NEXT = 1
PCI_CAPABILITY_LENGTH = 2
# Capability ID of a vendor specific capability.
PCI_CAPABILITY_VENDOR_SPECIFIC_ID = 0x09
# PCI vendor ID of NVIDIA.
PCI_NVIDIA_VENDOR_ID = "0x10de"

_FULL_CONFIG_SIZE = 256


@dataclass
class PCIDevice:
    """A single PCI device."""

    path: str
    address: str
    device_class: str
    vendor: str
    config: bytes

    def vendor_specific_capability(self) -> bytes | None:
        """The vendor specific capability from the configuration space, if any."""
        if len(self.config) < _FULL_CONFIG_SIZE:
            raise ValueError(
                f"entire PCI configuration is not read for device {self.address}. "
                "Please run GFD with privileged mode to read complete PCI configuration data"
            )

        if self.config[PCI_STATUS_BYTE] & PCI_STATUS_CAPABILITY_LIST == 0:
            return None

        visited: set[int] = set()
        pos = get_byte(self.config, PCI_CAPABILITY_LIST)
        while pos != 0:
            cap_id = get_byte(self.config, pos + PCI_CAPABILITY_LIST_ID)
            following = get_byte(self.config, pos + PCI_CAPABILITY_LIST_NEXT)
            length = get_byte(self.config, pos + PCI_CAPABILITY_LENGTH)

            if pos in visited:
                # The chain loops.
                break
            if cap_id == 0xFF:
                # The chain is broken.
                break
            if cap_id == PCI_CAPABILITY_VENDOR_SPECIFIC_ID:
                start = pos + PCI_CAPABILITY_LIST_ID
                return bytes(self.config[start : start + length])

            visited.add(pos)
            pos = following

        return None


def get_byte(buffer: bytes, pos: int) -> int:
    """A single byte at the given position."""
    return buffer[pos]


def get_word(buffer: bytes, pos: int) -> int:
    """Two little-endian bytes at the given position."""
    return int.from_bytes(buffer[pos : pos + 2], "little")


def get_long(buffer: bytes, pos: int) -> int:
    """Four little-endian bytes at the given position."""
    return int.from_bytes(buffer[pos : pos + 4], "little")


class NvidiaPCILib:
    """Lists the NVIDIA PCI devices found under a sysfs devices directory."""

    def __init__(self, root: str | os.PathLike[str] = PCI_DEVICES_ROOT) -> None:
        self.root = Path(root)

    def devices(self) -> list[PCIDevice]:
        """All NVIDIA PCI devices, ordered by address."""
        try:
            addresses = sorted(entry.name for entry in os.scandir(self.root))
        except OSError as err:
            raise OSError(f"unable to read PCI bus devices: {err}") from err

        found: list[PCIDevice] = []
        for address in addresses:
            device_path = self.root / address

            try:
                vendor = (device_path / "vendor").read_text().strip()
            except OSError as err:
                raise OSError(
                    f"unable to read PCI device vendor id for {address}: {err}"
                ) from err
            if vendor != PCI_NVIDIA_VENDOR_ID:
                continue

            try:
                device_class = (device_path / "class").read_text()
            except OSError as err:
                raise OSError(f"unable to read PCI device class for {address}: {err}") from err

            try:
                config = (device_path / "config").read_bytes()
            except OSError as err:
                raise OSError(
                    f"unable to read PCI configuration space for {address}: {err}"
                ) from err

            found.append(
                PCIDevice(
                    path=str(device_path),
                    address=address,
                    device_class=device_class[:4],
                    vendor=vendor,
                    config=config,
                )
            )
        return found


def _config(rows: dict[int, str]) -> bytes:
    """A 256-byte configuration space with the given rows set and the rest zero."""
    buffer = bytearray(_FULL_CONFIG_SIZE)
    for offset, text in rows.items():
        data = bytes.fromhex(text)
        buffer[offset : offset + len(data)] = data
    return bytes(buffer)


_PASSTHROUGH_CONFIG = _config(
    {
        0x00: "de 10 8a 11 07 04 10 00 a1 00 00 03 00 f8 00 00",
        0x10: "00 00 00 ec 0c 00 00 e0 00 00 00 00 0c 00 00 ea",
        0x20: "00 00 00 00 01 c1 00 00 00 00 00 00 de 10 14 10",
        0x30: "00 00 00 ee 60 00 00 00 00 00 00 00 05 01 00 00",
        0x40: "de 10 14 10 00 00 00 00 00 00 00 00 00 00 00 00",
        0x50: "01 00 00 00 01 00 00 00 ce d6 23 00 00 00 00 00",
        0x60: "01 68 03 00 08 00 00 00 05 78 81 00 00 70 e6 fe",
        0x70: "00 00 00 00 00 43 00 00 10 b4 02 00 e1 8d 64 00",
        0x80: "10 29 00 00 03 3d 45 10 00 00 01 11 00 00 00 00",
        0x90: "00 00 00 00 00 00 00 00 00 00 00 00 13 00 00 00",
        0xA0: "00 00 00 00 0e 00 00 00 03 00 3e 00 00 00 00 00",
        0xB0: "00 00 00 00 09 00 14 01 00 00 00 00 00 00 00 00",
    }
)

_VGPU_CONFIG = _config(
    {
        0x00: "de 10 b8 1e 02 05 ff 06 a1 00 00 03 00 00 00 00",
        0x10: "00 00 00 fc 0c 00 00 d0 00 00 00 00 04 00 00 fa",
        0x20: "00 00 00 00 00 00 00 00 00 00 00 00 de 10 0f 13",
        0x30: "00 00 00 00 d0 00 00 00 00 00 00 00 0a 01 00 00",
        0x50: "01 00 00 00 01 00 00 00 ce d6 23 00 00 00 00 00",
        0x60: "00 00 00 00 00 00 00 00 05 00 81 00 00 00 e0 fe",
        0x70: "00 00 00 00 4e 40 00 00 00 00 00 00 00 00 00 00",
        0xD0: "09 68 1b 56 46 00 16 34 36 30 2e 31 36 00 00 00",
        0xE0: "00 72 34 36 30 5f 30 30 00 00 00 00 00 00 00 00",
    }
)


class MockNvidiaPCI:
    """A fixed pair of NVIDIA PCI devices: one passthrough GPU and one vGPU."""

    def __init__(self) -> None:
        self._devices = [
            PCIDevice(
                path="",
                address="passthrough",
                device_class="300",
                vendor=PCI_NVIDIA_VENDOR_ID,
                config=_PASSTHROUGH_CONFIG,
            ),
            PCIDevice(
                path="",
                address="vgpu",
                device_class="300",
                vendor=PCI_NVIDIA_VENDOR_ID,
                config=_VGPU_CONFIG,
            ),
        ]

    def devices(self) -> list[PCIDevice]:
        return list(self._devices)