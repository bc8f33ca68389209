"""Detection of vGPU devices and of the host driver behind them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from gpuplugin.vgpu.pciutil import MockNvidiaPCI, PCIDevice, get_byte

# Offset of the first vGPU capability record.
VGPU_CAPABILITY_RECORD_START = 5
# Maximum length of the host driver version.
HOST_DRIVER_VERSION_LENGTH = 10
# Maximum length of the host driver branch.
HOST_DRIVER_BRANCH_LENGTH = 10

_HOST_DRIVER_RECORD_SIZE = 2 + HOST_DRIVER_VERSION_LENGTH + HOST_DRIVER_BRANCH_LENGTH


class _NvidiaPCI(Protocol):
    def devices(self) -> list[PCIDevice]: ...


@dataclass(frozen=True)
class VGPUInfo:
    """The vGPU driver running on the hypervisor host."""

    host_driver_version: str
    host_driver_branch: str


@dataclass
class VGPUDevice:
    """A PCI device identified as a vGPU, with its vendor capability."""

    pci: PCIDevice
    capability: bytes

    def get_info(self) -> VGPUInfo:
        """The host driver version and branch from the vendor capability records."""
        capability = self.capability
        if not capability:
            raise ValueError(
                f"vendor capability record is not populated for device {self.pci.address}"
            )

        not_found = ValueError(
            "cannot find driver version record in vendor specific capability "
            f"for device {self.pci.address}"
        )

        # Walk the records until the host driver version record (id 0) is found.
        pos = VGPU_CAPABILITY_RECORD_START
        if pos >= len(capability):
            raise not_found
        record = get_byte(capability, pos)
        while record != 0 and pos < len(capability):
            if pos + 1 >= len(capability):
                raise not_found
            length = get_byte(capability, pos + 1)
            if length == 0:
                raise not_found
            pos += length
            if pos >= len(capability):
                raise not_found
            record = get_byte(capability, pos)

        if record != 0 or pos + _HOST_DRIVER_RECORD_SIZE > len(capability):
            raise not_found

        start = pos + 2
        version = capability[start : start + HOST_DRIVER_VERSION_LENGTH]
        branch = capability[
            start + HOST_DRIVER_VERSION_LENGTH : start
            + HOST_DRIVER_VERSION_LENGTH
            + HOST_DRIVER_BRANCH_LENGTH
        ]
        return VGPUInfo(
            host_driver_version=version.decode("latin-1").strip("\x00"),
            host_driver_branch=branch.decode("latin-1").strip("\x00"),
        )


def is_vgpu_device(capability: bytes) -> bool:
    """Whether a vendor capability carries the vGPU signature "VF"."""
    return len(capability) >= 5 and capability[3] == 0x56 and capability[4] == 0x46


class VGPULib:
    """Finds the vGPU devices among the NVIDIA PCI devices."""

    def __init__(self, pci: _NvidiaPCI) -> None:
        self.pci = pci

    def devices(self) -> list[VGPUDevice]:
        """All vGPU devices attached to the guest."""
        try:
            pci_devices = self.pci.devices()
        except Exception as err:
            raise RuntimeError(f"error getting NVIDIA specific PCI devices: {err}") from err

        vgpus: list[VGPUDevice] = []
        for device in pci_devices:
            try:
                capability = device.vendor_specific_capability()
            except Exception as err:
                raise RuntimeError(
                    f"unable to read vendor specific capability for {device.address}: {err}"
                ) from err
            if capability is None:
                continue
            if is_vgpu_device(capability):
                vgpus.append(VGPUDevice(pci=device, capability=capability))
        return vgpus


def new_mock_vgpu() -> VGPULib:
    """A vGPU library over the fixed mock PCI devices."""
    return VGPULib(MockNvidiaPCI())