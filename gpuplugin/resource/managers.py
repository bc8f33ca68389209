"""Resource managers that list devices and report driver versions."""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

# Driver version reported where the real one cannot be determined.
UNKNOWN_DRIVER_VERSION = "unknown.unknown.unknown"

_AUTO_STRATEGIES = ("", "auto")
_PLATFORM_MODES = {
    "nvml": "nvml",
    "wsl": "nvml",
    "tegra": "tegra",
}


class UnsupportedOperationError(RuntimeError):
    """Raised when a manager does not support the requested operation."""

    def __init__(self, operation: str) -> None:
        super().__init__(f"{operation} is unsupported")
        self.operation = operation


@runtime_checkable
class Manager(Protocol):
    """Manages the devices with which labels are associated."""

    def init(self) -> None: ...

    def shutdown(self) -> None: ...

    def get_devices(self) -> list[Any]: ...

    def get_driver_version(self) -> str: ...

    def get_cuda_driver_version(self) -> tuple[int, int]: ...


class NullManager:
    """A manager with no devices that supports no driver queries."""

    def __init__(self) -> None:
        self.initialized = False

    def init(self) -> None:
        """Mark the manager as initialised; there is nothing to set up."""
        self.initialized = True

    def shutdown(self) -> None:
        """Mark the manager as shut down; there is nothing to release."""
        self.initialized = False

    def get_devices(self) -> list[Any]:
        return []

    def get_driver_version(self) -> str:
        """Always raises: a null manager knows no driver version."""
        error = UnsupportedOperationError("GetDriverVersion")
        raise error

    def get_cuda_driver_version(self) -> tuple[int, int]:
        """Always raises: a null manager knows no CUDA driver version."""
        error = UnsupportedOperationError("GetCudaDriverVersion")
        raise error


class FallbackToNullOnInitError:
    """Wraps a manager and becomes a null manager on the first init error."""

    def __init__(self, manager: Manager) -> None:
        self._wrapped: Manager = manager
        self._fallback: Manager = NullManager()

    @property
    def wrapped(self) -> Manager:
        """The manager currently delegated to."""
        return self._wrapped

    def init(self) -> None:
        """Initialise the wrapped manager, falling back to the null manager on failure."""
        try:
            self._wrapped.init()
        except Exception as err:
            logger.warning("Failed to initialize resource manager: %s", err)
            self._wrapped = self._fallback

    def shutdown(self) -> None:
        self._wrapped.shutdown()

    def get_devices(self) -> list[Any]:
        return self._wrapped.get_devices()

    def get_driver_version(self) -> str:
        return self._wrapped.get_driver_version()

    def get_cuda_driver_version(self) -> tuple[int, int]:
        return self._wrapped.get_cuda_driver_version()


def with_config(manager: Manager, fail_on_init_error: bool) -> Manager:
    """The manager itself, or wrapped to fall back to a null manager if init may fail."""
    if fail_on_init_error:
        return manager
    return FallbackToNullOnInitError(manager)


def resolve_mode(platform: str, strategy: str) -> str:
    """The device discovery mode for a platform and a configured strategy.

    An explicit strategy wins; "auto" or an empty strategy is resolved from
    the platform ("nvml" and "wsl" give "nvml", "tegra" gives "tegra").
    """
    if strategy not in _AUTO_STRATEGIES:
        return strategy
    return _PLATFORM_MODES.get(platform, strategy)


def cuda_version_parts(version: int) -> tuple[int, int]:
    """Major and minor parts of a version reported by the CUDA driver API."""
    return version // 1000, version % 100 // 10


def nvml_cuda_version_parts(version: int) -> tuple[int, int]:
    """Major and minor parts of a CUDA driver version reported by NVML."""
    return version // 1000, version % 1000 // 10