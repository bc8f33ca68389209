import pytest

from gpuplugin.resource.managers import (
    UNKNOWN_DRIVER_VERSION,
    FallbackToNullOnInitError,
    Manager,
    NullManager,
    cuda_version_parts,
    nvml_cuda_version_parts,
    resolve_mode,
    with_config,
)


class _MockManager:
    def __init__(self, init_error=None, shutdown_error=None):
        self.init_error = init_error
        self.shutdown_error = shutdown_error
        self.init_calls = 0

    def init(self):
        self.init_calls += 1
        if self.init_error is not None:
            raise self.init_error

    def shutdown(self):
        if self.shutdown_error is not None:
            raise self.shutdown_error

    def get_devices(self):
        return ["device0"]

    def get_driver_version(self):
        return "400.300"

    def get_cuda_driver_version(self):
        return 8, 0


@pytest.mark.parametrize(
    "init_error, shutdown_error",
    [
        (RuntimeError("init failed"), None),
        (None, RuntimeError("should not be called")),
    ],
)
def test_fallback(init_error, shutdown_error):
    mock = _MockManager(init_error, shutdown_error)
    f = FallbackToNullOnInitError(mock)

    assert f.init() is None
    assert mock.init_calls == 1

    if shutdown_error is None:
        assert f.shutdown() is None
        assert isinstance(f.wrapped, NullManager)
    else:
        with pytest.raises(RuntimeError, match="^should not be called$"):
            f.shutdown()


def test_fallback_delegates_when_init_succeeds():
    f = FallbackToNullOnInitError(_MockManager())
    f.init()
    assert f.get_devices() == ["device0"]
    assert f.get_driver_version() == "400.300"
    assert f.get_cuda_driver_version() == (8, 0)


def test_fallback_after_init_failure_behaves_as_null():
    f = FallbackToNullOnInitError(_MockManager(init_error=RuntimeError("boom")))
    f.init()
    assert f.get_devices() == []
    with pytest.raises(RuntimeError, match="GetDriverVersion is unsupported"):
        f.get_driver_version()


def test_null_manager():
    m = NullManager()
    assert m.init() is None
    assert m.shutdown() is None
    assert m.get_devices() == []
    with pytest.raises(RuntimeError, match="GetDriverVersion is unsupported"):
        m.get_driver_version()
    with pytest.raises(RuntimeError, match="GetCudaDriverVersion is unsupported"):
        m.get_cuda_driver_version()


def test_fallback_wrapping_null_manager():
    f = FallbackToNullOnInitError(NullManager())
    assert isinstance(f, Manager)
    assert f.init() is None
    assert f.get_devices() == []
    with pytest.raises(RuntimeError, match="GetCudaDriverVersion is unsupported"):
        f.get_cuda_driver_version()


def test_with_config():
    mock = _MockManager()
    assert with_config(mock, True) is mock
    wrapped = with_config(mock, False)
    assert isinstance(wrapped, FallbackToNullOnInitError)
    assert wrapped.wrapped is mock


@pytest.mark.parametrize(
    "platform, strategy, expected",
    [
        ("nvml", "auto", "nvml"),
        ("wsl", "auto", "nvml"),
        ("tegra", "auto", "tegra"),
        ("tegra", "", "tegra"),
        ("unknown", "auto", "auto"),
        ("unknown", "", ""),
        ("nvml", "vfio", "vfio"),
        ("tegra", "nvml", "nvml"),
    ],
)
def test_resolve_mode(platform, strategy, expected):
    assert resolve_mode(platform, strategy) == expected


def test_cuda_version_parts():
    assert cuda_version_parts(12020) == (12, 2)
    assert cuda_version_parts(10100) == (10, 0)


def test_nvml_cuda_version_parts():
    assert nvml_cuda_version_parts(12020) == (12, 2)
    assert nvml_cuda_version_parts(10100) == (10, 10)


def test_unknown_driver_version():
    assert UNKNOWN_DRIVER_VERSION.split(".") == ["unknown"] * 3