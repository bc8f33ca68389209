import pytest

from gpuplugin.vgpu.pciutil import (
    MockNvidiaPCI,
    NvidiaPCILib,
    PCIDevice,
    get_byte,
    get_long,
    get_word,
)


def _device(config: bytes, address: str = "test") -> PCIDevice:
    return PCIDevice(path="", address=address, device_class="0x03", vendor="0x10de", config=config)


def test_mock_vendor_specific_capability():
    devices = MockNvidiaPCI().devices()
    assert [d.address for d in devices] == ["passthrough", "vgpu"]
    for device in devices:
        assert f"0x{get_word(device.config, 0):x}" == "0x10de"
        capability = device.vendor_specific_capability()
        assert capability
        if device.address == "passthrough":
            assert len(capability) == 20
        if device.address == "vgpu":
            assert len(capability) == 27
        assert get_byte(capability, 0) == 9


def test_mock_configs_are_full_size():
    assert all(len(d.config) == 256 for d in MockNvidiaPCI().devices())


def test_short_config_raises():
    with pytest.raises(ValueError, match="entire PCI configuration is not read"):
        _device(bytes(64)).vendor_specific_capability()


def test_no_capability_list():
    assert _device(bytes(256)).vendor_specific_capability() is None


def test_looping_chain_returns_none():
    config = bytearray(256)
    config[0x06] = 0x10
    config[0x34] = 0x40
    config[0x40:0x43] = bytes([0x01, 0x40, 0x04])
    assert _device(bytes(config)).vendor_specific_capability() is None


def test_broken_chain_returns_none():
    config = bytearray(256)
    config[0x06] = 0x10
    config[0x34] = 0x40
    config[0x40:0x43] = bytes([0xFF, 0x50, 0x04])
    config[0x50:0x53] = bytes([0x09, 0x00, 0x04])
    assert _device(bytes(config)).vendor_specific_capability() is None


def test_capability_follows_chain():
    config = bytearray(256)
    config[0x06] = 0x10
    config[0x34] = 0x40
    config[0x40:0x43] = bytes([0x01, 0x50, 0x04])
    config[0x50:0x54] = bytes([0x09, 0x00, 0x04, 0xAB])
    assert _device(bytes(config)).vendor_specific_capability() == bytes([0x09, 0x00, 0x04, 0xAB])


def test_byte_helpers():
    buffer = bytes([0x01, 0x02, 0x03, 0x04, 0x05])
    assert get_byte(buffer, 2) == 0x03
    assert get_word(buffer, 0) == 0x0201
    assert get_long(buffer, 1) == 0x05040302


def _write_device(root, address, vendor, device_class="0x030000\n", config=b"\x01\x02"):
    path = root / address
    path.mkdir()
    (path / "vendor").write_text(vendor + "\n")
    if device_class is not None:
        (path / "class").write_text(device_class)
    (path / "config").write_bytes(config)
    return path


def test_lib_lists_only_nvidia_devices(tmp_path):
    _write_device(tmp_path, "0000:02:00.0", "0x10de")
    _write_device(tmp_path, "0000:01:00.0", "0x8086")
    _write_device(tmp_path, "0000:00:01.0", "0x10de", config=b"\xaa")

    devices = NvidiaPCILib(tmp_path).devices()

    assert [d.address for d in devices] == ["0000:00:01.0", "0000:02:00.0"]
    assert devices[0].config == b"\xaa"
    assert devices[1].device_class == "0x03"
    assert devices[1].vendor == "0x10de"
    assert devices[1].path == str(tmp_path / "0000:02:00.0")


def test_lib_missing_root_raises(tmp_path):
    with pytest.raises(OSError, match="unable to read PCI bus devices"):
        NvidiaPCILib(tmp_path / "missing").devices()


def test_lib_missing_class_raises(tmp_path):
    _write_device(tmp_path, "0000:02:00.0", "0x10de", device_class=None)
    with pytest.raises(OSError, match="unable to read PCI device class for 0000:02:00.0"):
        NvidiaPCILib(tmp_path).devices()