# gpuplugin

Building blocks for a cluster GPU device plugin. They keep track of the
devices behind each resource name, hand out replicas of shared devices,
choose allocations, check requests against the sharing strategy and read vGPU
host driver details from PCI configuration space.

The package has no dependencies outside the standard library.

## Installation

```
pip install .
pip install ".[test]"   # with the test requirements
```

## Modules

### `gpuplugin.rm.devices`

- `Device`: a dataclass with `id`, `index`, `paths`, `health`, `numa_node`,
  `total_memory`, `compute_capability` and `replicas`. `is_mig_device()` is
  true when the index contains `:`; `uuid()` strips any replica annotation;
  `aligned_allocation_supported()` is false for MIG devices and for devices
  using `/dev/dxg`.
- `Devices`: a `dict` of device ID to `Device` with `contains`, `get_by_id`,
  `get_by_index`, `subset`, `difference`, `ids`, `uuids`, `indices`, `paths`
  and `aligned_allocation_supported`.
- `build_device(index, info)` builds a healthy `Device` from any object with
  `get_uuid`, `get_paths`, `get_numa_node`, `get_total_memory` and
  `get_compute_capability`; a failure in any of them raises `RuntimeError`.
- Replica IDs of the form `<id>::<replica>`: `new_annotated_id`,
  `has_annotations`, `split_annotated_id`, `annotated_base_id`,
  `any_has_annotations`, `base_ids`.
- `c_string(values)` turns a NUL-terminated sequence of C chars into a string.

### `gpuplugin.rm.allocate`

`distributed_alloc(devices, available, required, size)` returns the required
IDs followed by candidates picked so that replicas are spread evenly over the
GPUs behind them. It raises `ValueError` when too few devices are available.

### `gpuplugin.rm.health`

- `health_checks_disabled(value)`: true when the setting is `all` or contains
  `xids` (the setting is conventionally read from `DP_DISABLE_HEALTHCHECKS`,
  kept in `DISABLE_HEALTH_CHECKS_ENV`).
- `get_additional_xids(value)`: the unsigned integers in a comma-separated
  list; malformed entries are ignored.
- `skipped_xids(value)`: `APPLICATION_ERROR_XIDS` (13, 31, 43, 45, 68) plus
  the additional ones.
- `parse_mig_device_uuid(uuid)`: splits `MIG-GPU-<uuid>/<gi>/<ci>` into the
  parent UUID and the two instance IDs, raising `ValueError` otherwise.
- `device_placement(device)`: `(uuid, 0xFFFFFFFF, 0xFFFFFFFF)` for a full
  device, the parsed MIG UUID for a MIG device.

### `gpuplugin.rm.manager`

- `SharingStrategy`: `NONE`, `TIME_SLICING`, `MPS`.
- `ResourceManager(resource, devices, sharing_strategy=..., fail_requests_greater_than_one=..., aligned_allocator=None)`:
  - `validate_request(ids)` raises `InvalidRequestError` (a `ValueError`) for
    unknown IDs, and for requests of more than one replica under MPS, or under
    time-slicing when `fail_requests_greater_than_one` is set.
  - `get_preferred_allocation(available, required, size)` calls
    `aligned_allocator` when one is given, all devices support aligned
    allocation and no available ID is annotated; otherwise it uses
    `distributed_alloc`.
  - `get_device_paths(ids)` returns the driver control nodes followed by the
    paths of the requested devices (see `nvml_device_paths`).
- `mig_resource_name(profile)`: `mig-<profile>` with `+` replaced by `.`.

### `gpuplugin.rm.device_map`

- `ReplicatedResource`: a resource name, replica count, optional rename and
  the selection of devices (`all_devices`, `device_count` or `device_list` of
  indices or UUIDs).
- `DeviceMap`: a `dict` of resource name to `Devices` with `insert`,
  `set_entry`, `merge`, `is_empty` and `ids_to_replicate`.
- `update_device_map_with_replicas(replicated_resources, device_map)` returns
  a new map in which the selected devices are replaced by their replicas.

### `gpuplugin.rm.tegra`

`TegraDevice`, `build_tegra_device_map(gpu_resources)` for
`(pattern, resource name)` pairs matched against `tegra`, and
`new_tegra_resource_managers(...)`, which returns one `TegraResourceManager`
per resource that has devices. Tegra managers report no device paths.

### `gpuplugin.vgpu`

- `gpuplugin.vgpu.pciutil`: `PCIDevice` with
  `vendor_specific_capability()`, the byte helpers `get_byte`, `get_word`,
  `get_long`, `NvidiaPCILib(root="/sys/bus/pci/devices")` which lists NVIDIA
  devices from sysfs, and `MockNvidiaPCI` with one passthrough GPU and one
  vGPU.
- `gpuplugin.vgpu.vgpu`: `is_vgpu_device(capability)`, `VGPULib(pci)` whose
  `devices()` returns `VGPUDevice`s, `VGPUDevice.get_info()` returning a
  `VGPUInfo` with `host_driver_version` and `host_driver_branch`, and
  `new_mock_vgpu()`.

### `gpuplugin.resource`

- `gpuplugin.resource.managers`: the `Manager` protocol, `NullManager`,
  `FallbackToNullOnInitError`, `with_config(manager, fail_on_init_error)`,
  `resolve_mode(platform, strategy)` and the CUDA version helpers
  `cuda_version_parts` and `nvml_cuda_version_parts`.
- `gpuplugin.resource.mig`: `mig_attributes`, `total_memory` and
  `mig_device_name`.

## Example

```python
from gpuplugin.rm.allocate import distributed_alloc
from gpuplugin.rm.devices import Device, Devices, new_annotated_id
from gpuplugin.rm.manager import InvalidRequestError, ResourceManager, SharingStrategy

devices = Devices(
    {d.id: d for d in (Device(id=new_annotated_id("GPU-a", r), index="0") for r in range(2))}
)
print(distributed_alloc(devices, devices.ids(), [], 1))   # ['GPU-a::0']

manager = ResourceManager("nvidia.com/gpu", devices, sharing_strategy=SharingStrategy.MPS)
try:
    manager.validate_request(["GPU-a::0", "GPU-a::1"])
except InvalidRequestError as err:
    print(err)   # invalid request: maximum request size for shared resources is 1; found 2
```

## What the package does not do

It does not talk to a GPU driver or management library: devices, device
info, MIG profiles and aligned allocation are supplied by the caller. It runs
no health-monitoring loop, serves no device-plugin API and provides no
command-line program.

## Running the tests

```
pytest
```