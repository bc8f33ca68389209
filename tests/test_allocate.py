import pytest

from gpuplugin.rm.allocate import distributed_alloc
from gpuplugin.rm.devices import Device, Devices, annotated_base_id, new_annotated_id


def replicated(gpus, replicas):
    ds = Devices()
    for gpu in gpus:
        for r in range(replicas):
            annotated = new_annotated_id(gpu, r)
            ds[annotated] = Device(id=annotated, index=gpu, replicas=replicas)
    return ds


def test_spreads_across_gpus():
    ds = replicated(["A", "B"], 2)
    result = distributed_alloc(ds, list(ds), [], 2)
    assert len(result) == 2
    assert {annotated_base_id(r) for r in result} == {"A", "B"}


def test_prefers_least_used_gpu():
    ds = replicated(["A", "B"], 4)
    available = [new_annotated_id("A", 0), new_annotated_id("A", 1)] + [
        new_annotated_id("B", r) for r in range(4)
    ]
    result = distributed_alloc(ds, available, [], 1)
    assert annotated_base_id(result[0]) == "B"


def test_required_devices_come_first():
    ds = replicated(["A", "B"], 2)
    required = [new_annotated_id("A", 0)]
    result = distributed_alloc(ds, list(ds), required, 3)
    assert result[0] == required[0]
    assert len(result) == 3
    assert len(set(result)) == 3
    assert all(r in ds for r in result)


def test_required_only():
    ds = replicated(["A"], 2)
    required = [new_annotated_id("A", 1)]
    assert distributed_alloc(ds, list(ds), required, 1) == required


def test_not_enough_devices():
    ds = replicated(["A"], 2)
    with pytest.raises(ValueError, match="not enough available devices"):
        distributed_alloc(ds, list(ds), [], 3)


def test_unknown_available_ids_are_ignored():
    ds = replicated(["A"], 1)
    with pytest.raises(ValueError):
        distributed_alloc(ds, ["ghost::0", "ghost::1"], [], 1)


def test_allocated_from_available_only():
    ds = replicated(["A", "B", "C"], 3)
    available = [i for i in ds if not i.startswith("C")]
    result = distributed_alloc(ds, available, [], 4)
    assert set(result) <= set(available)
    counts = {g: sum(annotated_base_id(r) == g for r in result) for g in ("A", "B")}
    assert counts["A"] == counts["B"]