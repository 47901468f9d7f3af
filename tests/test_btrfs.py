import pytest

from nodecollect.btrfs import (
    AllocationStats,
    BtrfsCollector,
    BtrfsMetric,
    BtrfsStats,
    LayoutUsage,
)
from nodecollect.collector import Paths
from nodecollect.metrics import ValueType

UUID_A = "0ac1e2b4-0000-4000-8000-000000000001"
UUID_B = "7f08e6a4-0000-4000-8000-000000000002"
DEVICE_SECTORS = 20971520

EXPECTED = [
    [
        ("info", 1, ("label",), ("fixture",)),
        ("global_rsv_size_bytes", 1.6777216e07, (), ()),
        ("device_size_bytes", 1.073741824e10, ("device",), ("loop25",)),
        ("device_size_bytes", 1.073741824e10, ("device",), ("loop26",)),
        ("reserved_bytes", 0, ("block_group_type",), ("data",)),
        ("used_bytes", 8.08189952e08, ("block_group_type", "mode"), ("data", "raid0")),
        ("size_bytes", 2.147483648e09, ("block_group_type", "mode"), ("data", "raid0")),
        ("allocation_ratio", 1, ("block_group_type", "mode"), ("data", "raid0")),
        ("reserved_bytes", 0, ("block_group_type",), ("metadata",)),
        ("used_bytes", 933888, ("block_group_type", "mode"), ("metadata", "raid1")),
        ("size_bytes", 1.073741824e09, ("block_group_type", "mode"), ("metadata", "raid1")),
        ("allocation_ratio", 2, ("block_group_type", "mode"), ("metadata", "raid1")),
        ("reserved_bytes", 0, ("block_group_type",), ("system",)),
        ("used_bytes", 16384, ("block_group_type", "mode"), ("system", "raid1")),
        ("size_bytes", 8.388608e06, ("block_group_type", "mode"), ("system", "raid1")),
        ("allocation_ratio", 2, ("block_group_type", "mode"), ("system", "raid1")),
    ],
    [
        ("info", 1, ("label",), ("",)),
        ("global_rsv_size_bytes", 1.6777216e07, (), ()),
        ("device_size_bytes", 1.073741824e10, ("device",), ("loop22",)),
        ("device_size_bytes", 1.073741824e10, ("device",), ("loop23",)),
        ("device_size_bytes", 1.073741824e10, ("device",), ("loop24",)),
        ("device_size_bytes", 1.073741824e10, ("device",), ("loop25",)),
        ("reserved_bytes", 0, ("block_group_type",), ("data",)),
        ("used_bytes", 0, ("block_group_type", "mode"), ("data", "raid5")),
        ("size_bytes", 6.44087808e08, ("block_group_type", "mode"), ("data", "raid5")),
        ("allocation_ratio", 1.3333333333333333, ("block_group_type", "mode"), ("data", "raid5")),
        ("reserved_bytes", 0, ("block_group_type",), ("metadata",)),
        ("used_bytes", 114688, ("block_group_type", "mode"), ("metadata", "raid6")),
        ("size_bytes", 4.29391872e08, ("block_group_type", "mode"), ("metadata", "raid6")),
        ("allocation_ratio", 2, ("block_group_type", "mode"), ("metadata", "raid6")),
        ("reserved_bytes", 0, ("block_group_type",), ("system",)),
        ("used_bytes", 16384, ("block_group_type", "mode"), ("system", "raid6")),
        ("size_bytes", 1.6777216e07, ("block_group_type", "mode"), ("system", "raid6")),
        ("allocation_ratio", 2, ("block_group_type", "mode"), ("system", "raid6")),
    ],
]


def _write_fs(root, uuid, label, devices, allocations):
    fs = root / "fs" / "btrfs" / uuid
    fs.mkdir(parents=True)
    (fs / "label").write_text(label + "\n")
    for dev in devices:
        d = fs / "devices" / dev
        d.mkdir(parents=True)
        (d / "size").write_text(f"{DEVICE_SECTORS}\n")
    alloc = fs / "allocation"
    alloc.mkdir()
    (alloc / "global_rsv_size").write_text("16777216\n")
    for kind, (layout, used, total) in allocations.items():
        k = alloc / kind
        (k / layout).mkdir(parents=True)
        (k / "bytes_reserved").write_text("0\n")
        (k / layout / "used_bytes").write_text(f"{used}\n")
        (k / layout / "total_bytes").write_text(f"{total}\n")


@pytest.fixture
def sysfs(tmp_path):
    _write_fs(
        tmp_path, UUID_A, "fixture", ["loop25", "loop26"],
        {
            "data": ("raid0", 808189952, 2147483648),
            "metadata": ("raid1", 933888, 1073741824),
            "system": ("raid1", 16384, 8388608),
        },
    )
    _write_fs(
        tmp_path, UUID_B, "", ["loop22", "loop23", "loop24", "loop25"],
        {
            "data": ("raid5", 0, 644087808),
            "metadata": ("raid6", 114688, 429391872),
            "system": ("raid6", 16384, 16777216),
        },
    )
    return tmp_path


def _as_tuples(metrics):
    return [(m.name, m.value, m.extra_label, m.extra_label_value) for m in metrics]


def test_btrfs_metrics_from_sysfs(sysfs):
    collector = BtrfsCollector(Paths(sys_path=str(sysfs)))
    stats = collector._stats()
    assert len(stats) == len(EXPECTED)
    for s, expected in zip(stats, EXPECTED):
        assert _as_tuples(collector.get_metrics(s)) == expected


def test_get_metrics_from_constructed_stats():
    stats = BtrfsStats(
        uuid=UUID_A,
        label="fixture",
        global_rsv_size=16777216,
        devices={"loop25": 10737418240, "loop26": 10737418240},
        data=AllocationStats(0, {"raid0": LayoutUsage(808189952, 2147483648, 1.0)}),
        metadata=AllocationStats(0, {"raid1": LayoutUsage(933888, 1073741824, 2.0)}),
        system=AllocationStats(0, {"raid1": LayoutUsage(16384, 8388608, 2.0)}),
    )
    metrics = BtrfsCollector().get_metrics(stats)
    assert _as_tuples(metrics) == EXPECTED[0]
    assert metrics[0] == BtrfsMetric("info", "Filesystem information", 1, ("label",), ("fixture",))


def test_update_labels_with_uuid(sysfs):
    collector = BtrfsCollector(Paths(sys_path=str(sysfs)))
    metrics = list(collector.update())
    assert len(metrics) == len(EXPECTED[0]) + len(EXPECTED[1])
    assert all(m.value_type is ValueType.GAUGE for m in metrics)
    info = [m for m in metrics if m.name == "node_btrfs_info"]
    assert [m.labels for m in info] == [
        {"uuid": UUID_A, "label": "fixture"},
        {"uuid": UUID_B, "label": ""},
    ]


def test_update_without_btrfs_yields_nothing(tmp_path):
    collector = BtrfsCollector(Paths(sys_path=str(tmp_path)))
    assert list(collector.update()) == []


def test_update_with_broken_filesystem(sysfs):
    (sysfs / "fs" / "btrfs" / UUID_A / "allocation" / "global_rsv_size").unlink()
    collector = BtrfsCollector(Paths(sys_path=str(sysfs)))
    with pytest.raises(RuntimeError):
        list(collector.update())