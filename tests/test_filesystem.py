import re

import pytest

from nodecollect.filesystem import FilesystemCollector, FilesystemLabels, FilesystemStats
from nodecollect.metrics import ValueType

ROOT = FilesystemStats(
    labels=FilesystemLabels("/dev/sda1", "/", "ext4"),
    size=1000.0,
    free=400.0,
    avail=300.0,
    files=50.0,
    files_free=20.0,
    ro=0.0,
)


def _collect(stats, **kwargs):
    return list(FilesystemCollector(lambda: list(stats), **kwargs).update())


def test_all_values_in_order():
    metrics = _collect([ROOT])
    assert [m.value for m in metrics] == [0.0, 1000.0, 400.0, 300.0, 50.0, 20.0, 0.0]
    assert metrics[0].name == "node_filesystem_device_error"
    assert all(m.value_type is ValueType.GAUGE for m in metrics)


def test_labels():
    metrics = _collect([ROOT])
    assert {tuple(sorted(m.labels.items())) for m in metrics} == {
        (("device", "/dev/sda1"), ("fstype", "ext4"), ("mountpoint", "/")),
    }


def test_device_error_emits_only_error_metric():
    broken = FilesystemStats(FilesystemLabels("/dev/sdb1", "/mnt", "xfs"), device_error=1.0)
    metrics = _collect([broken])
    assert len(metrics) == 1
    assert metrics[0].value == 1.0


def test_duplicate_mounts_exposed_once():
    assert len(_collect([ROOT, ROOT])) == len(_collect([ROOT]))


def test_different_options_are_distinct():
    other = FilesystemStats(FilesystemLabels("/dev/sda1", "/", "ext4", "ro"), size=1.0)
    assert len(_collect([ROOT, other])) == 2 * len(_collect([ROOT]))


def test_ignored_mount_points():
    dev = FilesystemStats(FilesystemLabels("devfs", "/dev", "devfs"))
    metrics = _collect([ROOT, dev], ignored_mount_points="^/(dev)($|/)")
    assert {m.labels["mountpoint"] for m in metrics} == {"/"}


def test_ignored_fs_types():
    tmp = FilesystemStats(FilesystemLabels("tmpfs", "/run", "tmpfs"))
    metrics = _collect([ROOT, tmp], ignored_fs_types="^tmpfs$")
    assert {m.labels["fstype"] for m in metrics} == {"ext4"}


def test_invalid_pattern():
    with pytest.raises(re.error):
        FilesystemCollector(lambda: [], ignored_fs_types="(")


def test_source_error_propagates():
    def failing():
        raise OSError("mount table unavailable")

    with pytest.raises(OSError):
        list(FilesystemCollector(failing).update())