"""Btrfs filesystem allocation and device statistics."""

from __future__ import annotations

import glob
import os
from collections.abc import Iterator
from dataclasses import dataclass, field

from .collector import DEFAULT_REGISTRY, NAMESPACE, Collector, read_uint_from_file
from .metrics import Desc, Metric, ValueType, build_fq_name

BTRFS_SUBSYSTEM = "btrfs"
_SECTOR_SIZE = 512
_UUID_GLOB = "*-*-*-*-*"


@dataclass(frozen=True)
class LayoutUsage:
    """Space usage of one data layout (raid0, raid1, ...)."""

    used_bytes: int
    total_bytes: int
    ratio: float


@dataclass(frozen=True)
class AllocationStats:
    """Allocation of one block group type."""

    reserved_bytes: int
    layouts: dict[str, LayoutUsage] = field(default_factory=dict)


@dataclass(frozen=True)
class BtrfsStats:
    """Statistics of one Btrfs filesystem; device sizes are in bytes."""

    uuid: str
    label: str
    global_rsv_size: int
    devices: dict[str, int]
    data: AllocationStats
    metadata: AllocationStats
    system: AllocationStats


@dataclass(frozen=True)
class BtrfsMetric:
    """A single Btrfs value before it becomes a metric sample."""

    name: str
    desc: str
    value: float
    extra_label: tuple[str, ...] = ()
    extra_label_value: tuple[str, ...] = ()


def _layout_ratio(layout: str, num_devices: int) -> float:
    if layout in ("raid1", "dup", "raid10"):
        return 2.0
    if layout == "raid1c3":
        return 3.0
    if layout == "raid1c4":
        return 4.0
    if layout == "raid5":
        return num_devices / (num_devices - 1) if num_devices > 1 else 0.0
    if layout == "raid6":
        return num_devices / (num_devices - 2) if num_devices > 2 else 0.0
    return 1.0


def _read_text(path: str) -> str:
    with open(path, encoding="utf-8") as handle:
        return handle.read().strip()


def _read_allocation(path: str, num_devices: int) -> AllocationStats:
    reserved = read_uint_from_file(os.path.join(path, "bytes_reserved"))
    layouts: dict[str, LayoutUsage] = {}
    for entry in sorted(os.listdir(path)):
        layout_dir = os.path.join(path, entry)
        if not os.path.isdir(layout_dir):
            continue
        layouts[entry] = LayoutUsage(
            used_bytes=read_uint_from_file(os.path.join(layout_dir, "used_bytes")),
            total_bytes=read_uint_from_file(os.path.join(layout_dir, "total_bytes")),
            ratio=_layout_ratio(entry, num_devices),
        )
    return AllocationStats(reserved, layouts)


def _read_filesystem(path: str) -> BtrfsStats:
    devices: dict[str, int] = {}
    devices_dir = os.path.join(path, "devices")
    if os.path.isdir(devices_dir):
        for name in sorted(os.listdir(devices_dir)):
            sectors = read_uint_from_file(os.path.join(devices_dir, name, "size"))
            devices[name] = sectors * _SECTOR_SIZE
    allocation = os.path.join(path, "allocation")
    return BtrfsStats(
        uuid=os.path.basename(path),
        label=_read_text(os.path.join(path, "label")),
        global_rsv_size=read_uint_from_file(os.path.join(allocation, "global_rsv_size")),
        devices=devices,
        data=_read_allocation(os.path.join(allocation, "data"), len(devices)),
        metadata=_read_allocation(os.path.join(allocation, "metadata"), len(devices)),
        system=_read_allocation(os.path.join(allocation, "system"), len(devices)),
    )


class BtrfsCollector(Collector):
    """Exposes Btrfs statistics read from sysfs."""

    def _stats(self) -> list[BtrfsStats]:
        root = self.paths.sys_file("fs/btrfs")
        try:
            return [_read_filesystem(p) for p in sorted(glob.glob(os.path.join(root, _UUID_GLOB)))]
        except (OSError, ValueError) as err:
            raise RuntimeError(f"failed to retrieve Btrfs stats: {err}") from err

    def update(self) -> Iterator[Metric]:
        for stats in self._stats():
            for m in self.get_metrics(stats):
                desc = Desc(
                    build_fq_name(NAMESPACE, BTRFS_SUBSYSTEM, m.name),
                    m.desc,
                    ("uuid",) + m.extra_label,
                )
                yield Metric(desc, ValueType.GAUGE, m.value, (stats.uuid,) + m.extra_label_value)

    def get_metrics(self, stats: BtrfsStats) -> list[BtrfsMetric]:
        metrics = [
            BtrfsMetric("info", "Filesystem information", 1, ("label",), (stats.label,)),
            BtrfsMetric("global_rsv_size_bytes", "Size of global reserve.", float(stats.global_rsv_size)),
        ]
        for name, size in stats.devices.items():
            metrics.append(
                BtrfsMetric(
                    "device_size_bytes",
                    "Size of a device that is part of the filesystem.",
                    float(size),
                    ("device",),
                    (name,),
                )
            )
        metrics += self._allocation_metrics("data", stats.data)
        metrics += self._allocation_metrics("metadata", stats.metadata)
        metrics += self._allocation_metrics("system", stats.system)
        return metrics

    @staticmethod
    def _allocation_metrics(kind: str, alloc: AllocationStats) -> list[BtrfsMetric]:
        metrics = [
            BtrfsMetric(
                "reserved_bytes",
                "Amount of space reserved for a data type",
                float(alloc.reserved_bytes),
                ("block_group_type",),
                (kind,),
            )
        ]
        labels = ("block_group_type", "mode")
        for layout, usage in alloc.layouts.items():
            values = (kind, layout)
            metrics += [
                BtrfsMetric(
                    "used_bytes", "Amount of used space by a layout/data type",
                    float(usage.used_bytes), labels, values,
                ),
                BtrfsMetric(
                    "size_bytes", "Amount of space allocated for a layout/data type",
                    float(usage.total_bytes), labels, values,
                ),
                BtrfsMetric(
                    "allocation_ratio", "Data allocation ratio for a layout/data type",
                    float(usage.ratio), labels, values,
                ),
            ]
        return metrics


DEFAULT_REGISTRY.register("btrfs", True, BtrfsCollector)