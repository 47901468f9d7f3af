"""Filesystem size, free space, inode and read-only metrics."""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass

from .collector import NAMESPACE, Collector
from .metrics import Desc, Metric, ValueType, build_fq_name

FILESYSTEM_SUBSYSTEM = "filesystem"
FILESYSTEM_LABEL_NAMES = ("device", "mountpoint", "fstype")


@dataclass(frozen=True)
class FilesystemLabels:
    """Identity of a mounted filesystem."""

    device: str
    mount_point: str
    fs_type: str
    options: str = ""


@dataclass(frozen=True)
class FilesystemStats:
    """Space and inode figures of one mounted filesystem."""

    labels: FilesystemLabels
    size: float = 0.0
    free: float = 0.0
    avail: float = 0.0
    files: float = 0.0
    files_free: float = 0.0
    ro: float = 0.0
    device_error: float = 0.0


def _desc(name: str, help_text: str) -> Desc:
    return Desc(build_fq_name(NAMESPACE, FILESYSTEM_SUBSYSTEM, name), help_text, FILESYSTEM_LABEL_NAMES)


class FilesystemCollector(Collector):
    """Exposes filesystem statistics supplied by a platform-specific source."""

    def __init__(
        self,
        stats_source: Callable[[], Iterable[FilesystemStats]],
        paths=None,
        logger=None,
        ignored_mount_points: str | None = None,
        ignored_fs_types: str | None = None,
    ) -> None:
        super().__init__(paths, logger)
        self._stats_source = stats_source
        self.ignored_mount_points_pattern = (
            re.compile(ignored_mount_points) if ignored_mount_points else None
        )
        self.ignored_fs_types_pattern = re.compile(ignored_fs_types) if ignored_fs_types else None
        self.size_desc = _desc("size_bytes", "Filesystem size in bytes.")
        self.free_desc = _desc("free_bytes", "Filesystem free space in bytes.")
        self.avail_desc = _desc("avail_bytes", "Filesystem space available to non-root users in bytes.")
        self.files_desc = _desc("files", "Filesystem total file nodes.")
        self.files_free_desc = _desc("files_free", "Filesystem total free file nodes.")
        self.ro_desc = _desc("readonly", "Filesystem read-only status.")
        self.device_error_desc = _desc(
            "device_error", "Whether an error occurred while getting statistics for the given device."
        )

    def get_stats(self) -> Iterator[FilesystemStats]:
        """Stats from the source, minus ignored mount points and filesystem types."""
        for stats in self._stats_source():
            mount_point = stats.labels.mount_point
            if self.ignored_mount_points_pattern and self.ignored_mount_points_pattern.search(mount_point):
                self.logger.debug("Ignoring mount point %s", mount_point)
                continue
            fs_type = stats.labels.fs_type
            if self.ignored_fs_types_pattern and self.ignored_fs_types_pattern.search(fs_type):
                self.logger.debug("Ignoring fs type %s", fs_type)
                continue
            yield stats

    def update(self) -> Iterator[Metric]:
        gauge = ValueType.GAUGE
        seen: set[FilesystemLabels] = set()
        for s in list(self.get_stats()):
            # Expose each filesystem once, even when mounted several times.
            if s.labels in seen:
                continue
            seen.add(s.labels)
            labels = (s.labels.device, s.labels.mount_point, s.labels.fs_type)

            yield Metric(self.device_error_desc, gauge, s.device_error, labels)
            if s.device_error > 0:
                continue
            yield Metric(self.size_desc, gauge, s.size, labels)
            yield Metric(self.free_desc, gauge, s.free, labels)
            yield Metric(self.avail_desc, gauge, s.avail, labels)
            yield Metric(self.files_desc, gauge, s.files, labels)
            yield Metric(self.files_free_desc, gauge, s.files_free, labels)
            yield Metric(self.ro_desc, gauge, s.ro, labels)