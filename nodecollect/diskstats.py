"""Disk I/O statistics from /proc/diskstats."""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from .collector import DEFAULT_REGISTRY, NAMESPACE, Collector
from .metrics import Desc, Metric, ValueType, build_fq_name

DISK_SUBSYSTEM = "disk"
DISK_SECTOR_SIZE = 512
DISKSTATS_FILENAME = "diskstats"
DEFAULT_IGNORED_DEVICES = r"^(ram|loop|fd|(h|s|v|xv)d[a-z]|nvme\d+n\d+p)\d+$"

DISK_LABEL_NAMES = ("device",)


def _disk_desc(name: str, help_text: str) -> Desc:
    return Desc(build_fq_name(NAMESPACE, DISK_SUBSYSTEM, name), help_text, DISK_LABEL_NAMES)


READS_COMPLETED_DESC = _disk_desc(
    "reads_completed_total", "The total number of reads completed successfully."
)
READ_BYTES_DESC = _disk_desc("read_bytes_total", "The total number of bytes read successfully.")
WRITES_COMPLETED_DESC = _disk_desc(
    "writes_completed_total", "The total number of writes completed successfully."
)
WRITTEN_BYTES_DESC = _disk_desc(
    "written_bytes_total", "The total number of bytes written successfully."
)
IO_TIME_SECONDS_DESC = _disk_desc("io_time_seconds_total", "Total seconds spent doing I/Os.")
READ_TIME_SECONDS_DESC = _disk_desc(
    "read_time_seconds_total", "The total number of seconds spent by all reads."
)
WRITE_TIME_SECONDS_DESC = _disk_desc(
    "write_time_seconds_total", "This is the total number of seconds spent by all writes."
)


@dataclass(frozen=True)
class TypedFactorDesc:
    """A descriptor with a value type and an optional scaling factor."""

    desc: Desc
    value_type: ValueType
    factor: float = 0.0

    def metric(self, value: float, *args: str) -> Metric:
        if self.factor != 0:
            value *= self.factor
        return Metric(self.desc, self.value_type, value, args)


def _build_descs() -> list[TypedFactorDesc]:
    counter = ValueType.COUNTER
    return [
        TypedFactorDesc(READS_COMPLETED_DESC, counter),
        TypedFactorDesc(_disk_desc("reads_merged_total", "The total number of reads merged."), counter),
        TypedFactorDesc(READ_BYTES_DESC, counter, DISK_SECTOR_SIZE),
        TypedFactorDesc(READ_TIME_SECONDS_DESC, counter, 0.001),
        TypedFactorDesc(WRITES_COMPLETED_DESC, counter),
        TypedFactorDesc(_disk_desc("writes_merged_total", "The number of writes merged."), counter),
        TypedFactorDesc(WRITTEN_BYTES_DESC, counter, DISK_SECTOR_SIZE),
        TypedFactorDesc(WRITE_TIME_SECONDS_DESC, counter, 0.001),
        TypedFactorDesc(
            _disk_desc("io_now", "The number of I/Os currently in progress."), ValueType.GAUGE
        ),
        TypedFactorDesc(IO_TIME_SECONDS_DESC, counter, 0.001),
        TypedFactorDesc(
            _disk_desc(
                "io_time_weighted_seconds_total", "The weighted # of seconds spent doing I/Os."
            ),
            counter,
            0.001,
        ),
        TypedFactorDesc(
            _disk_desc(
                "discards_completed_total", "The total number of discards completed successfully."
            ),
            counter,
        ),
        TypedFactorDesc(
            _disk_desc("discards_merged_total", "The total number of discards merged."), counter
        ),
        TypedFactorDesc(
            _disk_desc(
                "discarded_sectors_total", "The total number of sectors discarded successfully."
            ),
            counter,
        ),
        TypedFactorDesc(
            _disk_desc(
                "discard_time_seconds_total",
                "This is the total number of seconds spent by all discards.",
            ),
            counter,
            0.001,
        ),
        TypedFactorDesc(
            _disk_desc(
                "flush_requests_total", "The total number of flush requests completed successfully"
            ),
            counter,
        ),
        TypedFactorDesc(
            _disk_desc(
                "flush_requests_time_seconds_total",
                "This is the total number of seconds spent by all flush requests.",
            ),
            counter,
            0.001,
        ),
    ]


def parse_disk_stats(stream: Iterable[str]) -> dict[str, list[str]]:
    """Map each device to its raw statistics fields (major, minor and name stripped)."""
    source = getattr(stream, "name", DISKSTATS_FILENAME)
    if isinstance(stream, str):
        stream = stream.splitlines()
    disk_stats: dict[str, list[str]] = {}
    for line in stream:
        line = line.rstrip("\n")
        parts = line.split()
        if len(parts) < 4:
            raise ValueError(f"invalid line in {source}: {line}")
        disk_stats[parts[2]] = parts[3:]
    return disk_stats


class DiskstatsCollector(Collector):
    """Exposes disk device statistics."""

    def __init__(self, paths=None, logger=None, ignored_devices: str = DEFAULT_IGNORED_DEVICES) -> None:
        super().__init__(paths, logger)
        self.ignored_devices_pattern = re.compile(ignored_devices)
        self.descs = _build_descs()

    def _disk_stats(self) -> dict[str, list[str]]:
        try:
            with open(self.paths.proc_file(DISKSTATS_FILENAME), encoding="utf-8") as handle:
                return parse_disk_stats(handle)
        except (OSError, ValueError) as err:
            raise RuntimeError(f"couldn't get diskstats: {err}") from err

    def update(self) -> Iterator[Metric]:
        for device, stats in self._disk_stats().items():
            if self.ignored_devices_pattern.search(device):
                self.logger.debug("Ignoring device %s", device)
                continue
            # Unrecognised additional fields are ignored.
            for desc, raw in zip(self.descs, stats):
                try:
                    value = float(raw)
                except ValueError as err:
                    raise ValueError(f"invalid value {raw} in diskstats: {err}") from err
                yield desc.metric(value, device)


DEFAULT_REGISTRY.register("diskstats", True, DiskstatsCollector)