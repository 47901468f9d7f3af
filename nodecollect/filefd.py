"""Allocated and maximum file descriptors from /proc/sys/fs/file-nr."""

from __future__ import annotations

from collections.abc import Iterator

from .collector import DEFAULT_REGISTRY, NAMESPACE, Collector
from .metrics import Desc, Metric, ValueType, build_fq_name

FILE_FD_STAT_SUBSYSTEM = "filefd"


def parse_file_fd_stats(filename: str) -> dict[str, str]:
    """Return the allocated and maximum file descriptor counts as strings."""
    with open(filename, encoding="utf-8") as handle:
        content = handle.read()
    parts = content.strip().split("\t")
    if len(parts) < 3:
        raise ValueError(f"unexpected number of file stats in {filename!r}")
    # The second value is always zero since Linux 2.6 and is skipped.
    return {"allocated": parts[0], "maximum": parts[2]}


class FileFDStatCollector(Collector):
    """Exposes file-nr statistics."""

    def update(self) -> Iterator[Metric]:
        try:
            stats = parse_file_fd_stats(self.paths.proc_file("sys/fs/file-nr"))
        except (OSError, ValueError) as err:
            raise RuntimeError(f"couldn't get file-nr: {err}") from err
        for name, raw in stats.items():
            try:
                value = float(raw)
            except ValueError as err:
                raise ValueError(f"invalid value {raw} in file-nr: {err}") from err
            desc = Desc(
                build_fq_name(NAMESPACE, FILE_FD_STAT_SUBSYSTEM, name),
                f"File descriptor statistics: {name}.",
            )
            yield Metric(desc, ValueType.GAUGE, value)


DEFAULT_REGISTRY.register(FILE_FD_STAT_SUBSYSTEM, True, FileFDStatCollector)