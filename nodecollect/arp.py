"""ARP table entry counts per device."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Iterator

from .collector import DEFAULT_REGISTRY, NAMESPACE, Collector
from .metrics import Desc, Metric, ValueType, build_fq_name


def parse_arp_entries(lines: Iterable[str] | str) -> dict[str, int]:
    """Count ARP entries per device from /proc/net/arp content."""
    if isinstance(lines, str):
        lines = lines.splitlines()
    entries: Counter[str] = Counter()
    for line in lines:
        columns = line.split()
        if len(columns) < 6:
            raise ValueError("unexpected ARP table format")
        if columns[0] != "IP":
            entries[columns[-1]] += 1
    return dict(entries)


class ArpCollector(Collector):
    """Exposes ARP entries by device."""

    def __init__(self, paths=None, logger=None) -> None:
        super().__init__(paths, logger)
        self.entries = Desc(
            build_fq_name(NAMESPACE, "arp", "entries"),
            "ARP entries by device",
            ("device",),
        )

    def update(self) -> Iterator[Metric]:
        try:
            with open(self.paths.proc_file("net/arp"), encoding="utf-8") as handle:
                entries = parse_arp_entries(handle)
        except (OSError, ValueError) as err:
            raise RuntimeError(f"could not get ARP entries: {err}") from err
        for device, count in entries.items():
            yield Metric(self.entries, ValueType.GAUGE, count, (device,))


DEFAULT_REGISTRY.register("arp", True, ArpCollector)