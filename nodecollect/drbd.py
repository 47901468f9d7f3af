"""DRBD device statistics from /proc/drbd."""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass

from .collector import DEFAULT_REGISTRY, NAMESPACE, Collector, NoDataError
from .metrics import Desc, Metric, ValueType, build_fq_name

_UINT_RE = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class _NumericalMetric:
    desc: Desc
    value_type: ValueType
    multiplier: float


@dataclass(frozen=True)
class _StringPairMetric:
    desc: Desc
    value_ok: str

    def metrics(self, key: str, raw: str, device: str) -> Iterator[Metric]:
        """Yield the local and remote state metrics for a ``local/remote`` value."""
        values = raw.split("/")
        if len(values) < 2:
            raise ValueError(f"invalid value {raw!r} for {key}: expected local/remote")
        for node, value in zip(("local", "remote"), values):
            okay = 1.0 if value == self.value_ok else 0.0
            yield Metric(self.desc, ValueType.GAUGE, okay, (device, node))


def _numerical(name: str, help_text: str, value_type: ValueType, multiplier: float) -> _NumericalMetric:
    return _NumericalMetric(
        Desc(build_fq_name(NAMESPACE, "drbd", name), help_text, ("device",)),
        value_type,
        multiplier,
    )


def _string_pair(name: str, help_text: str, value_ok: str) -> _StringPairMetric:
    return _StringPairMetric(
        Desc(build_fq_name(NAMESPACE, "drbd", name), help_text, ("device", "node")),
        value_ok,
    )


class DrbdCollector(Collector):
    """Exposes DRBD traffic, queue, role, disk state and connection metrics."""

    def __init__(self, paths=None, logger=None) -> None:
        super().__init__(paths, logger)
        counter, gauge = ValueType.COUNTER, ValueType.GAUGE
        self.numerical = {
            "ns": _numerical(
                "network_sent_bytes_total", "Total number of bytes sent via the network.", counter, 1024
            ),
            "nr": _numerical(
                "network_received_bytes_total",
                "Total number of bytes received via the network.",
                counter,
                1,
            ),
            "dw": _numerical(
                "disk_written_bytes_total", "Net data written on local hard disk; in bytes.", counter, 1024
            ),
            "dr": _numerical(
                "disk_read_bytes_total", "Net data read from local hard disk; in bytes.", counter, 1024
            ),
            "al": _numerical(
                "activitylog_writes_total",
                "Number of updates of the activity log area of the meta data.",
                counter,
                1,
            ),
            "bm": _numerical(
                "bitmap_writes_total",
                "Number of updates of the bitmap area of the meta data.",
                counter,
                1,
            ),
            "lo": _numerical(
                "local_pending", "Number of open requests to the local I/O sub-system.", gauge, 1
            ),
            "pe": _numerical(
                "remote_pending",
                "Number of requests sent to the peer, but that have not yet been answered by the latter.",
                gauge,
                1,
            ),
            "ua": _numerical(
                "remote_unacknowledged",
                "Number of requests received by the peer via the network connection, "
                "but that have not yet been answered.",
                gauge,
                1,
            ),
            "ap": _numerical(
                "application_pending",
                "Number of block I/O requests forwarded to DRBD, but not yet answered by DRBD.",
                gauge,
                1,
            ),
            "ep": _numerical("epochs", "Number of Epochs currently on the fly.", gauge, 1),
            "oos": _numerical(
                "out_of_sync_bytes", "Amount of data known to be out of sync; in bytes.", gauge, 1024
            ),
        }
        self.string_pair = {
            "ro": _string_pair(
                "node_role_is_primary", "Whether the role of the node is in the primary state.", "Primary"
            ),
            "ds": _string_pair(
                "disk_state_is_up_to_date", "Whether the disk of the node is up to date.", "UpToDate"
            ),
        }
        self.connected = Desc(
            build_fq_name(NAMESPACE, "drbd", "connected"),
            "Whether DRBD is connected to the peer.",
            ("device",),
        )

    def update(self) -> Iterator[Metric]:
        stats_file = self.paths.proc_file("drbd")
        try:
            with open(stats_file, encoding="utf-8") as handle:
                content = handle.read()
        except FileNotFoundError:
            self.logger.debug("stats file does not exist, skipping: %s", stats_file)
            raise NoDataError() from None

        device = "unknown"
        for field in content.split():
            kv = field.split(":")
            if len(kv) != 2:
                self.logger.debug("skipping invalid key:value pair %s", field)
                continue
            key, raw = kv

            if _UINT_RE.fullmatch(key) and raw == "":
                device = f"drbd{int(key)}"
                continue

            numerical = self.numerical.get(key)
            if numerical is not None:
                try:
                    value = float(raw)
                except ValueError as err:
                    raise ValueError(f"invalid value {raw!r} for {key}: {err}") from err
                yield Metric(numerical.desc, numerical.value_type, value * numerical.multiplier, (device,))
                continue

            pair = self.string_pair.get(key)
            if pair is not None:
                yield from pair.metrics(key, raw, device)
                continue

            if key == "cs":
                connected = 1.0 if raw == "Connected" else 0.0
                yield Metric(self.connected, ValueType.GAUGE, connected, (device,))
                continue

            self.logger.debug("unhandled key-value pair key=%s value=%s", key, raw)


DEFAULT_REGISTRY.register("drbd", False, DrbdCollector)