"""Linux bcache statistics."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field

from .collector import NAMESPACE, Collector
from .metrics import Desc, Metric, ValueType, build_fq_name

BCACHE_SUBSYSTEM = "bcache"


@dataclass(frozen=True)
class PeriodStats:
    """Counters of one statistics period of a backing device."""

    bypassed: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    cache_bypass_hits: int = 0
    cache_bypass_misses: int = 0
    cache_miss_collisions: int = 0
    cache_readaheads: int = 0


@dataclass(frozen=True)
class BdevStats:
    """Statistics of one backing device."""

    name: str
    dirty_data: int = 0
    writeback_rate_target: int = 0
    writeback_rate: int = 0
    writeback_rate_proportional: int = 0
    writeback_rate_integral: int = 0
    writeback_rate_change: int = 0
    total: PeriodStats = field(default_factory=PeriodStats)


@dataclass(frozen=True)
class CacheStats:
    """Statistics of one cache device."""

    name: str
    io_errors: int = 0
    metadata_written: int = 0
    written: int = 0
    priority_unused_percent: int = 0
    priority_metadata_percent: int = 0


@dataclass(frozen=True)
class BcacheStats:
    """Statistics of one bcache set, identified by its UUID."""

    name: str
    average_key_size: int = 0
    btree_cache_size: int = 0
    cache_available_percent: int = 0
    congested: int = 0
    root_usage_percent: int = 0
    tree_depth: int = 0
    active_journal_entries: int = 0
    btree_nodes: int = 0
    btree_read_average_duration_nanoseconds: int = 0
    cache_read_races: int = 0
    bdevs: tuple[BdevStats, ...] = ()
    caches: tuple[CacheStats, ...] = ()


@dataclass(frozen=True)
class BcacheMetric:
    """A single bcache value before it becomes a metric sample."""

    name: str
    desc: str
    value: float
    value_type: ValueType
    extra_label: tuple[str, ...] = ()
    extra_label_value: str = ""


def period_stats_to_metrics(period_stats: PeriodStats, label_value: str) -> list[BcacheMetric]:
    """Metrics for one statistics period of the backing device ``label_value``."""
    label = ("backing_device",)
    counter = ValueType.COUNTER
    ps = period_stats
    return [
        BcacheMetric(
            "bypassed_bytes_total",
            "Amount of IO (both reads and writes) that has bypassed the cache.",
            float(ps.bypassed), counter, label, label_value,
        ),
        BcacheMetric(
            "cache_hits_total",
            "Hits counted per individual IO as bcache sees them.",
            float(ps.cache_hits), counter, label, label_value,
        ),
        BcacheMetric(
            "cache_misses_total",
            "Misses counted per individual IO as bcache sees them.",
            float(ps.cache_misses), counter, label, label_value,
        ),
        BcacheMetric(
            "cache_bypass_hits_total",
            "Hits for IO intended to skip the cache.",
            float(ps.cache_bypass_hits), counter, label, label_value,
        ),
        BcacheMetric(
            "cache_bypass_misses_total",
            "Misses for IO intended to skip the cache.",
            float(ps.cache_bypass_misses), counter, label, label_value,
        ),
        BcacheMetric(
            "cache_miss_collisions_total",
            "Instances where data insertion from cache miss raced with write (data already present).",
            float(ps.cache_miss_collisions), counter, label, label_value,
        ),
        BcacheMetric(
            "cache_readaheads_total",
            "Count of times readahead occurred.",
            float(ps.cache_readaheads), counter, label, label_value,
        ),
    ]


StatsSource = Callable[[bool], Iterable[BcacheStats]]


class BcacheCollector(Collector):
    """Exposes bcache statistics supplied by a stats source.

    The source is called with ``True`` when priority statistics are wanted.
    """

    def __init__(
        self,
        stats_source: StatsSource,
        paths=None,
        logger=None,
        priority_stats: bool = False,
    ) -> None:
        super().__init__(paths, logger)
        self._stats_source = stats_source
        self.priority_stats = priority_stats

    def update(self) -> Iterator[Metric]:
        try:
            all_stats = list(self._stats_source(self.priority_stats))
        except (OSError, ValueError) as err:
            raise RuntimeError(f"failed to retrieve bcache stats: {err}") from err
        for stats in all_stats:
            yield from self._to_metrics(stats)

    def _to_metrics(self, stats: BcacheStats) -> Iterator[Metric]:
        for m in self.bcache_metrics(stats):
            desc = Desc(
                build_fq_name(NAMESPACE, BCACHE_SUBSYSTEM, m.name),
                m.desc,
                ("uuid",) + m.extra_label,
            )
            values = (stats.name,)
            if m.extra_label_value:
                values += (m.extra_label_value,)
            yield Metric(desc, m.value_type, m.value, values)

    def bcache_metrics(self, stats: BcacheStats) -> list[BcacheMetric]:
        """All metrics for one bcache set, in a fixed order."""
        gauge, counter = ValueType.GAUGE, ValueType.COUNTER
        s = stats
        metrics = [
            BcacheMetric(
                "average_key_size_sectors", "Average data per key in the btree (sectors).",
                float(s.average_key_size), gauge,
            ),
            BcacheMetric(
                "btree_cache_size_bytes", "Amount of memory currently used by the btree cache.",
                float(s.btree_cache_size), gauge,
            ),
            BcacheMetric(
                "cache_available_percent",
                "Percentage of cache device without dirty data, usable for writeback "
                "(may contain clean cached data).",
                float(s.cache_available_percent), gauge,
            ),
            BcacheMetric("congested", "Congestion.", float(s.congested), gauge),
            BcacheMetric(
                "root_usage_percent",
                "Percentage of the root btree node in use (tree depth increases if too high).",
                float(s.root_usage_percent), gauge,
            ),
            BcacheMetric("tree_depth", "Depth of the btree.", float(s.tree_depth), gauge),
            BcacheMetric(
                "active_journal_entries", "Number of journal entries that are newer than the index.",
                float(s.active_journal_entries), gauge,
            ),
            BcacheMetric("btree_nodes", "Total nodes in the btree.", float(s.btree_nodes), gauge),
            BcacheMetric(
                "btree_read_average_duration_seconds", "Average btree read duration.",
                float(s.btree_read_average_duration_nanoseconds) * 1e-9, gauge,
            ),
            BcacheMetric(
                "cache_read_races_total",
                "Counts instances where while data was being read from the cache, the bucket was "
                "reused and invalidated - i.e. where the pointer was stale after the read completed.",
                float(s.cache_read_races), counter,
            ),
        ]

        bdev_label = ("backing_device",)
        for bdev in s.bdevs:
            name = bdev.name
            metrics += [
                BcacheMetric(
                    "dirty_data_bytes", "Amount of dirty data for this backing device in the cache.",
                    float(bdev.dirty_data), gauge, bdev_label, name,
                ),
                BcacheMetric(
                    "dirty_target_bytes",
                    "Current dirty data target threshold for this backing device in bytes.",
                    float(bdev.writeback_rate_target), gauge, bdev_label, name,
                ),
                BcacheMetric(
                    "writeback_rate", "Current writeback rate for this backing device in bytes.",
                    float(bdev.writeback_rate), gauge, bdev_label, name,
                ),
                BcacheMetric(
                    "writeback_rate_proportional_term",
                    "Current result of proportional controller, part of writeback rate",
                    float(bdev.writeback_rate_proportional), gauge, bdev_label, name,
                ),
                BcacheMetric(
                    "writeback_rate_integral_term",
                    "Current result of integral controller, part of writeback rate",
                    float(bdev.writeback_rate_integral), gauge, bdev_label, name,
                ),
                BcacheMetric(
                    "writeback_change", "Last writeback rate change step for this backing device.",
                    float(bdev.writeback_rate_change), gauge, bdev_label, name,
                ),
            ]
            metrics += period_stats_to_metrics(bdev.total, name)

        cache_label = ("cache_device",)
        for cache in s.caches:
            name = cache.name
            metrics += [
                BcacheMetric(
                    "io_errors", "Number of errors that have occurred, decayed by io_error_halflife.",
                    float(cache.io_errors), gauge, cache_label, name,
                ),
                BcacheMetric(
                    "metadata_written_bytes_total",
                    "Sum of all non data writes (btree writes and all other metadata).",
                    float(cache.metadata_written), counter, cache_label, name,
                ),
                BcacheMetric(
                    "written_bytes_total", "Sum of all data that has been written to the cache.",
                    float(cache.written), counter, cache_label, name,
                ),
            ]
            if self.priority_stats:
                metrics += [
                    BcacheMetric(
                        "priority_stats_unused_percent",
                        "The percentage of the cache that doesn't contain any data.",
                        float(cache.priority_unused_percent), gauge, cache_label, name,
                    ),
                    BcacheMetric(
                        "priority_stats_metadata_percent", "Bcache's metadata overhead.",
                        float(cache.priority_metadata_percent), gauge, cache_label, name,
                    ),
                ]
        return metrics