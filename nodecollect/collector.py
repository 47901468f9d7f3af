"""Collector registry, node-level scrape orchestration and shared helpers."""

from __future__ import annotations

import abc
import logging
import os
import re
import time
from collections.abc import Callable, Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from .metrics import Desc, Metric, ValueType, build_fq_name

NAMESPACE = "node"

SCRAPE_DURATION_DESC = Desc(
    build_fq_name(NAMESPACE, "scrape", "collector_duration_seconds"),
    "node_exporter: Duration of a collector scrape.",
    ("collector",),
)
SCRAPE_SUCCESS_DESC = Desc(
    build_fq_name(NAMESPACE, "scrape", "collector_success"),
    "node_exporter: Whether a collector succeeded.",
    ("collector",),
)

_log = logging.getLogger(__name__)
_UINT_RE = re.compile(r"[0-9]+")
_MAX_UINT64 = 2**64 - 1


class NoDataError(Exception):
    """The collector found no data to collect, but had no other error."""

    def __init__(self, message: str = "collector returned no data") -> None:
        super().__init__(message)


@dataclass(frozen=True)
class Paths:
    """Mount points of the proc and sys filesystems."""

    proc_path: str = "/proc"
    sys_path: str = "/sys"

    def proc_file(self, name: str) -> str:
        return os.path.join(self.proc_path, name)

    def sys_file(self, name: str) -> str:
        return os.path.join(self.sys_path, name)


def read_uint_from_file(path: str) -> int:
    """Read a file holding one unsigned 64-bit decimal integer."""
    with open(path, encoding="utf-8") as handle:
        text = handle.read().strip()
    if not _UINT_RE.fullmatch(text):
        raise ValueError(f"invalid unsigned integer {text!r} in {path}")
    value = int(text)
    if value > _MAX_UINT64:
        raise ValueError(f"value {text} out of range in {path}")
    return value


class Collector(abc.ABC):
    """Base class for collectors; update yields fresh metrics."""

    def __init__(self, paths: Paths | None = None, logger: logging.Logger | None = None) -> None:
        self.paths = paths or Paths()
        self.logger = logger or logging.getLogger(type(self).__module__)

    @abc.abstractmethod
    def update(self) -> Iterable[Metric]:
        """Gather new metrics."""


Factory = Callable[[Paths, logging.Logger], Collector]


class CollectorRegistry:
    """Known collectors, their factories and whether each is enabled."""

    def __init__(self) -> None:
        self._factories: dict[str, Factory] = {}
        self._state: dict[str, bool] = {}
        self._forced: set[str] = set()

    def register(self, name: str, default_enabled: bool, factory: Factory) -> None:
        if name in self._factories:
            raise ValueError(f"collector {name!r} already registered")
        self._factories[name] = factory
        self._state[name] = bool(default_enabled)

    def set_enabled(self, name: str, enabled: bool) -> None:
        """Explicitly enable or disable a collector."""
        if name not in self._state:
            raise KeyError(f"unknown collector: {name}")
        self._state[name] = bool(enabled)
        self._forced.add(name)

    def is_enabled(self, name: str) -> bool:
        if name not in self._state:
            raise KeyError(f"unknown collector: {name}")
        return self._state[name]

    def disable_defaults(self) -> None:
        """Disable every collector that was not explicitly set."""
        for name in self._state:
            if name not in self._forced:
                self._state[name] = False

    @property
    def names(self) -> list[str]:
        return sorted(self._factories)

    def _factory(self, name: str) -> Factory:
        return self._factories[name]


DEFAULT_REGISTRY = CollectorRegistry()


class NodeCollector:
    """Runs the enabled collectors and reports scrape duration and success."""

    def __init__(
        self,
        registry: CollectorRegistry,
        paths: Paths | None = None,
        filters: Iterable[str] = (),
    ) -> None:
        paths = paths or Paths()
        wanted: set[str] = set()
        for name in filters:
            try:
                enabled = registry.is_enabled(name)
            except KeyError:
                raise ValueError(f"missing collector: {name}") from None
            if not enabled:
                raise ValueError(f"disabled collector: {name}")
            wanted.add(name)

        self.collectors: dict[str, Collector] = {}
        for name in registry.names:
            if not registry.is_enabled(name):
                continue
            logger = logging.getLogger(f"{__package__}.{name}")
            collector = registry._factory(name)(paths, logger)
            if not wanted or name in wanted:
                self.collectors[name] = collector

    def describe(self) -> list[Desc]:
        return [SCRAPE_DURATION_DESC, SCRAPE_SUCCESS_DESC]

    def collect(self) -> Iterator[Metric]:
        """Run every collector concurrently and yield all their metrics."""
        if not self.collectors:
            return
        items = sorted(self.collectors.items())
        with ThreadPoolExecutor(max_workers=len(items)) as pool:
            results = pool.map(lambda item: execute(*item), items)
            for metrics in results:
                yield from metrics


def execute(name: str, collector: Collector) -> list[Metric]:
    """Run one collector, returning its metrics plus scrape metrics."""
    metrics: list[Metric] = []
    begin = time.perf_counter()
    try:
        for metric in collector.update() or ():
            metrics.append(metric)
    except NoDataError as err:
        duration = time.perf_counter() - begin
        _log.debug("collector returned no data name=%s duration_seconds=%f err=%s", name, duration, err)
        success = 0.0
    except Exception as err:  # noqa: BLE001 - a failing collector must not stop the scrape
        duration = time.perf_counter() - begin
        _log.error("collector failed name=%s duration_seconds=%f err=%s", name, duration, err)
        success = 0.0
    else:
        duration = time.perf_counter() - begin
        _log.debug("collector succeeded name=%s duration_seconds=%f", name, duration)
        success = 1.0
    metrics.append(Metric(SCRAPE_DURATION_DESC, ValueType.GAUGE, duration, (name,)))
    metrics.append(Metric(SCRAPE_SUCCESS_DESC, ValueType.GAUGE, success, (name,)))
    return metrics