"""Connection tracking table usage."""

from __future__ import annotations

from collections.abc import Iterator

from .collector import DEFAULT_REGISTRY, NAMESPACE, Collector, NoDataError, read_uint_from_file
from .metrics import Desc, Metric, ValueType, build_fq_name


class ConntrackCollector(Collector):
    """Exposes the current and maximum number of conntrack entries."""

    def __init__(self, paths=None, logger=None) -> None:
        super().__init__(paths, logger)
        self.current = Desc(
            build_fq_name(NAMESPACE, "", "nf_conntrack_entries"),
            "Number of currently allocated flow entries for connection tracking.",
        )
        self.limit = Desc(
            build_fq_name(NAMESPACE, "", "nf_conntrack_entries_limit"),
            "Maximum size of connection tracking table.",
        )

    def _read(self, name: str) -> int:
        try:
            return read_uint_from_file(self.paths.proc_file(f"sys/net/netfilter/{name}"))
        except FileNotFoundError:
            self.logger.debug("conntrack probably not loaded")
            raise NoDataError() from None
        except (OSError, ValueError) as err:
            raise RuntimeError(f"failed to retrieve conntrack stats: {err}") from err

    def update(self) -> Iterator[Metric]:
        yield Metric(self.current, ValueType.GAUGE, self._read("nf_conntrack_count"))
        yield Metric(self.limit, ValueType.GAUGE, self._read("nf_conntrack_max"))


DEFAULT_REGISTRY.register("conntrack", True, ConntrackCollector)