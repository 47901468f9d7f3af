"""Configured and active slaves of Linux bonding interfaces."""

from __future__ import annotations

import os
from collections.abc import Iterator

from .collector import DEFAULT_REGISTRY, NAMESPACE, Collector, NoDataError
from .metrics import Desc, Metric, TypedDesc, ValueType, build_fq_name


def _read(path: str) -> str:
    with open(path, encoding="utf-8") as handle:
        return handle.read()


def read_bonding_stats(root: str) -> dict[str, tuple[int, int]]:
    """Return (configured, active) slave counts for each bonding master."""
    status: dict[str, tuple[int, int]] = {}
    for master in _read(os.path.join(root, "bonding_masters")).split():
        slaves = _read(os.path.join(root, master, "bonding", "slaves")).split()
        configured = active = 0
        for slave in slaves:
            try:
                state = _read(
                    os.path.join(root, master, f"lower_{slave}", "bonding_slave", "mii_status")
                )
            except FileNotFoundError:
                # Some older kernels use the slave_ prefix.
                state = _read(
                    os.path.join(root, master, f"slave_{slave}", "bonding_slave", "mii_status")
                )
            configured += 1
            if state.strip() == "up":
                active += 1
        status[master] = (configured, active)
    return status


class BondingCollector(Collector):
    """Exposes the number of configured and active slaves per bonding interface."""

    def __init__(self, paths=None, logger=None) -> None:
        super().__init__(paths, logger)
        self.slaves = TypedDesc(
            Desc(
                build_fq_name(NAMESPACE, "bonding", "slaves"),
                "Number of configured slaves per bonding interface.",
                ("master",),
            ),
            ValueType.GAUGE,
        )
        self.active = TypedDesc(
            Desc(
                build_fq_name(NAMESPACE, "bonding", "active"),
                "Number of active slaves per bonding interface.",
                ("master",),
            ),
            ValueType.GAUGE,
        )

    def update(self) -> Iterator[Metric]:
        statusfile = self.paths.sys_file("class/net")
        try:
            stats = read_bonding_stats(statusfile)
        except FileNotFoundError:
            self.logger.debug("Not collecting bonding, file does not exist: %s", statusfile)
            raise NoDataError() from None
        for master, (configured, active) in stats.items():
            yield self.slaves.metric(configured, master)
            yield self.active.metric(active, master)


DEFAULT_REGISTRY.register("bonding", True, BondingCollector)