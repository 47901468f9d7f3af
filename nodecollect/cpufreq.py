"""CPU frequency statistics from sysfs cpufreq."""

from __future__ import annotations

import glob
import os
import re
from collections.abc import Iterator
from dataclasses import dataclass

from .collector import DEFAULT_REGISTRY, NAMESPACE, Collector, read_uint_from_file
from .metrics import Desc, Metric, ValueType, build_fq_name

CPU_SUBSYSTEM = "cpu"
_CPU_DIR_RE = re.compile(r"cpu([0-9]+)")


@dataclass(frozen=True)
class CpufreqStats:
    """Frequencies of one CPU thread in kHz; None where not available."""

    name: str
    cpuinfo_current_frequency: int | None = None
    cpuinfo_minimum_frequency: int | None = None
    cpuinfo_maximum_frequency: int | None = None
    scaling_current_frequency: int | None = None
    scaling_minimum_frequency: int | None = None
    scaling_maximum_frequency: int | None = None


def _read_optional(path: str) -> int | None:
    try:
        return read_uint_from_file(path)
    except (FileNotFoundError, PermissionError):
        return None


def _system_cpufreq(cpu_root: str) -> list[CpufreqStats]:
    found: list[tuple[int, str]] = []
    for path in glob.glob(os.path.join(cpu_root, "cpu[0-9]*")):
        match = _CPU_DIR_RE.fullmatch(os.path.basename(path))
        if match and os.path.isdir(os.path.join(path, "cpufreq")):
            found.append((int(match.group(1)), path))
    stats = []
    for number, path in sorted(found):
        freq = os.path.join(path, "cpufreq")
        stats.append(
            CpufreqStats(
                name=str(number),
                cpuinfo_current_frequency=_read_optional(os.path.join(freq, "cpuinfo_cur_freq")),
                cpuinfo_minimum_frequency=_read_optional(os.path.join(freq, "cpuinfo_min_freq")),
                cpuinfo_maximum_frequency=_read_optional(os.path.join(freq, "cpuinfo_max_freq")),
                scaling_current_frequency=_read_optional(os.path.join(freq, "scaling_cur_freq")),
                scaling_minimum_frequency=_read_optional(os.path.join(freq, "scaling_min_freq")),
                scaling_maximum_frequency=_read_optional(os.path.join(freq, "scaling_max_freq")),
            )
        )
    return stats


def _desc(name: str, help_text: str) -> Desc:
    return Desc(build_fq_name(NAMESPACE, CPU_SUBSYSTEM, name), help_text, ("cpu",))


class CpuFreqCollector(Collector):
    """Exposes current, minimum and maximum CPU frequencies in hertz."""

    def __init__(self, paths=None, logger=None) -> None:
        super().__init__(paths, logger)
        self.cpu_freq = _desc("frequency_hertz", "Current cpu thread frequency in hertz.")
        self.cpu_freq_min = _desc("frequency_min_hertz", "Minimum cpu thread frequency in hertz.")
        self.cpu_freq_max = _desc("frequency_max_hertz", "Maximum cpu thread frequency in hertz.")
        self.scaling_freq = _desc(
            "scaling_frequency_hertz", "Current scaled CPU thread frequency in hertz."
        )
        self.scaling_freq_min = _desc(
            "scaling_frequency_min_hertz", "Minimum scaled CPU thread frequency in hertz."
        )
        self.scaling_freq_max = _desc(
            "scaling_frequency_max_hertz", "Maximum scaled CPU thread frequency in hertz."
        )

    def update(self) -> Iterator[Metric]:
        all_stats = _system_cpufreq(self.paths.sys_file("devices/system/cpu"))
        gauge = ValueType.GAUGE
        # sysfs cpufreq values are in kHz; export hertz.
        for stats in all_stats:
            pairs = (
                (self.cpu_freq, stats.cpuinfo_current_frequency),
                (self.cpu_freq_min, stats.cpuinfo_minimum_frequency),
                (self.cpu_freq_max, stats.cpuinfo_maximum_frequency),
                (self.scaling_freq, stats.scaling_current_frequency),
                (self.scaling_freq_min, stats.scaling_minimum_frequency),
                (self.scaling_freq_max, stats.scaling_maximum_frequency),
            )
            for desc, value in pairs:
                if value is not None:
                    yield Metric(desc, gauge, float(value) * 1000.0, (stats.name,))


DEFAULT_REGISTRY.register("cpufreq", True, CpuFreqCollector)