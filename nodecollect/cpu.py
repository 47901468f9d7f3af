"""CPU time, CPU information and thermal throttle statistics on Linux."""

from __future__ import annotations

import glob
import os
import re
import threading
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, fields

from .collector import DEFAULT_REGISTRY, NAMESPACE, Collector, read_uint_from_file
from .metrics import Desc, Metric, ValueType, build_fq_name

CPU_COLLECTOR_SUBSYSTEM = "cpu"
USER_HZ = 100.0

CPU_SECONDS_DESC = Desc(
    build_fq_name(NAMESPACE, CPU_COLLECTOR_SUBSYSTEM, "seconds_total"),
    "Seconds the CPUs spent in each mode.",
    ("cpu", "mode"),
)

_CPU_LINE_RE = re.compile(r"cpu([0-9]*)")


@dataclass(frozen=True)
class CPUStat:
    """Seconds one CPU spent in each mode, as found in /proc/stat."""

    user: float = 0.0
    nice: float = 0.0
    system: float = 0.0
    idle: float = 0.0
    iowait: float = 0.0
    irq: float = 0.0
    softirq: float = 0.0
    steal: float = 0.0
    guest: float = 0.0
    guest_nice: float = 0.0


_MONOTONIC_FIELDS = tuple(f.name for f in fields(CPUStat) if f.name != "idle")


@dataclass(frozen=True)
class CPUInfo:
    """One processor entry of /proc/cpuinfo."""

    processor: int = 0
    vendor_id: str = ""
    cpu_family: str = ""
    model: str = ""
    model_name: str = ""
    stepping: str = ""
    microcode: str = ""
    cache_size: str = ""
    physical_id: str = ""
    core_id: str = ""
    flags: tuple[str, ...] = ()
    bugs: tuple[str, ...] = ()


_CPUINFO_KEYS = {
    "vendor_id": "vendor_id",
    "cpu family": "cpu_family",
    "model": "model",
    "model name": "model_name",
    "stepping": "stepping",
    "microcode": "microcode",
    "cache size": "cache_size",
    "physical id": "physical_id",
    "core id": "core_id",
}


def _parse_proc_stat(lines: Iterable[str]) -> list[CPUStat]:
    """Per-CPU statistics from /proc/stat, indexed by CPU number."""
    by_id: dict[int, CPUStat] = {}
    for line in lines:
        parts = line.split()
        if not parts:
            continue
        match = _CPU_LINE_RE.fullmatch(parts[0])
        if match is None:
            continue
        raw = parts[1:11]
        if not raw:
            raise ValueError(f"couldn't parse {line.strip()!r} (cpu)")
        try:
            values = [float(v) / USER_HZ for v in raw]
        except ValueError as err:
            raise ValueError(f"couldn't parse {line.strip()!r} (cpu): {err}") from err
        if match.group(1) == "":
            continue  # aggregate line for all CPUs
        by_id[int(match.group(1))] = CPUStat(*values)
    if not by_id:
        return []
    return [by_id.get(cpu_id, CPUStat()) for cpu_id in range(max(by_id) + 1)]


def _parse_cpuinfo(lines: Iterable[str]) -> list[CPUInfo]:
    """Processor entries from /proc/cpuinfo."""
    result: list[CPUInfo] = []
    current: dict[str, object] | None = None
    for line in lines:
        key, sep, value = line.partition(":")
        if not sep:
            continue
        key, value = key.strip(), value.strip()
        if key == "processor":
            if current is not None:
                result.append(CPUInfo(**current))
            try:
                current = {"processor": int(value)}
            except ValueError as err:
                raise ValueError(f"invalid processor number {value!r}") from err
            continue
        if current is None:
            continue
        if key == "flags":
            current["flags"] = tuple(value.split())
        elif key == "bugs":
            current["bugs"] = tuple(value.split())
        elif key in _CPUINFO_KEYS:
            current[_CPUINFO_KEYS[key]] = value
    if current is not None:
        result.append(CPUInfo(**current))
    return result


def update_field_info(values: Iterable[str], pattern: re.Pattern[str] | None, desc: Desc) -> list[Metric]:
    """Info metrics for each value matching the pattern; none without a pattern."""
    if pattern is None:
        return []
    return [Metric(desc, ValueType.GAUGE, 1, (value,)) for value in values if pattern.search(value)]


def _desc(name: str, help_text: str, labels: tuple[str, ...]) -> Desc:
    return Desc(build_fq_name(NAMESPACE, CPU_COLLECTOR_SUBSYSTEM, name), help_text, labels)


class CpuCollector(Collector):
    """Exposes CPU metrics from /proc/stat, /proc/cpuinfo and sysfs."""

    def __init__(
        self,
        paths=None,
        logger=None,
        enable_info: bool = False,
        flags_include: str = "",
        bugs_include: str = "",
    ) -> None:
        super().__init__(paths, logger)
        self.cpu = CPU_SECONDS_DESC
        self.cpu_info = _desc(
            "info",
            "CPU information from /proc/cpuinfo.",
            ("package", "core", "cpu", "vendor", "family", "model", "model_name",
             "microcode", "stepping", "cachesize"),
        )
        self.cpu_flags_info = _desc(
            "flag_info", "The `flags` field of CPU information from /proc/cpuinfo.", ("flag",)
        )
        self.cpu_bugs_info = _desc(
            "bug_info", "The `bugs` field of CPU information from /proc/cpuinfo.", ("bug",)
        )
        self.cpu_guest = _desc(
            "guest_seconds_total",
            "Seconds the CPUs spent in guests (VMs) for each mode.",
            ("cpu", "mode"),
        )
        self.cpu_core_throttle = _desc(
            "core_throttles_total",
            "Number of times this CPU core has been throttled.",
            ("package", "core"),
        )
        self.cpu_package_throttle = _desc(
            "package_throttles_total",
            "Number of times this CPU package has been throttled.",
            ("package",),
        )
        self.cpu_stats: list[CPUStat] = []
        self._lock = threading.Lock()
        self.enable_info = enable_info
        self.flags_include_pattern: re.Pattern[str] | None = None
        self.bugs_include_pattern: re.Pattern[str] | None = None
        try:
            self._compile_include_flags(flags_include, bugs_include)
        except re.error as err:
            raise ValueError(
                "fail to compile --collector.cpu.info.flags-include and "
                "--collector.cpu.info.bugs-include, the values of them must be "
                f"regular expressions: {err}"
            ) from err

    def _compile_include_flags(self, flags_include: str, bugs_include: str) -> None:
        if (flags_include or bugs_include) and not self.enable_info:
            self.enable_info = True
            self.logger.info(
                "--collector.cpu.info has been set to `true` because you set the following "
                "flags, like --collector.cpu.info.flags-include and "
                "--collector.cpu.info.bugs-include"
            )
        if flags_include:
            self.flags_include_pattern = re.compile(flags_include)
        if bugs_include:
            self.bugs_include_pattern = re.compile(bugs_include)

    def update(self) -> Iterator[Metric]:
        if self.enable_info:
            yield from self.update_info()
        yield from self.update_stat()
        yield from self.update_thermal_throttle()

    def update_info(self) -> list[Metric]:
        """Metrics from /proc/cpuinfo."""
        with open(self.paths.proc_file("cpuinfo"), encoding="utf-8") as handle:
            info = _parse_cpuinfo(handle)
        metrics: list[Metric] = []
        for cpu in info:
            metrics.append(
                Metric(
                    self.cpu_info,
                    ValueType.GAUGE,
                    1,
                    (cpu.physical_id, cpu.core_id, str(cpu.processor), cpu.vendor_id,
                     cpu.cpu_family, cpu.model, cpu.model_name, cpu.microcode,
                     cpu.stepping, cpu.cache_size),
                )
            )
            metrics += update_field_info(cpu.flags, self.flags_include_pattern, self.cpu_flags_info)
            metrics += update_field_info(cpu.bugs, self.bugs_include_pattern, self.cpu_bugs_info)
        return metrics

    def update_thermal_throttle(self) -> list[Metric]:
        """Thermal throttle counters from /sys/devices/system/cpu/cpu*."""
        cpus = sorted(glob.glob(self.paths.sys_file("devices/system/cpu/cpu[0-9]*")))
        package_throttles: dict[int, int] = {}
        package_core_throttles: dict[int, dict[int, int]] = {}

        for cpu in cpus:
            try:
                package_id = read_uint_from_file(os.path.join(cpu, "topology", "physical_package_id"))
            except (OSError, ValueError):
                self.logger.debug("CPU is missing physical_package_id: %s", cpu)
                continue
            try:
                core_id = read_uint_from_file(os.path.join(cpu, "topology", "core_id"))
            except (OSError, ValueError):
                self.logger.debug("CPU is missing core_id: %s", cpu)
                continue

            # Core throttles first: some systems present only those.
            cores = package_core_throttles.setdefault(package_id, {})
            if core_id not in cores:
                try:
                    cores[core_id] = read_uint_from_file(
                        os.path.join(cpu, "thermal_throttle", "core_throttle_count")
                    )
                except (OSError, ValueError):
                    self.logger.debug("CPU is missing core_throttle_count: %s", cpu)

            if package_id not in package_throttles:
                try:
                    package_throttles[package_id] = read_uint_from_file(
                        os.path.join(cpu, "thermal_throttle", "package_throttle_count")
                    )
                except (OSError, ValueError):
                    self.logger.debug("CPU is missing package_throttle_count: %s", cpu)

        metrics = [
            Metric(self.cpu_package_throttle, ValueType.COUNTER, count, (str(package_id),))
            for package_id, count in package_throttles.items()
        ]
        for package_id, cores in package_core_throttles.items():
            metrics += [
                Metric(self.cpu_core_throttle, ValueType.COUNTER, count, (str(package_id), str(core_id)))
                for core_id, count in cores.items()
            ]
        return metrics

    def update_stat(self) -> list[Metric]:
        """CPU time metrics from /proc/stat."""
        with open(self.paths.proc_file("stat"), encoding="utf-8") as handle:
            stats = _parse_proc_stat(handle)
        self.update_cpu_stats(stats)

        counter = ValueType.COUNTER
        metrics: list[Metric] = []
        with self._lock:
            for cpu_id, s in enumerate(self.cpu_stats):
                num = str(cpu_id)
                for mode, value in (
                    ("user", s.user),
                    ("nice", s.nice),
                    ("system", s.system),
                    ("idle", s.idle),
                    ("iowait", s.iowait),
                    ("irq", s.irq),
                    ("softirq", s.softirq),
                    ("steal", s.steal),
                ):
                    metrics.append(Metric(self.cpu, counter, value, (num, mode)))
                # Guest time is also included in user and nice; expose it separately.
                metrics.append(Metric(self.cpu_guest, counter, s.guest, (num, "user")))
                metrics.append(Metric(self.cpu_guest, counter, s.guest_nice, (num, "nice")))
        return metrics

    def update_cpu_stats(self, new_stats: list[CPUStat]) -> None:
        """Merge fresh readings into the cache, never letting counters go backwards."""
        with self._lock:
            if len(self.cpu_stats) != len(new_stats):
                self.cpu_stats = [CPUStat() for _ in new_stats]
            merged: list[CPUStat] = []
            for cpu_id, (old, new) in enumerate(zip(self.cpu_stats, new_stats)):
                if new.idle < old.idle:
                    self.logger.debug(
                        "CPU Idle counter jumped backwards, possible hotplug event, "
                        "resetting CPU stats cpu=%d old_value=%s new_value=%s",
                        cpu_id, old.idle, new.idle,
                    )
                    old = CPUStat()
                values = {"idle": new.idle}
                for name in _MONOTONIC_FIELDS:
                    old_value, new_value = getattr(old, name), getattr(new, name)
                    if new_value >= old_value:
                        values[name] = new_value
                    else:
                        self.logger.debug(
                            "CPU %s counter jumped backwards cpu=%d old_value=%s new_value=%s",
                            name, cpu_id, old_value, new_value,
                        )
                        values[name] = old_value
                merged.append(CPUStat(**values))
            self.cpu_stats = merged


DEFAULT_REGISTRY.register("cpu", True, CpuCollector)