"""EDAC memory controller error counts."""

from __future__ import annotations

import glob
import os
import re
from collections.abc import Iterator

from .collector import DEFAULT_REGISTRY, NAMESPACE, Collector, read_uint_from_file
from .metrics import Desc, Metric, ValueType, build_fq_name

EDAC_SUBSYSTEM = "edac"

_MEM_CONTROLLER_RE = re.compile(r".*devices/system/edac/mc/mc([0-9]*)")
_MEM_CSROW_RE = re.compile(r".*devices/system/edac/mc/mc[0-9]*/csrow([0-9]*)")


class EdacCollector(Collector):
    """Exposes correctable and uncorrectable memory error counts."""

    def __init__(self, paths=None, logger=None) -> None:
        super().__init__(paths, logger)
        self.ce_count = Desc(
            build_fq_name(NAMESPACE, EDAC_SUBSYSTEM, "correctable_errors_total"),
            "Total correctable memory errors.",
            ("controller",),
        )
        self.ue_count = Desc(
            build_fq_name(NAMESPACE, EDAC_SUBSYSTEM, "uncorrectable_errors_total"),
            "Total uncorrectable memory errors.",
            ("controller",),
        )
        self.csrow_ce_count = Desc(
            build_fq_name(NAMESPACE, EDAC_SUBSYSTEM, "csrow_correctable_errors_total"),
            "Total correctable memory errors for this csrow.",
            ("controller", "csrow"),
        )
        self.csrow_ue_count = Desc(
            build_fq_name(NAMESPACE, EDAC_SUBSYSTEM, "csrow_uncorrectable_errors_total"),
            "Total uncorrectable memory errors for this csrow.",
            ("controller", "csrow"),
        )

    @staticmethod
    def _read(path: str, what: str) -> int:
        try:
            return read_uint_from_file(path)
        except (OSError, ValueError) as err:
            raise RuntimeError(f"couldn't get {what}: {err}") from err

    def update(self) -> Iterator[Metric]:
        counter = ValueType.COUNTER
        pattern = self.paths.sys_file("devices/system/edac/mc/mc[0-9]*")
        for controller in sorted(glob.glob(pattern)):
            match = _MEM_CONTROLLER_RE.search(controller)
            if match is None:
                raise RuntimeError(f"controller string didn't match regexp: {controller}")
            number = match.group(1)
            where = f"for controller {number}"

            value = self._read(os.path.join(controller, "ce_count"), f"ce_count {where}")
            yield Metric(self.ce_count, counter, value, (number,))

            value = self._read(
                os.path.join(controller, "ce_noinfo_count"), f"ce_noinfo_count {where}"
            )
            yield Metric(self.csrow_ce_count, counter, value, (number, "unknown"))

            value = self._read(os.path.join(controller, "ue_count"), f"ue_count {where}")
            yield Metric(self.ue_count, counter, value, (number,))

            value = self._read(
                os.path.join(controller, "ue_noinfo_count"), f"ue_noinfo_count {where}"
            )
            yield Metric(self.csrow_ue_count, counter, value, (number, "unknown"))

            for csrow in sorted(glob.glob(controller + "/csrow[0-9]*")):
                csrow_match = _MEM_CSROW_RE.search(csrow)
                if csrow_match is None:
                    raise RuntimeError(f"csrow string didn't match regexp: {csrow}")
                csrow_number = csrow_match.group(1)
                row_where = f"for controller/csrow {number}/{csrow_number}"

                value = self._read(os.path.join(csrow, "ce_count"), f"ce_count {row_where}")
                yield Metric(self.csrow_ce_count, counter, value, (number, csrow_number))

                value = self._read(os.path.join(csrow, "ue_count"), f"ue_count {row_where}")
                yield Metric(self.csrow_ue_count, counter, value, (number, csrow_number))


DEFAULT_REGISTRY.register("edac", True, EdacCollector)