"""Metric descriptors and constant metric samples."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

_METRIC_NAME_RE = re.compile(r"[a-zA-Z_:][a-zA-Z0-9_:]*")
_LABEL_NAME_RE = re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*")


class ValueType(Enum):
    """Kind of value a metric sample carries."""

    COUNTER = "counter"
    GAUGE = "gauge"
    UNTYPED = "untyped"


def build_fq_name(namespace: str, subsystem: str, name: str) -> str:
    """Join the non-empty parts with underscores; an empty name gives ''."""
    if not name:
        return ""
    return "_".join(part for part in (namespace, subsystem, name) if part)


@dataclass(frozen=True)
class Desc:
    """Describes a metric: its full name, help text and label names."""

    fq_name: str
    help: str
    variable_labels: tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        object.__setattr__(self, "variable_labels", tuple(self.variable_labels))
        if not _METRIC_NAME_RE.fullmatch(self.fq_name):
            raise ValueError(f"invalid metric name {self.fq_name!r}")
        for label in self.variable_labels:
            if not _LABEL_NAME_RE.fullmatch(label) or label.startswith("__"):
                raise ValueError(f"invalid label name {label!r}")
        if len(set(self.variable_labels)) != len(self.variable_labels):
            raise ValueError(f"duplicate label names in {self.fq_name!r}")


@dataclass(frozen=True)
class Metric:
    """A single sample bound to a descriptor and its label values."""

    desc: Desc
    value_type: ValueType
    value: float
    label_values: tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", float(self.value))
        object.__setattr__(self, "label_values", tuple(self.label_values))
        expected = len(self.desc.variable_labels)
        if len(self.label_values) != expected:
            raise ValueError(
                f"{self.desc.fq_name}: expected {expected} label values, "
                f"got {len(self.label_values)}"
            )

    @property
    def name(self) -> str:
        return self.desc.fq_name

    @property
    def labels(self) -> dict[str, str]:
        return dict(zip(self.desc.variable_labels, self.label_values))


@dataclass(frozen=True)
class TypedDesc:
    """A descriptor paired with the value type of its samples."""

    desc: Desc
    value_type: ValueType

    def metric(self, value: float, *args: str) -> Metric:
        return Metric(self.desc, self.value_type, value, args)