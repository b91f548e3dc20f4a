"""Performance counter models and the fixed metric catalog."""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import Optional, Sequence

from pydantic import BaseModel, Field


def normalize_metric_name(name: str) -> str:
    """Strip everything that is not a letter or digit."""
    return re.sub(r"[^A-Za-z0-9]", "", name)


class KnownMetric(str, Enum):
    """Metrics summarized for every target, by canonical counter name."""
    READ_OPS = "IO Read Operations/sec"
    WRITE_OPS = "IO Write Operations/sec"
    HANDLE_COUNT = "Handle Count"
    WORKING_SET = "Working Set"
    CPU_PERCENT = "% Processor Time"
    AVAILABLE_MEMORY = "Available MBytes"
    DISK_READ_BYTES = "Disk Read Bytes/sec"
    DISK_WRITE_BYTES = "Disk Write Bytes/sec"

    @property
    def key(self) -> str:
        """Normalized summary key, e.g. ``IOReadOperationssec``."""
        return normalize_metric_name(self.value)

    @property
    def suffixes(self) -> tuple[str, ...]:
        """Raw column suffixes to try, in order of preference."""
        return _SUFFIXES[self]

    def matches(self, column: str) -> bool:
        col = column.strip().strip('"').lower()
        return any(col.endswith(suffix) for suffix in self.suffixes)


_SUFFIXES: dict[KnownMetric, tuple[str, ...]] = {
    KnownMetric.READ_OPS: ("\\io read operations/sec",),
    KnownMetric.WRITE_OPS: ("\\io write operations/sec",),
    KnownMetric.HANDLE_COUNT: ("\\handle count",),
    KnownMetric.WORKING_SET: ("\\working set", "\\working set - private"),
    KnownMetric.CPU_PERCENT: ("\\% processor time",),
    KnownMetric.AVAILABLE_MEMORY: ("\\available mbytes", "\\available bytes"),
    KnownMetric.DISK_READ_BYTES: ("\\disk read bytes/sec",),
    KnownMetric.DISK_WRITE_BYTES: ("\\disk write bytes/sec",),
}


def resolve_columns(header: Sequence[str]) -> dict[KnownMetric, int]:
    """Map each known metric to the index of its column in a counter header.

    Suffixes are tried in order, so a metric binds to the first column that
    matches its most preferred suffix. Metrics without a column are absent.
    """
    resolved: dict[KnownMetric, int] = {}
    lowered = [h.strip().strip('"').lower() for h in header]
    for metric in KnownMetric:
        for suffix in metric.suffixes:
            idx = next((i for i, h in enumerate(lowered) if h.endswith(suffix)), None)
            if idx is not None:
                resolved[metric] = idx
                break
    return resolved


def mean(values: Sequence[Optional[float]]) -> Optional[float]:
    """Arithmetic mean of the present values, None when there are none."""
    present = [v for v in values if v is not None]
    if not present:
        return None
    return sum(present) / len(present)


class MetricSample(BaseModel):
    """One reading of one counter at one instant."""
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    counter: str = Field(..., description="Raw counter path")
    value: Optional[float] = Field(default=None)

    model_config = {"frozen": True}


class CounterSummary(BaseModel):
    """Per-metric averages derived from one counters file."""
    averages: dict[str, float] = Field(default_factory=dict)
    sample_count: int = 0
    parse_errors: list[str] = Field(default_factory=list)

    def get(self, metric: KnownMetric) -> Optional[float]:
        return self.averages.get(metric.key)
