"""Chart-ready data built from collected results.

Rows are ordered by the concurrency index recorded in the summary table,
which is the target's position in stagger order. Directory listing order is
never used for this.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from common.artifacts import SUMMARY_FILE
from common.models.metrics import KnownMetric
from common.models.result import ResultStatus
from manager.core.collector import parse_counter_summary, target_dir
from manager.storage.summary_table import SummaryTable

logger = logging.getLogger(__name__)

CHART_FILE = "chart_data.json"

# Heuristic, not a measurement
PEAK_FACTOR = 1.1

BYTES_PER_MB = 1024 * 1024

# Normalized counter name -> (chart field, divisor)
_COUNTER_FIELDS = {
    KnownMetric.READ_OPS: ("read_ops_per_sec", 1),
    KnownMetric.WRITE_OPS: ("write_ops_per_sec", 1),
    KnownMetric.HANDLE_COUNT: ("handle_count", 1),
    KnownMetric.WORKING_SET: ("working_set_mb", BYTES_PER_MB),
    KnownMetric.CPU_PERCENT: ("cpu_percent", 1),
    KnownMetric.AVAILABLE_MEMORY: ("available_memory_mb", 1),
    KnownMetric.DISK_READ_BYTES: ("disk_read_mbs", BYTES_PER_MB),
    KnownMetric.DISK_WRITE_BYTES: ("disk_write_mbs", BYTES_PER_MB),
}


def _float(value: str) -> Optional[float]:
    try:
        return float(value) if value not in (None, "") else None
    except ValueError:
        return None


def normalize_counters(averages: dict[str, float]) -> dict[str, float]:
    """Convert raw counter averages to chart units (byte rates to MB/s)."""
    normalized = {}
    for metric, (name, divisor) in _COUNTER_FIELDS.items():
        value = averages.get(metric.key)
        if value is not None:
            normalized[name] = round(value / divisor, 3)
    return normalized


class ChartRow(BaseModel):
    """One target's bar in the chart."""
    target: str
    concurrency_index: int
    status: ResultStatus
    throughput_mbs: Optional[float] = None
    peak_throughput_mbs: Optional[float] = None
    iops: Optional[float] = None
    counters: dict[str, float] = Field(default_factory=dict)


class ChartData(BaseModel):
    """Everything a renderer needs for one run."""
    run_id: Optional[str] = None
    rows: list[ChartRow] = Field(default_factory=list)

    @property
    def total_throughput_mbs(self) -> float:
        return sum(r.throughput_mbs or 0 for r in self.rows)

    @property
    def total_iops(self) -> float:
        return sum(r.iops or 0 for r in self.rows)


def build_chart_data(output_root: str | Path, run_id: Optional[str] = None) -> ChartData:
    """Reduce the summary table and per-target counter summaries for one run."""
    output_root = Path(output_root)
    table = SummaryTable(output_root)
    rows = table.rows_for(run_id)
    if not rows:
        return ChartData(run_id=run_id)
    run_id = rows[0]["run_id"]

    chart_rows = []
    for row in rows:
        try:
            status = ResultStatus(row["status"])
        except ValueError:
            status = ResultStatus.ERROR

        chart_row = ChartRow(
            target=row["target"],
            concurrency_index=int(row["concurrency_index"]),
            status=status,
        )
        if status == ResultStatus.SUCCESS:
            throughput = _float(row["throughput_mbs"])
            summary_path = target_dir(output_root, run_id, row["target"]) / SUMMARY_FILE
            averages = {}
            if summary_path.exists():
                averages = parse_counter_summary(summary_path.read_text(encoding="utf-8"))
            chart_row = chart_row.model_copy(update={
                "throughput_mbs": throughput,
                "peak_throughput_mbs": round(throughput * PEAK_FACTOR, 2) if throughput is not None else None,
                "iops": _float(row["iops"]),
                "counters": normalize_counters(averages),
            })
        chart_rows.append(chart_row)

    chart_rows.sort(key=lambda r: r.concurrency_index)
    return ChartData(run_id=run_id, rows=chart_rows)


def write_chart_data(output_root: str | Path, chart: ChartData) -> Path:
    """Write chart data next to the run's artifacts."""
    path = Path(output_root) / (chart.run_id or "unknown") / CHART_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(chart.model_dump(mode="json"), f, indent=2)
    logger.info(f"Wrote chart data for {len(chart.rows)} targets to {path}")
    return path
