"""Reduce a counters file to per-metric averages."""

from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import Iterable, Optional

from common.models.metrics import CounterSummary, mean, resolve_columns

logger = logging.getLogger(__name__)


def _to_float(cell: str) -> Optional[float]:
    cell = cell.strip().strip('"')
    if not cell:
        return None
    try:
        return float(cell)
    except ValueError:
        return None


def summarize_rows(header: list[str], rows: Iterable[list[str]]) -> CounterSummary:
    """Average each known metric's column.

    A metric with no column is simply omitted. A column with no numeric
    cells is omitted and reported in ``parse_errors``.
    """
    columns = resolve_columns(header)
    rows = list(rows)
    summary = CounterSummary(sample_count=len(rows))

    for metric, idx in columns.items():
        values = [_to_float(row[idx]) if idx < len(row) else None for row in rows]
        avg = mean(values)
        if avg is None:
            summary.parse_errors.append(f"No numeric samples for {metric.value} ({header[idx]})")
            continue
        summary.averages[metric.key] = avg

    return summary


def summarize_counters(path: Path) -> CounterSummary:
    """Read a counters CSV and summarize it."""
    with open(path, newline="", encoding="utf-8") as f:
        reader = csv.reader(f)
        header = next(reader, None)
        if not header:
            return CounterSummary(parse_errors=[f"Counter file {path.name} is empty"])
        return summarize_rows(header, reader)


def write_summary(path: Path, summary: CounterSummary) -> None:
    """Write the key to average mapping as JSON."""
    with open(path, "w", encoding="utf-8") as f:
        json.dump(summary.averages, f, indent=2, sort_keys=True)

