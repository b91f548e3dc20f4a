"""Flat CSV summary of collected results."""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Iterable, Optional

from common.models.result import ResultRecord

logger = logging.getLogger(__name__)

SUMMARY_FILE = "results_summary.csv"
COLUMNS = ["target", "concurrency_index", "run_id", "throughput_mbs", "iops", "status", "error"]


def _sort_key(row: dict) -> tuple:
    try:
        index = int(row.get("concurrency_index") or 0)
    except ValueError:
        index = 0
    return (row.get("run_id", ""), index, row.get("target", "").lower())


class SummaryTable:
    """One row per (run, target). Re-collecting a run replaces its rows in place."""

    def __init__(self, output_root: str | Path):
        self.path = Path(output_root) / SUMMARY_FILE

    def read(self) -> list[dict]:
        if not self.path.exists():
            return []
        with open(self.path, newline="", encoding="utf-8") as f:
            return [
                {col: row.get(col) or "" for col in COLUMNS}
                for row in csv.DictReader(f)
            ]

    def upsert(self, records: Iterable[ResultRecord]) -> Path:
        """Merge records into the table and rewrite it."""
        rows = {(r["run_id"], r["target"].lower()): r for r in self.read()}
        count = 0
        for record in records:
            row = record.to_row()
            rows[(row["run_id"], row["target"].lower())] = row
            count += 1

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=COLUMNS)
            writer.writeheader()
            for row in sorted(rows.values(), key=_sort_key):
                writer.writerow(row)

        logger.info(f"Wrote {count} rows to {self.path} ({len(rows)} total)")
        return self.path

    def run_ids(self) -> list[str]:
        """Run ids present in the table, newest first."""
        return sorted({r["run_id"] for r in self.read() if r["run_id"]}, reverse=True)

    def rows_for(self, run_id: Optional[str] = None) -> list[dict]:
        """Rows of one run (the newest when not given), in concurrency order."""
        if run_id is None:
            run_ids = self.run_ids()
            if not run_ids:
                return []
            run_id = run_ids[0]
        return sorted((r for r in self.read() if r["run_id"] == run_id), key=_sort_key)
