"""Collected result endpoints."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from fastapi import APIRouter, HTTPException

from common.utils import is_run_id
from manager.config import get_settings
from manager.core.visualization import build_chart_data
from manager.storage.summary_table import SummaryTable

router = APIRouter()


def _output_root(output_root: Optional[str]) -> Path:
    return Path(output_root) if output_root else get_settings().default_output_root


@router.get("/summary")
async def get_summary(output_root: Optional[str] = None, run_id: Optional[str] = None):
    """Rows of the summary table, optionally for one run."""
    table = SummaryTable(_output_root(output_root))
    rows = table.rows_for(run_id) if run_id else table.read()
    return {
        "rows": rows,
        "run_ids": table.run_ids(),
        "total": len(rows),
    }


@router.get("/chart")
async def get_chart(output_root: Optional[str] = None, run_id: Optional[str] = None):
    """Chart data for one run, the newest when not given."""
    if run_id is not None and not is_run_id(run_id):
        raise HTTPException(status_code=400, detail=f"Invalid run id: {run_id}")

    chart = build_chart_data(_output_root(output_root), run_id=run_id)
    if not chart.rows:
        raise HTTPException(status_code=404, detail="No collected results")

    return {
        **chart.model_dump(mode="json"),
        "total_throughput_mbs": chart.total_throughput_mbs,
        "total_iops": chart.total_iops,
    }
