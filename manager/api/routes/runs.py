"""Stress run history endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException

from manager.dependencies import get_data_store

router = APIRouter()


@router.get("/")
async def list_runs(limit: int = 50):
    """List recent runs, newest first."""
    store = get_data_store()
    runs = await store.get_runs(limit=limit)

    return {
        "runs": runs,
        "total": len(runs),
    }


@router.get("/{run_id}")
async def get_run(run_id: str):
    """Get a run with the execution record of every target."""
    store = get_data_store()
    run = await store.get_run(run_id)
    if not run:
        raise HTTPException(status_code=404, detail=f"Run '{run_id}' not found")

    records = await store.get_execution_records(run_id)
    return {
        **run,
        "records": [r.model_dump(mode="json") for r in records],
        "commands": store.get_command_log(run_id),
    }
