"""Run history storage using SQLite and file-based storage."""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional

import aiosqlite

from common.models.execution import ExecutionRecord, RunStatus, TestRun
from common.utils import ensure_dir, save_yaml

logger = logging.getLogger(__name__)

# SQLite schema
SCHEMA_SQL = """
-- Stress runs
CREATE TABLE IF NOT EXISTS runs (
    id TEXT PRIMARY KEY,
    status TEXT DEFAULT 'planned',
    baseline_duration_seconds INTEGER,
    stagger_delay_seconds REAL,
    file_size_gb REAL,
    target_count INTEGER,
    projected_runtime_seconds REAL,
    completed_count INTEGER DEFAULT 0,
    failed_count INTEGER DEFAULT 0,
    started_at TIMESTAMP,
    completed_at TIMESTAMP,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_runs_created ON runs(created_at);

-- Per-target execution state
CREATE TABLE IF NOT EXISTS execution_records (
    run_id TEXT NOT NULL,
    target TEXT NOT NULL,
    concurrency_index INTEGER NOT NULL,
    scheduled_start_offset REAL,
    status TEXT DEFAULT 'pending',
    failure_cause TEXT,
    artifact_path TEXT,
    error TEXT,
    started_at TIMESTAMP,
    finished_at TIMESTAMP,
    PRIMARY KEY (run_id, target),
    FOREIGN KEY (run_id) REFERENCES runs(id)
);
"""


class DataStore:
    """Run history access layer using files + SQLite."""

    def __init__(self, base_path: str | Path):
        self.base_path = Path(base_path)
        self.db_path = self.base_path / "fleetstress.db"
        self._init_directories()
        self._init_database_sync()

    def _init_directories(self) -> None:
        """Create required directories."""
        for d in ["runs", "logs"]:
            ensure_dir(self.base_path / d)
        logger.info(f"Initialized data directories at {self.base_path}")

    def _init_database_sync(self) -> None:
        """Initialize SQLite database synchronously."""
        conn = sqlite3.connect(self.db_path)
        try:
            conn.executescript(SCHEMA_SQL)
            conn.commit()
            logger.info(f"Initialized SQLite database at {self.db_path}")
        finally:
            conn.close()

    def run_dir(self, run_id: str) -> Path:
        return self.base_path / "runs" / run_id

    # ==================== Runs ====================

    async def create_run(self, run: TestRun, projected_runtime_seconds: float) -> Path:
        """Record a planned run and snapshot its parameters."""
        run_dir = ensure_dir(self.run_dir(run.run_id))
        save_yaml(run_dir / "run.yaml", run.model_dump(mode="json"))

        async with aiosqlite.connect(self.db_path) as conn:
            await conn.execute("""
                INSERT OR REPLACE INTO runs (
                    id, status, baseline_duration_seconds, stagger_delay_seconds,
                    file_size_gb, target_count, projected_runtime_seconds, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                run.run_id,
                RunStatus.PLANNED.value,
                run.baseline_duration_seconds,
                run.stagger_delay_seconds,
                run.file_size_gb,
                len(run.targets),
                projected_runtime_seconds,
                run.created_at.isoformat(),
            ))
            await conn.commit()

        logger.info(f"Created run: {run.run_id}")
        return run_dir

    async def update_run_status(self, run_id: str, status: RunStatus, **kwargs) -> None:
        """Update run status and optional fields."""
        fields = ["status = ?"]
        values: list = [status.value]

        if status == RunStatus.RUNNING and "started_at" not in kwargs:
            kwargs["started_at"] = datetime.utcnow().isoformat()
        if status in (RunStatus.COMPLETED, RunStatus.ABORTED):
            kwargs["completed_at"] = datetime.utcnow().isoformat()

        for key, value in kwargs.items():
            fields.append(f"{key} = ?")
            values.append(value)
        values.append(run_id)

        async with aiosqlite.connect(self.db_path) as conn:
            await conn.execute(
                f"UPDATE runs SET {', '.join(fields)} WHERE id = ?",
                values
            )
            await conn.commit()

    async def get_runs(self, limit: int = 50) -> list[dict]:
        """Get recent runs."""
        async with aiosqlite.connect(self.db_path) as conn:
            conn.row_factory = aiosqlite.Row
            cursor = await conn.execute("""
                SELECT * FROM runs
                ORDER BY id DESC
                LIMIT ?
            """, (limit,))
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]

    async def get_run(self, run_id: str) -> Optional[dict]:
        """Get run by ID."""
        async with aiosqlite.connect(self.db_path) as conn:
            conn.row_factory = aiosqlite.Row
            cursor = await conn.execute("SELECT * FROM runs WHERE id = ?", (run_id,))
            row = await cursor.fetchone()
            return dict(row) if row else None

    # ==================== Execution records ====================

    async def save_execution_records(self, run_id: str, records: list[ExecutionRecord]) -> None:
        """Insert or update the state of each target's execution."""
        async with aiosqlite.connect(self.db_path) as conn:
            await conn.executemany("""
                INSERT INTO execution_records (
                    run_id, target, concurrency_index, scheduled_start_offset, status,
                    failure_cause, artifact_path, error, started_at, finished_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(run_id, target) DO UPDATE SET
                    status = excluded.status,
                    failure_cause = excluded.failure_cause,
                    artifact_path = excluded.artifact_path,
                    error = excluded.error,
                    started_at = excluded.started_at,
                    finished_at = excluded.finished_at
            """, [
                (
                    run_id,
                    r.target,
                    r.concurrency_index,
                    r.scheduled_start_offset,
                    r.status.value,
                    r.failure_cause.value if r.failure_cause else None,
                    r.artifact_path,
                    r.error,
                    r.started_at.isoformat() if r.started_at else None,
                    r.finished_at.isoformat() if r.finished_at else None,
                )
                for r in records
            ])
            await conn.commit()

        # records.json mirrors every record of the run, not just this batch
        stored = await self.get_execution_records(run_id)
        records_file = ensure_dir(self.run_dir(run_id)) / "records.json"
        with open(records_file, 'w') as f:
            json.dump([r.model_dump(mode="json") for r in stored], f, indent=2)

    async def get_execution_records(self, run_id: str) -> list[ExecutionRecord]:
        """Execution records of a run, in concurrency order."""
        async with aiosqlite.connect(self.db_path) as conn:
            conn.row_factory = aiosqlite.Row
            cursor = await conn.execute("""
                SELECT * FROM execution_records
                WHERE run_id = ?
                ORDER BY concurrency_index
            """, (run_id,))
            rows = await cursor.fetchall()

        records = []
        for row in rows:
            data = dict(row)
            data.pop("run_id", None)
            records.append(ExecutionRecord(**{k: v for k, v in data.items() if v is not None}))
        return records

    # ==================== Command log ====================

    def save_command_log(self, run_id: str, commands: list[dict]) -> None:
        """Save executed commands log."""
        log_file = ensure_dir(self.run_dir(run_id)) / "commands.json"
        with open(log_file, 'w') as f:
            json.dump(commands, f, indent=2, default=str)

        logger.info(f"Saved {len(commands)} commands for run: {run_id}")

    def get_command_log(self, run_id: str) -> list[dict]:
        """Get executed commands log."""
        log_file = self.run_dir(run_id) / "commands.json"
        if not log_file.exists():
            return []

        with open(log_file) as f:
            return json.load(f)

    # ==================== Logs ====================

    def get_log_path(self, run_id: Optional[str] = None) -> Path:
        """Get log file path."""
        if run_id:
            return self.base_path / f"logs/runs/{run_id}.log"
        return self.base_path / "logs/manager.log"

    def write_log(self, run_id: str, message: str) -> None:
        """Write to run log file."""
        log_file = self.get_log_path(run_id)
        ensure_dir(log_file.parent)

        timestamp = datetime.utcnow().isoformat()
        with open(log_file, 'a') as f:
            f.write(f"[{timestamp}] {message}\n")
