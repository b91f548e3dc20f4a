"""Execution models for stress runs."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from common.models.target import Target


class ExecutionStatus(str, Enum):
    """Per-target execution states."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class FailureCause(str, Enum):
    """Infrastructure-level reasons a target run can fail."""
    REMOTE_UNREACHABLE = "remote_unreachable"
    DIRECTORY_CREATION_FAILED = "directory_creation_failed"
    GENERATOR_LAUNCH_FAILED = "generator_launch_failed"
    SAMPLING_FAILED = "sampling_failed"


class RunStatus(str, Enum):
    """Whole-run states."""
    PLANNED = "planned"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


class TestRun(BaseModel):
    """One invocation of the stress test across the fleet."""
    __test__ = False

    run_id: str = Field(..., description="Timestamp-derived run identifier")
    baseline_duration_seconds: int = Field(..., gt=0)
    stagger_delay_seconds: float = Field(default=0)
    file_size_gb: float = Field(..., gt=0)
    targets: list[Target] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    model_config = {"frozen": True}


class ExecutionRecord(BaseModel):
    """Lifecycle state of one target's run. Mutated only by its own task."""
    target: str
    concurrency_index: int = Field(..., ge=1)
    scheduled_start_offset: float = Field(default=0, ge=0)

    status: ExecutionStatus = Field(default=ExecutionStatus.PENDING)
    artifact_path: Optional[str] = None
    failure_cause: Optional[FailureCause] = None
    error: Optional[str] = None

    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (ExecutionStatus.COMPLETED, ExecutionStatus.FAILED)

    def _check_not_terminal(self) -> None:
        if self.is_terminal:
            raise ValueError(
                f"Execution record for {self.target} is already {self.status.value}"
            )

    def mark_running(self) -> None:
        self._check_not_terminal()
        self.status = ExecutionStatus.RUNNING
        self.started_at = datetime.utcnow()

    def mark_completed(self, artifact_path: str) -> None:
        self._check_not_terminal()
        self.status = ExecutionStatus.COMPLETED
        self.artifact_path = artifact_path
        self.finished_at = datetime.utcnow()

    def mark_failed(self, cause: FailureCause, error: str) -> None:
        self._check_not_terminal()
        self.status = ExecutionStatus.FAILED
        self.failure_cause = cause
        self.error = error
        self.finished_at = datetime.utcnow()


class RunPlan(BaseModel):
    """What the scheduler will do, shown before anything is dispatched."""
    targets: list[str]
    offsets: list[float]
    baseline_duration_seconds: int
    stagger_delay_seconds: float
    projected_runtime_seconds: float
