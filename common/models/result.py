"""Collected result models."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ResultStatus(str, Enum):
    """Collection outcome for one target."""
    SUCCESS = "success"
    FAILED = "failed"
    ERROR = "error"


def first_line(message: object) -> str:
    """First non-empty line of an error message."""
    for line in str(message).splitlines():
        if line.strip():
            return line.strip()
    return str(message).strip() or type(message).__name__


class GeneratorReport(BaseModel):
    """Scalars scraped from the load generator's text report."""
    throughput_mbs: Optional[float] = None
    iops: Optional[float] = None


class ResultRecord(BaseModel):
    """Normalized, reportable outcome of one target's run."""
    target: str
    concurrency_index: int = Field(..., ge=1)
    run_id: Optional[str] = None
    average_throughput_mbs: Optional[float] = None
    iops: Optional[float] = None
    counter_averages: dict[str, float] = Field(default_factory=dict)
    status: ResultStatus = ResultStatus.SUCCESS
    error: Optional[str] = None

    model_config = {"frozen": True}

    @property
    def succeeded(self) -> bool:
        return self.status == ResultStatus.SUCCESS

    def to_row(self) -> dict:
        """Flat row for the summary table."""
        return {
            "target": self.target,
            "concurrency_index": self.concurrency_index,
            "run_id": self.run_id or "",
            "throughput_mbs": "" if self.average_throughput_mbs is None else f"{self.average_throughput_mbs:.2f}",
            "iops": "" if self.iops is None else f"{self.iops:.2f}",
            "status": self.status.value,
            "error": self.error or "",
        }


class TargetOutcome(BaseModel):
    """Everything collected for one target: latest run plus optional history."""
    target: str
    concurrency_index: int
    latest: ResultRecord
    history: list[ResultRecord] = Field(default_factory=list)

    @property
    def status(self) -> ResultStatus:
        return self.latest.status


class CollectionReport(BaseModel):
    """Ordered outcomes covering every input target."""
    outcomes: list[TargetOutcome] = Field(default_factory=list)
    summary_path: Optional[str] = None

    @property
    def records(self) -> list[ResultRecord]:
        return [o.latest for o in self.outcomes]

    def count(self, status: ResultStatus) -> int:
        return sum(1 for o in self.outcomes if o.status == status)
