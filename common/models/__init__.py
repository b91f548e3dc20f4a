"""Common data models for the fleet stress framework."""

from common.models.target import Target, TargetList
from common.models.execution import (
    ExecutionRecord,
    ExecutionStatus,
    FailureCause,
    RunPlan,
    RunStatus,
    TestRun,
)
from common.models.metrics import KnownMetric, MetricSample, CounterSummary
from common.models.result import (
    ResultRecord,
    ResultStatus,
    GeneratorReport,
    TargetOutcome,
    CollectionReport,
)

__all__ = [
    "Target",
    "TargetList",
    "ExecutionRecord",
    "ExecutionStatus",
    "FailureCause",
    "RunPlan",
    "RunStatus",
    "TestRun",
    "KnownMetric",
    "MetricSample",
    "CounterSummary",
    "ResultRecord",
    "ResultStatus",
    "GeneratorReport",
    "TargetOutcome",
    "CollectionReport",
]
