"""Common utilities and models shared across manager and agent."""

from common.models.target import Target, TargetList
from common.models.execution import ExecutionRecord, ExecutionStatus, TestRun
from common.models.metrics import KnownMetric
from common.models.result import ResultRecord, ResultStatus

__all__ = [
    "Target",
    "TargetList",
    "ExecutionRecord",
    "ExecutionStatus",
    "TestRun",
    "KnownMetric",
    "ResultRecord",
    "ResultStatus",
]
