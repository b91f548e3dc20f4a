"""Staggered dispatch of per-target load sessions."""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Union

from common.errors import RemoteExecutionError, RunAbortedError
from common.models.execution import ExecutionRecord, FailureCause, RunPlan
from common.models.result import first_line
from common.models.target import Target, TargetList

logger = logging.getLogger(__name__)

WorkFunction = Callable[[ExecutionRecord], Awaitable[ExecutionRecord]]
ConfirmFunction = Callable[[RunPlan], Union[bool, Awaitable[bool]]]


@dataclass
class DispatchHandle:
    """A dispatched unit: its record and the task driving it."""
    record: ExecutionRecord
    task: asyncio.Task

    async def join(self) -> ExecutionRecord:
        await self.task
        return self.record


class StaggerScheduler:
    """Start one unit of work per target, each ``delay`` seconds after the previous.

    Units run concurrently once their delay has elapsed. A failing unit only
    fails its own record. The scheduler blocks once, at the end, until every
    unit has reached a terminal state.
    """

    def __init__(
        self,
        baseline_duration_seconds: int,
        stagger_delay_seconds: float,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.baseline_duration_seconds = baseline_duration_seconds
        self.stagger_delay_seconds = stagger_delay_seconds
        self._sleep = sleep

    @property
    def effective_delay(self) -> float:
        """Zero or negative delays mean simultaneous starts."""
        return max(self.stagger_delay_seconds, 0)

    def offsets(self, count: int) -> list[float]:
        """Start offset in seconds for each position in stagger order."""
        return [i * self.effective_delay for i in range(count)]

    def projected_runtime(self, count: int) -> float:
        """Wall time until the last target finishes its baseline duration."""
        if count <= 0:
            return 0
        return self.baseline_duration_seconds + (count - 1) * self.effective_delay

    def plan(self, targets: TargetList | Iterable[Target]) -> RunPlan:
        targets = list(targets)
        return RunPlan(
            targets=[t.name for t in targets],
            offsets=self.offsets(len(targets)),
            baseline_duration_seconds=self.baseline_duration_seconds,
            stagger_delay_seconds=self.stagger_delay_seconds,
            projected_runtime_seconds=self.projected_runtime(len(targets)),
        )

    def build_records(self, targets: TargetList | Iterable[Target]) -> list[ExecutionRecord]:
        targets = list(targets)
        return [
            ExecutionRecord(
                target=target.name,
                concurrency_index=target.index,
                scheduled_start_offset=offset,
            )
            for target, offset in zip(targets, self.offsets(len(targets)))
        ]

    async def _run_unit(self, record: ExecutionRecord, work: WorkFunction) -> ExecutionRecord:
        try:
            if record.scheduled_start_offset > 0:
                await self._sleep(record.scheduled_start_offset)
            logger.info(
                f"Dispatching {record.target} (#{record.concurrency_index}, "
                f"+{record.scheduled_start_offset:g}s)"
            )
            await work(record)
        except Exception as e:
            logger.error(f"Unit for {record.target} failed: {e}", exc_info=True)
            if not record.is_terminal:
                cause = e.cause if isinstance(e, RemoteExecutionError) else FailureCause.SAMPLING_FAILED
                record.mark_failed(cause, first_line(e))
        return record

    def dispatch(self, record: ExecutionRecord, work: WorkFunction) -> DispatchHandle:
        """Schedule one unit without waiting for it."""
        task = asyncio.create_task(
            self._run_unit(record, work),
            name=f"stress-{record.target}",
        )
        return DispatchHandle(record=record, task=task)

    async def run(
        self,
        targets: TargetList | Iterable[Target],
        work: WorkFunction,
        confirm: ConfirmFunction,
    ) -> list[ExecutionRecord]:
        """Confirm, dispatch every target, and wait for all of them.

        Raises:
            RunAbortedError: ``confirm`` returned anything but True. Nothing
                has been dispatched in that case.
        """
        targets = list(targets)
        if not targets:
            logger.info("No targets to dispatch")
            return []

        plan = self.plan(targets)
        decision = confirm(plan)
        if inspect.isawaitable(decision):
            decision = await decision
        if decision is not True:
            logger.warning("Run aborted at confirmation")
            raise RunAbortedError("Run aborted by operator")

        records = self.build_records(targets)
        handles = [self.dispatch(record, work) for record in records]
        logger.info(
            f"Dispatched {len(handles)} units, projected runtime "
            f"{plan.projected_runtime_seconds:g}s"
        )

        # Single barrier: every unit reaches a terminal state before returning
        return list(await asyncio.gather(*(h.join() for h in handles)))
