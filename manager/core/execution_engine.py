"""Execution engine for orchestrating stress runs."""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from common.errors import RunAbortedError
from common.models.execution import (
    ExecutionRecord,
    ExecutionStatus,
    RunPlan,
    RunStatus,
    TestRun,
)
from common.models.target import TargetList
from common.utils import generate_run_id
from manager.config import Settings
from manager.core.remote_unit import RemoteExecutionUnit
from manager.core.scheduler import ConfirmFunction, StaggerScheduler
from manager.deployment.ssh_client import SSHClient
from manager.storage.data_store import DataStore

logger = logging.getLogger(__name__)


@dataclass
class RunOutcome:
    """A finished run and the terminal record of every target."""
    run: TestRun
    plan: RunPlan
    records: list[ExecutionRecord]

    @property
    def completed(self) -> int:
        return sum(1 for r in self.records if r.status == ExecutionStatus.COMPLETED)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.records if r.status == ExecutionStatus.FAILED)


class ExecutionEngine:
    """Plan, confirm, dispatch and persist one stress run across a fleet."""

    def __init__(
        self,
        data_store: DataStore,
        settings: Settings,
        client_factory: Optional[Callable[[str], SSHClient]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.data_store = data_store
        self.settings = settings
        self._client_factory = client_factory
        self._sleep = sleep

    async def run_execution(
        self,
        targets: TargetList,
        duration: int,
        delay: float,
        file_size_gb: float,
        confirm: ConfirmFunction,
        run_id: Optional[str] = None,
    ) -> RunOutcome:
        """Run a complete stress test.

        Raises:
            RunAbortedError: the operator declined the plan. The run is
                stored as aborted and no target was contacted.
        """
        run = TestRun(
            run_id=run_id or generate_run_id(),
            baseline_duration_seconds=duration,
            stagger_delay_seconds=delay,
            file_size_gb=file_size_gb,
            targets=list(targets.targets),
        )
        scheduler = StaggerScheduler(duration, delay, sleep=self._sleep)
        plan = scheduler.plan(targets)

        await self.data_store.create_run(run, plan.projected_runtime_seconds)
        self.data_store.write_log(
            run.run_id,
            f"Planned {len(targets)} targets, delay {delay:g}s, "
            f"projected runtime {plan.projected_runtime_seconds:g}s",
        )

        unit = RemoteExecutionUnit(run, self.settings, client_factory=self._client_factory)

        async def gate(plan: RunPlan) -> bool:
            decision = confirm(plan)
            if inspect.isawaitable(decision):
                decision = await decision
            if decision is True:
                await self.data_store.update_run_status(run.run_id, RunStatus.RUNNING)
                self.data_store.write_log(run.run_id, "Run confirmed")
            return decision

        async def work(record: ExecutionRecord) -> ExecutionRecord:
            try:
                return await unit(record)
            finally:
                await self._persist_record(run.run_id, record)

        try:
            records = await scheduler.run(targets, work, gate)
        except RunAbortedError:
            await self.data_store.update_run_status(run.run_id, RunStatus.ABORTED)
            self.data_store.write_log(run.run_id, "Run aborted at confirmation")
            raise

        outcome = RunOutcome(run=run, plan=plan, records=records)
        await self.data_store.save_execution_records(run.run_id, records)
        self.data_store.save_command_log(run.run_id, unit.get_command_log())
        await self.data_store.update_run_status(
            run.run_id,
            RunStatus.COMPLETED,
            completed_count=outcome.completed,
            failed_count=outcome.failed,
        )
        self.data_store.write_log(
            run.run_id,
            f"Run finished: {outcome.completed} completed, {outcome.failed} failed",
        )
        logger.info(f"Run {run.run_id} finished: {outcome.completed}/{len(records)} completed")
        return outcome

    async def _persist_record(self, run_id: str, record: ExecutionRecord) -> None:
        """Store one target's state as soon as it is known."""
        try:
            await self.data_store.save_execution_records(run_id, [record])
            if record.status == ExecutionStatus.FAILED:
                self.data_store.write_log(
                    run_id,
                    f"{record.target} failed ({record.failure_cause.value}): {record.error}",
                )
            else:
                self.data_store.write_log(run_id, f"{record.target} {record.status.value}")
        except Exception as e:
            logger.warning(f"Could not persist record for {record.target}: {e}")
