"""Collect per-target artifacts and reduce them to result records."""

from __future__ import annotations

import asyncio
import json
import logging
from collections import Counter
from pathlib import Path
from typing import Callable, Iterable, Optional

from common.artifacts import ARTIFACT_FILES, GENERATOR_OUTPUT_FILE, SUMMARY_FILE
from common.errors import ArtifactMissingError, RemoteUnreachableError
from common.models.result import (
    CollectionReport,
    ResultRecord,
    ResultStatus,
    TargetOutcome,
    first_line,
)
from common.models.target import Target, TargetList
from common.utils import ensure_dir, is_run_id, latest_run_ids, sanitize_filename
from manager.config import Settings
from manager.core.report_parser import parse_report
from manager.deployment.ssh_client import SSHClient
from manager.storage.summary_table import SummaryTable

logger = logging.getLogger(__name__)


def parse_counter_summary(text: Optional[str]) -> dict[str, float]:
    """Counter averages from a summary.json body. Bad input gives an empty mapping."""
    if not text:
        return {}
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        logger.warning("Counter summary is not valid JSON")
        return {}
    if not isinstance(data, dict):
        return {}
    return {
        str(key): float(value)
        for key, value in data.items()
        if isinstance(value, (int, float)) and not isinstance(value, bool)
    }


def target_dir(output_root: Path, run_id: str, target: str) -> Path:
    """Local directory holding one target's artifacts for one run."""
    return output_root / run_id / sanitize_filename(target)


class ResultCollector:
    """Fetch every target's artifacts and build one ordered result set.

    One target's failure never stops the others. The report always covers
    every input target, in target-list order.
    """

    def __init__(
        self,
        settings: Settings,
        output_root: str | Path,
        client_factory: Optional[Callable[[str], SSHClient]] = None,
    ):
        self.settings = settings
        self.output_root = Path(output_root)
        self._client_factory = client_factory or (
            lambda host: SSHClient.from_settings(host, settings)
        )
        self.summary_table = SummaryTable(self.output_root)

    async def discover_runs(
        self,
        client: SSHClient,
        run_id: Optional[str] = None,
        history: int = 1,
    ) -> list[str]:
        """Run directories to collect on one target, newest first.

        Raises:
            ArtifactMissingError: no matching run directory exists.
        """
        names = await client.list_dir(self.settings.remote_root)
        if run_id is not None:
            found = [run_id] if run_id in names else []
        else:
            found = latest_run_ids(names, count=history)
        if not found:
            raise ArtifactMissingError("no test results found")
        return found

    async def fetch_run(self, client: SSHClient, target: Target, run_id: str) -> ResultRecord:
        """Copy one run's artifacts locally and reduce them."""
        local_dir = ensure_dir(target_dir(self.output_root, run_id, target.name))
        remote_dir = f"{self.settings.remote_root.rstrip('/')}/{run_id}"

        contents: dict[str, Optional[str]] = {}
        for name in ARTIFACT_FILES:
            text = await client.get_text(f"{remote_dir}/{name}", timeout=self.settings.fetch_timeout)
            contents[name] = text
            if text is not None:
                (local_dir / name).write_text(text, encoding="utf-8")

        report_text = contents[GENERATOR_OUTPUT_FILE]
        if report_text is None:
            raise ArtifactMissingError(f"{GENERATOR_OUTPUT_FILE} missing in {remote_dir}")

        report = parse_report(report_text)
        counters = parse_counter_summary(contents[SUMMARY_FILE])

        return ResultRecord(
            target=target.name,
            concurrency_index=target.index,
            run_id=run_id,
            average_throughput_mbs=report.throughput_mbs,
            iops=report.iops,
            counter_averages=counters,
            status=ResultStatus.SUCCESS,
        )

    async def collect_target(
        self,
        target: Target,
        run_id: Optional[str] = None,
        history: int = 1,
    ) -> TargetOutcome:
        """Collect one target. Failures become a failed or error outcome."""
        client = self._client_factory(target.name)

        def failed(status: ResultStatus, error: object, failed_run: Optional[str] = None) -> TargetOutcome:
            record = ResultRecord(
                target=target.name,
                concurrency_index=target.index,
                run_id=failed_run or run_id,
                status=status,
                error=first_line(error),
            )
            return TargetOutcome(target=target.name, concurrency_index=target.index, latest=record)

        try:
            await client.connect()
            run_ids = await self.discover_runs(client, run_id=run_id, history=history)
            records = []
            for found in run_ids:
                try:
                    records.append(await self.fetch_run(client, target, found))
                except ArtifactMissingError as e:
                    records.append(failed(ResultStatus.FAILED, e, found).latest)
            logger.info(f"[{target.name}] Collected {', '.join(run_ids)}")
            return TargetOutcome(
                target=target.name,
                concurrency_index=target.index,
                latest=records[0],
                history=records[1:],
            )
        except RemoteUnreachableError as e:
            logger.error(f"[{target.name}] Unreachable: {e}")
            return failed(ResultStatus.FAILED, f"remote unreachable: {first_line(e)}")
        except ArtifactMissingError as e:
            logger.warning(f"[{target.name}] {e}")
            return failed(ResultStatus.FAILED, e)
        except Exception as e:
            logger.error(f"[{target.name}] Collection error: {e}", exc_info=True)
            return failed(ResultStatus.ERROR, e)
        finally:
            await client.close()

    @staticmethod
    def _label_run(outcomes: list[TargetOutcome]) -> Optional[str]:
        """The run most targets reported, newest on ties."""
        counts = Counter(o.latest.run_id for o in outcomes if o.latest.succeeded and o.latest.run_id)
        if not counts:
            return None
        return max(counts, key=lambda r: (counts[r], r))

    async def collect(
        self,
        targets: TargetList | Iterable[Target],
        run_id: Optional[str] = None,
        history: int = 1,
    ) -> CollectionReport:
        """Collect every target concurrently and write the summary table."""
        if run_id is not None and not is_run_id(run_id):
            raise ValueError(f"Invalid run id: {run_id}")
        if history not in (1, 2):
            raise ValueError("history must be 1 or 2")

        targets = list(targets)
        semaphore = asyncio.Semaphore(max(1, self.settings.collect_concurrency))

        async def bounded(target: Target) -> TargetOutcome:
            async with semaphore:
                return await self.collect_target(target, run_id=run_id, history=history)

        outcomes = list(await asyncio.gather(*(bounded(t) for t in targets)))

        # Targets that produced nothing are reported under the run the rest produced
        label = run_id or self._label_run(outcomes)
        if label:
            outcomes = [
                o if o.latest.run_id else o.model_copy(
                    update={"latest": o.latest.model_copy(update={"run_id": label})}
                )
                for o in outcomes
            ]

        rows = []
        for outcome in outcomes:
            rows.append(outcome.latest)
            rows.extend(outcome.history)
        summary_path = self.summary_table.upsert(rows)

        report = CollectionReport(outcomes=outcomes, summary_path=str(summary_path))
        logger.info(
            f"Collection finished: {report.count(ResultStatus.SUCCESS)} success, "
            f"{report.count(ResultStatus.FAILED)} failed, {report.count(ResultStatus.ERROR)} error"
        )
        return report
