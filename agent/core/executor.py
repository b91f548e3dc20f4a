"""Load session executed on a target machine."""

from __future__ import annotations

import asyncio
import logging
import shlex
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from agent.config import AgentSettings
from agent.core.sampler import CounterSampler, write_counters_csv
from agent.core.summarizer import summarize_counters, write_summary
from common.artifacts import COUNTERS_FILE, GENERATOR_OUTPUT_FILE, LOG_FILE, SUMMARY_FILE
from common.errors import DirectoryCreationError, GeneratorLaunchError, SamplingError
from common.models.metrics import CounterSummary

logger = logging.getLogger(__name__)


class EventLog:
    """Append-only event log, one timestamped line per event."""

    def __init__(self, path: Path):
        self.path = path

    def append(self, message: str) -> None:
        timestamp = datetime.now().isoformat(timespec="seconds")
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(f"[{timestamp}] {message}\n")
        logger.info(message)


@dataclass
class SessionResult:
    """Outcome of a finished load session."""
    run_dir: Path
    generator_exit_code: Optional[int]
    summary: CounterSummary = field(default_factory=CounterSummary)


class LoadSession:
    """Run the generator and the counter sampler side by side on this machine."""

    def __init__(
        self,
        run_id: str,
        duration: int,
        file_size_gb: float,
        settings: AgentSettings,
        sampler: Optional[CounterSampler] = None,
    ):
        if duration <= 0:
            raise ValueError("Duration must be positive")
        if file_size_gb <= 0:
            raise ValueError("File size must be positive")

        self.run_id = run_id
        self.duration = duration
        self.file_size_gb = file_size_gb
        self.settings = settings
        self.run_dir = Path(settings.root) / run_id
        self.sampler = sampler or CounterSampler(
            hostname=settings.hostname,
            process_name=settings.generator_process_name,
            interval=settings.sample_interval,
        )

    def build_generator_command(self) -> list[str]:
        """Generator argv for this session."""
        file_size = f"{self.file_size_gb:g}"
        args = self.settings.generator_args.format(
            file_size_gb=file_size,
            duration=self.duration,
            test_file=str(self.run_dir / self.settings.test_file_name),
        )
        return [self.settings.generator_path, *shlex.split(args)]

    def _create_run_dir(self) -> None:
        try:
            self.run_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DirectoryCreationError(f"Cannot create {self.run_dir}: {e}") from e

    async def _launch_generator(self, log: EventLog, output) -> asyncio.subprocess.Process:
        cmd = self.build_generator_command()
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=output,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            log.append(f"Generator launch failed: {e}")
            raise GeneratorLaunchError(f"Cannot launch {cmd[0]}: {e}") from e
        log.append(f"Generator launched (pid {proc.pid}): {' '.join(cmd)}")
        return proc

    async def run(self) -> SessionResult:
        """Execute the session and persist its artifacts."""
        self._create_run_dir()
        log = EventLog(self.run_dir / LOG_FILE)
        log.append(
            f"Test started: run={self.run_id} duration={self.duration}s "
            f"file_size={self.file_size_gb:g}GB"
        )

        with open(self.run_dir / GENERATOR_OUTPUT_FILE, "wb") as output:
            proc = await self._launch_generator(log, output)
            self.sampler.attach(proc.pid)

            log.append(f"Sampling {len(self.sampler.columns)} counters for {self.duration}s")
            sample_task = asyncio.create_task(self.sampler.run(self.duration))

            # Both must finish; whichever takes longer decides completion.
            exit_code = await proc.wait()
            log.append(f"Generator exited with code {exit_code}")
            try:
                ticks = await sample_task
            except Exception as e:
                log.append(f"Sampling failed: {e}")
                raise SamplingError(f"Counter sampling failed: {e}") from e
            log.append(f"Sampling complete: {len(ticks)} samples")

        counters_path = self.run_dir / COUNTERS_FILE
        write_counters_csv(counters_path, self.sampler.columns, ticks)

        summary = summarize_counters(counters_path)
        for error in summary.parse_errors:
            log.append(f"Metric parse error: {error}")
        write_summary(self.run_dir / SUMMARY_FILE, summary)

        log.append(f"Test completed: {len(summary.averages)} metrics summarized")
        return SessionResult(
            run_dir=self.run_dir,
            generator_exit_code=exit_code,
            summary=summary,
        )
