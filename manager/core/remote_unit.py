"""Drive one target's load session over SSH."""

from __future__ import annotations

import json
import logging
import shlex
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from common.errors import RemoteUnreachableError
from common.models.execution import ExecutionRecord, FailureCause, TestRun
from common.models.result import first_line
from manager.config import Settings
from manager.deployment.ssh_client import SSHClient, SSHCommandResult

logger = logging.getLogger(__name__)

# Agent exit codes, see agent.main
AGENT_EXIT_CAUSES = {
    3: FailureCause.DIRECTORY_CREATION_FAILED,
    4: FailureCause.GENERATOR_LAUNCH_FAILED,
    5: FailureCause.SAMPLING_FAILED,
    255: FailureCause.REMOTE_UNREACHABLE,
}


def parse_agent_output(stdout: str) -> dict:
    """The agent's last stdout line is a JSON object."""
    for line in reversed(stdout.strip().splitlines()):
        line = line.strip()
        if not line.startswith("{"):
            continue
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    return {}


class RemoteExecutionUnit:
    """Run the agent for one target and record its lifecycle."""

    def __init__(
        self,
        run: TestRun,
        settings: Settings,
        client_factory: Optional[Callable[[str], SSHClient]] = None,
    ):
        self.run = run
        self.settings = settings
        self._client_factory = client_factory or (
            lambda host: SSHClient.from_settings(host, settings)
        )
        self.command_log: List[Dict[str, Any]] = []

    def log_command(self, target: str, command: str, description: str) -> None:
        """Log a command for tracking/debugging."""
        self.command_log.append({
            "timestamp": datetime.now().isoformat(),
            "target": target,
            "command": command,
            "description": description,
        })
        logger.info(f"[{target}] {description}: {command[:200]}{'...' if len(command) > 200 else ''}")

    def get_command_log(self) -> List[Dict[str, Any]]:
        """Get all logged commands."""
        return self.command_log.copy()

    def build_agent_command(self) -> str:
        """Shell command that runs the agent on a target."""
        args = [
            self.settings.agent_python, "-m", "agent.main", "run",
            "--run-id", self.run.run_id,
            "--duration", str(self.run.baseline_duration_seconds),
            "--file-size", f"{self.run.file_size_gb:g}",
            "--root", self.settings.remote_root,
        ]
        command = " ".join(shlex.quote(a) for a in args)
        if self.settings.agent_workdir:
            command = f"cd {shlex.quote(self.settings.agent_workdir)} && {command}"
        return command

    def _apply_result(self, record: ExecutionRecord, result: SSHCommandResult) -> None:
        payload = parse_agent_output(result.stdout)

        if result.success:
            artifact_path = payload.get("artifact_path") or f"{self.settings.remote_root}/{self.run.run_id}"
            record.mark_completed(artifact_path)
            logger.info(f"[{record.target}] Completed: {artifact_path}")
            return

        cause = AGENT_EXIT_CAUSES.get(result.exit_code, FailureCause.SAMPLING_FAILED)
        detail = payload.get("error") or result.stderr or result.stdout or f"exit code {result.exit_code}"
        record.mark_failed(cause, first_line(detail))
        logger.error(f"[{record.target}] Failed ({cause.value}): {record.error}")

    async def __call__(self, record: ExecutionRecord) -> ExecutionRecord:
        """Run the session for ``record.target``. Never raises for remote faults."""
        client = self._client_factory(record.target)
        try:
            try:
                await client.connect()
            except RemoteUnreachableError as e:
                record.mark_failed(FailureCause.REMOTE_UNREACHABLE, first_line(e))
                logger.error(f"[{record.target}] Unreachable: {e}")
                return record

            record.mark_running()
            command = self.build_agent_command()
            self.log_command(record.target, command, "Run load session")

            result = await client.run_command(
                command,
                timeout=None,
                raise_on_error=False,
            )
            self._apply_result(record, result)
            return record
        finally:
            await client.close()
