"""Unit tests for the SSH-driven remote execution unit."""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from common.models.execution import ExecutionRecord, ExecutionStatus, FailureCause, TestRun
from common.models.target import TargetList
from manager.core.remote_unit import RemoteExecutionUnit, parse_agent_output
from manager.deployment.ssh_client import SSHCommandResult
from tests.conftest import RUN_ID, completed_output


@pytest.fixture
def run() -> TestRun:
    return TestRun(
        run_id=RUN_ID,
        baseline_duration_seconds=600,
        stagger_delay_seconds=10,
        file_size_gb=10,
        targets=list(TargetList.from_names(["HOST-A"]).targets),
    )


def failed_output(cause: str, error: str) -> str:
    return json.dumps({"status": "failed", "cause": cause, "error": error})


class TestAgentCommand:
    """Tests for the remote command line."""

    def test_parse_agent_output_uses_last_json_line(self):
        stdout = 'log line\n{"status": "running"}\n{"status": "completed"}\n'

        assert parse_agent_output(stdout) == {"status": "completed"}

    def test_parse_agent_output_without_json(self):
        assert parse_agent_output("Traceback...\n") == {}

    def test_build_agent_command(self, run, settings):
        command = RemoteExecutionUnit(run, settings).build_agent_command()

        assert command.startswith("python3 -m agent.main run")
        assert f"--run-id {RUN_ID}" in command
        assert "--duration 600" in command
        assert "--file-size 10" in command
        assert "--root /var/tmp/fleetstress" in command

    def test_build_agent_command_with_workdir(self, run, settings):
        settings.agent_workdir = "/opt/fleet stress"

        command = RemoteExecutionUnit(run, settings).build_agent_command()

        assert command.startswith("cd '/opt/fleet stress' && ")


@pytest.mark.asyncio
class TestRemoteExecutionUnit:
    """Tests for running one target's session."""

    async def test_completed(self, run, settings, ssh_client):
        client = ssh_client("HOST-A")
        unit = RemoteExecutionUnit(run, settings, client_factory=lambda host: client)
        record = ExecutionRecord(target="HOST-A", concurrency_index=1)

        await unit(record)

        assert record.status == ExecutionStatus.COMPLETED
        assert record.artifact_path == f"/var/tmp/fleetstress/{RUN_ID}"
        assert record.started_at is not None
        client.run_command.assert_awaited_once()
        assert client.run_command.await_args.kwargs["timeout"] is None
        client.close.assert_awaited_once()

    async def test_command_is_logged(self, run, settings, ssh_client):
        client = ssh_client("HOST-A")
        unit = RemoteExecutionUnit(run, settings, client_factory=lambda host: client)

        await unit(ExecutionRecord(target="HOST-A", concurrency_index=1))

        log = unit.get_command_log()
        assert len(log) == 1
        assert log[0]["target"] == "HOST-A"
        assert "agent.main" in log[0]["command"]

    async def test_unreachable(self, run, settings, ssh_client):
        client = ssh_client("HOST-B", reachable=False)
        unit = RemoteExecutionUnit(run, settings, client_factory=lambda host: client)
        record = ExecutionRecord(target="HOST-B", concurrency_index=2)

        await unit(record)

        assert record.status == ExecutionStatus.FAILED
        assert record.failure_cause == FailureCause.REMOTE_UNREACHABLE
        assert "HOST-B" in record.error
        client.run_command.assert_not_awaited()
        client.close.assert_awaited_once()

    @pytest.mark.parametrize("exit_code,cause", [
        (3, FailureCause.DIRECTORY_CREATION_FAILED),
        (4, FailureCause.GENERATOR_LAUNCH_FAILED),
        (5, FailureCause.SAMPLING_FAILED),
        (255, FailureCause.REMOTE_UNREACHABLE),
    ])
    async def test_agent_exit_codes(self, run, settings, ssh_client, exit_code, cause):
        result = SSHCommandResult(
            exit_code=exit_code,
            stdout=failed_output(cause.value, "step failed\ndetails"),
            stderr="",
        )
        client = ssh_client("HOST-A", run_result=result)
        unit = RemoteExecutionUnit(run, settings, client_factory=lambda host: client)
        record = ExecutionRecord(target="HOST-A", concurrency_index=1)

        await unit(record)

        assert record.status == ExecutionStatus.FAILED
        assert record.failure_cause == cause
        assert record.error == "step failed"

    async def test_agent_overrunning_duration_still_completes(self, settings, ssh_client):
        short_run = TestRun(
            run_id=RUN_ID,
            baseline_duration_seconds=1,
            file_size_gb=1,
            targets=list(TargetList.from_names(["HOST-A"]).targets),
        )

        async def slow_agent(command, timeout=None, raise_on_error=True):
            await asyncio.sleep(1.5)
            return SSHCommandResult(exit_code=0, stdout=completed_output(), stderr="")

        client = ssh_client("HOST-A")
        client.run_command = AsyncMock(side_effect=slow_agent)
        unit = RemoteExecutionUnit(short_run, settings, client_factory=lambda host: client)
        record = ExecutionRecord(target="HOST-A", concurrency_index=1)

        await unit(record)

        assert record.status == ExecutionStatus.COMPLETED
        assert record.error is None

    async def test_failure_without_payload_uses_stderr(self, run, settings, ssh_client):
        result = SSHCommandResult(exit_code=1, stdout="", stderr="python3: No module named agent\n")
        client = ssh_client("HOST-A", run_result=result)
        unit = RemoteExecutionUnit(run, settings, client_factory=lambda host: client)
        record = ExecutionRecord(target="HOST-A", concurrency_index=1)

        await unit(record)

        assert record.status == ExecutionStatus.FAILED
        assert record.error == "python3: No module named agent"
