"""Pytest configuration and shared fixtures."""

import json
import tempfile
import shutil
from pathlib import Path
from typing import Callable, Generator, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from common.errors import RemoteUnreachableError
from common.models.execution import TestRun
from common.models.target import TargetList
from manager.config import Settings
from manager.deployment.ssh_client import SSHClient, SSHCommandResult
from manager.storage.data_store import DataStore

RUN_ID = "20260118_143005"
REMOTE_ROOT = "/var/tmp/fleetstress"

GENERATOR_REPORT = """\
Command Line: diskspd -c10G -d600 -r -w40 -t4 -o32 -b64K -Sh -L stress_test.dat

Total IO
thread |       bytes     |     I/Os     |    MiB/s   |  I/O per s |  file
-----------------------------------------------------------------------------
     0 |      1073741824 |        16384 |     123.45 |     456.78 | stress_test.dat
-----------------------------------------------------------------------------
total:       1073741824 |        16384 |     123.45 |     456.78

I/O per second |   456.78   |   0.0
"""


def make_run(run_id: str = RUN_ID) -> TestRun:
    """A three-target run: 600s baseline, 10s stagger, 10 GB file."""
    return TestRun(
        run_id=run_id,
        baseline_duration_seconds=600,
        stagger_delay_seconds=10,
        file_size_gb=10,
        targets=list(TargetList.from_names(["HOST-A", "HOST-B", "HOST-C"]).targets),
    )


def completed_output(run_id: str = RUN_ID) -> str:
    """Agent stdout for a successful session."""
    return "starting\n" + json.dumps({
        "status": "completed",
        "artifact_path": f"{REMOTE_ROOT}/{run_id}",
        "generator_exit_code": 0,
        "metrics": [],
    })


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def data_store(temp_dir: Path) -> DataStore:
    """Create a DataStore instance with temporary directory."""
    return DataStore(temp_dir / "data")


@pytest.fixture
def settings(temp_dir: Path) -> Settings:
    """Manager settings pointing at temporary storage."""
    return Settings(
        data_path=temp_dir / "data",
        default_output_root=temp_dir / "results",
        remote_root=REMOTE_ROOT,
        collect_concurrency=4,
    )


@pytest.fixture
def targets() -> TargetList:
    return TargetList.from_names(["HOST-A", "HOST-B", "HOST-C"])


def make_ssh_client(
    host: str,
    reachable: bool = True,
    run_result: Optional[SSHCommandResult] = None,
    dirs: Optional[list[str]] = None,
    files: Optional[dict[str, str]] = None,
) -> MagicMock:
    """Create a mock SSH client for one host."""
    files = files or {}
    mock = MagicMock(spec=SSHClient)
    mock.hostname = host
    if reachable:
        mock.connect = AsyncMock()
    else:
        mock.connect = AsyncMock(
            side_effect=RemoteUnreachableError(f"Failed to connect to {host}: Connection timed out")
        )
    mock.close = AsyncMock()
    mock.run_command = AsyncMock(
        return_value=run_result or SSHCommandResult(exit_code=0, stdout=completed_output(), stderr="")
    )
    mock.list_dir = AsyncMock(return_value=list(dirs or []))
    mock.get_text = AsyncMock(side_effect=lambda path, timeout=60: files.get(path))
    return mock


@pytest.fixture
def ssh_client() -> Callable[..., MagicMock]:
    """Factory for mock SSH clients."""
    return make_ssh_client


def target_files(run_id: str = RUN_ID, report: str = GENERATOR_REPORT, counters: Optional[dict] = None) -> dict:
    """Remote artifact contents of one run, keyed by remote path."""
    base = f"{REMOTE_ROOT}/{run_id}"
    files = {
        f"{base}/test_log.txt": "[2026-01-18T14:30:05] Test started\n",
        f"{base}/generator_output.txt": report,
        f"{base}/counters.csv": "Timestamp\n",
    }
    if counters is not None:
        files[f"{base}/summary.json"] = json.dumps(counters)
    return files
