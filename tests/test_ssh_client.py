"""Tests for the ssh subprocess client."""

from unittest.mock import AsyncMock

import pytest

from common.errors import RemoteUnreachableError
from manager.config import Settings
from manager.deployment.ssh_client import SSHClient, SSHCommandResult


class TestBuildArgv:
    """Tests for ssh argument construction."""

    def test_defaults(self):
        argv = SSHClient("HOST-A", username="ops", port=2222).build_argv("ls /tmp")

        assert argv[0] == "ssh"
        assert argv[-2:] == ["ops@HOST-A", "ls /tmp"]
        assert "2222" in argv
        assert "BatchMode=yes" not in argv

    def test_key_enables_batch_mode(self, temp_dir):
        key = temp_dir / "id_ed25519"
        key.write_text("key")

        argv = SSHClient("HOST-A", private_key_path=str(key)).build_argv("true")

        assert argv[argv.index("-i") + 1] == str(key)
        assert "BatchMode=yes" in argv

    def test_password_uses_sshpass(self):
        argv = SSHClient("HOST-A", password="secret").build_argv("true")

        assert argv[:3] == ["sshpass", "-p", "secret"]

    def test_from_settings(self):
        settings = Settings(ssh_user="lab", ssh_port=2200, ssh_connect_timeout=3)

        client = SSHClient.from_settings("HOST-B", settings)

        assert client.destination == "lab@HOST-B"
        assert client.port == 2200
        assert client.connect_timeout == 3


@pytest.mark.asyncio
class TestRemoteFiles:
    """Tests for directory listing and file reads."""

    async def test_list_dir(self):
        client = SSHClient("HOST-A")
        client.run_command = AsyncMock(return_value=SSHCommandResult(0, "20260118_143005\n\nnotes\n", ""))

        assert await client.list_dir("/var/tmp/fleetstress") == ["20260118_143005", "notes"]

    async def test_get_text_missing_file(self):
        client = SSHClient("HOST-A")
        client.run_command = AsyncMock(return_value=SSHCommandResult(1, "", "No such file"))

        assert await client.get_text("/nope") is None

    async def test_dropped_connection_raises(self):
        client = SSHClient("HOST-A")
        client.run_command = AsyncMock(return_value=SSHCommandResult(255, "", "Connection reset"))

        with pytest.raises(RemoteUnreachableError):
            await client.get_text("/var/tmp/fleetstress/x")

    async def test_connect_failure(self):
        client = SSHClient("HOST-A")
        client.run_command = AsyncMock(return_value=SSHCommandResult(255, "", "No route to host"))

        with pytest.raises(RemoteUnreachableError, match="No route to host"):
            await client.connect()

    async def test_no_timeout_waits_for_slow_command(self, monkeypatch):
        client = SSHClient("HOST-A")
        monkeypatch.setattr(client, "build_argv", lambda command: ["sh", "-c", command])

        result = await client.run_command("sleep 1; echo done", timeout=None)

        assert result.success
        assert result.timed_out is False
        assert result.stdout.strip() == "done"
