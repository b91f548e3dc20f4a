"""Remote shell access to targets over the system ssh binary."""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
from dataclasses import dataclass
from typing import Optional

from common.errors import RemoteUnreachableError

logger = logging.getLogger(__name__)

# ssh exits with 255 when the connection itself fails
SSH_CONNECTION_FAILED = 255

# Targets are ephemeral lab machines; host keys are not pinned
BASE_SSH_OPTIONS = (
    "-o", "StrictHostKeyChecking=no",
    "-o", "UserKnownHostsFile=/dev/null",
    "-o", "LogLevel=ERROR",
)


@dataclass
class SSHCommandResult:
    """Outcome of one remote command."""
    exit_code: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    @property
    def connection_failed(self) -> bool:
        return self.exit_code == SSH_CONNECTION_FAILED


class SSHClient:
    """Runs commands on one target through ``ssh`` subprocesses.

    Each call spawns its own ssh process, so a client holds no socket and
    ``close`` only resets state. Key authentication runs in batch mode;
    a password without a key goes through ``sshpass``.
    """

    def __init__(
        self,
        hostname: str,
        username: str = "root",
        private_key_path: Optional[str] = None,
        password: Optional[str] = None,
        port: int = 22,
        connect_timeout: int = 10,
    ):
        self.hostname = hostname
        self.username = username
        self.private_key_path = private_key_path
        self.password = password
        self.port = port
        self.connect_timeout = connect_timeout
        self._connected = False

    @classmethod
    def from_settings(cls, hostname: str, settings) -> "SSHClient":
        return cls(
            hostname,
            username=settings.ssh_user,
            private_key_path=settings.ssh_key_path,
            password=settings.ssh_password,
            port=settings.ssh_port,
            connect_timeout=settings.ssh_connect_timeout,
        )

    @property
    def destination(self) -> str:
        return f"{self.username}@{self.hostname}"

    async def connect(self) -> None:
        """Probe the target; raise RemoteUnreachableError when it does not answer."""
        probe = await self.run_command("true", timeout=self.connect_timeout + 5, raise_on_error=False)
        if not probe.success:
            reason = probe.stderr.strip() or "no response"
            raise RemoteUnreachableError(f"Failed to connect to {self.hostname}: {reason}")
        self._connected = True
        logger.debug(f"Reached {self.destination}")

    async def close(self) -> None:
        self._connected = False

    def build_argv(self, command: str) -> list[str]:
        """Full argument vector for running ``command`` on the target."""
        argv = ["ssh", *BASE_SSH_OPTIONS, "-o", f"ConnectTimeout={self.connect_timeout}", "-p", str(self.port)]

        use_key = bool(self.private_key_path) and os.path.exists(self.private_key_path)
        if use_key:
            argv += ["-i", self.private_key_path, "-o", "BatchMode=yes"]

        argv += [self.destination, command]

        if self.password and not self.private_key_path:
            argv = ["sshpass", "-p", self.password, *argv]
        return argv

    async def run_command(
        self,
        command: str,
        timeout: Optional[float] = 60,
        raise_on_error: bool = True,
    ) -> SSHCommandResult:
        """Run ``command`` remotely and wait for it.

        ``timeout`` caps the wait in seconds; None waits for the command to end.
        """
        argv = self.build_argv(command)

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            return SSHCommandResult(exit_code=-1, stdout="", stderr=f"{argv[0]} not available: {e}")

        try:
            out, err = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            logger.warning(f"{self.hostname}: command exceeded {timeout}s and was killed")
            return SSHCommandResult(
                exit_code=-1,
                stdout="",
                stderr=f"Command timed out after {timeout}s",
                timed_out=True,
            )

        result = SSHCommandResult(
            exit_code=-1 if proc.returncode is None else proc.returncode,
            stdout=out.decode(errors="replace"),
            stderr=err.decode(errors="replace"),
        )
        if raise_on_error and not result.success:
            raise RuntimeError(f"Command failed on {self.hostname}: {result.stderr or result.stdout}")
        return result

    def _raise_if_dropped(self, result: SSHCommandResult) -> None:
        if result.connection_failed:
            raise RemoteUnreachableError(f"Lost connection to {self.hostname}: {result.stderr.strip()}")

    async def list_dir(self, remote_path: str, timeout: int = 30) -> list[str]:
        """Entry names of a remote directory; empty when it does not exist."""
        result = await self.run_command(
            f"ls -1 {shlex.quote(remote_path)} 2>/dev/null",
            timeout=timeout,
            raise_on_error=False,
        )
        self._raise_if_dropped(result)
        return [name for name in (line.strip() for line in result.stdout.splitlines()) if name]

    async def get_text(self, remote_path: str, timeout: int = 60) -> Optional[str]:
        """Contents of a remote text file, or None when it cannot be read."""
        result = await self.run_command(f"cat {shlex.quote(remote_path)}", timeout=timeout, raise_on_error=False)
        self._raise_if_dropped(result)
        if not result.success:
            return None
        return result.stdout
