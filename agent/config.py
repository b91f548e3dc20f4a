"""Settings of the per-target agent, from ``FLEETSTRESS_AGENT_*`` variables."""

from __future__ import annotations

import socket
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings

DEFAULT_GENERATOR_ARGS = (
    "-c{file_size_gb}G -d{duration} -r -w40 -t4 -o32 -b64K -Sh -L {test_file}"
)


class AgentSettings(BaseSettings):
    """Load generator and sampling parameters for one target."""

    # Where run directories are created on this machine
    root: Path = Field(default=Path("/var/tmp/fleetstress"))

    # Load generator
    generator_path: str = "diskspd"
    generator_args: str = DEFAULT_GENERATOR_ARGS
    generator_process_name: str = "diskspd"
    test_file_name: str = "stress_test.dat"

    # Counter sampling
    sample_interval: float = 1.0  # seconds

    # Logging
    log_level: str = "INFO"

    class Config:
        env_prefix = "FLEETSTRESS_AGENT_"
        env_file = ".env"

    @property
    def hostname(self) -> str:
        return socket.gethostname()


_settings: Optional[AgentSettings] = None


def get_settings() -> AgentSettings:
    """Process-wide agent settings."""
    global _settings
    if _settings is None:
        _settings = AgentSettings()
    return _settings


def init_settings(**kwargs) -> AgentSettings:
    """Replace the agent settings, e.g. from command line options."""
    global _settings
    _settings = AgentSettings(**kwargs)
    return _settings
