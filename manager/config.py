"""Orchestrator settings, read from ``FLEETSTRESS_*`` environment variables or ``.env``."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Settings shared by the CLI, the run engine and the manager API."""

    app_name: str = "Fleet Stress"
    app_version: str = "1.0.0"

    # Manager API
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = ["*"]

    # Run history database and per-run artifacts
    data_path: Path = Field(default=Path("./data"))
    # Where collected results and the summary table land
    default_output_root: Path = Field(default=Path("./results"))

    # Target access
    ssh_user: str = "root"
    ssh_key_path: Optional[str] = None
    ssh_password: Optional[str] = None
    ssh_port: int = 22
    ssh_connect_timeout: int = 10

    # Agent invocation on targets
    remote_root: str = "/var/tmp/fleetstress"
    agent_python: str = "python3"
    agent_workdir: Optional[str] = None

    # Result collection
    collect_concurrency: int = Field(default=16, ge=1)
    fetch_timeout: int = 60

    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    class Config:
        env_prefix = "FLEETSTRESS_"
        env_file = ".env"
        env_file_encoding = "utf-8"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Process-wide settings, created from the environment on first use."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def init_settings(**overrides) -> Settings:
    """Replace the process-wide settings, e.g. from CLI flags or tests."""
    global _settings
    _settings = Settings(**overrides)
    return _settings
