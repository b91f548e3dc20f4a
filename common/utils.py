"""Shared helpers: run identifiers, durations and small file I/O."""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path
from typing import Optional

import yaml

RUN_ID_FORMAT = "%Y%m%d_%H%M%S"
RUN_ID_PATTERN = re.compile(r"^\d{8}_\d{6}$")

_UNSAFE_FILENAME_CHARS = re.compile(r"[^\w\-.]")


def generate_run_id(now: Optional[datetime] = None) -> str:
    """Generate a run identifier such as ``20260118_143005``."""
    return (now or datetime.now()).strftime(RUN_ID_FORMAT)


def is_run_id(name: str) -> bool:
    return bool(RUN_ID_PATTERN.match(name.strip()))


def latest_run_ids(names: list[str], count: int = 1) -> list[str]:
    """Most recent run identifiers among directory names, newest first.

    Identifiers sort chronologically as plain strings.
    """
    cleaned = {n.strip().rstrip("/") for n in names}
    return sorted((n for n in cleaned if is_run_id(n)), reverse=True)[:count]


def format_duration(seconds: float) -> str:
    """Render seconds as ``45s``, ``10m 20s`` or ``1h 2m 5s``."""
    total = int(seconds)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h {minutes}m {secs}s"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def load_yaml(path: str | Path) -> dict | list:
    with open(path) as f:
        return yaml.safe_load(f) or {}


def save_yaml(path: str | Path, data: dict) -> None:
    path = Path(path)
    ensure_dir(path.parent)
    with open(path, "w") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)


def ensure_dir(path: str | Path) -> Path:
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def sanitize_filename(name: str) -> str:
    """Make a target name safe to use as a directory name."""
    return _UNSAFE_FILENAME_CHARS.sub("", name.replace(" ", "_"))[:255]
