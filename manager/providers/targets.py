"""Target list loading from tabular, text or YAML files."""

from __future__ import annotations

import csv
import logging
from pathlib import Path

import yaml

from common.errors import ProviderError
from common.models.target import TargetList
from common.utils import load_yaml

logger = logging.getLogger(__name__)


def _first_column(path: Path, delimiter: str) -> list[str]:
    """First column of a tabular file; the first row is always a header."""
    with open(path, newline="", encoding="utf-8-sig") as f:
        rows = [row for row in csv.reader(f, delimiter=delimiter) if row and any(c.strip() for c in row)]
    return [row[0] for row in rows[1:]]


def _text_lines(path: Path) -> list[str]:
    names = []
    with open(path, encoding="utf-8-sig") as f:
        for line in f:
            line = line.split("#", 1)[0].strip()
            if line:
                names.append(line)
    return names


def _yaml_names(path: Path) -> list[str]:
    data = load_yaml(path)
    if isinstance(data, dict):
        data = data.get("targets", [])
    if not isinstance(data, list):
        raise ProviderError(f"{path}: expected a list of targets")
    names = []
    for item in data:
        if isinstance(item, dict):
            item = item.get("name") or item.get("hostname") or ""
        names.append(str(item))
    return names


def load_targets(path: str | Path) -> TargetList:
    """Read an ordered, deduplicated, non-empty target list.

    Raises:
        ProviderError: the file cannot be read or yields no targets.
    """
    path = Path(path)
    suffix = path.suffix.lower()

    try:
        if suffix == ".csv":
            names = _first_column(path, ",")
        elif suffix == ".tsv":
            names = _first_column(path, "\t")
        elif suffix in (".yaml", ".yml"):
            names = _yaml_names(path)
        else:
            names = _text_lines(path)
    except (OSError, UnicodeDecodeError, csv.Error, yaml.YAMLError) as e:
        raise ProviderError(f"Cannot read target list {path}: {e}") from e

    targets = TargetList.from_names(names)
    if not len(targets):
        raise ProviderError(f"Target list {path} is empty")

    dropped = len([n for n in names if n.strip()]) - len(targets)
    if dropped:
        logger.warning(f"Dropped {dropped} duplicate target(s) from {path}")
    logger.info(f"Loaded {len(targets)} targets from {path}")
    return targets
