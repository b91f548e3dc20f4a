"""Scrape aggregate throughput and IOPS from the load generator's text report.

This is the only place that knows the generator's output format.

Throughput comes from the last ``total:`` row, third pipe-delimited column::

    total:    1073741824 |   16384 |   123.45 |   456.78 |   1.234 |

IOPS comes from the last line naming the ``I/O per s(econd)`` row, first
numeric pipe-delimited field::

    I/O per second |   456.78   |   0.00

Missing or malformed rows give None. Nothing here raises on bad input.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from common.errors import ParseError
from common.models.result import GeneratorReport

logger = logging.getLogger(__name__)

TOTAL_ROW = re.compile(r"^\s*total:(?P<rest>.*)$", re.IGNORECASE)
IOPS_ROW = re.compile(r"I/O per s(?:econd)?", re.IGNORECASE)
PIPE_NUMBER = re.compile(r"\|\s*(-?\d+(?:\.\d+)?)\s*(?=\||$)")

THROUGHPUT_COLUMN = 2  # zero-based: bytes | I/Os | MiB/s


def _to_float(text: str) -> float:
    try:
        return float(text.strip().replace(",", ""))
    except ValueError as e:
        raise ParseError(f"Not a number: {text!r}") from e


def _last_match(lines: list[str], pattern: re.Pattern) -> Optional[re.Match]:
    for line in reversed(lines):
        match = pattern.search(line)
        if match:
            return match
    return None


def parse_throughput(text: str) -> Optional[float]:
    """MB/s from the last ``total:`` row, or None."""
    match = _last_match(text.splitlines(), TOTAL_ROW)
    if match is None:
        return None
    fields = match.group("rest").split("|")
    if len(fields) <= THROUGHPUT_COLUMN:
        return None
    try:
        return _to_float(fields[THROUGHPUT_COLUMN])
    except ParseError as e:
        logger.debug(f"Throughput column unreadable: {e}")
        return None


def parse_iops(text: str) -> Optional[float]:
    """IOPS from the last ``I/O per second`` row, or None."""
    for line in reversed(text.splitlines()):
        if not IOPS_ROW.search(line):
            continue
        number = PIPE_NUMBER.search(line)
        if number is None:
            return None
        try:
            return _to_float(number.group(1))
        except ParseError:
            return None
    return None


def parse_report(text: Optional[str]) -> GeneratorReport:
    """Both scalars from a generator report."""
    if not text:
        return GeneratorReport()
    return GeneratorReport(
        throughput_mbs=parse_throughput(text),
        iops=parse_iops(text),
    )
