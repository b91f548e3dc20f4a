"""Performance counter sampling on the agent."""

from __future__ import annotations

import asyncio
import csv
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

import psutil

from common.models.metrics import KnownMetric, MetricSample

logger = logging.getLogger(__name__)

TIMESTAMP_COLUMN = "Timestamp"

# Counter object each metric is read from
_PROCESS_METRICS = (
    KnownMetric.READ_OPS,
    KnownMetric.WRITE_OPS,
    KnownMetric.HANDLE_COUNT,
    KnownMetric.WORKING_SET,
)
_OBJECTS = {
    KnownMetric.CPU_PERCENT: "Processor(_Total)",
    KnownMetric.AVAILABLE_MEMORY: "Memory",
    KnownMetric.DISK_READ_BYTES: "PhysicalDisk(_Total)",
    KnownMetric.DISK_WRITE_BYTES: "PhysicalDisk(_Total)",
}


def counter_path(hostname: str, metric: KnownMetric, process_name: str) -> str:
    """Full counter path, e.g. ``\\\\host\\Process(diskspd)\\Handle Count``."""
    if metric in _PROCESS_METRICS:
        obj = f"Process({process_name})"
    else:
        obj = _OBJECTS[metric]
    return f"\\\\{hostname}\\{obj}\\{metric.value}"


class CounterSampler:
    """Sample the fixed counter set once per interval.

    Process counters follow the generator process. When it has not started
    yet or has already exited, those cells are left empty.
    """

    def __init__(
        self,
        hostname: str,
        process_name: str,
        interval: float = 1.0,
    ):
        self.hostname = hostname
        self.process_name = process_name
        self.interval = interval
        self.paths: dict[KnownMetric, str] = {
            metric: counter_path(hostname, metric, process_name)
            for metric in KnownMetric
        }
        self._process: Optional[psutil.Process] = None
        self._last_time: Optional[float] = None
        self._last_proc_io = None
        self._last_disk_io = None

    @property
    def columns(self) -> list[str]:
        return list(self.paths.values())

    def attach(self, pid: int) -> None:
        """Follow a process for the per-process counters."""
        try:
            self._process = psutil.Process(pid)
        except psutil.NoSuchProcess:
            logger.warning(f"Process {pid} exited before sampling started")
            self._process = None

    def prime(self) -> None:
        """Take baseline readings so the first tick yields rates."""
        psutil.cpu_percent(interval=None)
        self._last_time = time.monotonic()
        self._last_disk_io = psutil.disk_io_counters()
        self._last_proc_io = self._process_io()

    def _process_io(self):
        if self._process is None:
            return None
        try:
            return self._process.io_counters()
        except (psutil.NoSuchProcess, psutil.AccessDenied, AttributeError):
            return None

    def _handle_count(self) -> Optional[float]:
        if self._process is None:
            return None
        try:
            if hasattr(self._process, "num_handles"):
                return float(self._process.num_handles())
            return float(self._process.num_fds())
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            return None

    def _working_set(self) -> Optional[float]:
        if self._process is None:
            return None
        try:
            return float(self._process.memory_info().rss)
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            return None

    def read(self) -> list[MetricSample]:
        """Read every counter once."""
        now = time.monotonic()
        ts = datetime.utcnow()
        elapsed = (now - self._last_time) if self._last_time is not None else None
        if not elapsed or elapsed <= 0:
            elapsed = None

        values: dict[KnownMetric, Optional[float]] = {m: None for m in KnownMetric}

        proc_io = self._process_io()
        if proc_io is not None and self._last_proc_io is not None and elapsed:
            values[KnownMetric.READ_OPS] = (proc_io.read_count - self._last_proc_io.read_count) / elapsed
            values[KnownMetric.WRITE_OPS] = (proc_io.write_count - self._last_proc_io.write_count) / elapsed
        values[KnownMetric.HANDLE_COUNT] = self._handle_count()
        values[KnownMetric.WORKING_SET] = self._working_set()

        values[KnownMetric.CPU_PERCENT] = psutil.cpu_percent(interval=None)
        values[KnownMetric.AVAILABLE_MEMORY] = psutil.virtual_memory().available / (1024 * 1024)

        disk_io = psutil.disk_io_counters()
        if disk_io is not None and self._last_disk_io is not None and elapsed:
            values[KnownMetric.DISK_READ_BYTES] = (disk_io.read_bytes - self._last_disk_io.read_bytes) / elapsed
            values[KnownMetric.DISK_WRITE_BYTES] = (disk_io.write_bytes - self._last_disk_io.write_bytes) / elapsed

        self._last_time = now
        self._last_proc_io = proc_io
        self._last_disk_io = disk_io

        return [
            MetricSample(timestamp=ts, counter=self.paths[metric], value=value)
            for metric, value in values.items()
        ]

    async def run(self, duration: float) -> list[list[MetricSample]]:
        """Sample for ``duration`` seconds, one tick per interval."""
        ticks = max(1, int(round(duration / self.interval)))
        self.prime()
        samples: list[list[MetricSample]] = []
        for _ in range(ticks):
            await asyncio.sleep(self.interval)
            samples.append(self.read())
        logger.info(f"Collected {len(samples)} counter samples")
        return samples


def write_counters_csv(path: Path, columns: list[str], ticks: list[list[MetricSample]]) -> None:
    """Write samples as a table: one timestamp column plus one column per counter."""
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow([TIMESTAMP_COLUMN, *columns])
        for tick in ticks:
            if not tick:
                continue
            by_counter = {s.counter: s.value for s in tick}
            row = [tick[0].timestamp.isoformat()]
            for column in columns:
                value = by_counter.get(column)
                row.append("" if value is None else repr(float(value)))
            writer.writerow(row)
