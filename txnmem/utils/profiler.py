"""
Timing utilities for txnmem.

`profile_block` measures wall-clock time (perf_counter) and a best-effort CPU
percent (psutil) around a block of code. It never starts or stops
tracemalloc; the MemoryProbe owns tracing for the whole run.

Usage:
    from txnmem.utils.profiler import profile_block

    with profile_block("insert", rows=100) as stats:
        run_sample_loop()

    print(stats.duration_seconds, stats.per_row_seconds)
"""

from __future__ import annotations

import contextlib
import time
from dataclasses import dataclass, field
from typing import Generator, Optional

import psutil


@dataclass
class ProfileStats:
    """
    Container for timing measurements.
    """

    label: str
    rows: int = 0
    start_ts: float = field(default=0.0)
    end_ts: float = field(default=0.0)
    duration_seconds: float = field(default=0.0)
    cpu_percent: Optional[float] = field(default=None)

    @property
    def per_row_seconds(self) -> float:
        return self.duration_seconds / self.rows if self.rows else 0.0

    @property
    def throughput_rows_per_sec(self) -> float:
        return self.rows / self.duration_seconds if self.duration_seconds > 0 else 0.0


@contextlib.contextmanager
def profile_block(label: str, rows: int = 0) -> Generator[ProfileStats, None, None]:
    """
    Context manager timing a block of code.

    Parameters
    ----------
    label : str
        Human-friendly label for the profiled block.
    rows : int
        Rows processed inside the block, used for per-row figures.
    """
    stats = ProfileStats(label=label, rows=rows)
    process = psutil.Process()
    # CPU percent needs a priming call
    process.cpu_percent(interval=None)

    stats.start_ts = time.perf_counter()
    try:
        yield stats
    finally:
        stats.end_ts = time.perf_counter()
        stats.duration_seconds = stats.end_ts - stats.start_ts
        stats.cpu_percent = process.cpu_percent(interval=None)


__all__ = ["ProfileStats", "profile_block"]
