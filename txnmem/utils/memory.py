"""
Memory snapshots, deltas and sample extrapolation.

A MemStage combines two sources taken at one instant:
- allocator statistics from tracemalloc (bytes currently traced, and the
  traced high-water mark as the amount the allocator has had to reserve)
- whole-process resident memory from a pluggable ProcessMemoryReader

Readers never raise: a failed OS query is logged and read as zero so a run
degrades to a less accurate report instead of aborting.

Usage:
    with MemoryProbe(settle_seconds=1.0) as probe:
        baseline = probe.stage()
        run_workload()
        immediate = probe.diff(baseline)
        retained = probe.diff_after_gc(baseline)
"""

from __future__ import annotations

import gc
import os
import shutil
import subprocess
import sys
import time
import tracemalloc
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol, runtime_checkable

import psutil

from txnmem.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_SETTLE_SECONDS = 1.0

_FACTORS: Dict[str, int] = {
    "B": 1,
    "K": 1024,
    "KB": 1024,
    "M": 1024**2,
    "MB": 1024**2,
    "G": 1024**3,
    "GB": 1024**3,
    "T": 1024**4,
    "TB": 1024**4,
}


@runtime_checkable
class ProcessMemoryReader(Protocol):
    """Source of the current process resident set size in bytes."""

    name: str

    def read_rss(self) -> int:
        ...


class PsutilMemoryReader:
    """Reads RSS through psutil; available on every platform psutil supports."""

    name = "psutil"

    def __init__(self, pid: Optional[int] = None) -> None:
        self._process = psutil.Process(pid)

    def read_rss(self) -> int:
        try:
            return int(self._process.memory_info().rss)
        except psutil.Error as exc:
            log.warning("RSS query failed, reading as zero", extra={"reader": self.name, "error": str(exc)})
            return 0


def parse_ps_rss(output: str) -> Optional[int]:
    """
    Parse `ps -o rss=` output into bytes.

    Plain numbers are kilobytes; some ps builds print unit-suffixed values
    such as ``12m`` or ``1.5g`` which are scaled by their 1024-based factor.
    """
    text = output.strip().upper()
    if not text:
        return None
    if text.isdigit():
        return int(text) * 1024
    for unit in sorted(_FACTORS, key=len, reverse=True):
        if text.endswith(unit):
            number = text[: -len(unit)].strip()
            try:
                return int(float(number) * _FACTORS[unit])
            except ValueError:
                return None
    return None


class PsMemoryReader:
    """Reads RSS by running the `ps` command, as on hosts without psutil support."""

    name = "ps"

    def __init__(self, pid: Optional[int] = None) -> None:
        self._pid = pid if pid is not None else os.getpid()

    def read_rss(self) -> int:
        cmd = ["ps", "-o", "rss=", "-p", str(self._pid)]
        try:
            out = subprocess.run(cmd, capture_output=True, text=True, check=True).stdout
        except (OSError, subprocess.CalledProcessError) as exc:
            log.warning("RSS query failed, reading as zero", extra={"reader": self.name, "error": str(exc)})
            return 0
        rss = parse_ps_rss(out)
        if rss is None:
            log.warning("Cannot parse ps output, reading as zero", extra={"reader": self.name, "output": out.strip()})
            return 0
        return rss


class NullMemoryReader:
    """Fallback for platforms without an RSS reader: warns once, always zero."""

    name = "none"

    def __init__(self) -> None:
        self._warned = False

    def read_rss(self) -> int:
        if not self._warned:
            log.warning(
                "No process memory reader for this platform; process deltas will read as zero",
                extra={"platform": sys.platform},
            )
            self._warned = True
        return 0


def _ps_reader() -> ProcessMemoryReader:
    if shutil.which("ps") is None:
        return NullMemoryReader()
    return PsMemoryReader()


_READERS: Dict[str, Callable[[], ProcessMemoryReader]] = {
    "psutil": PsutilMemoryReader,
    "ps": _ps_reader,
    "none": NullMemoryReader,
}


def available_readers() -> list[str]:
    return sorted(_READERS)


def make_reader(name: str) -> ProcessMemoryReader:
    """Build a reader by name; unknown names raise ValueError."""
    if name not in _READERS:
        raise ValueError(f"Unknown RSS reader '{name}'. Available: {', '.join(available_readers())}")
    return _READERS[name]()


@dataclass(frozen=True)
class AllocatorStats:
    allocated: int
    reserved: int


@dataclass(frozen=True)
class MemDiff:
    """
    Later-minus-earlier memory delta. Negative fields mean memory was
    reclaimed between the two snapshots.
    """

    alloc: int
    sys: int
    process: int

    def sample_to_total(self, n: int, sample_rows: int) -> "MemDiff":
        return sample_to_total(self, n, sample_rows)


@dataclass(frozen=True)
class MemStage:
    allocator: AllocatorStats
    process_rss: int

    def diff(self, later: "MemStage") -> MemDiff:
        return diff(self, later)


def diff(stage1: MemStage, stage2: MemStage) -> MemDiff:
    """Elementwise ``stage2 - stage1``."""
    return MemDiff(
        alloc=stage2.allocator.allocated - stage1.allocator.allocated,
        sys=stage2.allocator.reserved - stage1.allocator.reserved,
        process=stage2.process_rss - stage1.process_rss,
    )


def scale(value: int, n: int, sample_rows: int) -> int:
    """Exact ``value * n / sample_rows`` truncated toward zero."""
    if sample_rows <= 0:
        raise ValueError(f"sample_rows must be positive, got {sample_rows}")
    magnitude = abs(value) * n // sample_rows
    return -magnitude if value < 0 else magnitude


def sample_to_total(sampled: MemDiff, n: int, sample_rows: int) -> MemDiff:
    """Project a sampled delta linearly onto a population of `n` rows."""
    return MemDiff(
        alloc=scale(sampled.alloc, n, sample_rows),
        sys=scale(sampled.sys, n, sample_rows),
        process=scale(sampled.process, n, sample_rows),
    )


class MemoryProbe:
    """
    Takes comparable MemStage snapshots.

    Parameters
    ----------
    reader : ProcessMemoryReader, optional
        RSS source. Defaults to psutil.
    settle_seconds : float
        Pause between the forced GC pass and the post-GC snapshot.
    sleep : callable
        Pause function, replaceable in tests.
    """

    def __init__(
        self,
        reader: Optional[ProcessMemoryReader] = None,
        settle_seconds: float = DEFAULT_SETTLE_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.reader = reader if reader is not None else PsutilMemoryReader()
        self.settle_seconds = settle_seconds
        self._sleep = sleep
        self._started_tracing = False

    def __enter__(self) -> "MemoryProbe":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def start(self) -> None:
        if not tracemalloc.is_tracing():
            tracemalloc.start()
            self._started_tracing = True

    def stop(self) -> None:
        # Stop tracemalloc only if we started it
        if self._started_tracing and tracemalloc.is_tracing():
            tracemalloc.stop()
        self._started_tracing = False

    def allocator_stats(self) -> AllocatorStats:
        current, peak = tracemalloc.get_traced_memory()
        return AllocatorStats(allocated=current, reserved=peak)

    def stage(self) -> MemStage:
        return MemStage(allocator=self.allocator_stats(), process_rss=self.reader.read_rss())

    def diff(self, baseline: MemStage) -> MemDiff:
        """Delta between `baseline` and a snapshot taken now."""
        return diff(baseline, self.stage())

    def diff_after_gc(self, baseline: MemStage) -> MemDiff:
        """Force a collection, let the heap settle, then diff against `baseline`."""
        collected = gc.collect()
        log.debug("Forced GC pass", extra={"collected": collected, "settle_seconds": self.settle_seconds})
        if self.settle_seconds > 0:
            self._sleep(self.settle_seconds)
        return diff(baseline, self.stage())


__all__ = [
    "AllocatorStats",
    "DEFAULT_SETTLE_SECONDS",
    "MemDiff",
    "MemStage",
    "MemoryProbe",
    "NullMemoryReader",
    "ProcessMemoryReader",
    "PsMemoryReader",
    "PsutilMemoryReader",
    "available_readers",
    "diff",
    "make_reader",
    "parse_ps_rss",
    "sample_to_total",
    "scale",
]
