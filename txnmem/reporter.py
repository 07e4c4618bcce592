from __future__ import annotations

from typing import Optional

from rich import box
from rich.console import Console
from rich.table import Table

from txnmem.driver import IsolationReport, MemoryReport, PhaseResult
from txnmem.utils.memory import scale

UNITS = ["B", "KB", "MB", "GB", "TB", "PB"]


def readable_size(bytes_count: int) -> str:
    """
    Format a byte count with 1024-based units and two decimals.

    Values beyond the last unit stay in PB. Negative deltas are scaled by
    magnitude and keep their sign.
    """
    value = float(bytes_count)
    for unit in UNITS[:-1]:
        if abs(value) < 1024:
            return f"{value:.2f}{unit}"
        value /= 1024
    return f"{value:.2f}{UNITS[-1]}"


def readable_duration(seconds: float) -> str:
    """Format a duration in the largest of ns/µs/ms/s that keeps it >= 1."""
    nanos = seconds * 1e9
    if nanos < 1_000:
        return f"{nanos:.0f}ns"
    if nanos < 1_000_000:
        return f"{nanos / 1e3:.2f}µs"
    if nanos < 1_000_000_000:
        return f"{nanos / 1e6:.2f}ms"
    return f"{seconds:.2f}s"


def _line(console: Console, text: str) -> None:
    console.print(text, markup=False, highlight=False, soft_wrap=True)


def print_measurement(report: MemoryReport, console: Optional[Console] = None) -> None:
    console = console or Console()
    sampled, total = report.sampled, report.total
    _line(console, f"{report.label} {report.rows} rows with {report.sample_rows} rows sampled")
    _line(
        console,
        f"sampled alloc: {readable_size(sampled.alloc)}, sys: {readable_size(sampled.sys)}, "
        f"process: {readable_size(sampled.process)}, membuffer: {readable_size(report.buffer_size)}",
    )
    _line(
        console,
        f"total alloc: {readable_size(total.alloc)}, sys: {readable_size(total.sys)}, "
        f"process: {readable_size(total.process)}, membuffer: {readable_size(report.total_buffer_size)}",
    )


def print_isolation(report: IsolationReport, console: Optional[Console] = None) -> None:
    console = console or Console()
    _line(
        console,
        f"drop-{report.target.value}: {report.entries} entries in "
        f"{readable_duration(report.timing.duration_seconds)}, "
        f"membuffer {readable_size(report.size_before)} -> {readable_size(report.size_after)}",
    )


def print_phase(result: PhaseResult, console: Optional[Console] = None) -> None:
    """
    Render one phase: timing, every measurement, the isolation pass, and a
    summary table of the immediate measurement.
    """
    console = console or Console()
    timing = result.timing
    _line(
        console,
        f"sample {result.sample_rows} lines cost {readable_duration(timing.duration_seconds)}, "
        f"{readable_duration(timing.per_row_seconds)} per row",
    )
    cpu = f"{timing.cpu_percent:.1f}%" if timing.cpu_percent is not None else "n/a"
    _line(console, f"throughput {timing.throughput_rows_per_sec:,.0f} rows/s, cpu {cpu}")
    for report in result.measurements:
        print_measurement(report, console)
    if result.isolation is not None:
        print_isolation(result.isolation, console)

    if not result.measurements:
        return
    primary = result.measurements[0]
    table = Table(
        title=f"{result.mode} memory estimate",
        box=box.ROUNDED,
        caption=f"{result.sample_rows:,} of {result.rows:,} rows sampled (1 in {result.sample_rate:,})",
    )
    table.add_column("Dimension", style="cyan", no_wrap=True)
    table.add_column("Sampled", justify="right", style="magenta")
    table.add_column("Total", justify="right", style="bold green")
    table.add_column("Per row", justify="right", style="yellow")

    dimensions = [
        ("alloc", primary.sampled.alloc, primary.total.alloc),
        ("sys", primary.sampled.sys, primary.total.sys),
        ("process", primary.sampled.process, primary.total.process),
        ("membuffer", primary.buffer_size, primary.total_buffer_size),
    ]
    for name, sampled, total in dimensions:
        per_row = scale(sampled, 1, result.sample_rows)
        table.add_row(name, readable_size(sampled), readable_size(total), readable_size(per_row))

    console.print(table)


__all__ = [
    "UNITS",
    "print_isolation",
    "print_measurement",
    "print_phase",
    "readable_duration",
    "readable_size",
]
