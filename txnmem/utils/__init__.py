"""
Utilities package for txnmem.

Exports shared helpers for logging, timing and memory measurement.
Keep this package lightweight and free of storage or workload logic.
"""

from txnmem.utils.logging import configure_logging, get_logger
from txnmem.utils.memory import MemDiff, MemoryProbe, MemStage, sample_to_total
from txnmem.utils.profiler import ProfileStats, profile_block

__all__ = [
    "configure_logging",
    "get_logger",
    "MemDiff",
    "MemoryProbe",
    "MemStage",
    "sample_to_total",
    "ProfileStats",
    "profile_block",
]
