"""
txnmem - memory estimator for transactional write buffers.

Parses one CREATE TABLE statement, synthesizes deterministic rows for it,
replays a sampled insert/update/delete workload against an in-process
transactional store, and extrapolates the measured memory cost to a target
row count. Measurements cover:

- Python allocator deltas (tracemalloc)
- Process resident memory deltas (psutil or ps)
- The exact byte size of the staged write buffer
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from txnmem.config import Settings, get_settings
from txnmem.domain import ColumnKind, ColumnSpec, TableSchema, load_schema, parse_schema
from txnmem.driver import PhaseResult, RunConfig, WorkloadDriver, available_modes
from txnmem.errors import EstimatorError
from txnmem.generator import RowGenerator, ValueGenerator
from txnmem.reporter import readable_size
from txnmem.utils.logging import configure_logging, get_logger
from txnmem.utils.memory import MemDiff, MemoryProbe, sample_to_total

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Schema
    "ColumnKind",
    "ColumnSpec",
    "TableSchema",
    "load_schema",
    "parse_schema",
    # Generation
    "RowGenerator",
    "ValueGenerator",
    # Driving
    "PhaseResult",
    "RunConfig",
    "WorkloadDriver",
    "available_modes",
    # Measurement
    "MemDiff",
    "MemoryProbe",
    "sample_to_total",
    "readable_size",
    # Errors and logging
    "EstimatorError",
    "configure_logging",
    "get_logger",
]
