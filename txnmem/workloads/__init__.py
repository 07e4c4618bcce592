"""
Workload strategies for txnmem.

Each module implements one measured mode (insert, update, delete) against the
WorkloadStrategy protocol defined in `abstract`.
"""

from txnmem.workloads.abstract import (
    AbstractWorkload,
    TwoPhaseWorkload,
    WorkloadContext,
    WorkloadStrategy,
)
from txnmem.workloads.delete import DeleteWorkload
from txnmem.workloads.insert import InsertWorkload
from txnmem.workloads.update import UpdateWorkload

__all__ = [
    "AbstractWorkload",
    "DeleteWorkload",
    "InsertWorkload",
    "TwoPhaseWorkload",
    "UpdateWorkload",
    "WorkloadContext",
    "WorkloadStrategy",
]
