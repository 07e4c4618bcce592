"""
Workload interfaces for txnmem.

A workload stages rows into the write buffer of an already-open transaction.
Its optional `prepare` step runs before measurement in a transaction of its
own, which it commits so setup cost never lands in the measured buffer.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import List, Protocol, runtime_checkable

from txnmem.generator import Row, RowGenerator
from txnmem.infrastructure.storage import Session, Transaction
from txnmem.infrastructure.table import Handle, Table
from txnmem.utils.logging import get_logger

log = get_logger(__name__)


@dataclass
class WorkloadContext:
    """Collaborators shared by every phase of one run."""

    session: Session
    table: Table
    rows: RowGenerator


@runtime_checkable
class WorkloadStrategy(Protocol):
    """
    Common interface all workloads implement.

    Attributes
    ----------
    name : str
        Mode name as given on the command line.
    description : str
        A human-friendly summary of what is measured.
    """

    name: str
    description: str

    def prepare(self, ctx: WorkloadContext, sample_rows: int) -> None:
        ...

    def execute(self, ctx: WorkloadContext, txn: Transaction, sample_rows: int) -> None:
        """
        Stage `sample_rows` operations into `txn`.
        """
        ...


class AbstractWorkload(abc.ABC):
    """
    ABC helper for class-based workloads.

    Subclasses set `name` and `description` and implement `execute`.
    """

    name: str
    description: str

    def prepare(self, ctx: WorkloadContext, sample_rows: int) -> None:
        """No setup by default."""

    @abc.abstractmethod
    def execute(self, ctx: WorkloadContext, txn: Transaction, sample_rows: int) -> None:  # pragma: no cover - interface only
        raise NotImplementedError


class TwoPhaseWorkload(AbstractWorkload):
    """
    Workload that operates on rows committed during `prepare`.

    Keeps the handles and the exact values written (the before images) until
    the workload object is released, so they stay alive through measurement.
    """

    def __init__(self) -> None:
        self.handles: List[Handle] = []
        self.befores: List[Row] = []

    def prepare(self, ctx: WorkloadContext, sample_rows: int) -> None:
        txn = ctx.session.new_txn()
        handles: List[Handle] = []
        befores: List[Row] = []
        for _ in range(sample_rows):
            row = ctx.rows.next_row()
            befores.append(row)
            handles.append(ctx.table.add_record(txn, row))
        ctx.session.commit_txn()
        self.handles, self.befores = handles, befores
        log.info(
            f"[SETUP] {self.name} baseline committed",
            extra={"mode": self.name, "rows": len(handles)},
        )


__all__ = [
    "AbstractWorkload",
    "TwoPhaseWorkload",
    "WorkloadContext",
    "WorkloadStrategy",
]
