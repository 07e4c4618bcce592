"""
Insert workload: every sampled row is a brand new record.
"""

from __future__ import annotations

from txnmem.infrastructure.storage import Transaction
from txnmem.workloads.abstract import AbstractWorkload, WorkloadContext


class InsertWorkload(AbstractWorkload):
    name: str = "insert"
    description: str = "Append freshly generated rows inside one transaction."

    def execute(self, ctx: WorkloadContext, txn: Transaction, sample_rows: int) -> None:
        for _ in range(sample_rows):
            ctx.table.add_record(txn, ctx.rows.next_row())


__all__ = ["InsertWorkload"]
