"""
Update workload: full-row replace of rows committed during setup.

Every column is marked touched; partial-column updates are not modeled.
"""

from __future__ import annotations

from txnmem.infrastructure.storage import Transaction
from txnmem.workloads.abstract import TwoPhaseWorkload, WorkloadContext


class UpdateWorkload(TwoPhaseWorkload):
    name: str = "update"
    description: str = "Replace every column of previously committed rows."

    def execute(self, ctx: WorkloadContext, txn: Transaction, sample_rows: int) -> None:
        touched = [True] * len(ctx.table.schema.columns)
        for handle, before in zip(self.handles, self.befores):
            after = ctx.rows.next_row()
            ctx.table.update_record(txn, handle, before, after, touched)


__all__ = ["UpdateWorkload"]
