"""
Delete workload: remove rows committed during setup by handle and before image.
"""

from __future__ import annotations

from txnmem.infrastructure.storage import Transaction
from txnmem.workloads.abstract import TwoPhaseWorkload, WorkloadContext


class DeleteWorkload(TwoPhaseWorkload):
    name: str = "delete"
    description: str = "Delete previously committed rows and their index entries."

    def execute(self, ctx: WorkloadContext, txn: Transaction, sample_rows: int) -> None:
        for handle, before in zip(self.handles, self.befores):
            ctx.table.remove_record(txn, handle, before)


__all__ = ["DeleteWorkload"]
