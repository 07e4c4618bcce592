"""
Infrastructure package for txnmem.

Hosts the in-process transactional key/value store whose write buffer is the
measurement target, plus the row/key codec and table layer on top of it. Keep
this layer free of measurement and reporting logic.
"""

from txnmem.infrastructure.storage import MemBuffer, MemStore, Session, Transaction
from txnmem.infrastructure.table import Handle, Table

__all__ = [
    "Handle",
    "MemBuffer",
    "MemStore",
    "Session",
    "Table",
    "Transaction",
]
