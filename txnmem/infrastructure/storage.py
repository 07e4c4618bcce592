"""
In-process transactional key/value store.

The store keeps committed data in a plain dict. Each transaction stages its
writes in a MemBuffer until commit; deletes are staged as tombstones (empty
values). The MemBuffer byte size (keys plus values of every staged entry) is
the ground-truth figure the estimator measures.

Usage:
    store = MemStore()
    session = Session(store)
    session.new_txn()
    session.txn().set(b"k", b"v")
    session.commit_txn()
"""

from __future__ import annotations

import itertools
from typing import Dict, Iterator, Optional, Tuple

from txnmem.errors import NoActiveTransactionError, StorageError, TxnTooLargeError
from txnmem.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_TXN_SIZE_LIMIT = 64 << 30
TOMBSTONE = b""


class MemBuffer:
    """
    Staged writes of one transaction, in insertion order.
    """

    def __init__(self) -> None:
        self._entries: Dict[bytes, bytes] = {}
        self._size = 0

    def get(self, key: bytes) -> Optional[bytes]:
        """Staged value, TOMBSTONE for a staged delete, None when not staged."""
        return self._entries.get(key)

    def set(self, key: bytes, value: bytes) -> None:
        previous = self._entries.get(key)
        if previous is not None:
            self._size -= len(key) + len(previous)
        self._entries[key] = value
        self._size += len(key) + len(value)

    def delete(self, key: bytes) -> None:
        self.set(key, TOMBSTONE)

    def discard(self, key: bytes) -> None:
        """Drop a staged entry entirely, as if it was never written."""
        previous = self._entries.pop(key, None)
        if previous is not None:
            self._size -= len(key) + len(previous)

    def size(self) -> int:
        return self._size

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[Tuple[bytes, bytes]]:
        # Live view: mutating the buffer while iterating raises RuntimeError.
        return iter(self._entries.items())


class Transaction:
    """
    A single optimistic transaction over a MemStore.
    """

    def __init__(self, store: "MemStore", txn_id: int) -> None:
        self.txn_id = txn_id
        self._store = store
        self._membuf = MemBuffer()
        self.valid = True

    def get_mem_buffer(self) -> MemBuffer:
        return self._membuf

    def size(self) -> int:
        return self._membuf.size()

    def get(self, key: bytes) -> Optional[bytes]:
        """Read through the staged writes to committed data; None when absent."""
        staged = self._membuf.get(key)
        if staged is not None:
            return staged or None
        return self._store.get(key)

    def set(self, key: bytes, value: bytes) -> None:
        self._check_valid()
        if not key:
            raise StorageError("Empty keys are not allowed")
        if not value:
            raise StorageError("Empty values are reserved for deletes")
        self._membuf.set(key, value)
        self._check_size()

    def delete(self, key: bytes) -> None:
        self._check_valid()
        self._membuf.delete(key)
        self._check_size()

    def commit(self) -> None:
        self._check_valid()
        self._store.apply(self._membuf)
        self.valid = False
        log.debug("Transaction committed", extra={"txn_id": self.txn_id, "entries": len(self._membuf)})

    def rollback(self) -> None:
        self.valid = False

    def _check_valid(self) -> None:
        if not self.valid:
            raise NoActiveTransactionError(f"Transaction {self.txn_id} is no longer active")

    def _check_size(self) -> None:
        limit = self._store.txn_size_limit
        if self._membuf.size() > limit:
            raise TxnTooLargeError(
                f"Transaction {self.txn_id} is too large: {self._membuf.size()} > {limit} bytes"
            )


class MemStore:
    """
    Committed key/value data plus transaction factory.
    """

    def __init__(self, txn_size_limit: int = DEFAULT_TXN_SIZE_LIMIT) -> None:
        self.txn_size_limit = txn_size_limit
        self._data: Dict[bytes, bytes] = {}
        self._txn_ids = itertools.count(1)

    def begin(self) -> Transaction:
        return Transaction(self, next(self._txn_ids))

    def get(self, key: bytes) -> Optional[bytes]:
        return self._data.get(key)

    def apply(self, membuf: MemBuffer) -> None:
        for key, value in membuf:
            if value == TOMBSTONE:
                self._data.pop(key, None)
            else:
                self._data[key] = value

    def __len__(self) -> int:
        return len(self._data)


class Session:
    """
    Holds the single active transaction of a run.
    """

    def __init__(self, store: MemStore) -> None:
        self.store = store
        self._txn: Optional[Transaction] = None

    def new_txn(self) -> Transaction:
        """Start a transaction, abandoning any uncommitted one."""
        if self._txn is not None and self._txn.valid:
            log.debug("Abandoning uncommitted transaction", extra={"txn_id": self._txn.txn_id})
            self._txn.rollback()
        self._txn = self.store.begin()
        return self._txn

    def txn(self) -> Transaction:
        if self._txn is None or not self._txn.valid:
            raise NoActiveTransactionError("No active transaction")
        return self._txn

    def commit_txn(self) -> None:
        txn = self.txn()
        txn.commit()
        self._txn = None


__all__ = [
    "DEFAULT_TXN_SIZE_LIMIT",
    "TOMBSTONE",
    "MemBuffer",
    "MemStore",
    "Session",
    "Transaction",
]
