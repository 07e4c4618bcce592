"""
Row-level table operations on top of a Transaction.

A record write stages one row entry plus one entry per index declared in the
schema, so the transaction buffer grows the way a real row store's would.
Handles are allocated from a per-table auto id and never reused.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import List, NewType, Optional, Sequence, Tuple

from txnmem.domain.models import IndexSpec, TableSchema
from txnmem.errors import DuplicateKeyError, RecordNotFoundError, RowShapeError, StorageError
from txnmem.generator import Row, Value
from txnmem.infrastructure.codec import decode_row, encode_int_key, encode_row, encode_value, index_key, row_key
from txnmem.infrastructure.storage import Transaction

Handle = NewType("Handle", int)

_NON_UNIQUE_INDEX_VALUE = b"0"


@dataclass(frozen=True)
class _BoundIndex:
    index_id: int
    spec: IndexSpec
    offsets: Tuple[int, ...]


class Table:
    """
    Record storage for one TableSchema.

    Parameters
    ----------
    schema : TableSchema
        Parsed table definition.
    table_id : int
        Prefix id used in every key of this table.
    """

    def __init__(self, schema: TableSchema, table_id: int = 1) -> None:
        self.schema = schema
        self.table_id = table_id
        self._handles = itertools.count(1)
        self._indexes: List[_BoundIndex] = []
        for index_id, spec in enumerate(schema.indexes, start=1):
            offsets = []
            for name in spec.columns:
                offset = schema.column_offset(name)
                if offset is None:
                    raise StorageError(f"Index '{spec.name}' references unknown column '{name}'")
                offsets.append(offset)
            self._indexes.append(_BoundIndex(index_id, spec, tuple(offsets)))

    def _check_row(self, row: Sequence[Value]) -> None:
        if len(row) != len(self.schema.columns):
            raise RowShapeError(
                f"Row has {len(row)} values, table '{self.schema.name}' has "
                f"{len(self.schema.columns)} columns"
            )

    def _index_entry(self, index: _BoundIndex, row: Sequence[Value], handle: int) -> Tuple[bytes, bytes]:
        columns = self.schema.columns
        encoded = b"".join(encode_value(columns[i].kind, row[i]) for i in index.offsets)
        if index.spec.unique:
            return index_key(self.table_id, index.index_id, encoded), encode_int_key(handle)
        return index_key(self.table_id, index.index_id, encoded, handle), _NON_UNIQUE_INDEX_VALUE

    def _check_unique(self, txn: Transaction, index: _BoundIndex, key: bytes) -> None:
        if index.spec.unique and txn.get(key) is not None:
            raise DuplicateKeyError(
                f"Duplicate entry for key '{index.spec.name}' in table '{self.schema.name}'"
            )

    def add_record(self, txn: Transaction, row: Sequence[Value]) -> Handle:
        """Stage a new row and its index entries; returns the row's handle."""
        self._check_row(row)
        handle = Handle(next(self._handles))
        entries = []
        for index in self._indexes:
            key, value = self._index_entry(index, row, handle)
            self._check_unique(txn, index, key)
            entries.append((key, value))
        txn.set(row_key(self.table_id, handle), encode_row(self.schema.columns, row))
        for key, value in entries:
            txn.set(key, value)
        return handle

    def update_record(
        self,
        txn: Transaction,
        handle: Handle,
        before: Sequence[Value],
        after: Sequence[Value],
        touched: Sequence[bool],
    ) -> None:
        """Replace the touched columns of an existing row."""
        self._check_row(before)
        self._check_row(after)
        if len(touched) != len(self.schema.columns):
            raise RowShapeError(
                f"Touched mask has {len(touched)} flags, expected {len(self.schema.columns)}"
            )
        key = row_key(self.table_id, handle)
        if txn.get(key) is None:
            raise RecordNotFoundError(f"No row with handle {handle} in table '{self.schema.name}'")

        merged = [new if flag else old for old, new, flag in zip(before, after, touched)]
        changes = []
        for index in self._indexes:
            if not any(touched[i] for i in index.offsets):
                continue
            old_key, _ = self._index_entry(index, before, handle)
            new_key, new_value = self._index_entry(index, merged, handle)
            if old_key == new_key:
                continue
            self._check_unique(txn, index, new_key)
            changes.append((old_key, new_key, new_value))

        txn.set(key, encode_row(self.schema.columns, merged))
        for old_key, new_key, new_value in changes:
            txn.delete(old_key)
            txn.set(new_key, new_value)

    def remove_record(self, txn: Transaction, handle: Handle, before: Sequence[Value]) -> None:
        """Stage deletes for a row and all of its index entries."""
        self._check_row(before)
        key = row_key(self.table_id, handle)
        if txn.get(key) is None:
            raise RecordNotFoundError(f"No row with handle {handle} in table '{self.schema.name}'")
        txn.delete(key)
        for index in self._indexes:
            index_entry_key, _ = self._index_entry(index, before, handle)
            txn.delete(index_entry_key)

    def get_row(self, txn: Transaction, handle: Handle) -> Optional[Row]:
        data = txn.get(row_key(self.table_id, handle))
        if data is None:
            return None
        return decode_row(data)


__all__ = ["Handle", "Table"]
