"""
Key and row encoding for the in-process store.

Keys follow the usual record/index layout of row-oriented KV engines:

    row key:    b"t" <table_id> b"_r" <handle>
    index key:  b"t" <table_id> b"_i" <index_id> <encoded values> [<handle>]

Integers in keys are 8-byte big-endian with the sign bit flipped so keys sort
numerically. Row values are a version byte, a column count and one tagged
value per column.
"""

from __future__ import annotations

import struct
from datetime import timedelta
from decimal import Decimal
from typing import List, Sequence, Tuple

from txnmem.domain.models import ColumnKind, ColumnSpec
from txnmem.errors import StorageError
from txnmem.generator import EPOCH, Row, Value

ROW_FORMAT_VERSION = 0x80

_TAG_INT = 0x01
_TAG_UINT = 0x02
_TAG_FLOAT = 0x03
_TAG_DECIMAL = 0x04
_TAG_BYTES = 0x05
_TAG_DURATION = 0x06
_TAG_DATETIME = 0x07

_SIGN_MASK = 1 << 63
_MICROSECOND = timedelta(microseconds=1)

_ROW_HEADER = struct.Struct(">BH")
_INT64 = struct.Struct(">q")
_UINT64 = struct.Struct(">Q")
_FLOAT64 = struct.Struct(">d")
_LEN16 = struct.Struct(">H")
_LEN32 = struct.Struct(">I")


def encode_int_key(value: int) -> bytes:
    """Memcomparable encoding of a signed 64-bit integer."""
    if not -_SIGN_MASK <= value < _SIGN_MASK:
        raise StorageError(f"Key integer {value} out of 64-bit range")
    return _UINT64.pack(value + _SIGN_MASK)


def row_key(table_id: int, handle: int) -> bytes:
    return b"t" + encode_int_key(table_id) + b"_r" + encode_int_key(handle)


def index_key(table_id: int, index_id: int, encoded_values: bytes, handle: int | None = None) -> bytes:
    key = b"t" + encode_int_key(table_id) + b"_i" + encode_int_key(index_id) + encoded_values
    if handle is not None:
        key += encode_int_key(handle)
    return key


def encode_value(kind: ColumnKind, value: Value) -> bytes:
    """Tagged binary encoding of a single column value."""
    try:
        if kind is ColumnKind.SIGNED_INT:
            return bytes([_TAG_INT]) + _INT64.pack(value)
        if kind is ColumnKind.UNSIGNED_INT:
            return bytes([_TAG_UINT]) + _UINT64.pack(value)
        if kind is ColumnKind.FLOAT:
            return bytes([_TAG_FLOAT]) + _FLOAT64.pack(value)
        if kind is ColumnKind.DECIMAL:
            text = str(value).encode("ascii")
            return bytes([_TAG_DECIMAL]) + _LEN16.pack(len(text)) + text
        if kind is ColumnKind.BYTES:
            return bytes([_TAG_BYTES]) + _LEN32.pack(len(value)) + bytes(value)
        if kind is ColumnKind.DURATION:
            return bytes([_TAG_DURATION]) + _INT64.pack(value // _MICROSECOND)
        if kind is ColumnKind.DATETIME:
            return bytes([_TAG_DATETIME]) + _INT64.pack((value - EPOCH) // _MICROSECOND)
    except (struct.error, TypeError) as exc:
        raise StorageError(f"Cannot encode {kind.value} value {value!r}: {exc}") from exc
    raise StorageError(f"No encoding for column kind '{kind.value}'")


def decode_value(data: bytes, offset: int) -> Tuple[Value, int]:
    """Decode one tagged value starting at `offset`; returns (value, next offset)."""
    tag = data[offset]
    offset += 1
    if tag == _TAG_INT:
        return _INT64.unpack_from(data, offset)[0], offset + 8
    if tag == _TAG_UINT:
        return _UINT64.unpack_from(data, offset)[0], offset + 8
    if tag == _TAG_FLOAT:
        return _FLOAT64.unpack_from(data, offset)[0], offset + 8
    if tag == _TAG_DECIMAL:
        (length,) = _LEN16.unpack_from(data, offset)
        offset += 2
        return Decimal(data[offset : offset + length].decode("ascii")), offset + length
    if tag == _TAG_BYTES:
        (length,) = _LEN32.unpack_from(data, offset)
        offset += 4
        return bytes(data[offset : offset + length]), offset + length
    if tag == _TAG_DURATION:
        (micros,) = _INT64.unpack_from(data, offset)
        return timedelta(microseconds=micros), offset + 8
    if tag == _TAG_DATETIME:
        (micros,) = _INT64.unpack_from(data, offset)
        return EPOCH + timedelta(microseconds=micros), offset + 8
    raise StorageError(f"Unknown value tag 0x{tag:02x} at offset {offset - 1}")


def encode_row(columns: Sequence[ColumnSpec], row: Sequence[Value]) -> bytes:
    parts = [_ROW_HEADER.pack(ROW_FORMAT_VERSION, len(columns))]
    for column, value in zip(columns, row):
        parts.append(encode_value(column.kind, value))
    return b"".join(parts)


def decode_row(data: bytes) -> Row:
    version, count = _ROW_HEADER.unpack_from(data, 0)
    if version != ROW_FORMAT_VERSION:
        raise StorageError(f"Unsupported row format version 0x{version:02x}")
    offset = _ROW_HEADER.size
    row: List[Value] = []
    for _ in range(count):
        value, offset = decode_value(data, offset)
        row.append(value)
    return row


__all__ = [
    "ROW_FORMAT_VERSION",
    "decode_row",
    "decode_value",
    "encode_int_key",
    "encode_row",
    "encode_value",
    "index_key",
    "row_key",
]
