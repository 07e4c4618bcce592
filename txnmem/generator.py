"""
Deterministic synthetic row generation.

Each column gets its own ValueGenerator holding that column's counters; the
RowGenerator keeps them in a list addressed by column offset and assembles one
value per column into a fresh row on every call.

Integer, byte-string, duration and date/time columns are fully deterministic.
Float and decimal columns advance by a uniform random step in [0, 1) and are
therefore not reproducible unless a seeded ``random.Random`` is injected.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Sequence, Union

from txnmem.domain.models import ColumnKind, ColumnSpec
from txnmem.errors import UnsupportedColumnTypeError

EPOCH = datetime(1970, 1, 1)
TIME_STEP = timedelta(seconds=1)

Value = Union[int, float, Decimal, bytes, timedelta, datetime]
Row = List[Value]


def grow_bytes(buffer: bytearray) -> None:
    """
    Increment a big-endian base-256 counter in place.

    Overflow of the whole buffer wraps silently back to all zero bytes.
    """
    for i in range(len(buffer) - 1, -1, -1):
        if buffer[i] < 255:
            buffer[i] += 1
            return
        buffer[i] = 0


@dataclass
class GeneratorState:
    """Mutable counters for a single column."""

    uint_counter: int = 0
    int_counter: int = 0
    float_counter: float = 0.0
    byte_buffer: bytearray = field(default_factory=bytearray)
    time_cursor: datetime = EPOCH
    duration_cursor: timedelta = field(default_factory=timedelta)


class ValueGenerator:
    """
    Produces successive values for one column.
    """

    def __init__(self, column: ColumnSpec, rng: Optional[random.Random] = None) -> None:
        self.column = column
        self.state = GeneratorState()
        self._rng = rng if rng is not None else random.Random()
        if column.kind is ColumnKind.BYTES:
            self.state.byte_buffer = bytearray(max(column.declared_length, 1))

    def next_value(self) -> Value:
        state = self.state
        kind = self.column.kind
        if kind is ColumnKind.UNSIGNED_INT:
            state.uint_counter += 1
            return state.uint_counter
        if kind is ColumnKind.SIGNED_INT:
            state.int_counter += 1
            if state.int_counter % 2 == 0:
                return -state.int_counter
            return state.int_counter
        if kind is ColumnKind.FLOAT:
            state.float_counter += self._rng.random()
            return state.float_counter
        if kind is ColumnKind.DECIMAL:
            state.float_counter += self._rng.random()
            return Decimal(repr(state.float_counter))
        if kind is ColumnKind.BYTES:
            grow_bytes(state.byte_buffer)
            return bytes(state.byte_buffer)
        if kind is ColumnKind.DURATION:
            state.duration_cursor += TIME_STEP
            return state.duration_cursor
        if kind is ColumnKind.DATETIME:
            state.time_cursor += TIME_STEP
            return state.time_cursor
        raise UnsupportedColumnTypeError(
            f"Cannot generate values for column '{self.column.name}' "
            f"of type '{self.column.type_name or 'unknown'}'"
        )


class RowGenerator:
    """
    Builds full rows from one ValueGenerator per column.

    Parameters
    ----------
    columns : sequence of ColumnSpec
        Columns in schema order.
    rng : random.Random, optional
        Random source for float/decimal columns. Shared by those columns'
        generators; pass a seeded instance for reproducible runs.
    """

    def __init__(self, columns: Sequence[ColumnSpec], rng: Optional[random.Random] = None) -> None:
        rng = rng if rng is not None else random.Random()
        self.generators: List[ValueGenerator] = [ValueGenerator(col, rng) for col in columns]

    def next_row(self) -> Row:
        # Build fully before returning so a failing column never yields a partial row.
        return [gen.next_value() for gen in self.generators]


__all__ = [
    "EPOCH",
    "TIME_STEP",
    "GeneratorState",
    "Row",
    "RowGenerator",
    "Value",
    "ValueGenerator",
    "grow_bytes",
]
