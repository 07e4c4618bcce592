"""
Pytest configuration for txnmem.

Provides fixtures for:
- Hand-built table schemas (no SQL parsing involved)
- Schema files on disk for CLI runs
- Run configurations with the post-GC settle delay disabled
- A scripted process memory reader
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterable, List

import pytest

from txnmem.domain.models import ColumnKind, ColumnSpec, IndexSpec, TableSchema
from txnmem.driver import RunConfig

SBTEST_SQL = """
CREATE TABLE sbtest1 (
  id INT NOT NULL AUTO_INCREMENT,
  k INT DEFAULT '0' NOT NULL,
  c CHAR(120) DEFAULT '' NOT NULL,
  pad CHAR(60) DEFAULT '' NOT NULL,
  PRIMARY KEY (id),
  KEY k_1 (k)
);
"""


def column(name: str, kind: ColumnKind, length: int = -1) -> ColumnSpec:
    return ColumnSpec(
        name=name,
        kind=kind,
        type_name=kind.value,
        declared_length=length,
        unsigned=kind is ColumnKind.UNSIGNED_INT,
    )


class ScriptedReader:
    """Process memory reader returning queued RSS values, then repeating the last."""

    name = "scripted"

    def __init__(self, values: Iterable[int]) -> None:
        self._values: List[int] = list(values)
        self.calls = 0

    def read_rss(self) -> int:
        self.calls += 1
        if len(self._values) > 1:
            return self._values.pop(0)
        return self._values[0] if self._values else 0


@pytest.fixture
def uint_schema() -> TableSchema:
    """Single unsigned BIGINT column, no indexes."""
    return TableSchema(name="t", columns=(column("id", ColumnKind.UNSIGNED_INT),))


@pytest.fixture
def indexed_schema() -> TableSchema:
    """Unsigned primary key, signed secondary index and a byte payload."""
    return TableSchema(
        name="t",
        columns=(
            column("id", ColumnKind.UNSIGNED_INT),
            column("k", ColumnKind.SIGNED_INT),
            column("c", ColumnKind.BYTES, 8),
        ),
        indexes=(
            IndexSpec(name="PRIMARY", columns=("id",), unique=True, primary=True),
            IndexSpec(name="k_1", columns=("k",)),
        ),
    )


@pytest.fixture
def make_config() -> Callable[..., RunConfig]:
    """Factory for RunConfig with fast, quiet measurement defaults."""

    def _make(**overrides) -> RunConfig:
        values = {
            "schema_path": "unused.sql",
            "rows": 1000,
            "sample_rate": 100,
            "settle_seconds": 0.0,
            "rss_reader": "none",
        }
        values.update(overrides)
        return RunConfig(**values)

    return _make


@pytest.fixture
def schema_file(tmp_path: Path) -> Callable[[str], Path]:
    """Write schema text to a temporary file and return its path."""

    def _write(sql: str) -> Path:
        path = tmp_path / "schema.sql"
        path.write_text(sql, encoding="utf-8")
        return path

    return _write
