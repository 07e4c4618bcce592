"""
Domain models for txnmem.

Describes a parsed table definition: one ColumnSpec per column plus the
indexes the storage layer maintains alongside each row. All models are frozen;
they are built once from the schema file and shared read-only for the whole
run.
"""
from __future__ import annotations

import enum
from typing import Optional, Tuple

from pydantic import BaseModel, Field

UNSPECIFIED_LENGTH = -1


class ColumnKind(str, enum.Enum):
    """Value families the row generator knows how to produce."""

    SIGNED_INT = "signed-int"
    UNSIGNED_INT = "unsigned-int"
    FLOAT = "float"
    DECIMAL = "decimal"
    BYTES = "byte-string"
    DURATION = "duration"
    DATETIME = "date-time"
    UNSUPPORTED = "unsupported"


class ColumnSpec(BaseModel):
    """
    Type descriptor of a single table column.
    """

    name: str = Field(..., description="Column name as declared.")
    kind: ColumnKind = Field(..., description="Generator dispatch tag.")
    type_name: str = Field(..., description="SQL type as written in the schema.")
    declared_length: int = Field(
        UNSPECIFIED_LENGTH, description="Declared length/width, -1 when absent."
    )
    unsigned: bool = Field(False, description="UNSIGNED attribute present.")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "arbitrary_types_allowed": False,
    }


class IndexSpec(BaseModel):
    """
    Primary key, unique key, or secondary index over one or more columns.
    """

    name: str
    columns: Tuple[str, ...]
    unique: bool = False
    primary: bool = False

    model_config = {"frozen": True}


class TableSchema(BaseModel):
    """
    A parsed CREATE TABLE statement.
    """

    name: str
    columns: Tuple[ColumnSpec, ...]
    indexes: Tuple[IndexSpec, ...] = ()

    model_config = {"frozen": True}

    def column_offset(self, name: str) -> Optional[int]:
        """Position of a column by case-insensitive name, or None."""
        lowered = name.lower()
        for offset, column in enumerate(self.columns):
            if column.name.lower() == lowered:
                return offset
        return None


__all__ = ["ColumnKind", "ColumnSpec", "IndexSpec", "TableSchema", "UNSPECIFIED_LENGTH"]
