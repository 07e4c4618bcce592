"""
Domain package for txnmem.

Exports the table/column descriptors and the schema parser that builds them.
Keep this package focused on data definitions and schema interpretation.
"""

from txnmem.domain.models import ColumnKind, ColumnSpec, IndexSpec, TableSchema
from txnmem.domain.schema import load_schema, parse_schema

__all__ = [
    "ColumnKind",
    "ColumnSpec",
    "IndexSpec",
    "TableSchema",
    "load_schema",
    "parse_schema",
]
