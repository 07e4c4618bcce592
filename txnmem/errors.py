"""
Error taxonomy for txnmem.

Every fatal condition derives from EstimatorError and carries the process exit
code the CLI terminates with. Probe failures are not represented here: they
are absorbed by the memory readers and surface only as zero readings.
"""

from __future__ import annotations


class EstimatorError(Exception):
    """Base class for all fatal estimator errors."""

    exit_code: int = 1


class ConfigError(EstimatorError):
    """Invalid run configuration (flags, counts, unreadable schema file)."""

    exit_code = 2


class SchemaParseError(EstimatorError):
    """Schema text is malformed or is not a single CREATE TABLE statement."""

    exit_code = 3


class StorageError(EstimatorError):
    """Failure reported by the transactional storage layer."""

    exit_code = 4


class NoActiveTransactionError(StorageError):
    pass


class DuplicateKeyError(StorageError):
    pass


class RecordNotFoundError(StorageError):
    pass


class TxnTooLargeError(StorageError):
    pass


class RowShapeError(StorageError):
    """Row or touched mask does not match the table's column count."""


class GeneratorError(EstimatorError):
    """Row generation cannot continue."""

    exit_code = 5


class UnsupportedColumnTypeError(GeneratorError):
    pass


__all__ = [
    "EstimatorError",
    "ConfigError",
    "SchemaParseError",
    "StorageError",
    "NoActiveTransactionError",
    "DuplicateKeyError",
    "RecordNotFoundError",
    "TxnTooLargeError",
    "RowShapeError",
    "GeneratorError",
    "UnsupportedColumnTypeError",
]
