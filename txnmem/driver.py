"""
Workload driver: runs one measured phase and extrapolates its memory cost.

A phase is:
1. optional workload setup in its own committed transaction
2. a fresh transaction, a memory snapshot, the timed sample loop
3. an immediate diff and a post-GC diff against that snapshot, each paired
   with the transaction buffer size and projected onto the full row count
4. optionally, the drop-key / drop-value isolation pass over the buffer

Usage:
    from txnmem.driver import RunConfig, WorkloadDriver

    config = RunConfig(schema_path="schemas/sbtest.sql", rows=1_000_000, sample_rate=10_000)
    result = WorkloadDriver(load_schema(config.schema_path), config).run()
"""

from __future__ import annotations

import enum
import random
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from txnmem.config import Settings
from txnmem.domain.models import TableSchema
from txnmem.errors import ConfigError
from txnmem.generator import RowGenerator
from txnmem.infrastructure.storage import DEFAULT_TXN_SIZE_LIMIT, TOMBSTONE, MemBuffer, MemStore, Session
from txnmem.infrastructure.table import Table
from txnmem.utils.logging import get_logger
from txnmem.utils.memory import (
    DEFAULT_SETTLE_SECONDS,
    MemDiff,
    MemoryProbe,
    available_readers,
    make_reader,
    sample_to_total,
    scale,
)
from txnmem.utils.profiler import ProfileStats, profile_block
from txnmem.workloads import DeleteWorkload, InsertWorkload, UpdateWorkload
from txnmem.workloads.abstract import WorkloadContext, WorkloadStrategy

log = get_logger(__name__)


def _workload_factories() -> Dict[str, Callable[[], WorkloadStrategy]]:
    """Registry of available workload modes."""
    return {
        "insert": lambda: InsertWorkload(),
        "update": lambda: UpdateWorkload(),
        "delete": lambda: DeleteWorkload(),
    }


def available_modes() -> List[str]:
    """List available workload mode names."""
    return sorted(_workload_factories().keys())


def describe_modes() -> Dict[str, str]:
    return {name: factory().description for name, factory in sorted(_workload_factories().items())}


def _resolve_workload(name: str) -> WorkloadStrategy:
    factories = _workload_factories()
    if name not in factories:
        raise ConfigError(f"Mode '{name}' is not supported. Available: {', '.join(available_modes())}")
    return factories[name]()


class IsolationTarget(str, enum.Enum):
    KEY = "key"
    VALUE = "value"


class RunConfig(BaseModel):
    """
    Validated parameters of one run.
    """

    schema_path: Path
    rows: int = Field(..., ge=1)
    sample_rate: int = Field(..., ge=1)
    mode: str = "insert"
    drop_key: bool = False
    drop_value: bool = False
    settle_seconds: float = Field(DEFAULT_SETTLE_SECONDS, ge=0)
    rss_reader: str = "psutil"
    seed: Optional[int] = None
    txn_size_limit: int = Field(DEFAULT_TXN_SIZE_LIMIT, ge=1)
    dialect: str = "mysql"

    model_config = {"frozen": True}

    @field_validator("mode")
    @classmethod
    def _known_mode(cls, value: str) -> str:
        if value not in available_modes():
            raise ValueError(f"mode {value} is not supported, choose one of {', '.join(available_modes())}")
        return value

    @field_validator("rss_reader")
    @classmethod
    def _known_reader(cls, value: str) -> str:
        if value not in available_readers():
            raise ValueError(f"unknown RSS reader {value}, choose one of {', '.join(available_readers())}")
        return value

    @model_validator(mode="after")
    def _check_consistency(self) -> "RunConfig":
        if self.drop_key and self.drop_value:
            raise ValueError("drop-key and drop-value are mutually exclusive")
        if self.rows < self.sample_rate:
            raise ValueError(
                f"rows ({self.rows}) must be at least the sample rate ({self.sample_rate}) "
                "so that at least one row is sampled"
            )
        return self

    @property
    def sample_rows(self) -> int:
        return self.rows // self.sample_rate

    @property
    def isolation(self) -> Optional[IsolationTarget]:
        if self.drop_key:
            return IsolationTarget.KEY
        if self.drop_value:
            return IsolationTarget.VALUE
        return None

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> "RunConfig":
        """
        Merge environment defaults with per-run overrides (None means "not given").

        Raises
        ------
        ConfigError
            When the merged values do not validate.
        """
        values: Dict[str, Any] = {
            "schema_path": settings.schema_path,
            "rows": settings.rows,
            "sample_rate": settings.sample_rate,
            "mode": settings.mode,
            "drop_key": settings.drop_key,
            "drop_value": settings.drop_value,
            "settle_seconds": settings.gc_settle_seconds,
            "rss_reader": settings.rss_reader,
            "seed": settings.seed,
            "txn_size_limit": settings.txn_size_limit,
            "dialect": settings.dialect,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        try:
            return cls(**values)
        except ValidationError as exc:
            details = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}" for err in exc.errors()
            )
            raise ConfigError(f"Invalid configuration: {details}") from exc


@dataclass(frozen=True)
class MemoryReport:
    """Sampled and extrapolated figures of one measurement."""

    label: str
    rows: int
    sample_rows: int
    sampled: MemDiff
    total: MemDiff
    buffer_size: int
    total_buffer_size: int


def compare_with_mem_buffer(label: str, sampled: MemDiff, membuf: MemBuffer, n: int, sample_rows: int) -> MemoryReport:
    buffer_size = membuf.size()
    report = MemoryReport(
        label=label,
        rows=n,
        sample_rows=sample_rows,
        sampled=sampled,
        total=sample_to_total(sampled, n, sample_rows),
        buffer_size=buffer_size,
        total_buffer_size=scale(buffer_size, n, sample_rows),
    )
    log.info(
        f"[MEASURE] {label}",
        extra={
            "label": label,
            "sample_rows": sample_rows,
            "membuffer_bytes": buffer_size,
            "total_membuffer_bytes": report.total_buffer_size,
            "alloc_delta": sampled.alloc,
            "sys_delta": sampled.sys,
            "process_delta": sampled.process,
        },
    )
    return report


@dataclass(frozen=True)
class IsolationReport:
    target: IsolationTarget
    entries: int
    size_before: int
    size_after: int
    timing: ProfileStats


def isolate(membuf: MemBuffer, target: IsolationTarget) -> IsolationReport:
    """
    Drop every staged key (whole entries) or every staged value.

    Keys are copied out before mutating so the buffer is never changed while
    it is being iterated.
    """
    size_before = membuf.size()
    with profile_block(f"drop-{target.value}") as timing:
        keys = [key for key, _ in membuf]
        for key in keys:
            if target is IsolationTarget.KEY:
                membuf.discard(key)
            else:
                membuf.set(key, TOMBSTONE)
        timing.rows = len(keys)
    log.info(
        f"[ISOLATE] drop-{target.value}",
        extra={"entries": len(keys), "size_before": size_before, "size_after": membuf.size()},
    )
    return IsolationReport(
        target=target,
        entries=len(keys),
        size_before=size_before,
        size_after=membuf.size(),
        timing=timing,
    )


@dataclass
class PhaseResult:
    mode: str
    rows: int
    sample_rate: int
    sample_rows: int
    timing: ProfileStats
    measurements: List[MemoryReport] = field(default_factory=list)
    isolation: Optional[IsolationReport] = None

    @property
    def estimated_buffer_bytes(self) -> int:
        """Extrapolated buffer size from the immediate measurement."""
        return self.measurements[0].total_buffer_size if self.measurements else 0


class WorkloadDriver:
    """
    Runs a measured workload phase against an in-process store.

    Parameters
    ----------
    schema : TableSchema
        Parsed table definition.
    config : RunConfig
        Validated run parameters.
    probe : MemoryProbe, optional
        Memory snapshot source; built from the config when omitted.
    rng : random.Random, optional
        Random source for float/decimal columns; seeded from `config.seed`
        when omitted and a seed is configured.
    """

    def __init__(
        self,
        schema: TableSchema,
        config: RunConfig,
        probe: Optional[MemoryProbe] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.schema = schema
        self.config = config
        self.session = Session(MemStore(txn_size_limit=config.txn_size_limit))
        self.table = Table(schema)
        if rng is None:
            rng = random.Random(config.seed) if config.seed is not None else random.Random()
        self.rows = RowGenerator(schema.columns, rng)
        self.probe = probe or MemoryProbe(
            reader=make_reader(config.rss_reader), settle_seconds=config.settle_seconds
        )
        self.context = WorkloadContext(session=self.session, table=self.table, rows=self.rows)

    def run(self) -> PhaseResult:
        return self.run_mode(self.config.mode)

    def run_mode(self, mode: str) -> PhaseResult:
        """
        Execute one phase. Any storage or generator error propagates and
        abandons the open transaction.
        """
        workload = _resolve_workload(mode)
        n = self.config.rows
        sample_rows = self.config.sample_rows
        log.info(
            f"[PHASE START] {mode}",
            extra={"mode": mode, "rows": n, "sample_rate": self.config.sample_rate, "sample_rows": sample_rows},
        )

        with self.probe:
            workload.prepare(self.context, sample_rows)
            txn = self.session.new_txn()
            stage = self.probe.stage()
            with profile_block(mode, rows=sample_rows) as timing:
                workload.execute(self.context, txn, sample_rows)
            membuf = txn.get_mem_buffer()
            measurements = [
                compare_with_mem_buffer(mode, self.probe.diff(stage), membuf, n, sample_rows),
                compare_with_mem_buffer(f"{mode}-gc", self.probe.diff_after_gc(stage), membuf, n, sample_rows),
            ]
            isolation = None
            target = self.config.isolation
            if target is not None:
                isolation = isolate(membuf, target)

        log.info(
            f"[PHASE COMPLETE] {mode}",
            extra={
                "mode": mode,
                "duration": timing.duration_seconds,
                "sample_rows": sample_rows,
                "rows_per_sec": timing.throughput_rows_per_sec,
                "cpu_percent": timing.cpu_percent,
            },
        )
        return PhaseResult(
            mode=mode,
            rows=n,
            sample_rate=self.config.sample_rate,
            sample_rows=sample_rows,
            timing=timing,
            measurements=measurements,
            isolation=isolation,
        )


__all__ = [
    "IsolationReport",
    "IsolationTarget",
    "MemoryReport",
    "PhaseResult",
    "RunConfig",
    "WorkloadDriver",
    "available_modes",
    "compare_with_mem_buffer",
    "describe_modes",
    "isolate",
]
