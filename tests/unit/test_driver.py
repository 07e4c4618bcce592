from __future__ import annotations

import logging

import pytest

from conftest import ScriptedReader, column
from txnmem.domain.models import ColumnKind, IndexSpec, TableSchema
from txnmem.driver import IsolationTarget, WorkloadDriver, isolate
from txnmem.errors import DuplicateKeyError, UnsupportedColumnTypeError
from txnmem.infrastructure.storage import TOMBSTONE, MemBuffer
from txnmem.infrastructure.table import Handle
from txnmem.utils.memory import MemoryProbe

TARGET_ROWS = 1000
SAMPLE_RATE = 100
SAMPLE_ROWS = 10
UINT_ENTRY_BYTES = 31
ROW_KEY_BYTES = 19
FLOAT_SEED = 7


def test_insert_end_to_end(uint_schema: TableSchema, make_config):
    driver = WorkloadDriver(uint_schema, make_config(rows=TARGET_ROWS, sample_rate=SAMPLE_RATE))
    result = driver.run()

    assert result.sample_rows == SAMPLE_ROWS
    txn = driver.session.txn()
    values = [driver.table.get_row(txn, Handle(i))[0] for i in range(1, SAMPLE_ROWS + 1)]
    assert values == list(range(1, SAMPLE_ROWS + 1))

    immediate, post_gc = result.measurements
    assert immediate.label == "insert"
    assert post_gc.label == "insert-gc"
    assert immediate.buffer_size == SAMPLE_ROWS * UINT_ENTRY_BYTES
    assert immediate.total_buffer_size == (immediate.buffer_size // SAMPLE_ROWS) * TARGET_ROWS
    assert result.estimated_buffer_bytes == immediate.total_buffer_size
    assert result.timing.rows == SAMPLE_ROWS
    assert result.isolation is None


def test_measurement_extrapolates_process_delta(uint_schema: TableSchema, make_config):
    probe = MemoryProbe(reader=ScriptedReader([1000, 1500]), settle_seconds=0)
    driver = WorkloadDriver(uint_schema, make_config(), probe=probe)
    immediate = driver.run().measurements[0]
    assert immediate.sampled.process == 500
    assert immediate.total.process == 500 * (TARGET_ROWS // SAMPLE_ROWS)


def test_update_measures_only_the_second_transaction(indexed_schema: TableSchema, make_config):
    driver = WorkloadDriver(indexed_schema, make_config(mode="update"))
    result = driver.run()

    # setup rows were committed: one row entry and two index entries each
    assert len(driver.session.store) == SAMPLE_ROWS * 3
    txn = driver.session.txn()
    assert driver.table.get_row(txn, Handle(1))[0] == SAMPLE_ROWS + 1
    # every column touched: row entry plus delete/insert for both indexes
    assert len(txn.get_mem_buffer()) == SAMPLE_ROWS * 5
    assert result.measurements[0].buffer_size == txn.size()


def test_delete_stages_tombstones(uint_schema: TableSchema, make_config):
    driver = WorkloadDriver(uint_schema, make_config(mode="delete"))
    result = driver.run()
    txn = driver.session.txn()
    staged = list(txn.get_mem_buffer())
    assert len(staged) == SAMPLE_ROWS
    assert all(value == TOMBSTONE for _, value in staged)
    assert result.measurements[0].buffer_size == SAMPLE_ROWS * ROW_KEY_BYTES


def test_drop_key_empties_buffer(uint_schema: TableSchema, make_config):
    driver = WorkloadDriver(uint_schema, make_config(drop_key=True))
    result = driver.run()
    assert list(driver.session.txn().get_mem_buffer()) == []
    assert result.isolation.target is IsolationTarget.KEY
    assert result.isolation.entries == SAMPLE_ROWS
    assert result.isolation.size_after == 0
    # primary measurement was taken before the isolation pass
    assert result.measurements[0].buffer_size == SAMPLE_ROWS * UINT_ENTRY_BYTES


def test_drop_value_keeps_keys(uint_schema: TableSchema, make_config):
    driver = WorkloadDriver(uint_schema, make_config(drop_value=True))
    result = driver.run()
    staged = list(driver.session.txn().get_mem_buffer())
    assert len(staged) == SAMPLE_ROWS
    assert all(value == b"" for _, value in staged)
    assert result.isolation.size_after == SAMPLE_ROWS * ROW_KEY_BYTES


@pytest.mark.parametrize("mode", ["insert", "update", "delete"])
def test_drop_value_preserves_exact_key_set(indexed_schema: TableSchema, make_config, mode):
    driver = WorkloadDriver(indexed_schema, make_config(mode=mode))
    driver.run()
    membuf = driver.session.txn().get_mem_buffer()
    keys_before = {key for key, _ in membuf}

    report = isolate(membuf, IsolationTarget.VALUE)

    assert {key for key, _ in membuf} == keys_before
    assert all(value == TOMBSTONE for _, value in membuf)
    assert report.entries == len(keys_before)
    assert report.size_after == sum(len(key) for key in keys_before)


def test_phase_complete_log_carries_throughput(uint_schema: TableSchema, make_config, caplog):
    caplog.set_level(logging.INFO, logger="txnmem.driver")
    result = WorkloadDriver(uint_schema, make_config()).run()
    complete = [r for r in caplog.records if r.getMessage() == "[PHASE COMPLETE] insert"]
    assert len(complete) == 1
    assert complete[0].rows_per_sec == result.timing.throughput_rows_per_sec
    assert complete[0].cpu_percent == result.timing.cpu_percent


def test_isolate_copies_keys_before_mutating():
    buf = MemBuffer()
    for i in range(5):
        buf.set(bytes([i + 1]), b"value")
    report = isolate(buf, IsolationTarget.KEY)
    assert report.entries == 5
    assert report.size_before == 30
    assert len(buf) == 0


def test_storage_error_aborts_run(make_config):
    schema = TableSchema(
        name="t",
        columns=(column("c", ColumnKind.BYTES, 1),),
        indexes=(IndexSpec(name="PRIMARY", columns=("c",), unique=True, primary=True),),
    )
    # a one-byte counter wraps after 256 rows and collides with the first key
    driver = WorkloadDriver(schema, make_config(rows=300, sample_rate=1))
    with pytest.raises(DuplicateKeyError):
        driver.run()


def test_generator_error_aborts_before_any_write(make_config):
    schema = TableSchema(
        name="t",
        columns=(column("id", ColumnKind.UNSIGNED_INT), column("doc", ColumnKind.UNSUPPORTED)),
    )
    driver = WorkloadDriver(schema, make_config(mode="update"))
    with pytest.raises(UnsupportedColumnTypeError):
        driver.run()
    assert len(driver.session.store) == 0


def test_seeded_runs_repeat_float_values(make_config):
    schema = TableSchema(name="t", columns=(column("f", ColumnKind.FLOAT),))
    first = WorkloadDriver(schema, make_config(seed=FLOAT_SEED))
    second = WorkloadDriver(schema, make_config(seed=FLOAT_SEED))
    first.run()
    second.run()
    handle = Handle(SAMPLE_ROWS)
    assert first.table.get_row(first.session.txn(), handle) == second.table.get_row(
        second.session.txn(), handle
    )
