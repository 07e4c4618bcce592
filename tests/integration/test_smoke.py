"""
End-to-end CLI tests for txnmem.

These run the real typer app against schema files on disk and verify:
1. Each mode completes and prints sampled/total figures
2. Every failure category maps to its documented exit code
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List

import pytest
from typer.testing import CliRunner

from conftest import SBTEST_SQL
from txnmem.config import get_settings
from txnmem.main import app

EXIT_OK = 0
EXIT_CONFIG = 2
EXIT_PARSE = 3
EXIT_STORAGE = 4
EXIT_GENERATOR = 5

runner = CliRunner()


@pytest.fixture(autouse=True)
def _restore_root_logging():
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    yield
    root.handlers = saved_handlers
    root.setLevel(saved_level)


def _run(schema: Path, *extra: str):
    args: List[str] = [
        "run",
        "--schema",
        str(schema),
        "--settle",
        "0",
        "--rss-reader",
        "none",
        *extra,
    ]
    return runner.invoke(app, args)


@pytest.mark.parametrize("mode", ["insert", "update", "delete"])
def test_modes_run_sbtest(schema_file: Callable[[str], Path], mode: str):
    result = _run(schema_file(SBTEST_SQL), "--rows", "1000", "--sample", "100", "--mode", mode)
    assert result.exit_code == EXIT_OK, result.output
    assert f"{mode} 1000 rows with 10 rows sampled" in result.output
    assert f"{mode}-gc 1000 rows with 10 rows sampled" in result.output
    assert "total alloc:" in result.output
    assert "====== END ======" in result.output


def test_drop_key_run_reports_isolation(schema_file: Callable[[str], Path]):
    result = _run(schema_file(SBTEST_SQL), "--rows", "100", "--sample", "10", "--drop-key")
    assert result.exit_code == EXIT_OK, result.output
    assert "drop-key:" in result.output


def test_both_drop_flags_is_config_error(schema_file: Callable[[str], Path]):
    result = _run(schema_file(SBTEST_SQL), "--drop-key", "--drop-value")
    assert result.exit_code == EXIT_CONFIG
    assert "mutually exclusive" in result.output


def test_missing_schema_file_is_config_error(tmp_path: Path):
    result = _run(tmp_path / "absent.sql")
    assert result.exit_code == EXIT_CONFIG


def test_non_table_statement_is_parse_error(schema_file: Callable[[str], Path]):
    result = _run(schema_file("SELECT 1"), "--rows", "100", "--sample", "10")
    assert result.exit_code == EXIT_PARSE
    assert "SchemaParseError" in result.output


def test_unsupported_column_is_generator_error(schema_file: Callable[[str], Path]):
    result = _run(schema_file("CREATE TABLE t (id INT, doc JSON)"), "--rows", "100", "--sample", "10")
    assert result.exit_code == EXIT_GENERATOR
    assert "====== END ======" not in result.output


def test_duplicate_key_is_storage_error(schema_file: Callable[[str], Path]):
    result = _run(
        schema_file("CREATE TABLE t (c CHAR(1) PRIMARY KEY)"),
        "--rows",
        "300",
        "--sample",
        "1",
    )
    assert result.exit_code == EXIT_STORAGE
    assert "DuplicateKeyError" in result.output


def test_modes_command_lists_workloads():
    result = runner.invoke(app, ["modes"])
    assert result.exit_code == EXIT_OK
    for name in ("insert", "update", "delete"):
        assert f"{name}:" in result.output


def test_info_command_shows_settings():
    result = runner.invoke(app, ["info"])
    assert result.exit_code == EXIT_OK
    assert "rows=" in result.output
    assert "rss_reader=" in result.output


@pytest.fixture
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_no_drop_key_overrides_environment_default(
    schema_file: Callable[[str], Path], monkeypatch, fresh_settings
):
    monkeypatch.setenv("TXNMEM_DROP_KEY", "true")
    schema = schema_file(SBTEST_SQL)

    from_env = _run(schema, "--rows", "100", "--sample", "10")
    assert from_env.exit_code == EXIT_OK, from_env.output
    assert "drop-key:" in from_env.output

    switched_off = _run(schema, "--rows", "100", "--sample", "10", "--no-drop-key")
    assert switched_off.exit_code == EXIT_OK, switched_off.output
    assert "drop-key:" not in switched_off.output
