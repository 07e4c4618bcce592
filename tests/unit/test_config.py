from __future__ import annotations

import pydantic
import pytest

from txnmem.config import Settings
from txnmem.driver import IsolationTarget, RunConfig, available_modes
from txnmem.errors import ConfigError

DEFAULT_ROWS = 1_000_000
DEFAULT_SAMPLE = 10_000


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


def test_settings_defaults(monkeypatch):
    for name in ("TXNMEM_ROWS", "TXNMEM_SAMPLE", "TXNMEM_MODE", "TXNMEM_DROP_KEY", "TXNMEM_DROP_VALUE"):
        monkeypatch.delenv(name, raising=False)
    settings = _settings()
    assert settings.rows == DEFAULT_ROWS
    assert settings.sample_rate == DEFAULT_SAMPLE
    assert settings.mode == "insert"
    assert settings.gc_settle_seconds == 1.0
    assert not settings.drop_key and not settings.drop_value


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("TXNMEM_ROWS", "5000")
    monkeypatch.setenv("TXNMEM_DROP_VALUE", "true")
    settings = _settings()
    assert settings.rows == 5000
    assert settings.drop_value


def test_available_modes():
    assert available_modes() == ["delete", "insert", "update"]


def test_sample_rows_uses_floor_division(make_config):
    assert make_config(rows=1000, sample_rate=300).sample_rows == 3


def test_isolation_target(make_config):
    assert make_config().isolation is None
    assert make_config(drop_key=True).isolation is IsolationTarget.KEY
    assert make_config(drop_value=True).isolation is IsolationTarget.VALUE


def test_drop_flags_are_mutually_exclusive(make_config):
    with pytest.raises(pydantic.ValidationError):
        make_config(drop_key=True, drop_value=True)


def test_from_settings_applies_overrides_and_skips_none():
    config = RunConfig.from_settings(
        _settings(TXNMEM_ROWS=2000, TXNMEM_SAMPLE=10),
        rows=None,
        mode="update",
        settle_seconds=0.0,
    )
    assert config.rows == 2000
    assert config.sample_rate == 10
    assert config.mode == "update"
    assert config.settle_seconds == 0.0


@pytest.mark.parametrize(
    "overrides",
    [
        {"drop_key": True, "drop_value": True},
        {"rows": 10, "sample_rate": 100},
        {"sample_rate": 0},
        {"mode": "upsert"},
        {"rss_reader": "procfs"},
    ],
)
def test_from_settings_raises_config_error(overrides):
    with pytest.raises(ConfigError) as excinfo:
        RunConfig.from_settings(_settings(), **overrides)
    assert excinfo.value.exit_code == 2
