"""
Configuration settings for txnmem.

Uses Pydantic Settings to load environment variables (or a `.env` file) for
run defaults and logging. Command-line options override these per run; the
merged values are validated by `txnmem.driver.RunConfig`.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from txnmem.infrastructure.storage import DEFAULT_TXN_SIZE_LIMIT
from txnmem.utils.memory import DEFAULT_SETTLE_SECONDS


class Settings(BaseSettings):
    # Workload
    schema_path: str = Field("schemas/sbtest.sql", alias="TXNMEM_SCHEMA")
    rows: int = Field(1_000_000, alias="TXNMEM_ROWS")
    sample_rate: int = Field(10_000, alias="TXNMEM_SAMPLE")
    mode: str = Field("insert", alias="TXNMEM_MODE")
    dialect: str = Field("mysql", alias="TXNMEM_DIALECT")
    seed: Optional[int] = Field(None, alias="TXNMEM_SEED")

    # Isolation
    drop_key: bool = Field(False, alias="TXNMEM_DROP_KEY")
    drop_value: bool = Field(False, alias="TXNMEM_DROP_VALUE")

    # Measurement
    gc_settle_seconds: float = Field(DEFAULT_SETTLE_SECONDS, alias="TXNMEM_GC_SETTLE_SECONDS")
    rss_reader: str = Field("psutil", alias="TXNMEM_RSS_READER")
    txn_size_limit: int = Field(DEFAULT_TXN_SIZE_LIMIT, alias="TXNMEM_TXN_SIZE_LIMIT")

    # Application
    log_level: str = Field("WARNING", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
