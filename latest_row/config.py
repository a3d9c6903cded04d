"""
Configuration settings for the latest-row strategy selector.

Uses Pydantic Settings to load environment variables for database connections,
logging, selector thresholds and benchmark defaults. Thresholds are read from
the environment so operators can retune the selector without code changes.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SelectorThresholds(BaseModel):
    """
    Cutoffs consumed by the strategy selector rules.
    """

    huge_dataset_rows: int = 1_000_000
    large_dataset_rows: int = 100_000
    small_dataset_rows: int = 10_000
    high_duplication: float = 5.0
    low_duplication: float = 3.0

    model_config = {"frozen": True}


class Settings(BaseSettings):
    # Database
    db_backend: Literal["postgres", "sqlite"] = Field("postgres", alias="DB_BACKEND")
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("achievements", alias="DB_NAME")
    sqlite_path: str = Field("achievements.sqlite3", alias="SQLITE_PATH")
    db_connect_attempts: int = Field(3, ge=1, alias="DB_CONNECT_ATTEMPTS")
    db_pool_min_size: int = Field(1, ge=0, alias="DB_POOL_MIN_SIZE")
    db_pool_max_size: int = Field(10, ge=1, alias="DB_POOL_MAX_SIZE")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Selector thresholds
    selector_huge_dataset_rows: int = Field(1_000_000, alias="SELECTOR_HUGE_DATASET_ROWS")
    selector_large_dataset_rows: int = Field(100_000, alias="SELECTOR_LARGE_DATASET_ROWS")
    selector_small_dataset_rows: int = Field(10_000, alias="SELECTOR_SMALL_DATASET_ROWS")
    selector_high_duplication: float = Field(5.0, alias="SELECTOR_HIGH_DUPLICATION")
    selector_low_duplication: float = Field(3.0, alias="SELECTOR_LOW_DUPLICATION")

    # Benchmark defaults
    benchmark_join_timeout_seconds: float = Field(
        10.0, gt=0, alias="BENCHMARK_JOIN_TIMEOUT_SECONDS"
    )
    benchmark_warmup: bool = Field(False, alias="BENCHMARK_WARMUP")
    benchmark_runs: int = Field(1, ge=1, alias="BENCHMARK_RUNS")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    def selector_thresholds(self) -> SelectorThresholds:
        """Bundle the selector cutoffs into a single immutable object."""
        return SelectorThresholds(
            huge_dataset_rows=self.selector_huge_dataset_rows,
            large_dataset_rows=self.selector_large_dataset_rows,
            small_dataset_rows=self.selector_small_dataset_rows,
            high_duplication=self.selector_high_duplication,
            low_duplication=self.selector_low_duplication,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["SelectorThresholds", "Settings", "get_settings"]
