"""
Configuration settings for RawDb Bench.

Uses Pydantic Settings to load environment variables for database connections,
connection-provider tuning, logging, and benchmark runner defaults.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("benchmarkdbuser", alias="DB_USER")
    db_password: str = Field("benchmarkdbpass", alias="DB_PASSWORD")
    db_name: str = Field("hello_world", alias="DB_NAME")
    db_connect_timeout_s: int = Field(5, alias="DB_CONNECT_TIMEOUT_S")
    # 1 means a single attempt; retries are a hosting-layer decision.
    db_connect_attempts: int = Field(1, alias="DB_CONNECT_ATTEMPTS", ge=1)

    # Connection provider
    db_pooling: bool = Field(True, alias="DB_POOLING")
    db_pool_min_size: int = Field(1, alias="DB_POOL_MIN_SIZE")
    db_pool_max_size: int = Field(10, alias="DB_POOL_MAX_SIZE")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    json_logs: bool = Field(False, alias="JSON_LOGS")

    # Benchmark runner defaults
    benchmark_count: int = Field(20, alias="BENCHMARK_COUNT")
    benchmark_runs: int = Field(1, alias="BENCHMARK_RUNS")
    random_seed: Optional[int] = Field(None, alias="RANDOM_SEED")

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
