"""
Process-level settings for the query benchmark.

Uses Pydantic Settings to read MongoDB connection details, logging options and
benchmark defaults from the environment (or a `.env` file). Query definitions
themselves live in a separate configuration file, see `querybench.domain.loader`.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # MongoDB
    mongo_uri: str = Field("mongodb://localhost:27017", alias="MONGO_URI")
    mongo_database: str = Field("benchmark", alias="MONGO_DATABASE")
    mongo_pool_size: int = Field(10, alias="MONGO_POOL_SIZE")
    mongo_connect_timeout_ms: int = Field(5_000, alias="MONGO_CONNECT_TIMEOUT_MS")
    mongo_operation_timeout_ms: int = Field(30_000, alias="MONGO_OPERATION_TIMEOUT_MS")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Benchmark defaults
    benchmark_iterations: int = Field(10, alias="BENCHMARK_ITERATIONS")
    benchmark_warmup: int = Field(3, alias="BENCHMARK_WARMUP")
    benchmark_concurrency: int = Field(1, alias="BENCHMARK_CONCURRENCY")
    benchmark_sample_size: int = Field(1_000, alias="BENCHMARK_SAMPLE_SIZE")
    benchmark_run_timeout_seconds: Optional[float] = Field(
        None, alias="BENCHMARK_RUN_TIMEOUT_SECONDS"
    )
    results_dir: str = Field("results", alias="RESULTS_DIR")

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
