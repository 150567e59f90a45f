"""
Central configuration for the DRep sync pipeline.

Everything is read from environment variables (a local .env is loaded by
sync_runner.py via python-dotenv). Nothing here opens connections.

Koios:
  - KOIOS_BASE_URL (default: https://api.koios.rest/api/v1)
  - KOIOS_API_KEY (optional bearer token)

Database: DoltDB (MySQL-compatible). See drepscore/db/client.py:
  - DOLT_HOST, DOLT_PORT, DOLT_USER, DOLT_PASSWORD, DOLT_DATABASE

Sync tuning (all optional):
  - DREPSCORE_BATCH_SIZE, DREPSCORE_VOTE_CONCURRENCY,
    DREPSCORE_REQUEST_TIMEOUT, DREPSCORE_MAX_RETRIES,
    DREPSCORE_ERROR_RATE_THRESHOLD, DREPSCORE_TIME_BUDGET,
    DREPSCORE_UPSERT_BATCH_SIZE
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .constants import (
    FETCH_MAX_RETRIES,
    KOIOS_BATCH_SIZE,
    KOIOS_DEFAULT_BASE_URL,
    REQUEST_TIMEOUT_SECONDS,
    SYNC_TIME_BUDGET_SECONDS,
    UPSERT_BATCH_SIZE,
    UPSERT_ERROR_RATE_THRESHOLD,
    VOTE_CONCURRENCY,
)
from .errors import ConfigError

PROJECT_ROOT = Path(__file__).parent.parent


def get_koios_base_url() -> str:
    """Koios API base URL without trailing slash."""
    return os.environ.get("KOIOS_BASE_URL", KOIOS_DEFAULT_BASE_URL).rstrip("/")


def get_koios_api_key() -> Optional[str]:
    """Optional Koios bearer token (higher rate limits when set)."""
    return os.environ.get("KOIOS_API_KEY") or None


def get_config_dir() -> Path:
    """Directory holding YAML configuration (scoring weights)."""
    env_path = os.environ.get("DREPSCORE_CONFIG_DIR")
    if env_path:
        return Path(env_path).expanduser().resolve()
    return PROJECT_ROOT / "config"


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e


@dataclass
class SyncSettings:
    """Tuning knobs for one sync pass."""

    batch_size: int = KOIOS_BATCH_SIZE
    vote_concurrency: int = VOTE_CONCURRENCY
    request_timeout_seconds: float = REQUEST_TIMEOUT_SECONDS
    max_retries: int = FETCH_MAX_RETRIES
    error_rate_threshold: float = UPSERT_ERROR_RATE_THRESHOLD
    time_budget_seconds: float = SYNC_TIME_BUDGET_SECONDS
    upsert_batch_size: int = UPSERT_BATCH_SIZE

    def __post_init__(self):
        if self.batch_size < 1:
            raise ConfigError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.vote_concurrency < 1:
            raise ConfigError(f"vote_concurrency must be >= 1, got {self.vote_concurrency}")
        if self.upsert_batch_size < 1:
            raise ConfigError(f"upsert_batch_size must be >= 1, got {self.upsert_batch_size}")
        if not 0 < self.error_rate_threshold <= 1:
            raise ConfigError(f"error_rate_threshold must be in (0, 1], got {self.error_rate_threshold}")
        if self.max_retries < 0:
            raise ConfigError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.request_timeout_seconds <= 0:
            raise ConfigError(f"request_timeout_seconds must be > 0, got {self.request_timeout_seconds}")
        if self.time_budget_seconds <= 0:
            raise ConfigError(f"time_budget_seconds must be > 0, got {self.time_budget_seconds}")

    @classmethod
    def from_env(cls) -> "SyncSettings":
        """Build settings from DREPSCORE_* environment variables."""
        return cls(
            batch_size=_env_int("DREPSCORE_BATCH_SIZE", KOIOS_BATCH_SIZE),
            vote_concurrency=_env_int("DREPSCORE_VOTE_CONCURRENCY", VOTE_CONCURRENCY),
            request_timeout_seconds=_env_float("DREPSCORE_REQUEST_TIMEOUT", REQUEST_TIMEOUT_SECONDS),
            max_retries=_env_int("DREPSCORE_MAX_RETRIES", FETCH_MAX_RETRIES),
            error_rate_threshold=_env_float("DREPSCORE_ERROR_RATE_THRESHOLD", UPSERT_ERROR_RATE_THRESHOLD),
            time_budget_seconds=_env_float("DREPSCORE_TIME_BUDGET", SYNC_TIME_BUDGET_SECONDS),
            upsert_batch_size=_env_int("DREPSCORE_UPSERT_BATCH_SIZE", UPSERT_BATCH_SIZE),
        )
