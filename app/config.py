"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from app.domain.order_ingestion import BatchPolicy
from db.config import load_env_files

DEFAULT_MAX_FILE_BYTES = 10 * 1024 * 1024


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _clamp_unit(value: float) -> float:
    return max(0.0, min(1.0, value))


@dataclass(frozen=True)
class OrderIngestionSettings:
    """
    Runtime settings for order CSV ingestion.
    """

    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES
    min_encoding_confidence: float = 0.3
    schema_match_threshold: float = 0.5
    hint_tolerance: float = 0.2
    max_error_samples: int = 5
    batch_policy: BatchPolicy = BatchPolicy.PARTIAL
    log_validation_errors: bool = True
    debug_mode: bool = False


def _parse_batch_policy(raw: str) -> BatchPolicy:
    normalized = raw.strip().lower().replace("-", "_")
    try:
        return BatchPolicy(normalized)
    except ValueError as exc:
        allowed = ", ".join(policy.value for policy in BatchPolicy)
        raise RuntimeError(
            f"ORDER_INGEST_BATCH_POLICY '{raw}' is not valid. Allowed values: {allowed}."
        ) from exc


@lru_cache(maxsize=1)
def get_order_ingestion_settings() -> OrderIngestionSettings:
    """
    Return cached order ingestion settings from environment variables.

    An unrecognised batch policy raises RuntimeError instead of silently
    falling back, so a deployment never runs under a policy it did not pick.
    """

    return OrderIngestionSettings(
        max_file_bytes=max(1, _get_int_env("ORDER_INGEST_MAX_FILE_BYTES", DEFAULT_MAX_FILE_BYTES)),
        min_encoding_confidence=_clamp_unit(
            _get_float_env("ORDER_INGEST_MIN_ENCODING_CONFIDENCE", 0.3)
        ),
        schema_match_threshold=_clamp_unit(
            _get_float_env("ORDER_INGEST_SCHEMA_MATCH_THRESHOLD", 0.5)
        ),
        hint_tolerance=_clamp_unit(_get_float_env("ORDER_INGEST_HINT_TOLERANCE", 0.2)),
        max_error_samples=max(1, _get_int_env("ORDER_INGEST_MAX_ERROR_SAMPLES", 5)),
        batch_policy=_parse_batch_policy(
            _get_str_env("ORDER_INGEST_BATCH_POLICY", BatchPolicy.PARTIAL.value)
        ),
        log_validation_errors=_get_bool_env("ORDER_INGEST_LOG_VALIDATION_ERRORS", True),
        debug_mode=_get_bool_env("ORDER_INGEST_DEBUG", False),
    )
