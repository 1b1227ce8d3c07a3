from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


_DATA_DIR_ENV = "SENSOR_LOG_DATA_DIR"
_HOST_ENV = "SENSOR_LOG_HOST"
_WORKER_COUNT_ENV = "SENSOR_LOG_STORAGE_WORKERS"
_MAX_FRAME_ENV = "SENSOR_LOG_MAX_FRAME_BYTES"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    data_dir: str
    host: str
    storage_workers: int
    max_frame_bytes: int
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        data_dir=_read_str_env(_DATA_DIR_ENV, "."),
        host=_read_str_env(_HOST_ENV, "0.0.0.0"),
        storage_workers=_read_positive_int(_WORKER_COUNT_ENV, 4),
        max_frame_bytes=_read_positive_int(_MAX_FRAME_ENV, 4096),
        log_level=_read_log_level("INFO"),
    )
