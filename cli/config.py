from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 9000
DEFAULT_TIMEOUT = 10.0

_HOST_ENV = "SENSOR_LOG_HOST"
_PORT_ENV = "SENSOR_LOG_PORT"
_TIMEOUT_ENV = "SENSOR_LOG_TIMEOUT"


@dataclass(frozen=True)
class CLIConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    timeout: float = DEFAULT_TIMEOUT


def _read_float(value: Optional[str], default: float) -> float:
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_port(value: Optional[str], default: int) -> int:
    if value is None:
        return default
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    return parsed if 0 < parsed < 65536 else default


def load_config(
    host: Optional[str] = None,
    port: Optional[int] = None,
    timeout: Optional[float] = None,
) -> CLIConfig:
    # The server binds to SENSOR_LOG_HOST too; a wildcard address is not dialable.
    env_host = os.getenv(_HOST_ENV, "").strip()
    if env_host in {"", "0.0.0.0", "::"}:
        env_host = DEFAULT_HOST
    if port is None:
        port = _read_port(os.getenv(_PORT_ENV), DEFAULT_PORT)
    if timeout is None:
        timeout = _read_float(os.getenv(_TIMEOUT_ENV), DEFAULT_TIMEOUT)
    return CLIConfig(host=host or env_host, port=port, timeout=timeout)
