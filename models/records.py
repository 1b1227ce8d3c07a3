"""Domain models shared across the server, storage and CLI."""

from __future__ import annotations

import re
from dataclasses import dataclass

MAX_SENSOR_ID_BYTES = 31

# Printable ASCII and any non-ASCII character, minus whitespace, the field
# delimiter and path separators. Sensor ids double as file names.
_SENSOR_ID_PATTERN = re.compile(r"^[^\s|/\\\x00-\x1f\x7f.][^\s|/\\\x00-\x1f\x7f]*$")


def validate_sensor_id(sensor_id: str) -> str:
    """Return ``sensor_id`` unchanged or raise ``ValueError`` if it cannot be stored."""
    if not sensor_id:
        raise ValueError("sensor id is empty")
    if len(sensor_id.encode("utf-8")) > MAX_SENSOR_ID_BYTES:
        raise ValueError(f"sensor id longer than {MAX_SENSOR_ID_BYTES} bytes")
    if not _SENSOR_ID_PATTERN.match(sensor_id):
        raise ValueError("sensor id contains unsupported characters")
    return sensor_id


@dataclass(slots=True, frozen=True)
class SensorReading:
    """A single timestamped measurement for one sensor."""

    sensor_id: str
    timestamp: int
    value: float
