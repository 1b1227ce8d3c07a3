"""Binary record layout and text encodings for sensor readings.

Each stored record is a packed ``=32sqd`` struct: a NUL-padded UTF-8 sensor id,
signed 64-bit epoch seconds and an IEEE-754 double, all in the host's native
byte order. Files written on a machine with a different endianness cannot be
read back.
"""

from __future__ import annotations

import re
import struct
import time

from models.records import MAX_SENSOR_ID_BYTES, SensorReading

SENSOR_ID_FIELD_SIZE = MAX_SENSOR_ID_BYTES + 1
RECORD_FORMAT = f"={SENSOR_ID_FIELD_SIZE}sqd"
RECORD_SIZE = struct.calcsize(RECORD_FORMAT)

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"
_TIMESTAMP_SHAPE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}T[0-9]{2}:[0-9]{2}:[0-9]{2}")

_record = struct.Struct(RECORD_FORMAT)


class RecordFormatError(ValueError):
    """Raised when a byte block is not a valid encoded reading."""


def encode_reading(reading: SensorReading) -> bytes:
    raw_id = reading.sensor_id.encode("utf-8")
    if len(raw_id) > MAX_SENSOR_ID_BYTES:
        raise RecordFormatError(
            f"Sensor id {reading.sensor_id!r} exceeds {MAX_SENSOR_ID_BYTES} bytes."
        )
    try:
        return _record.pack(raw_id, reading.timestamp, reading.value)
    except struct.error as exc:
        raise RecordFormatError(str(exc)) from exc


def decode_reading(block: bytes) -> SensorReading:
    if len(block) != RECORD_SIZE:
        raise RecordFormatError(
            f"Expected a {RECORD_SIZE}-byte record, got {len(block)} bytes."
        )
    raw_id, timestamp, value = _record.unpack(block)
    try:
        sensor_id = raw_id.split(b"\x00", 1)[0].decode("utf-8")
    except UnicodeDecodeError as exc:
        raise RecordFormatError("Sensor id field is not valid UTF-8.") from exc
    return SensorReading(sensor_id=sensor_id, timestamp=timestamp, value=value)


def parse_timestamp(text: str) -> int:
    """Parse ``YYYY-MM-DDTHH:MM:SS`` in local time into epoch seconds."""
    # strptime alone accepts unpadded fields such as 2024-1-1T0:0:0.
    if _TIMESTAMP_SHAPE.fullmatch(text) is None:
        raise ValueError(f"Invalid timestamp {text!r}")
    try:
        parsed = time.strptime(text, TIMESTAMP_FORMAT)
    except ValueError as exc:
        raise ValueError(f"Invalid timestamp {text!r}") from exc
    # Let mktime resolve DST for the local zone.
    local = time.struct_time(parsed[:8] + (-1,))
    try:
        return int(time.mktime(local))
    except (OverflowError, OSError) as exc:
        raise ValueError(f"Timestamp {text!r} is out of range") from exc


def format_timestamp(epoch: int) -> str:
    return time.strftime(TIMESTAMP_FORMAT, time.localtime(epoch))


def format_value(value: float) -> str:
    return f"{value:f}"
