"""Request parsing and response encoding for the pipe-delimited wire protocol.

A frame is one line terminated by CRLF. Request fields are separated by ``|``::

    LOG|<sensor_id>|<YYYY-MM-DDTHH:MM:SS>|<value>
    GET|<sensor_id>|<count>

Every response is a single CRLF-terminated line.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple

from pydantic import ValidationError

from app.schemas import Command, CommandType, ErrorCode, GetCommand, LogCommand
from models.codec import format_timestamp, format_value, parse_timestamp
from models.records import SensorReading

TERMINATOR = b"\r\n"
DELIMITER = "|"
RECORD_SEPARATOR = ";"
ENCODING = "utf-8"

_FIELD_COUNTS = {
    CommandType.log: 4,
    CommandType.get: 3,
}


class ProtocolError(Exception):
    """Base class for requests that cannot be served."""

    code: ErrorCode = ErrorCode.malformed_request

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class UnknownCommandError(ProtocolError):
    code = ErrorCode.unknown_command


class MalformedRequestError(ProtocolError):
    code = ErrorCode.malformed_request


class ServerError(Exception):
    """Raised client-side when the server answers with ``ERROR|...``."""

    def __init__(self, code: str) -> None:
        super().__init__(code)
        self.code = code


def strip_terminator(frame: bytes) -> bytes:
    if frame.endswith(TERMINATOR):
        return frame[: -len(TERMINATOR)]
    return frame


def split_fields(payload: str) -> List[str]:
    return payload.split(DELIMITER)


def parse_request(frame: bytes) -> Command:
    """Decode one request frame into a validated command."""
    try:
        payload = strip_terminator(frame).decode(ENCODING)
    except UnicodeDecodeError as exc:
        raise MalformedRequestError("request is not valid UTF-8") from exc

    fields = split_fields(payload)
    try:
        command_type = CommandType(fields[0])
    except ValueError as exc:
        raise UnknownCommandError(f"unknown command {fields[0]!r}") from exc

    expected = _FIELD_COUNTS[command_type]
    if len(fields) != expected:
        raise MalformedRequestError(
            f"{command_type.value} expects {expected} fields, got {len(fields)}"
        )

    try:
        if command_type is CommandType.log:
            _, sensor_id, timestamp, value = fields
            return LogCommand(sensor_id=sensor_id, timestamp=timestamp, value=value)
        _, sensor_id, count = fields
        return GetCommand(sensor_id=sensor_id, count=count)
    except ValidationError as exc:
        raise MalformedRequestError(_summarize(exc)) from exc


def _summarize(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg')}")
    return "; ".join(parts)


def _frame(text: str) -> bytes:
    return text.encode(ENCODING) + TERMINATOR


def encode_ok() -> bytes:
    return _frame("OK")


def encode_error(code: ErrorCode, detail: str = "") -> bytes:
    return _frame(f"ERROR{DELIMITER}{code.value}{detail}")


def encode_invalid_sensor(sensor_id: str) -> bytes:
    return encode_error(ErrorCode.invalid_sensor, sensor_id)


def encode_readings(readings: Sequence[SensorReading]) -> bytes:
    parts = [str(len(readings))]
    parts.extend(
        f"{format_timestamp(reading.timestamp)}{DELIMITER}{format_value(reading.value)}"
        for reading in readings
    )
    return _frame(RECORD_SEPARATOR.join(parts))


# Client side


def encode_log_request(sensor_id: str, timestamp: str, value: float) -> bytes:
    return _frame(DELIMITER.join((CommandType.log.value, sensor_id, timestamp, repr(value))))


def encode_get_request(sensor_id: str, count: int) -> bytes:
    return _frame(DELIMITER.join((CommandType.get.value, sensor_id, str(count))))


def parse_error_response(line: bytes) -> None:
    """Raise ``ServerError`` if ``line`` is an ``ERROR|...`` response."""
    text = strip_terminator(line).decode(ENCODING, errors="replace")
    prefix = f"ERROR{DELIMITER}"
    if text.startswith(prefix):
        raise ServerError(text[len(prefix) :])


def parse_get_response(line: bytes, sensor_id: str) -> List[SensorReading]:
    parse_error_response(line)
    text = strip_terminator(line).decode(ENCODING)
    head, *entries = text.split(RECORD_SEPARATOR)
    try:
        expected = int(head)
    except ValueError as exc:
        raise ServerError(f"unexpected response {text!r}") from exc
    if expected != len(entries):
        raise ServerError(f"response announced {expected} records, got {len(entries)}")
    return [
        SensorReading(sensor_id=sensor_id, timestamp=timestamp, value=value)
        for timestamp, value in _split_entries(entries)
    ]


def _split_entries(entries: Iterable[str]) -> Iterable[Tuple[int, float]]:
    for entry in entries:
        timestamp, _, value = entry.partition(DELIMITER)
        try:
            yield parse_timestamp(timestamp), float(value)
        except ValueError as exc:
            raise ServerError(f"unexpected record {entry!r}") from exc
