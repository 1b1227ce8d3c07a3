from __future__ import annotations

import pytest

from app.schemas import ErrorCode, GetCommand, LogCommand
from models.records import SensorReading
from services.protocol import (
    MalformedRequestError,
    ServerError,
    UnknownCommandError,
    encode_error,
    encode_get_request,
    encode_invalid_sensor,
    encode_log_request,
    encode_ok,
    encode_readings,
    parse_get_response,
    parse_request,
)


def test_parse_log_request() -> None:
    command = parse_request(b"LOG|temp1|2024-01-01T00:00:00|21.5\r\n")

    assert isinstance(command, LogCommand)
    assert command.sensor_id == "temp1"
    assert command.timestamp == 1704067200
    assert command.value == 21.5
    assert command.to_reading() == SensorReading("temp1", 1704067200, 21.5)


def test_parse_get_request() -> None:
    command = parse_request(b"GET|temp1|5\r\n")

    assert isinstance(command, GetCommand)
    assert command.sensor_id == "temp1"
    assert command.count == 5


def test_parse_accepts_frame_without_terminator() -> None:
    command = parse_request(b"GET|temp1|0")

    assert isinstance(command, GetCommand)
    assert command.count == 0


@pytest.mark.parametrize("frame", [b"PUT|temp1|1\r\n", b"\r\n", b"log|temp1|x|1\r\n"])
def test_unknown_command(frame: bytes) -> None:
    with pytest.raises(UnknownCommandError) as excinfo:
        parse_request(frame)

    assert excinfo.value.code is ErrorCode.unknown_command


@pytest.mark.parametrize(
    "frame",
    [
        b"LOG\r\n",
        b"LOG|temp1\r\n",
        b"LOG|temp1|2024-01-01T00:00:00\r\n",
        b"LOG|temp1|2024-01-01T00:00:00|1.0|extra\r\n",
        b"GET\r\n",
        b"GET|temp1\r\n",
        b"GET|temp1|1|2\r\n",
    ],
)
def test_wrong_field_count_is_malformed(frame: bytes) -> None:
    with pytest.raises(MalformedRequestError):
        parse_request(frame)


@pytest.mark.parametrize(
    "frame",
    [
        b"LOG|temp1|not-a-time|1.0\r\n",
        b"LOG|temp1|2024-1-1T0:0:0|1.0\r\n",
        b"LOG|temp1|2024-01-01T00:00:00|abc\r\n",
        b"LOG|temp1|2024-01-01T00:00:00|\r\n",
        b"LOG|temp1|2024-01-01T00:00:00|nan\r\n",
        b"LOG|temp1|2024-01-01T00:00:00|inf\r\n",
        b"LOG||2024-01-01T00:00:00|1.0\r\n",
        b"LOG|" + b"x" * 32 + b"|2024-01-01T00:00:00|1.0\r\n",
        b"LOG|../etc|2024-01-01T00:00:00|1.0\r\n",
        b"LOG|a/b|2024-01-01T00:00:00|1.0\r\n",
        b"LOG|has space|2024-01-01T00:00:00|1.0\r\n",
        b"GET|temp1|-1\r\n",
        b"GET|temp1|ten\r\n",
        b"GET|temp1|\r\n",
        b"GET|temp1|1\xff\r\n",
    ],
)
def test_invalid_fields_are_malformed(frame: bytes) -> None:
    with pytest.raises(MalformedRequestError) as excinfo:
        parse_request(frame)

    assert excinfo.value.code is ErrorCode.malformed_request
    assert excinfo.value.reason


def test_sensor_id_of_31_bytes_is_accepted() -> None:
    command = parse_request(b"GET|" + b"x" * 31 + b"|1\r\n")

    assert command.sensor_id == "x" * 31


def test_every_response_is_crlf_terminated() -> None:
    readings = [
        SensorReading("temp1", 1704067200, 21.5),
        SensorReading("temp1", 1704067260, -3.25),
    ]

    assert encode_ok() == b"OK\r\n"
    assert encode_invalid_sensor("unknown_sensor") == b"ERROR|INVALID_SENSOR_unknown_sensor\r\n"
    assert encode_error(ErrorCode.unknown_command) == b"ERROR|UNKNOWN_COMMAND\r\n"
    assert encode_error(ErrorCode.storage_failure) == b"ERROR|STORAGE_FAILURE\r\n"
    assert encode_readings([]) == b"0\r\n"
    assert encode_readings(readings) == (
        b"2;2024-01-01T00:00:00|21.500000;2024-01-01T00:01:00|-3.250000\r\n"
    )


def test_client_request_encoding() -> None:
    assert encode_log_request("temp1", "2024-01-01T00:00:00", 21.5) == (
        b"LOG|temp1|2024-01-01T00:00:00|21.5\r\n"
    )
    assert encode_get_request("temp1", 3) == b"GET|temp1|3\r\n"


def test_parse_get_response() -> None:
    line = b"2;2024-01-01T00:00:00|21.500000;2024-01-01T00:01:00|-3.250000\r\n"

    assert parse_get_response(line, "temp1") == [
        SensorReading("temp1", 1704067200, 21.5),
        SensorReading("temp1", 1704067260, -3.25),
    ]
    assert parse_get_response(b"0\r\n", "temp1") == []


def test_parse_get_response_raises_on_error_line() -> None:
    with pytest.raises(ServerError) as excinfo:
        parse_get_response(b"ERROR|INVALID_SENSOR_temp9\r\n", "temp9")

    assert excinfo.value.code == "INVALID_SENSOR_temp9"


def test_parse_get_response_rejects_count_mismatch() -> None:
    with pytest.raises(ServerError):
        parse_get_response(b"3;2024-01-01T00:00:00|1.000000\r\n", "temp1")
