"""Pydantic models for the wire protocol's request commands."""

from __future__ import annotations

from enum import Enum
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.codec import parse_timestamp
from models.records import SensorReading, validate_sensor_id


class CommandType(str, Enum):
    """First field of a request frame."""

    log = "LOG"
    get = "GET"


class ErrorCode(str, Enum):
    """Error tokens sent back as ``ERROR|<code>``."""

    unknown_command = "UNKNOWN_COMMAND"
    malformed_request = "MALFORMED_REQUEST"
    storage_failure = "STORAGE_FAILURE"
    invalid_sensor = "INVALID_SENSOR_"


class _Command(BaseModel):
    model_config = ConfigDict(frozen=True)

    sensor_id: str

    @field_validator("sensor_id")
    @classmethod
    def _check_sensor_id(cls, value: str) -> str:
        return validate_sensor_id(value)


class LogCommand(_Command):
    """Append one reading to a sensor's store."""

    command: Literal[CommandType.log] = CommandType.log
    timestamp: int
    value: float = Field(allow_inf_nan=False)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _parse_timestamp(cls, value: object) -> object:
        if isinstance(value, str):
            return parse_timestamp(value)
        return value

    @field_validator("value", mode="before")
    @classmethod
    def _reject_blank_value(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            raise ValueError("value is empty")
        return value

    def to_reading(self) -> SensorReading:
        return SensorReading(
            sensor_id=self.sensor_id, timestamp=self.timestamp, value=self.value
        )


class GetCommand(_Command):
    """Fetch the most recent ``count`` readings of a sensor."""

    command: Literal[CommandType.get] = CommandType.get
    count: int = Field(..., ge=0)

    @field_validator("count", mode="before")
    @classmethod
    def _require_decimal(cls, value: object) -> object:
        if isinstance(value, str) and not (value.isascii() and value.isdigit()):
            raise ValueError("count must be a non-negative integer")
        return value


Command = Union[LogCommand, GetCommand]
