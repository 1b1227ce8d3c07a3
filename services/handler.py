"""Dispatch of parsed protocol commands against the sensor store."""

from __future__ import annotations

import logging
from functools import lru_cache

from app.schemas import ErrorCode, GetCommand, LogCommand
from models.codec import format_timestamp, format_value
from services.protocol import (
    ProtocolError,
    encode_error,
    encode_invalid_sensor,
    encode_ok,
    encode_readings,
    parse_request,
)
from storage.sensor_store import (
    SensorStore,
    StorageError,
    UnknownSensorError,
    build_default_store,
)

logger = logging.getLogger(__name__)


class RequestHandler:
    """Turns one request frame into one response frame.

    Runs synchronously; callers on an event loop should push it onto a
    worker thread. Bad input never raises, it becomes an ``ERROR|...`` reply.
    """

    def __init__(self, store: SensorStore) -> None:
        self.store = store

    def handle(self, frame: bytes) -> bytes:
        try:
            command = parse_request(frame)
        except ProtocolError as exc:
            logger.warning(
                "Rejected request",
                extra={"command": exc.code.value, "reason": exc.reason},
            )
            return encode_error(exc.code)

        try:
            if isinstance(command, LogCommand):
                return self._log(command)
            return self._get(command)
        except StorageError as exc:
            logger.error(
                "Storage failure",
                extra={
                    "command": command.command.value,
                    "sensor_id": command.sensor_id,
                    "reason": str(exc),
                },
            )
            return encode_error(ErrorCode.storage_failure)

    def _log(self, command: LogCommand) -> bytes:
        reading = command.to_reading()
        total = self.store.append(reading)
        logger.info(
            "Saved reading",
            extra={
                "sensor_id": reading.sensor_id,
                "timestamp": format_timestamp(reading.timestamp),
                "value": format_value(reading.value),
                "record_count": total,
            },
        )
        return encode_ok()

    def _get(self, command: GetCommand) -> bytes:
        if not self.store.exists(command.sensor_id):
            return self._invalid_sensor(command)
        try:
            readings = self.store.read_suffix(command.sensor_id, command.count)
        except UnknownSensorError:
            return self._invalid_sensor(command)
        logger.debug(
            "Served readings",
            extra={"sensor_id": command.sensor_id, "record_count": len(readings)},
        )
        try:
            return encode_readings(readings)
        except (OverflowError, OSError, ValueError) as exc:
            # Stored timestamps outside the platform's localtime range.
            raise StorageError(f"Unrenderable record: {exc}") from exc

    def _invalid_sensor(self, command: GetCommand) -> bytes:
        logger.info(
            "Query for unknown sensor",
            extra={"command": command.command.value, "sensor_id": command.sensor_id},
        )
        return encode_invalid_sensor(command.sensor_id)


@lru_cache
def build_default_handler() -> RequestHandler:
    """Factory that wires the handler to the configured store."""
    return RequestHandler(store=build_default_store())
