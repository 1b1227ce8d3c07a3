from __future__ import annotations

import socket
from typing import List, NoReturn, Optional

import typer

from cli.config import CLIConfig
from models.records import SensorReading
from services.protocol import (
    TERMINATOR,
    encode_get_request,
    encode_log_request,
    parse_error_response,
    parse_get_response,
)


class SensorLogClient:
    """Minimal blocking client for the sensor log wire protocol."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._sock: Optional[socket.socket] = None
        self._buffer = b""

    def close(self) -> None:
        if self._sock is not None:
            self._sock.close()
            self._sock = None

    def log_reading(self, sensor_id: str, timestamp: str, value: float) -> None:
        response = self._request(encode_log_request(sensor_id, timestamp, value))
        parse_error_response(response)

    def get_readings(self, sensor_id: str, count: int) -> List[SensorReading]:
        response = self._request(encode_get_request(sensor_id, count))
        return parse_get_response(response, sensor_id)

    def _connect(self) -> socket.socket:
        if self._sock is None:
            address = (self._config.host, self._config.port)
            try:
                self._sock = socket.create_connection(address, timeout=self._config.timeout)
            except OSError as exc:
                self._fail(f"Unable to connect to {address[0]}:{address[1]}: {exc}")
        assert self._sock is not None
        return self._sock

    def _request(self, payload: bytes) -> bytes:
        sock = self._connect()
        try:
            sock.sendall(payload)
            return self._read_line(sock)
        except OSError as exc:
            self.close()
            self._fail(f"Connection error: {exc}")

    def _read_line(self, sock: socket.socket) -> bytes:
        while TERMINATOR not in self._buffer:
            chunk = sock.recv(4096)
            if not chunk:
                raise ConnectionResetError("server closed the connection")
            self._buffer += chunk
        line, _, self._buffer = self._buffer.partition(TERMINATOR)
        return line + TERMINATOR

    @staticmethod
    def _fail(message: str) -> NoReturn:
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
