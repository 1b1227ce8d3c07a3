"""asyncio TCP listener and per-connection request/response sessions."""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Optional

from app.schemas import ErrorCode
from services.handler import RequestHandler, build_default_handler
from services.protocol import TERMINATOR, encode_error
from settings import get_settings

logger = logging.getLogger(__name__)


def _format_peer(peername: object) -> str:
    if isinstance(peername, tuple) and len(peername) >= 2:
        return f"{peername[0]}:{peername[1]}"
    return str(peername)


class SessionState(str, Enum):
    awaiting_request = "awaiting_request"
    dispatching = "dispatching"
    responding = "responding"
    closed = "closed"


class SensorSession:
    """Serves request frames from one connection until it fails or closes."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        handler: RequestHandler,
        executor: ThreadPoolExecutor,
    ) -> None:
        self.reader = reader
        self.writer = writer
        self.handler = handler
        self.executor = executor
        self.state = SessionState.awaiting_request
        self.peer = _format_peer(writer.get_extra_info("peername"))

    async def run(self) -> None:
        logger.info("Connection opened", extra={"peer": self.peer})
        try:
            while self.state is not SessionState.closed:
                frame = await self._read_frame()
                if frame is None:
                    break
                self.state = SessionState.dispatching
                response = await self._dispatch(frame)
                self.state = SessionState.responding
                await self._respond(response)
        finally:
            self.state = SessionState.closed
            await self._close()
            logger.info("Connection closed", extra={"peer": self.peer})

    async def _read_frame(self) -> Optional[bytes]:
        self.state = SessionState.awaiting_request
        try:
            return await self.reader.readuntil(TERMINATOR)
        except asyncio.IncompleteReadError:
            return None
        except asyncio.LimitOverrunError:
            logger.warning(
                "Request frame too large",
                extra={"peer": self.peer, "reason": "frame limit exceeded"},
            )
            await self._respond(encode_error(ErrorCode.malformed_request))
            return None
        except OSError as exc:
            logger.info("Read failed", extra={"peer": self.peer, "reason": str(exc)})
            return None

    async def _dispatch(self, frame: bytes) -> bytes:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, self.handler.handle, frame)

    async def _respond(self, response: bytes) -> None:
        try:
            self.writer.write(response)
            await self.writer.drain()
        except OSError as exc:
            logger.info("Write failed", extra={"peer": self.peer, "reason": str(exc)})
            self.state = SessionState.closed

    async def _close(self) -> None:
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except OSError as exc:
            logger.debug("Close failed", extra={"peer": self.peer, "reason": str(exc)})


class SensorLogServer:
    """Accepts connections and runs one ``SensorSession`` per connection."""

    def __init__(
        self,
        handler: RequestHandler,
        host: str,
        port: int,
        workers: int = 4,
        max_frame_bytes: int = 4096,
    ) -> None:
        self.handler = handler
        self.host = host
        self.requested_port = port
        self.max_frame_bytes = max_frame_bytes
        self.executor = ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="sensor-store"
        )
        self._server: Optional[asyncio.AbstractServer] = None

    @property
    def port(self) -> int:
        if self._server is None or not self._server.sockets:
            return self.requested_port
        return self._server.sockets[0].getsockname()[1]

    async def start(self) -> None:
        self._server = await asyncio.start_server(
            self._on_connection,
            host=self.host,
            port=self.requested_port,
            limit=self.max_frame_bytes,
        )
        logger.info("Listening on %s:%s", self.host, self.port)

    async def serve_forever(self) -> None:
        if self._server is None:
            await self.start()
        assert self._server is not None
        async with self._server:
            await self._server.serve_forever()

    async def close(self) -> None:
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        self.executor.shutdown(wait=False, cancel_futures=True)

    async def _on_connection(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        session = SensorSession(reader, writer, self.handler, self.executor)
        await session.run()


def build_default_server(port: int) -> SensorLogServer:
    settings = get_settings()
    return SensorLogServer(
        handler=build_default_handler(),
        host=settings.host,
        port=port,
        workers=settings.storage_workers,
        max_frame_bytes=settings.max_frame_bytes,
    )
