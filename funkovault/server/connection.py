"""
TCP server.

One request per connection: the server reads a single frame, answers with a
single response and closes. A fault on one connection is logged and never
affects the others or the server loop.
"""

import asyncio
import logging
from enum import Enum
from types import TracebackType

from funkovault.config import Settings
from funkovault.config import settings as default_settings
from funkovault.models.failure import KnownError
from funkovault.models.protocol import Response
from funkovault.server.codec import decode_request, encode_response, read_frame
from funkovault.server.dispatcher import RequestDispatcher

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    """Lifecycle of a single connection."""

    RECEIVING = "receiving"
    DISPATCHING = "dispatching"
    RESPONDING = "responding"
    CLOSED = "closed"


class ConnectionHandler:
    """Drives one connection from first byte to close."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        dispatcher: RequestDispatcher,
        settings: Settings,
    ):
        self.reader = reader
        self.writer = writer
        self.dispatcher = dispatcher
        self.settings = settings
        self.peer = writer.get_extra_info("peername")
        self.state = ConnectionState.RECEIVING

    async def run(self) -> None:
        logger.info("Client connected: %s", self.peer)
        try:
            response = await self._respond()
            self._set_state(ConnectionState.RESPONDING)
            self.writer.write(encode_response(response))
            await self.writer.drain()
        except ConnectionError as e:
            logger.warning("Connection with %s lost: %s", self.peer, e)
        except Exception:
            logger.exception("Unexpected error on connection with %s", self.peer)
        finally:
            await self._close()

    async def _respond(self) -> Response:
        try:
            raw = await read_frame(
                self.reader,
                max_bytes=self.settings.max_request_bytes,
                timeout=self.settings.idle_timeout,
            )
            request = decode_request(raw)
        except KnownError as e:
            logger.warning("Rejected request from %s: %s", self.peer, e.detail or e.message)
            return e.to_response()

        self._set_state(ConnectionState.DISPATCHING)
        return await self.dispatcher.dispatch(request)

    async def _close(self) -> None:
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except ConnectionError as e:
            logger.debug("Error closing connection with %s: %s", self.peer, e)
        self._set_state(ConnectionState.CLOSED)
        logger.info("Client disconnected: %s", self.peer)

    def _set_state(self, state: ConnectionState) -> None:
        logger.debug("Connection %s: %s -> %s", self.peer, self.state.value, state.value)
        self.state = state


class CollectionServer:
    """
    Asyncio TCP server for collection requests.

    Usable as an async context manager:

        async with CollectionServer(settings) as server:
            await server.serve_forever()
    """

    def __init__(
        self,
        settings: Settings | None = None,
        dispatcher: RequestDispatcher | None = None,
    ):
        self.settings = settings if settings is not None else default_settings
        self.dispatcher = (
            dispatcher if dispatcher is not None else RequestDispatcher(self.settings.data_dir)
        )
        self._server: asyncio.Server | None = None

    @property
    def port(self) -> int:
        """Port actually bound (differs from settings when binding port 0)."""
        if self._server is None or not self._server.sockets:
            return self.settings.port
        return int(self._server.sockets[0].getsockname()[1])

    async def start(self) -> None:
        if self._server is not None:
            return
        self._server = await asyncio.start_server(
            self._handle_connection,
            host=self.settings.host,
            port=self.settings.port,
        )
        logger.info(
            "%s listening on %s:%d", self.settings.app_name, self.settings.host, self.port
        )

    async def serve_forever(self) -> None:
        await self.start()
        assert self._server is not None
        await self._server.serve_forever()

    async def close(self) -> None:
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        logger.info("Server stopped")

    async def __aenter__(self) -> "CollectionServer":
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def _handle_connection(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        await ConnectionHandler(reader, writer, self.dispatcher, self.settings).run()
