"""WebSocket implementation of the local transport."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..constants import CONTROL_HOST, CONTROL_PORT, PEER_OUTBOUND_QUEUE_SIZE
from ..errors.internal import MalformedMessage
from .protocol import ControlMessage

if TYPE_CHECKING:  # pragma: no cover
    from ..session.manager import SessionManager

FLUSH_TIMEOUT = 5.0


class WebSocketPeer:
    """Local peer backed by a server-side WebSocket connection.

    Outbound messages go through a bounded queue drained by a writer task.
    A peer whose queue fills up is considered stalled and is closed.
    """

    def __init__(
        self,
        connection: ServerConnection,
        *,
        name: str | None = None,
        queue_size: int = PEER_OUTBOUND_QUEUE_SIZE,
    ) -> None:
        self.connection = connection
        self.name = name or f"{connection.remote_address}"
        self._outbox: asyncio.Queue[ControlMessage | None] = asyncio.Queue(
            maxsize=queue_size
        )
        self._writer = asyncio.create_task(self._write_loop(), name=f"peer-writer-{self.name}")
        self._closed = False
        self._close_task: asyncio.Task[None] | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    def post(self, message: ControlMessage) -> None:
        """Queue ``message`` for delivery without waiting for the socket.

        Messages posted after close are dropped. When the outbound queue is
        full the peer is treated as stalled: its writer is stopped and the
        connection is closed in the background.

        Args:
            message: Control message to send.
        """
        if self._closed:
            logging.debug(
                f"Dropping {message.command.value} for closed peer {self.name}"
            )
            return
        try:
            self._outbox.put_nowait(message)
        except asyncio.QueueFull:
            if self._close_task is not None:
                return
            logging.error(
                f"💥 Peer {self.name} stalled (outbox full size={self._outbox.maxsize}); closing"
            )
            self._writer.cancel()
            self._close_task = asyncio.create_task(self.close())

    async def _write_loop(self) -> None:
        while True:
            message = await self._outbox.get()
            if message is None:
                return
            try:
                await self.connection.send(message.to_json())
            except ConnectionClosed:
                logging.debug(f"Peer {self.name} went away while sending")
                return

    async def close(self) -> None:
        """Flush queued messages, then close the connection.

        Safe to call more than once. Messages still queued after
        ``FLUSH_TIMEOUT`` seconds are abandoned.
        """
        if self._closed:
            return
        self._closed = True
        if not self._writer.done():
            try:
                self._outbox.put_nowait(None)
            except asyncio.QueueFull:
                self._writer.cancel()
            _, pending = await asyncio.wait({self._writer}, timeout=FLUSH_TIMEOUT)
            for task in pending:
                task.cancel()
        try:
            await self.connection.close()
        except WebSocketException as e:
            logging.warning(f"⚠️ Peer {self.name} close error: {str(e)}")

    async def __aiter__(self) -> AsyncIterator[ControlMessage]:
        """Yield control messages received from the page.

        Undecodable frames are logged and skipped. Iteration ends when the
        connection closes, whether cleanly or not.

        Yields:
            Each decoded ``ControlMessage`` in arrival order.
        """
        try:
            async for frame in self.connection:
                try:
                    yield ControlMessage.from_json(frame)
                except MalformedMessage as e:
                    logging.warning(f"⚠️ Dropping control frame from {self.name}: {str(e)}")
        except ConnectionClosed as e:
            logging.debug(f"Peer {self.name} connection closed: {str(e)}")


class ControlServer:
    """Accepts page clients on a local WebSocket and hands them to the manager."""

    def __init__(
        self,
        manager: SessionManager,
        host: str = CONTROL_HOST,
        port: int = CONTROL_PORT,
    ) -> None:
        self.manager = manager
        self.host = host
        self.port = port
        self.server: Server | None = None

    async def _handle(self, connection: ServerConnection) -> None:
        peer = WebSocketPeer(connection)
        logging.info(f"🔗 Local peer connected {peer.name}")
        await self.manager.serve_peer(peer)

    async def start(self) -> Server:
        """Bind the listening socket.

        Port 0 picks a free port; ``self.port`` holds the bound one afterwards.

        Returns:
            The running websockets ``Server``.

        Raises:
            OSError: If the address cannot be bound.
        """
        self.server = await serve(self._handle, self.host, self.port)
        self.port = self.server.sockets[0].getsockname()[1]
        logging.info(f"🚀 Control server listening on ws://{self.host}:{self.port}")
        return self.server

    async def close(self) -> None:
        """Stop accepting connections and wait for the listener to close."""
        if self.server is not None:
            self.server.close()
            await self.server.wait_closed()
            self.server = None

    async def serve_forever(self) -> None:
        """Start the server and run until cancelled, closing it on the way out."""
        server = await self.start()
        try:
            await server.serve_forever()
        finally:
            await self.close()
