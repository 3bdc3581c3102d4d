"""WebSocket connection to the Twitch chat server."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Protocol

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, WebSocketException

from ..constants import (
    TWITCH_IRC_WS_URL,
    UPSTREAM_CONNECT_ATTEMPTS,
    UPSTREAM_CONNECT_BACKOFF_MAX,
    UPSTREAM_CONNECT_TIMEOUT,
)
from ..errors.internal import MalformedMessage, NetworkError
from .message import IRCMessage, parse_irc_message

LINE_DELIMITER = "\r\n"


class UpstreamConnection(Protocol):
    """What the session manager needs from a chat server connection."""

    @property
    def closed(self) -> bool: ...

    async def connect(self) -> None: ...

    async def send_line(self, line: str) -> None: ...

    def messages(self) -> AsyncIterator[IRCMessage]: ...

    async def close(self) -> None: ...


def _redact(line: str) -> str:
    if line.startswith("PASS "):
        return "PASS ***"
    return line


class IRCWebSocketConnection:
    """Handles connection establishment, line framing and cleanup.

    Attributes:
        url (str): Chat server WebSocket URL.
        ws (ClientConnection | None): Active WebSocket connection.
    """

    def __init__(
        self,
        url: str = TWITCH_IRC_WS_URL,
        *,
        connect_timeout: float = UPSTREAM_CONNECT_TIMEOUT,
        connect_attempts: int = UPSTREAM_CONNECT_ATTEMPTS,
        backoff_multiplier: float = 1.0,
    ) -> None:
        self.url = url
        self.connect_timeout = connect_timeout
        self.connect_attempts = connect_attempts
        self.backoff_multiplier = backoff_multiplier
        self.ws: ClientConnection | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def connect(self) -> None:
        """Open the WebSocket, retrying transient failures with backoff.

        Raises:
            NetworkError: If every attempt failed.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.connect_attempts),
            wait=wait_exponential(
                multiplier=self.backoff_multiplier, max=UPSTREAM_CONNECT_BACKOFF_MAX
            ),
            retry=retry_if_exception_type(NetworkError),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logging.info(
                        f"🔄 Retrying chat connection attempt={attempt.retry_state.attempt_number}"
                    )
                await self._open_once()

    async def _open_once(self) -> None:
        if self._closed:
            raise NetworkError("Connection was closed before it opened")
        logging.info(f"🔌 Connecting to chat server at {self.url}")
        try:
            self.ws = await connect(self.url, open_timeout=self.connect_timeout)
        except (OSError, TimeoutError, WebSocketException) as e:
            logging.warning(f"⚠️ Chat connection failed: {type(e).__name__} {str(e)}")
            raise NetworkError(
                f"Chat connection failed: {str(e)}", data={"url": self.url}
            ) from e
        logging.info("🔌 Chat server connected")

    async def send_line(self, line: str) -> None:
        if self.ws is None or self._closed:
            raise NetworkError("Chat connection is not open")
        logging.debug(f"⬆️ {_redact(line)}")
        try:
            await self.ws.send(f"{line}{LINE_DELIMITER}")
        except ConnectionClosed as e:
            raise NetworkError(f"Chat connection closed while sending: {e}") from e

    async def messages(self) -> AsyncIterator[IRCMessage]:
        """Yield parsed messages until the connection closes.

        Frames may carry several lines. Lines that cannot be parsed are
        dropped with a warning.
        """
        ws = self.ws
        if ws is None:
            return
        try:
            async for frame in ws:
                if isinstance(frame, bytes):
                    frame = frame.decode("utf-8", errors="replace")
                for line in frame.split(LINE_DELIMITER):
                    if not line.strip():
                        continue
                    logging.debug(f"⬇️ {line}")
                    try:
                        message = parse_irc_message(line)
                    except MalformedMessage as e:
                        logging.warning(f"⚠️ Dropping malformed chat line: {str(e)}")
                        continue
                    yield message
        except ConnectionClosedError as e:
            logging.warning(f"⚠️ Chat connection closed abruptly: {str(e)}")

    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self.ws is not None:
            try:
                await self.ws.close()
            except WebSocketException as e:
                logging.warning(f"⚠️ Chat connection close error: {str(e)}")
            logging.info("🔌 Chat server disconnected")
