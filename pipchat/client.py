"""Page-side peer: requests a session and renders forwarded chat."""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable
from typing import Protocol, TextIO

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed

from .control.protocol import ControlCommand, ControlMessage
from .errors.internal import MalformedMessage
from .events import EventBus
from .irc.message import IRCMessage


class PresentationSink(Protocol):
    """Receives what the overlay should display."""

    def add_message(self, message: IRCMessage) -> None: ...

    def show_status(self, status: str) -> None: ...

    def show_error(self, reason: str, description: str) -> None: ...


class ConsoleSink:
    """Prints chat lines as ``nick: text``."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream or sys.stdout

    def add_message(self, message: IRCMessage) -> None:
        author = message.tags.get("display-name") or message.nickname or "?"
        print(f"{author}: {message.text}", file=self.stream, flush=True)

    def show_status(self, status: str) -> None:
        print(f"ℹ️ {status}", file=self.stream, flush=True)

    def show_error(self, reason: str, description: str) -> None:
        print(f"❌ {reason}: {description}", file=self.stream, flush=True)


class PeerClient:
    """Local peer talking to the session manager's control server.

    Sends ``CSYN`` for ``channel`` on connect and dispatches every control
    message it receives, publishing it on ``bus`` first.
    """

    def __init__(
        self,
        url: str,
        channel: str,
        sink: PresentationSink,
        *,
        bus: EventBus | None = None,
    ) -> None:
        self.url = url
        self.channel = channel
        self.sink = sink
        self.bus = bus or EventBus("peer")
        self.ws: ClientConnection | None = None
        self.session_accepted = False
        self.chat_connected = False
        self.finished = False
        self._handlers: dict[ControlCommand, Callable[[ControlMessage], Awaitable[None]]] = {
            ControlCommand.CACK: self._handle_cack,
            ControlCommand.CFIN: self._handle_cfin,
            ControlCommand.TCON: self._handle_tcon,
            ControlCommand.TIRC: self._handle_tirc,
            ControlCommand.TFIN: self._handle_tfin,
            ControlCommand.TERR: self._handle_terr,
        }

    async def run(self) -> None:
        """Connect, request the session and process messages until it ends."""
        async with connect(self.url) as ws:
            self.ws = ws
            logging.info(f"🔗 Connected to session manager at {self.url}")
            await self.send(ControlMessage(ControlCommand.CSYN, {"channel": self.channel}))
            try:
                async for frame in ws:
                    try:
                        message = ControlMessage.from_json(frame)
                    except MalformedMessage as e:
                        logging.warning(f"⚠️ Dropping control frame: {str(e)}")
                        continue
                    await self.handle_message(message)
                    if self.finished:
                        break
            except ConnectionClosed as e:
                logging.warning(f"⚠️ Session manager connection lost: {str(e)}")
            except asyncio.CancelledError:
                # Leaving the overlay ends the chat session too
                if not self.finished:
                    await self.end_session()
                raise
            finally:
                self.ws = None
                self.chat_connected = False

    async def send(self, message: ControlMessage) -> None:
        if self.ws is None:
            logging.debug(f"Not connected; cannot send {message.command.value}")
            return
        await self.ws.send(message.to_json())

    async def end_session(self) -> None:
        await self.send(ControlMessage(ControlCommand.CFIN))

    async def handle_message(self, message: ControlMessage) -> None:
        self.bus.publish(message.command.value, message)
        handler = self._handlers.get(message.command)
        if handler is None:
            logging.error(f"Unhandled command from session manager: {message.command.value}")
            return
        await handler(message)

    async def _handle_cack(self, message: ControlMessage) -> None:
        self.session_accepted = True
        self.sink.show_status(f"Session for #{self.channel} accepted")

    async def _handle_cfin(self, message: ControlMessage) -> None:
        self.finished = True
        self.session_accepted = False
        if self.ws is not None:
            await self.ws.close()
        logging.info("🔌 Session manager ended the session")

    async def _handle_tcon(self, message: ControlMessage) -> None:
        self.chat_connected = True
        self.sink.show_status(f"Connected to #{self.channel}")

    async def _handle_tirc(self, message: ControlMessage) -> None:
        try:
            irc_message = IRCMessage.from_dict(message.payload)
        except MalformedMessage as e:
            logging.warning(f"⚠️ Dropping forwarded chat message: {str(e)}")
            return
        self.sink.add_message(irc_message)

    async def _handle_tfin(self, message: ControlMessage) -> None:
        self.chat_connected = False
        self.sink.show_status("Chat connection closed")

    async def _handle_terr(self, message: ControlMessage) -> None:
        reason = str(message.payload.get("reason", "unknown"))
        description = str(message.payload.get("description", ""))
        logging.warning(f"⚠️ Session manager reported {reason}: {description}")
        self.sink.show_error(reason, description)
