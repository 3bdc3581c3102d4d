"""Session manager bridging the local peer and the chat server."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any

from ..auth.oauth import OAuthBootstrap
from ..auth.validator import NicknameResolver
from ..constants import AUTH_MILESTONE_TIMEOUT, AUTHENTICATED_COMMAND, IRC_CAPABILITIES
from ..control.protocol import ControlCommand, ControlMessage, error_message
from ..control.transport import LocalPeer
from ..errors.handling import log_error
from ..errors.internal import (
    InvalidPayload,
    InvalidState,
    PipChatError,
    UpstreamProtocolError,
)
from ..events import EventBus
from ..irc.connection import UpstreamConnection
from ..irc.message import IRCMessage, build_irc_line
from .state import SessionPhase, SessionState

UpstreamFactory = Callable[[], UpstreamConnection]

CHAT_COMMAND = "PRIVMSG"
UPSTREAM_CLOSE_TIMEOUT = 5.0


def normalize_channel(channel: Any) -> str:
    if not isinstance(channel, str):
        return ""
    return channel.strip().lstrip("#").lower()


class SessionManager:
    """Owns at most one local peer and at most one chat server connection.

    Every state transition runs on the event loop between awaits, so
    handlers never mutate ``state`` concurrently. The chat connection is
    driven by one task per session attempt (connect, OAuth, login, read).
    """

    def __init__(
        self,
        upstream_factory: UpstreamFactory,
        oauth: OAuthBootstrap,
        nickname_resolver: NicknameResolver,
        *,
        auth_timeout: float = AUTH_MILESTONE_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
        bus: EventBus | None = None,
    ) -> None:
        self.upstream_factory = upstream_factory
        self.oauth = oauth
        self.nickname_resolver = nickname_resolver
        self.auth_timeout = auth_timeout
        self.clock = clock
        self.bus = bus or EventBus("session")
        self.state = SessionState()
        self._upstream_task: asyncio.Task[None] | None = None
        self._authenticated: asyncio.Event | None = None
        self._pending_lines: deque[str] = deque()
        self._control_handlers: dict[
            ControlCommand,
            Callable[[ControlMessage, LocalPeer | None], Awaitable[None]],
        ] = {
            ControlCommand.CSYN: self._handle_csyn,
            ControlCommand.CFIN: self._handle_cfin,
        }
        self._irc_handlers: dict[str, Callable[[IRCMessage], None]] = {
            "NOTICE": self._handle_notice,
            "RECONNECT": self._handle_reconnect,
        }

    # ------------------------------------------------------------------
    # Local peer lifecycle
    # ------------------------------------------------------------------
    async def serve_peer(self, peer: LocalPeer) -> None:
        """Attach ``peer`` and dispatch its messages until it disconnects.

        The peer is detached and closed when its message stream ends or when
        a newer peer evicts it. The chat session is left running either way.

        Args:
            peer: Freshly connected local peer.
        """
        await self.attach_peer(peer)
        try:
            async for message in peer:
                if self.state.peer is not peer:
                    break
                await self.handle_control_message(message, origin=peer)
        finally:
            self._on_peer_disconnect(peer)
            await peer.close()

    async def attach_peer(self, peer: LocalPeer) -> None:
        """Attach ``peer``, evicting the current one first.

        The evicted peer receives ``CFIN`` and is closed before this returns,
        so nothing the new peer sends is handled until eviction completed.

        Args:
            peer: Peer taking over the local end of the session.
        """
        previous = self.state.peer
        if previous is not None:
            logging.warning(
                f"⚠️ Only one local peer is allowed; evicting {previous.name} for {peer.name}"
            )
            previous.post(ControlMessage(ControlCommand.CFIN))
            self._on_peer_disconnect(previous)
        self.state.peer = peer
        self.state.local_peer_connected = True
        logging.info(f"🔗 Local peer attached {peer.name}")
        if previous is not None:
            await previous.close()

    def _on_peer_disconnect(self, peer: LocalPeer) -> None:
        if self.state.peer is not peer:
            return
        self.state.peer = None
        self.state.local_peer_connected = False
        # Upstream is left running; only CFIN ends the chat session
        logging.info(
            f"🔌 Local peer detached {peer.name} upstream_connected={self.state.upstream_connected}"
        )

    def _reply(self, origin: LocalPeer | None, message: ControlMessage) -> None:
        # A peer evicted while its command was in flight gets no answer
        if origin is not None and self.state.peer is not origin:
            logging.debug(
                f"Peer {origin.name} was detached; dropping reply {message.command.value}"
            )
            return
        self._post(message)

    def _post(self, message: ControlMessage) -> None:
        peer = self.state.peer
        if peer is None:
            logging.debug(f"No local peer; dropping {message.command.value}")
            return
        peer.post(message)

    # ------------------------------------------------------------------
    # Control protocol
    # ------------------------------------------------------------------
    async def handle_control_message(
        self, message: ControlMessage, origin: LocalPeer | None = None
    ) -> None:
        """Publish ``message`` on the bus, then run its handler.

        Replies (``CACK``, ``CFIN``, ``TERR``) go to ``origin`` only while it is
        still the attached peer. Without ``origin`` they go to whichever peer
        is attached.

        Args:
            message: Decoded control message received from a local peer.
            origin: Peer that sent ``message``.
        """
        logging.debug(f"📥 Control command {message.command.value}")
        self.bus.publish(message.command.value, message)
        handler = self._control_handlers.get(message.command)
        if handler is None:
            logging.warning(
                f"⚠️ Unhandled control command {message.command.value}; dropping"
            )
            return
        try:
            await handler(message, origin)
        except (InvalidState, InvalidPayload) as e:
            log_error(
                f"Rejected control command {message.command.value}",
                e,
                context={"phase": self.state.phase.name},
                level=logging.WARNING,
            )
            self._reply(origin, error_message(e.reason, str(e)))

    async def _handle_csyn(
        self, message: ControlMessage, origin: LocalPeer | None
    ) -> None:
        if self.state.upstream is not None:
            raise InvalidState(
                f"A chat session is already open for #{self.state.channel}"
            )
        channel = normalize_channel(message.payload.get("channel"))
        if not channel:
            raise InvalidPayload("CSYN requires a non-empty channel")

        connection = self.upstream_factory()
        self.state.attach_upstream(connection, channel)
        self._authenticated = asyncio.Event()
        self._pending_lines.clear()
        self.bus.subscribe(AUTHENTICATED_COMMAND, self._on_authenticated, once=True)
        logging.info(f"💬 Opening chat session for #{channel}")
        self._upstream_task = asyncio.create_task(
            self._run_upstream(connection), name=f"upstream-{channel}"
        )
        # Acknowledges the request, not the connection
        self._reply(origin, ControlMessage(ControlCommand.CACK))

    async def _handle_cfin(
        self, message: ControlMessage, origin: LocalPeer | None
    ) -> None:
        connection = self.state.upstream
        if connection is None:
            raise InvalidState("No chat session is open")
        await self._end_upstream(connection)
        self._reply(origin, ControlMessage(ControlCommand.CFIN))

    async def _end_upstream(self, connection: UpstreamConnection) -> None:
        """Part the channel when joined, stop a pending login and close."""
        task = self._upstream_task
        if self.state.upstream_connected and self.state.channel:
            try:
                await connection.send_line(build_irc_line("PART", f"#{self.state.channel}"))
            except PipChatError as e:
                log_error("Failed to part channel", e, level=logging.WARNING)
        if (
            self.state.upstream_phase is SessionPhase.AUTH_PENDING
            and task is not None
            and not task.done()
        ):
            task.cancel()
        await connection.close()
        if task is not None and task is not asyncio.current_task():
            await asyncio.wait({task}, timeout=UPSTREAM_CLOSE_TIMEOUT)

    # ------------------------------------------------------------------
    # Upstream lifecycle
    # ------------------------------------------------------------------
    async def _run_upstream(self, connection: UpstreamConnection) -> None:
        """Drive one session attempt from connect to close.

        Any failure is reported to the peer as ``TERR`` and the connection is
        closed; ``TFIN`` follows from the close in every case.
        """
        try:
            await connection.connect()
            token = await self.oauth.run()
            nickname = await self.nickname_resolver(token)
            await connection.send_line(build_irc_line("CAP", "REQ", IRC_CAPABILITIES))
            await connection.send_line(build_irc_line("PASS", f"oauth:{token}"))
            await connection.send_line(build_irc_line("NICK", nickname.lower()))
            if self.state.upstream is connection:
                self.state.upstream_phase = SessionPhase.UPSTREAM_JOINING
            watchdog = asyncio.create_task(self._await_authenticated(connection))
            try:
                async for message in connection.messages():
                    await self._on_irc_message(connection, message)
            finally:
                watchdog.cancel()
        except PipChatError as e:
            log_error(
                "Chat session attempt aborted",
                e,
                context={"channel": self.state.channel},
            )
            if self.state.upstream is connection:
                self._post(error_message(e.reason, str(e)))
        except Exception as e:  # noqa: BLE001
            log_error("Unexpected chat session failure", e)
            if self.state.upstream is connection:
                self._post(error_message("internal_error", str(e)))
        finally:
            await connection.close()
            self._on_upstream_closed(connection)

    async def _await_authenticated(self, connection: UpstreamConnection) -> None:
        event = self._authenticated
        if event is None:
            return
        try:
            await asyncio.wait_for(event.wait(), timeout=self.auth_timeout)
        except TimeoutError:
            if self.state.upstream is not connection:
                return
            logging.error(
                f"⏱️ Chat server did not confirm login within {self.auth_timeout:g}s"
            )
            self._post(
                error_message(
                    "auth_timeout",
                    f"Chat server did not confirm login within {self.auth_timeout:g}s",
                )
            )
            await connection.close()

    async def _on_irc_message(
        self, connection: UpstreamConnection, message: IRCMessage
    ) -> None:
        if self.state.upstream is not connection:
            return
        self.state.last_upstream_activity = self.clock()
        if message.command == "PING":
            # Answered before anything else queued for this message
            await connection.send_line(f"PONG :{message.text or 'tmi.twitch.tv'}")
        self.bus.publish(message.command, message)
        handler = self._irc_handlers.get(message.command)
        if handler is not None:
            handler(message)
        else:
            logging.debug(f"Ignoring chat server command {message.command}")
        await self._flush_lines(connection)

    def _queue_line(self, line: str) -> None:
        self._pending_lines.append(line)

    async def _flush_lines(self, connection: UpstreamConnection) -> None:
        while self._pending_lines:
            await connection.send_line(self._pending_lines.popleft())

    def _on_authenticated(self, message: IRCMessage) -> None:
        channel = self.state.channel
        if self.state.upstream is None or not channel:
            return
        self.state.upstream_connected = True
        self.state.connected_at = self.clock()
        logging.info(f"✅ Chat server login confirmed; joining #{channel}")
        self._post(ControlMessage(ControlCommand.TCON))
        self.bus.subscribe(CHAT_COMMAND, self._forward_chat)
        self._queue_line(build_irc_line("JOIN", f"#{channel}"))
        self.state.upstream_phase = SessionPhase.LIVE
        if self._authenticated is not None:
            self._authenticated.set()

    def _forward_chat(self, message: IRCMessage) -> None:
        self.state.forwarded_messages += 1
        self._post(ControlMessage(ControlCommand.TIRC, message.to_dict()))

    def _handle_notice(self, message: IRCMessage) -> None:
        # A NOTICE without msg-id (e.g. failed login) is still an error report
        error = UpstreamProtocolError(message.tags.get("msg-id") or "unknown", message.text)
        log_error(
            "Chat server reported an error",
            error,
            context={"channel": self.state.channel},
            level=logging.WARNING,
        )
        self._post(error_message(error.reason, error.description))

    def _handle_reconnect(self, message: IRCMessage) -> None:
        logging.warning("🔄 Chat server requested a reconnect; the session will end")

    def _on_upstream_closed(self, connection: UpstreamConnection) -> None:
        if self.state.upstream is not connection:
            return
        self.bus.unsubscribe(AUTHENTICATED_COMMAND, self._on_authenticated)
        self.bus.unsubscribe(CHAT_COMMAND, self._forward_chat)
        channel = self.state.channel
        forwarded = self.state.forwarded_messages
        self.state.reset_upstream()
        self._upstream_task = None
        self._authenticated = None
        self._pending_lines.clear()
        logging.info(f"🔌 Chat session closed for #{channel} forwarded={forwarded}")
        self._post(ControlMessage(ControlCommand.TFIN))

    # ------------------------------------------------------------------
    # Introspection / shutdown
    # ------------------------------------------------------------------
    def snapshot(self) -> dict[str, Any]:
        """Return a point-in-time view of the session for status reporting.

        Returns:
            Mapping with ``phase``, ``channel``, the connection flags, the
            number of forwarded messages and the ``connected_for``/``idle_for``
            durations in seconds (``None`` when not applicable).
        """
        state = self.state
        now = self.clock()
        return {
            "phase": state.phase.name,
            "local_peer_connected": state.local_peer_connected,
            "upstream_connected": state.upstream_connected,
            "channel": state.channel,
            "forwarded_messages": state.forwarded_messages,
            "connected_for": (now - state.connected_at) if state.connected_at else None,
            "idle_for": (
                (now - state.last_upstream_activity)
                if state.last_upstream_activity
                else None
            ),
        }

    async def shutdown(self) -> None:
        """Close the chat connection and the local peer."""
        connection = self.state.upstream
        task = self._upstream_task
        if task is not None and not task.done():
            task.cancel()
        if connection is not None:
            await connection.close()
        if task is not None:
            await asyncio.wait({task}, timeout=UPSTREAM_CLOSE_TIMEOUT)
        peer = self.state.peer
        if peer is not None:
            self._on_peer_disconnect(peer)
            await peer.close()
        logging.info("🏁 Session manager stopped")
