"""Session state held by the session manager."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from ..control.transport import LocalPeer
    from ..irc.connection import UpstreamConnection


class SessionPhase(Enum):
    IDLE = auto()
    LOCAL_ATTACHED = auto()
    AUTH_PENDING = auto()
    UPSTREAM_JOINING = auto()
    LIVE = auto()


# Phases that exist only while an upstream connection is owned
UPSTREAM_PHASES = (
    SessionPhase.AUTH_PENDING,
    SessionPhase.UPSTREAM_JOINING,
    SessionPhase.LIVE,
)


@dataclass
class SessionState:
    """Mutable session state.

    ``upstream_connected`` is true only between the authenticated milestone
    and the close of that same upstream connection.
    """

    local_peer_connected: bool = False
    upstream_connected: bool = False
    channel: str | None = None
    peer: LocalPeer | None = None
    upstream: UpstreamConnection | None = None
    upstream_phase: SessionPhase | None = None
    connected_at: float | None = None
    last_upstream_activity: float | None = None
    forwarded_messages: int = 0

    @property
    def phase(self) -> SessionPhase:
        if self.upstream is not None and self.upstream_phase in UPSTREAM_PHASES:
            return self.upstream_phase
        if self.local_peer_connected:
            return SessionPhase.LOCAL_ATTACHED
        return SessionPhase.IDLE

    def attach_upstream(self, upstream: UpstreamConnection, channel: str) -> None:
        self.upstream = upstream
        self.channel = channel
        self.upstream_phase = SessionPhase.AUTH_PENDING
        self.upstream_connected = False
        self.forwarded_messages = 0

    def reset_upstream(self) -> None:
        self.upstream = None
        self.channel = None
        self.upstream_phase = None
        self.upstream_connected = False
        self.connected_at = None
        self.last_upstream_activity = None
