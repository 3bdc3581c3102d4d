"""Local transport contract between the session manager and its peer."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol

from .protocol import ControlMessage


class LocalPeer(Protocol):
    """A duplex, message-oriented connection to the page client.

    ``post`` never blocks: messages are queued and delivered in order.
    Iterating yields inbound messages until the peer disconnects.
    """

    name: str

    @property
    def closed(self) -> bool: ...

    def post(self, message: ControlMessage) -> None: ...

    async def close(self) -> None: ...

    def __aiter__(self) -> AsyncIterator[ControlMessage]: ...
