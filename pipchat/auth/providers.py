"""Concrete OAuth providers."""

from __future__ import annotations

import asyncio
import logging
import sys

from .oauth import AuthorizationRequest


class ConsoleOAuthProvider:
    """Interactive provider for terminals.

    Prints the authorization URL and waits for the user to paste the URL
    their browser was redirected to (the token lives in its fragment).

    A blocking read cannot be interrupted, so at most one read is in flight
    per provider. When a flow is cancelled the read keeps running and the
    next ``authorize`` call picks up its result instead of racing it for
    the following line.
    """

    def __init__(self, stream=None, reader=input) -> None:
        self.stream = stream or sys.stdout
        self._reader = reader
        self._pending_read: asyncio.Future[str] | None = None

    async def authorize(self, request: AuthorizationRequest) -> str:
        """Show the authorization URL and return the pasted redirect URL.

        Args:
            request: Parameters of the authorization request.

        Returns:
            The redirect URL with surrounding whitespace removed.
        """
        print("🔑 Authorize the chat reader in your browser:", file=self.stream)
        print(f"   {request.to_url()}", file=self.stream)
        print(
            "   After approving, copy the full URL from the address bar.",
            file=self.stream,
            flush=True,
        )
        read = self._pending_read
        if read is not None and read.done():
            # Answered while nobody was waiting; it belongs to an abandoned flow
            logging.debug("🔑 Discarding redirect URL pasted for a cancelled flow")
            if not read.cancelled():
                read.exception()
            read = None
        if read is None:
            read = asyncio.ensure_future(asyncio.to_thread(self._reader, "Redirect URL: "))
            self._pending_read = read
        redirect_url = await asyncio.shield(read)
        self._pending_read = None
        return redirect_url.strip()
