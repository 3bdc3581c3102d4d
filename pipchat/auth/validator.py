"""Resolves the chat login name owning an access token."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, cast

import aiohttp

from ..constants import TOKEN_VALIDATION_TIMEOUT, TWITCH_VALIDATE_URL
from ..errors.internal import MissingCredential, NetworkError

NicknameResolver = Callable[[str], Awaitable[str]]


def static_nickname(nickname: str) -> NicknameResolver:
    """Resolver that ignores the token and always returns ``nickname``."""

    async def _resolve(_access_token: str) -> str:
        return nickname

    return _resolve


class TokenIdentityResolver:
    """Looks up the login of an access token via Twitch's validate endpoint.

    The chat server only accepts a ``NICK`` matching the token owner.
    """

    def __init__(
        self,
        http_session: aiohttp.ClientSession | None = None,
        *,
        url: str = TWITCH_VALIDATE_URL,
        timeout: float = TOKEN_VALIDATION_TIMEOUT,
    ) -> None:
        self.session = http_session
        self.url = url
        self.timeout = timeout

    async def __call__(self, access_token: str) -> str:
        return await self.resolve_login(access_token)

    async def resolve_login(self, access_token: str) -> str:
        """Return the lowercase login for ``access_token``.

        Raises:
            MissingCredential: Token rejected or carries no login.
            NetworkError: Endpoint unreachable or answered unexpectedly.
        """
        if self.session is not None:
            return await self._validate(self.session, access_token)
        async with aiohttp.ClientSession() as session:
            return await self._validate(session, access_token)

    async def _validate(self, session: aiohttp.ClientSession, access_token: str) -> str:
        headers = {"Authorization": f"OAuth {access_token}"}
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with session.get(self.url, headers=headers, timeout=timeout) as resp:
                if resp.status == 401:
                    logging.info(f"❌ Token validation failed: invalid (status={resp.status})")
                    raise MissingCredential("Access token was rejected by Twitch")
                if resp.status != 200:
                    logging.warning(f"❌ Token validation failed (status={resp.status})")
                    raise NetworkError(
                        f"Unexpected token validation status {resp.status}",
                        data={"http_status": resp.status},
                    )
                data = cast(dict[str, Any], await resp.json())
        except TimeoutError as e:
            logging.warning("⏱️ Token validation timeout")
            raise NetworkError("Token validation timeout") from e
        except aiohttp.ClientError as e:
            logging.warning(f"💥 Network error during token validation: {type(e).__name__}")
            raise NetworkError(f"Network error during validation: {e}") from e

        login = data.get("login")
        if not isinstance(login, str) or not login:
            raise MissingCredential("Validated token carries no login")
        logging.debug(f"Token belongs to login={login} expires_in={data.get('expires_in')}")
        return login.lower()
