"""OAuth implicit-grant bootstrap for the chat connection."""

from __future__ import annotations

import asyncio
import hmac
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import parse_qsl, urlencode, urlsplit

from ..constants import DEFAULT_OAUTH_SCOPE, OAUTH_TIMEOUT, TWITCH_AUTHORIZE_URL
from ..errors.internal import MissingCredential, OAuthError, OAuthTimeout, SecurityError
from .state_store import StateStore

OAUTH_STATE_KEY = "oauth_state"


@dataclass(frozen=True, slots=True)
class AuthorizationRequest:
    client_id: str
    redirect_uri: str
    scope: str
    state: str

    def to_url(self, authorize_url: str = TWITCH_AUTHORIZE_URL) -> str:
        query = urlencode(
            {
                "response_type": "token",
                "client_id": self.client_id,
                "redirect_uri": self.redirect_uri,
                "scope": self.scope,
                "state": self.state,
            }
        )
        return f"{authorize_url}?{query}"


class OAuthProvider(Protocol):
    """Runs the interactive part of the flow and returns the redirect URL."""

    async def authorize(self, request: AuthorizationRequest) -> str: ...


def parse_redirect_fragment(redirect_url: str) -> dict[str, str]:
    """Return the parameters carried in the redirect URL fragment."""
    fragment = urlsplit(redirect_url).fragment
    return dict(parse_qsl(fragment, keep_blank_values=True))


class OAuthBootstrap:
    """Obtains a bearer token for the chat connection.

    A fresh anti-forgery ``state`` is stored for the duration of the flow
    and removed once the provider returns, whatever the outcome.
    """

    def __init__(
        self,
        client_id: str,
        redirect_uri: str,
        provider: OAuthProvider,
        state_store: StateStore,
        *,
        scope: str = DEFAULT_OAUTH_SCOPE,
        timeout: float = OAUTH_TIMEOUT,
        state_factory: Callable[[], str] = lambda: secrets.token_urlsafe(32),
    ) -> None:
        self.client_id = client_id
        self.redirect_uri = redirect_uri
        self.provider = provider
        self.state_store = state_store
        self.scope = scope
        self.timeout = timeout
        self._state_factory = state_factory

    async def run(self) -> str:
        """Run the flow and return the access token.

        Raises:
            OAuthTimeout: The provider did not answer within ``timeout``.
            OAuthError: The provider reported an authorization error.
            SecurityError: The returned ``state`` does not match.
            MissingCredential: No access token in the response.
        """
        state = self._state_factory()
        self.state_store.put(OAUTH_STATE_KEY, state)
        request = AuthorizationRequest(
            client_id=self.client_id,
            redirect_uri=self.redirect_uri,
            scope=self.scope,
            state=state,
        )
        logging.info(f"🔑 Starting OAuth authorization scope={self.scope}")
        try:
            redirect_url = await asyncio.wait_for(
                self.provider.authorize(request), timeout=self.timeout
            )
        except TimeoutError as e:
            raise OAuthTimeout(
                f"OAuth authorization did not complete within {self.timeout:g}s"
            ) from e
        finally:
            stored_state = self.state_store.pop(OAUTH_STATE_KEY)

        params = parse_redirect_fragment(redirect_url)
        returned_state = params.get("state")
        if (
            not stored_state
            or returned_state is None
            or not hmac.compare_digest(
                stored_state.encode("utf-8"), returned_state.encode("utf-8")
            )
        ):
            raise SecurityError(
                "Invalid state parameter in OAuth response. Possible CSRF attack."
            )

        error = params.get("error")
        if error:
            raise OAuthError(
                f"Authentication Error ({error}): {params.get('error_description', '')}",
                data={"error": error},
            )

        access_token = params.get("access_token")
        if not access_token:
            raise MissingCredential("Missing access token in OAuth response.")
        logging.info("🔑 OAuth authorization completed")
        return access_token
