"""OAuth bootstrap for the chat connection."""

from .oauth import (  # noqa: F401
    OAUTH_STATE_KEY,
    AuthorizationRequest,
    OAuthBootstrap,
    OAuthProvider,
    parse_redirect_fragment,
)
from .providers import ConsoleOAuthProvider  # noqa: F401
from .state_store import MemoryStateStore, StateStore  # noqa: F401
from .validator import NicknameResolver, TokenIdentityResolver, static_nickname  # noqa: F401

__all__ = [
    "OAUTH_STATE_KEY",
    "AuthorizationRequest",
    "ConsoleOAuthProvider",
    "MemoryStateStore",
    "NicknameResolver",
    "OAuthBootstrap",
    "OAuthProvider",
    "StateStore",
    "TokenIdentityResolver",
    "parse_redirect_fragment",
    "static_nickname",
]
