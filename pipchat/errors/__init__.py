"""Error hierarchy and logging helpers."""

from .internal import (  # noqa: F401
    ConfigError,
    InvalidPayload,
    InvalidState,
    MalformedMessage,
    MissingCredential,
    NetworkError,
    OAuthError,
    OAuthTimeout,
    PipChatError,
    SecurityError,
    UpstreamProtocolError,
)

__all__ = [
    "PipChatError",
    "MalformedMessage",
    "InvalidState",
    "InvalidPayload",
    "ConfigError",
    "SecurityError",
    "MissingCredential",
    "OAuthError",
    "OAuthTimeout",
    "NetworkError",
    "UpstreamProtocolError",
]
