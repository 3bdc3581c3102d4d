"""Centralized internal error hierarchy.

These exceptions provide semantic categories for the session manager. Only
raise these inside application/network boundaries; raw websockets / aiohttp
errors are wrapped before they reach the session logic.

Classes:
  PipChatError          – Base for all internal errors.
  MalformedMessage      – A wire line or control frame could not be decoded.
  InvalidState          – Control command not accepted in the current state.
  InvalidPayload        – Control command payload unusable.
  ConfigError           – Invalid configuration.
  SecurityError         – OAuth anti-forgery state mismatch.
  MissingCredential     – OAuth succeeded but no usable token/identity.
  OAuthError            – Provider reported an authorization error.
  OAuthTimeout          – OAuth round trip did not finish in time.
  NetworkError          – Transient network/IO issues (safe to retry).
  UpstreamProtocolError – Chat server reported a named error.

Each error also carries the control-protocol ``reason`` used when it is
reported to the local peer as ``TERR``.
"""

from __future__ import annotations

from collections.abc import Mapping


class PipChatError(Exception):
    """Base class for all internal application errors with metadata support.

    Attributes:
        data: Dictionary containing arbitrary structured context data.
        reason: Short machine-readable kind forwarded to the local peer.
    """

    reason = "internal_error"
    data: dict[str, object]

    def __init__(
        self, message: str, *, data: Mapping[str, object] | None = None
    ) -> None:
        super().__init__(message)
        # Copy into a plain dict to avoid unexpected mutations from caller.
        self.data = dict(data) if data else {}


class MalformedMessage(PipChatError):
    """Raised when a wire line or control frame cannot be parsed."""

    reason = "malformed_message"


class InvalidState(PipChatError):
    """Raised when a control command arrives in a state that does not accept it."""

    reason = "invalid_state"


class SecurityError(PipChatError):
    """Raised when the OAuth ``state`` round trip does not match.

    Treated as a possible forgery attempt; never retried.
    """

    reason = "security_error"


class MissingCredential(PipChatError):
    """Raised when OAuth returned no access token or no identity for it."""

    reason = "missing_credential"


class OAuthError(PipChatError):
    """Raised when the OAuth provider reports ``error``/``error_description``."""

    reason = "oauth_error"


class OAuthTimeout(OAuthError):
    """Raised when the OAuth provider does not answer in time."""

    reason = "oauth_timeout"


class NetworkError(PipChatError):
    """Exception raised for network or transport layer errors."""

    reason = "connect_failed"


class InvalidPayload(PipChatError):
    """Raised when a control command carries a payload it cannot act on."""

    reason = "invalid_payload"


class ConfigError(PipChatError):
    """Raised when the configuration file or environment is invalid."""

    reason = "config_error"


class UpstreamProtocolError(PipChatError):
    """Named error reported by the chat server through a NOTICE.

    Args:
        reason: The server's ``msg-id`` (or ``unknown`` when absent).
        description: Human-readable text from the server.
    """

    def __init__(self, reason: str, description: str) -> None:
        super().__init__(f"{reason}: {description}", data={"reason": reason})
        self.reason = reason
        self.description = description


__all__ = [
    "PipChatError",
    "MalformedMessage",
    "InvalidState",
    "SecurityError",
    "MissingCredential",
    "OAuthError",
    "OAuthTimeout",
    "NetworkError",
    "InvalidPayload",
    "ConfigError",
    "UpstreamProtocolError",
]
