from __future__ import annotations

import logging

from ..logging_config import log_structured_error
from .internal import (
    InvalidPayload,
    InvalidState,
    MalformedMessage,
    MissingCredential,
    NetworkError,
    OAuthError,
    PipChatError,
    SecurityError,
    UpstreamProtocolError,
)


def error_category(error: BaseException) -> str:
    """Map an exception to the category used for aggregation."""
    if isinstance(error, NetworkError | OSError | ConnectionError):
        return "network"
    if isinstance(error, SecurityError):
        return "security"
    if isinstance(error, OAuthError | MissingCredential):
        return "auth"
    if isinstance(error, MalformedMessage | UpstreamProtocolError):
        return "protocol"
    if isinstance(error, InvalidState | InvalidPayload):
        return "state"
    if isinstance(error, PipChatError):
        return "internal"
    return "unknown"


def log_error(
    message: str,
    error: Exception,
    context: dict | None = None,
    level: int = logging.ERROR,
) -> None:
    """Logs an error message with the associated exception details.

    Args:
        message: A descriptive message about the error context.
        error: The exception instance to be logged.
        context: Optional additional context data for debugging.
        level: Logging level for the record.
    """
    log_structured_error(
        error_type=error_category(error),
        message=f"{message}: {str(error)}",
        exception=error,
        context=context,
        level=level,
    )
