"""Session state machine."""

from .manager import SessionManager, normalize_channel  # noqa: F401
from .state import SessionPhase, SessionState  # noqa: F401

__all__ = ["SessionManager", "SessionPhase", "SessionState", "normalize_channel"]
