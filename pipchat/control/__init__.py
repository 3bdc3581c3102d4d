"""Control protocol and local transport."""

from .protocol import ControlCommand, ControlMessage, error_message  # noqa: F401
from .transport import LocalPeer  # noqa: F401

__all__ = ["ControlCommand", "ControlMessage", "LocalPeer", "error_message"]
