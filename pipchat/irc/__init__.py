"""IRC subsystem package.

Contains the IRCv3 message model and the WebSocket connection to the Twitch
chat server.
"""

from .connection import IRCWebSocketConnection, UpstreamConnection  # noqa: F401
from .message import (  # noqa: F401
    IRCMessage,
    Prefix,
    build_irc_line,
    parse_irc_message,
    unescape_tag_value,
)

__all__ = [
    "IRCMessage",
    "IRCWebSocketConnection",
    "Prefix",
    "UpstreamConnection",
    "build_irc_line",
    "parse_irc_message",
    "unescape_tag_value",
]
