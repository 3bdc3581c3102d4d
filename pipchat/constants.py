"""Tunable constants of the chat bridge.

Numeric values can be overridden through ``PIPCHAT_<NAME>`` environment
variables; an unparsable value falls back to the default with a warning.
"""

import os
from collections.abc import Callable
from typing import TypeVar

ENV_PREFIX = "PIPCHAT_"

_N = TypeVar("_N", int, float)


def _env_number(name: str, default: _N, parse: Callable[[str], _N]) -> _N:
    raw = os.getenv(ENV_PREFIX + name)
    if raw is None or not raw.strip():
        return default
    try:
        return parse(raw)
    except ValueError:
        # Logging is not configured yet at import time
        print(f"Warning: ignoring {ENV_PREFIX}{name}={raw!r}, using default {default}")
        return default


def _get_env_int(name: str, default: int) -> int:
    return _env_number(name, default, int)


def _get_env_float(name: str, default: float) -> float:
    return _env_number(name, default, float)


# Twitch endpoints (public, well-known URLs; not secrets)
TWITCH_IRC_WS_URL = "wss://irc-ws.chat.twitch.tv:443"
TWITCH_AUTHORIZE_URL = "https://id.twitch.tv/oauth2/authorize"
TWITCH_VALIDATE_URL = "https://id.twitch.tv/oauth2/validate"

# Only scope needed to read chat
DEFAULT_OAUTH_SCOPE = "chat:read"

# Capabilities requested right after the socket opens
IRC_CAPABILITIES = "twitch.tv/tags twitch.tv/commands"

# Server line that marks a successful login (requires twitch.tv/commands)
AUTHENTICATED_COMMAND = "GLOBALUSERSTATE"

# Timeouts (seconds)
OAUTH_TIMEOUT = _get_env_float("OAUTH_TIMEOUT", 300.0)
AUTH_MILESTONE_TIMEOUT = _get_env_float("AUTH_MILESTONE_TIMEOUT", 30.0)
UPSTREAM_CONNECT_TIMEOUT = _get_env_float("UPSTREAM_CONNECT_TIMEOUT", 15.0)
TOKEN_VALIDATION_TIMEOUT = _get_env_float("TOKEN_VALIDATION_TIMEOUT", 30.0)

# Upstream connect retry policy
UPSTREAM_CONNECT_ATTEMPTS = _get_env_int("UPSTREAM_CONNECT_ATTEMPTS", 3)
UPSTREAM_CONNECT_BACKOFF_MAX = _get_env_float("UPSTREAM_CONNECT_BACKOFF_MAX", 10.0)

# Control messages buffered per local peer before it is considered stalled
PEER_OUTBOUND_QUEUE_SIZE = _get_env_int("PEER_OUTBOUND_QUEUE_SIZE", 1000)

# Local control server
CONTROL_HOST = os.getenv(ENV_PREFIX + "CONTROL_HOST") or "127.0.0.1"
CONTROL_PORT = _get_env_int("CONTROL_PORT", 8765)
