"""Application configuration loading and validation."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from .constants import CONTROL_HOST, CONTROL_PORT, DEFAULT_OAUTH_SCOPE, TWITCH_IRC_WS_URL
from .errors.internal import ConfigError

CONFIG_FILE_ENV = "PIPCHAT_CONF_FILE"
DEFAULT_CONFIG_FILE = "pipchat.conf"

# Environment variable -> config field
_ENV_OVERRIDES = {
    "PIPCHAT_CLIENT_ID": "client_id",
    "PIPCHAT_REDIRECT_URI": "redirect_uri",
    "PIPCHAT_SCOPE": "scope",
    "PIPCHAT_NICKNAME": "nickname",
    "PIPCHAT_IRC_URL": "irc_url",
    "PIPCHAT_CONTROL_HOST": "control_host",
    "PIPCHAT_CONTROL_PORT": "control_port",
}


class AppConfig(BaseModel):
    """Settings for the session manager.

    Attributes:
        client_id: Twitch application client ID; required to serve.
            Clients that only watch through a running manager can omit it.
        redirect_uri: Redirect URI registered for the application.
        scope: OAuth scope requested for the chat connection.
        nickname: Chat login; resolved from the token when omitted.
        irc_url: Chat server WebSocket URL.
        control_host: Interface the local control server binds to.
        control_port: Port of the local control server.
    """

    client_id: str = ""
    redirect_uri: str = "http://localhost"
    scope: str = DEFAULT_OAUTH_SCOPE
    nickname: str | None = None
    irc_url: str = TWITCH_IRC_WS_URL
    control_host: str = CONTROL_HOST
    control_port: int = Field(default=CONTROL_PORT, ge=1, le=65535)

    @field_validator("nickname", mode="before")
    @classmethod
    def normalize_nickname(cls, v: Any) -> str | None:
        if v is None:
            return None
        if not isinstance(v, str):
            raise ValueError("nickname must be a string")
        stripped = v.strip().lower()
        return stripped or None

    @field_validator("irc_url")
    @classmethod
    def validate_irc_url(cls, v: str) -> str:
        if not v.startswith(("ws://", "wss://")):
            raise ValueError("irc_url must be a ws:// or wss:// URL")
        return v


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        logging.debug(f"📁 No configuration file at {path}")
        return {}
    try:
        with path.open("r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"Cannot read configuration file {path}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"Configuration file {path} must contain a JSON object")
    return raw


def load_config(
    config_file: str | os.PathLike[str] | None = None,
    env: dict[str, str] | None = None,
) -> AppConfig:
    """Load settings from the JSON config file, then apply env overrides.

    Raises:
        ConfigError: If the file is unreadable or the settings are invalid.
    """
    environ = os.environ if env is None else env
    path = Path(config_file or environ.get(CONFIG_FILE_ENV, DEFAULT_CONFIG_FILE))
    data = _read_config_file(path)
    for env_name, field_name in _ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value:
            data[field_name] = value
    try:
        config = AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
    logging.debug(f"✅ Configuration loaded from {path}")
    return config
