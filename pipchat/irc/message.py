"""IRCv3 message model: parsing, structured serialization and line building."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from ..errors.internal import MalformedMessage

_ESCAPES = {
    "\\:": ";",
    "\\s": " ",
    "\\\\": "\\",
    "\\r": "\r",
    "\\n": "\n",
}
_ESCAPE_RE = re.compile(r"\\[:s\\rn]")


def unescape_tag_value(value: str) -> str:
    """Unescape an IRCv3 tag key or value.

    Sequences are resolved left to right; a backslash followed by anything
    else is kept verbatim.
    """
    return _ESCAPE_RE.sub(lambda m: _ESCAPES[m.group(0)], value)


@dataclass(frozen=True, slots=True)
class Prefix:
    nickname: str | None = None
    user: str | None = None
    host: str | None = None

    @classmethod
    def parse(cls, text: str) -> Prefix:
        if "!" in text:
            nickname, user_host = text.split("!", 1)
            if "@" in user_host:
                user, host = user_host.split("@", 1)
                return cls(nickname=nickname, user=user, host=host)
            return cls(nickname=nickname, user=user_host)
        if "@" in text:
            user, host = text.split("@", 1)
            return cls(user=user, host=host)
        return cls(host=text)

    def to_dict(self) -> dict[str, str]:
        # Absent parts are omitted rather than emitted as null
        parts = {"nickname": self.nickname, "user": self.user, "host": self.host}
        return {k: v for k, v in parts.items() if v is not None}


@dataclass(frozen=True, slots=True)
class IRCMessage:
    """One parsed line of the chat server protocol.

    Attributes:
        command: Verb or numeric reply code, never empty.
        prefix: Message origin, ``None`` when the line carried no prefix.
        tags: Unescaped tag keys mapped to unescaped values.
        raw_tags: Tag keys as received mapped to their escaped values.
        params: Ordered parameters; the last one may contain spaces.
    """

    command: str
    prefix: Prefix | None = None
    tags: dict[str, str] = field(default_factory=dict)
    raw_tags: dict[str, str] = field(default_factory=dict)
    params: tuple[str, ...] = ()

    @property
    def nickname(self) -> str | None:
        return self.prefix.nickname if self.prefix else None

    @property
    def channel(self) -> str | None:
        if self.params and self.params[0].startswith("#"):
            return self.params[0][1:]
        return None

    @property
    def text(self) -> str:
        return self.params[-1] if self.params else ""

    def to_dict(self) -> dict[str, Any]:
        """Structured record sent across the control channel as a TIRC payload."""
        return {
            "command": self.command,
            "prefix": self.prefix.to_dict() if self.prefix else {},
            "tags": dict(self.tags),
            "rawTags": dict(self.raw_tags),
            "params": list(self.params),
        }

    @classmethod
    def from_dict(cls, record: Mapping[str, Any]) -> IRCMessage:
        command = record.get("command")
        if not isinstance(command, str) or not command:
            raise MalformedMessage("Structured IRC record has no command")
        prefix_data = record.get("prefix") or {}
        prefix = (
            Prefix(
                nickname=prefix_data.get("nickname"),
                user=prefix_data.get("user"),
                host=prefix_data.get("host"),
            )
            if prefix_data
            else None
        )
        return cls(
            command=command,
            prefix=prefix,
            tags=dict(record.get("tags") or {}),
            raw_tags=dict(record.get("rawTags") or {}),
            params=tuple(record.get("params") or ()),
        )


def _parse_tags(segment: str) -> tuple[dict[str, str], dict[str, str]]:
    tags: dict[str, str] = {}
    raw_tags: dict[str, str] = {}
    for item in segment.split(";"):
        if not item:
            continue
        raw_key, _, raw_value = item.partition("=")
        raw_tags[raw_key] = raw_value
        tags[unescape_tag_value(raw_key)] = unescape_tag_value(raw_value)
    return tags, raw_tags


def parse_irc_message(line: str) -> IRCMessage:
    """Parse one wire line into an :class:`IRCMessage`.

    Raises:
        MalformedMessage: If no command token can be located.
    """
    rest = line.rstrip("\r\n")
    tags: dict[str, str] = {}
    raw_tags: dict[str, str] = {}
    prefix: Prefix | None = None

    if rest.startswith("@"):
        segment, _, rest = rest[1:].partition(" ")
        tags, raw_tags = _parse_tags(segment)
        rest = rest.lstrip(" ")

    if rest.startswith(":"):
        prefix_text, _, rest = rest[1:].partition(" ")
        prefix = Prefix.parse(prefix_text)
        rest = rest.lstrip(" ")

    command, _, rest = rest.partition(" ")
    if not command:
        raise MalformedMessage(
            "No command token in IRC line", data={"line": line[:200]}
        )

    params: list[str] = []
    while rest:
        if rest.startswith(":"):
            params.append(rest[1:])
            break
        param, _, rest = rest.partition(" ")
        if param:
            params.append(param)

    return IRCMessage(
        command=command,
        prefix=prefix,
        tags=tags,
        raw_tags=raw_tags,
        params=tuple(params),
    )


def build_irc_line(command: str, *params: str) -> str:
    """Build an outbound wire line (without the CRLF terminator).

    The last parameter is sent as a trailing parameter when it is empty,
    contains a space or starts with ``:``.
    """
    if not command or " " in command:
        raise ValueError(f"Invalid IRC command {command!r}")
    parts = [command]
    for index, param in enumerate(params):
        if "\r" in param or "\n" in param:
            raise ValueError("IRC parameters cannot contain line breaks")
        is_last = index == len(params) - 1
        if is_last and (not param or " " in param or param.startswith(":")):
            parts.append(f":{param}")
        elif not param or " " in param or param.startswith(":"):
            raise ValueError(f"Only the last IRC parameter may be trailing: {param!r}")
        else:
            parts.append(param)
    return " ".join(parts)
