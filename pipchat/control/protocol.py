"""Control protocol spoken between the page client and the session manager."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..errors.internal import MalformedMessage


class ControlCommand(str, Enum):
    """Closed set of control commands.

    Attributes:
        CSYN: peer → manager, request a session for ``payload.channel``.
        CACK: manager → peer, session request accepted.
        CFIN: either way, end session / session ended.
        TCON: manager → peer, chat server authenticated and channel joined.
        TIRC: manager → peer, one forwarded chat message record.
        TFIN: manager → peer, chat server connection closed.
        TERR: manager → peer, ``{reason, description}`` error report.
    """

    CSYN = "CSYN"
    CACK = "CACK"
    CFIN = "CFIN"
    TCON = "TCON"
    TIRC = "TIRC"
    TFIN = "TFIN"
    TERR = "TERR"


@dataclass(frozen=True, slots=True)
class ControlMessage:
    command: ControlCommand
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"command": self.command.value, "payload": dict(self.payload)}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Any) -> ControlMessage:
        if not isinstance(data, dict):
            raise MalformedMessage("Control message must be an object")
        raw_command = data.get("command")
        try:
            command = ControlCommand(raw_command)
        except ValueError as e:
            raise MalformedMessage(
                f"Unknown control command {raw_command!r}",
                data={"command": raw_command},
            ) from e
        payload = data.get("payload")
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            raise MalformedMessage("Control payload must be an object")
        return cls(command=command, payload=payload)

    @classmethod
    def from_json(cls, text: str | bytes) -> ControlMessage:
        try:
            data = json.loads(text)
        except (ValueError, TypeError) as e:
            raise MalformedMessage(f"Control frame is not valid JSON: {e}") from e
        return cls.from_dict(data)


def error_message(reason: str, description: str) -> ControlMessage:
    return ControlMessage(
        ControlCommand.TERR, {"reason": reason, "description": description}
    )
