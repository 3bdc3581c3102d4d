"""Storage for the OAuth anti-forgery ``state`` while a flow is in flight."""

from __future__ import annotations

from typing import Protocol


class StateStore(Protocol):
    def put(self, key: str, value: str) -> None: ...

    def pop(self, key: str) -> str | None: ...


class MemoryStateStore:
    """Process-local store; values never leave memory."""

    def __init__(self) -> None:
        self._values: dict[str, str] = {}

    def put(self, key: str, value: str) -> None:
        self._values[key] = value

    def pop(self, key: str) -> str | None:
        return self._values.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._values
