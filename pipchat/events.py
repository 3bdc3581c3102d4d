"""Minimal synchronous publish/subscribe bus."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

Handler = Callable[[Any], object]


@dataclass(slots=True)
class _Subscription:
    handler: Handler
    once: bool


class EventBus:
    """Fans events out to handlers registered per topic.

    Handlers run synchronously in registration order. A failing handler is
    logged and does not stop the remaining ones. Handlers added or removed
    while a topic is being published take effect from the next publish.
    """

    def __init__(self, name: str = "bus") -> None:
        self.name = name
        self._subscriptions: dict[str, list[_Subscription]] = {}

    def subscribe(self, topic: str, handler: Handler, *, once: bool = False) -> None:
        """Register ``handler`` for ``topic``.

        Args:
            topic: Event name, e.g. an IRC command or a control command.
            handler: Callable receiving the published data.
            once: Remove the handler after its first invocation.
        """
        self._subscriptions.setdefault(topic, []).append(_Subscription(handler, once))

    def unsubscribe(self, topic: str, handler: Handler) -> None:
        """Remove every registration of ``handler`` for ``topic``.

        Unknown topics and handlers are ignored.
        """
        self._discard(topic, lambda s: s.handler == handler)

    def publish(self, topic: str, data: Any = None) -> None:
        """Invoke the handlers registered for ``topic`` with ``data``.

        One-shot registrations are removed before any handler runs, so a
        handler publishing the same topic again cannot trigger them twice.

        Args:
            topic: Event name.
            data: Payload passed to every handler.
        """
        subs = self._subscriptions.get(topic)
        if not subs:
            return
        snapshot = list(subs)
        if any(s.once for s in snapshot):
            self._discard(topic, lambda s: s.once and any(s is f for f in snapshot))
        for sub in snapshot:
            try:
                sub.handler(data)
            except Exception as e:  # noqa: BLE001
                logging.error(
                    f"💥 Event handler failed bus={self.name} topic={topic} "
                    f"handler={getattr(sub.handler, '__qualname__', repr(sub.handler))} "
                    f"type={type(e).__name__} error={str(e)}",
                    exc_info=True,
                )

    def _discard(self, topic: str, predicate: Callable[[_Subscription], bool]) -> None:
        subs = self._subscriptions.get(topic)
        if not subs:
            return
        remaining = [s for s in subs if not predicate(s)]
        if remaining:
            self._subscriptions[topic] = remaining
        else:
            del self._subscriptions[topic]

    def has_subscribers(self, topic: str) -> bool:
        return bool(self._subscriptions.get(topic))

    def clear(self) -> None:
        self._subscriptions.clear()
