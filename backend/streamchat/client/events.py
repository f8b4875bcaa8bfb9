"""
Event bus shared by the UI surfaces of one client process.

The page showing a chat owns its title; other surfaces (the chat list)
observe title changes through this bus instead of holding a reference to
the owner.
"""

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

CHAT_TITLE_UPDATED = "chat_title_updated"

Listener = Callable[..., Any]


class EventBus:
    """Synchronous publish/subscribe keyed by event name."""

    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)

    def subscribe(self, event: str, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that removes it."""
        self._listeners[event].append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners[event]:
                self._listeners[event].remove(listener)

        return unsubscribe

    def publish(self, event: str, **payload: Any) -> int:
        """Call every listener of an event; returns how many were called."""
        listeners = list(self._listeners.get(event, ()))
        for listener in listeners:
            try:
                listener(**payload)
            except Exception:
                # One broken observer must not stop the others
                logger.exception(f"Listener for {event} failed")
        return len(listeners)


default_bus = EventBus()
