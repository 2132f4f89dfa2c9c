"""ListenerRegistry — fans notifications out to every registered callback.

A failing listener is logged and skipped; the remaining listeners still
receive the notification.  Delivery iterates over a snapshot of the
registry, so a listener may add or remove listeners (itself included)
while it is being called.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class ListenerRegistry:
    """Ordered set of callbacks with failure-isolated delivery.

    Usage
    -----
    >>> registry = ListenerRegistry("cache")
    >>> registry.add(on_change)
    >>> registry.notify()
    """

    def __init__(self, name: str = "listeners") -> None:
        self._name = name
        self._listeners: list[Listener] = []

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def add(self, listener: Listener) -> None:
        """Register a listener; registering the same callable twice is a no-op."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove(self, listener: Listener) -> None:
        """Remove a listener; unknown listeners are ignored."""
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def clear(self) -> None:
        self._listeners.clear()

    def __len__(self) -> int:
        return len(self._listeners)

    def __bool__(self) -> bool:
        return bool(self._listeners)

    def __contains__(self, listener: object) -> bool:
        return listener in self._listeners

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def notify(self, *args: Any) -> int:
        """Call every listener registered at the time of the call.

        Returns the number of listeners that completed without raising.
        """
        delivered = 0
        for listener in list(self._listeners):
            try:
                listener(*args)
                delivered += 1
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    "%s listener %r failed: %s",
                    self._name,
                    getattr(listener, "__name__", listener),
                    exc,
                )
        return delivered
