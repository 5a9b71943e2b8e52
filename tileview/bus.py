"""Synchronous publish/subscribe channel for viewer events."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Generic, List, TypeVar

from .events import EVENT_TYPES

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

E = TypeVar("E")


class Subscription(Generic[E]):
    """Handle for one registered handler.

    Cancelling is idempotent. A cancelled subscription is skipped even when
    cancellation happens in the middle of an emission.
    """

    __slots__ = ("id", "event_type", "handler", "_bus", "_active")

    def __init__(self, bus: "EventBus", sub_id: str, event_type: type[E], handler: Callable[[E], Any]) -> None:
        self.id = sub_id
        self.event_type = event_type
        self.handler = handler
        self._bus = bus
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        """Unregister the handler."""
        if self._active:
            self._active = False
            self._bus._discard(self)

    def __enter__(self) -> "Subscription[E]":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.cancel()

    def __repr__(self) -> str:
        state = "active" if self._active else "cancelled"
        return f"Subscription({self.id!r}, {self.event_type.__name__}, {state})"


class EventBus:
    """Deliver typed events to handlers in registration order.

    Handlers run synchronously inside :meth:`emit`. An exception raised by one
    handler is logged and does not stop delivery to the remaining handlers.

    Examples
    --------
    >>> from tileview.events import LoadingChange
    >>> bus = EventBus()
    >>> seen = []
    >>> sub = bus.on(LoadingChange, lambda event: seen.append(event.loading))
    >>> bus.emit(LoadingChange(loading=True))
    1
    >>> seen
    [True]
    """

    def __init__(self) -> None:
        self._subscriptions: Dict[type, List[Subscription[Any]]] = {t: [] for t in EVENT_TYPES}
        self._counter = 0

    def on(self, event_type: type[E], handler: Callable[[E], Any]) -> Subscription[E]:
        """Register ``handler`` for events of ``event_type``.

        Raises
        ------
        TypeError
            If ``event_type`` is not one of the known event classes, or the
            handler is not callable.
        """
        if event_type not in self._subscriptions:
            raise TypeError(f"Unknown event type: {event_type!r}")
        if not callable(handler):
            raise TypeError("handler must be callable")
        self._counter += 1
        sub = Subscription(self, f"sub:{self._counter}", event_type, handler)
        self._subscriptions[event_type].append(sub)
        return sub

    def off(self, subscription: Subscription[Any]) -> None:
        """Unregister ``subscription``; same as ``subscription.cancel()``."""
        subscription.cancel()

    def clear(self) -> None:
        """Cancel every subscription (component teardown)."""
        for subs in self._subscriptions.values():
            for sub in list(subs):
                sub.cancel()

    def subscriber_count(self, event_type: type) -> int:
        return len(self._subscriptions.get(event_type, ()))

    def emit(self, event: Any) -> int:
        """Deliver ``event`` to every active handler of its type.

        Returns
        -------
        int
            Number of handlers that completed without raising.
        """
        subs = self._subscriptions.get(type(event))
        if subs is None:
            raise TypeError(f"Unknown event type: {type(event)!r}")

        delivered = 0
        for sub in list(subs):
            if not sub.active:
                continue
            try:
                sub.handler(event)
            except Exception:
                logger.exception(
                    "%s handler %s failed", event.topic.value, sub.id
                )
                continue
            delivered += 1
        return delivered

    def _discard(self, subscription: Subscription[Any]) -> None:
        subs = self._subscriptions.get(subscription.event_type, [])
        if subscription in subs:
            subs.remove(subscription)
