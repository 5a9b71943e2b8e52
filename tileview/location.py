"""Address-bar collaborator and the debounced deep-link writer.

``Location`` is the minimal contract the viewer needs from its host page:
read the query once at boot, replace it afterwards. Replacing (rather than
pushing) keeps panning from flooding the back-button history.

``UrlSync`` subscribes to :class:`~tileview.events.StateChange` and writes the
encoded state through a :class:`~tileview.debouncing.Debouncer`, so a burst of
changes produces one write carrying the final state.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol

from . import codec
from .bus import EventBus, Subscription
from .debouncing import Debouncer, Scheduler
from .events import StateChange
from .view_state import ViewState

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

URL_WRITE_DELAY_MS = 100


class Location(Protocol):
    @property
    def query(self) -> str: ...

    def replace_query(self, query: str) -> None: ...


class MemoryLocation:
    """In-process stand-in for the browser location.

    Parameters
    ----------
    base_url : str
        URL the share link is built on.
    query : str
        Initial query string, with or without ``?``.
    """

    def __init__(self, base_url: str = "", query: str = "") -> None:
        self._base_url = base_url
        self._query = query[1:] if query.startswith("?") else query
        self.writes: List[str] = []

    @property
    def query(self) -> str:
        return self._query

    @property
    def href(self) -> str:
        """Full shareable URL."""
        if not self._query:
            return self._base_url
        return f"{self._base_url}?{self._query}"

    def replace_query(self, query: str) -> None:
        if query == self._query:
            return
        self._query = query
        self.writes.append(query)


class UrlSync:
    """Mirror canonical state into the location query.

    Parameters
    ----------
    bus : EventBus
        Source of ``StateChange`` events.
    location : Location
        Destination for encoded queries.
    delay_ms : float, optional
        Quiet window before writing.
    scheduler : Scheduler, optional
        Timer source for the debouncer.
    """

    def __init__(
        self,
        bus: EventBus,
        location: Location,
        *,
        delay_ms: float = URL_WRITE_DELAY_MS,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self._location = location
        self._debouncer = Debouncer(self._write, delay_ms=delay_ms, scheduler=scheduler)
        self._subscription: Subscription[StateChange] = bus.on(StateChange, self._on_state_change)

    @property
    def pending(self) -> bool:
        return self._debouncer.pending

    def flush(self) -> None:
        """Write any pending state immediately."""
        self._debouncer.flush()

    def close(self) -> None:
        """Stop listening and drop any pending write."""
        self._subscription.cancel()
        self._debouncer.cancel()

    def _on_state_change(self, event: StateChange) -> None:
        self._debouncer(event.state)

    def _write(self, state: ViewState) -> None:
        query = codec.encode(state)
        logger.debug("location query <- %s", query)
        self._location.replace_query(query)
