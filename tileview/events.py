"""Typed event payloads published on the viewer's :class:`~tileview.bus.EventBus`.

Each event class is a frozen dataclass tagged with one :class:`Topic`. The set
of topics is closed: subscribing to anything outside :data:`EVENT_TYPES`
fails, so payload types are fixed per topic instead of inferred at call sites.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Optional

from .view_state import ChangeSource, TargetOfInterest, ViewState


class Topic(str, Enum):
    STATE_CHANGE = "state-change"
    LOADING_CHANGE = "loading-change"
    SELECTED = "selected"


@dataclass(frozen=True)
class StateChange:
    """Canonical view state after one accepted mutation.

    Parameters
    ----------
    state : ViewState
        The new canonical state.
    previous : ViewState or None
        State before the mutation; ``None`` for the boot announcement.
    source : ChangeSource
        Producer that requested the change.
    """

    topic: ClassVar[Topic] = Topic.STATE_CHANGE

    state: ViewState
    previous: Optional[ViewState] = None
    source: ChangeSource = ChangeSource.USER

    @property
    def map_changed(self) -> bool:
        """Whether the map identifier differs from the previous state."""
        return self.previous is None or self.previous.map != self.state.map


@dataclass(frozen=True)
class LoadingChange:
    """Renderer loading flag toggled."""

    topic: ClassVar[Topic] = Topic.LOADING_CHANGE

    loading: bool


@dataclass(frozen=True)
class Selected:
    """Search collaborator picked a navigation target."""

    topic: ClassVar[Topic] = Topic.SELECTED

    target: TargetOfInterest


EVENT_TYPES: tuple[type, ...] = (StateChange, LoadingChange, Selected)
