"""Canonical view-state value objects.

Purpose
-------
This module defines ``ViewState``, the immutable ``{map, x, y, zoom}`` record
that describes what the user is looking at, and ``TargetOfInterest``, the
navigation target produced by search.

Notes
-----
``ViewState`` checks only value-level invariants (finite coordinates, positive
zoom, non-empty map key). Membership of ``map`` in the known map set is checked
by :class:`tileview.maps.MapRegistry` at every construction site that accepts
outside input.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional


class ChangeSource(str, Enum):
    """Producer that requested a view change."""

    BOOT = "boot"
    USER = "user"
    SEARCH = "search"
    REMOTE = "remote"


def _finite(name: str, value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be a real number, got {value!r}") from exc
    if not math.isfinite(number):
        raise ValueError(f"{name} must be finite, got {value!r}")
    return number


@dataclass(frozen=True)
class ViewState:
    """Immutable description of the current view.

    Parameters
    ----------
    map : str
        Known map identifier.
    x : float
        Center x coordinate in the renderer's coordinate space.
    y : float
        Center y coordinate in the renderer's coordinate space.
    zoom : float
        Linear zoom factor, finite and strictly positive.

    Raises
    ------
    ValueError
        If a coordinate is not finite, ``zoom`` is not positive, or ``map``
        is empty.

    Examples
    --------
    >>> state = ViewState(map="overworld", x=10, y=20, zoom=0.5)
    >>> state.with_position(x=11).x
    11.0
    """

    map: str
    x: float
    y: float
    zoom: float

    def __post_init__(self) -> None:
        if not isinstance(self.map, str) or not self.map:
            raise ValueError(f"map must be a non-empty string, got {self.map!r}")
        object.__setattr__(self, "x", _finite("x", self.x))
        object.__setattr__(self, "y", _finite("y", self.y))
        zoom = _finite("zoom", self.zoom)
        if zoom <= 0.0:
            raise ValueError(f"zoom must be positive, got {self.zoom!r}")
        object.__setattr__(self, "zoom", zoom)

    def with_map(self, map: str) -> "ViewState":
        """Return a copy on another map with the same position and zoom."""
        return replace(self, map=map)

    def with_position(
        self,
        *,
        x: Optional[float] = None,
        y: Optional[float] = None,
        zoom: Optional[float] = None,
    ) -> "ViewState":
        """Return a copy with any of ``x``, ``y`` or ``zoom`` replaced."""
        return replace(
            self,
            x=self.x if x is None else x,
            y=self.y if y is None else y,
            zoom=self.zoom if zoom is None else zoom,
        )


@dataclass(frozen=True)
class TargetOfInterest:
    """A navigation target selected through search.

    Parameters
    ----------
    label : str
        Display text shown in the search box.
    map : str
        Map the target belongs to.
    x, y : float
        Target position.
    zoom : float or None
        Target zoom; ``None`` keeps the current zoom.
    """

    label: str
    map: str
    x: float
    y: float
    zoom: Optional[float] = None
