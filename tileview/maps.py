"""Map catalog primitives for the viewer.

Purpose
-------
This module defines ``MapSpec``, the static description of one tiled map, and
``MapRegistry``, the closed set of maps a viewer knows about. The registry is
the single place where map identifiers are validated: URL decoding, nav
clicks, search targets and remote telemetry all resolve identifiers through
:meth:`MapRegistry.as_map_name`.

Notes
-----
Two maps that share a ``coordinate_space`` draw the same world coordinates, so
switching between them can preserve pan and zoom. Maps in different spaces
reset to their own default view.

A map may carry ``MapOverlay`` point layers. Overlay keys are shared across
maps so one checkbox controls the same layer wherever it appears.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any, Optional

from .view_state import ViewState


@dataclass(frozen=True)
class MapOverlay:
    """Named layer of points drawn on top of a map.

    Overlays start hidden and are switched on and off by key. The same key may
    appear on several maps; toggling it affects whichever of those maps is
    shown.

    Parameters
    ----------
    key : str
        Stable overlay identifier.
    title : str
        Label of the overlay's checkbox.
    x, y : tuple[float, ...]
        Point coordinates in the map's world space.
    labels : tuple[str, ...]
        Optional hover text, one entry per point.
    color : str
        Marker color.
    """

    key: str
    title: str
    x: tuple[float, ...] = ()
    y: tuple[float, ...] = ()
    labels: tuple[str, ...] = ()
    color: str = "#38bdf8"

    def __post_init__(self) -> None:
        if len(self.x) != len(self.y):
            raise ValueError(f"Overlay '{self.key}' needs as many x values as y values")
        if self.labels and len(self.labels) != len(self.x):
            raise ValueError(f"Overlay '{self.key}' needs one label per point")


@dataclass(frozen=True)
class MapSpec:
    """Static description of one map.

    Parameters
    ----------
    key : str
        Stable map identifier used in URLs and telemetry frames.
    title : str
        Human-readable name shown in nav links and the map-name label.
    coordinate_space : str
        Name of the world coordinate space the map is drawn in.
    default_x : float
        Default center x coordinate.
    default_y : float
        Default center y coordinate.
    default_zoom : float
        Default linear zoom factor.
    extent : tuple[float, float]
        World units visible horizontally and vertically at zoom ``1.0``.
    image_source : str or None
        Optional background image (URL or data URI) for the canvas.
    image_size : tuple[float, float]
        World width and height covered by ``image_source``, anchored at the
        origin.
    overlays : tuple[MapOverlay, ...]
        Toggleable point layers drawn on this map.
    """

    key: str
    title: str
    coordinate_space: str
    default_x: float = 0.0
    default_y: float = 0.0
    default_zoom: float = 1.0
    extent: tuple[float, float] = (1024.0, 1024.0)
    image_source: Optional[str] = None
    image_size: tuple[float, float] = (8192.0, 8192.0)
    overlays: tuple[MapOverlay, ...] = ()

    def default_state(self) -> ViewState:
        """Return this map's default view."""
        return ViewState(
            map=self.key,
            x=self.default_x,
            y=self.default_y,
            zoom=self.default_zoom,
        )


class MapRegistry:
    """Own the known maps and the default map selection."""

    def __init__(self, maps: Iterable[MapSpec], *, default_map: Optional[str] = None) -> None:
        self._maps: dict[str, MapSpec] = {}
        for spec in maps:
            if spec.key in self._maps:
                raise ValueError(f"Map '{spec.key}' already exists")
            self._maps[spec.key] = spec
        if not self._maps:
            raise ValueError("MapRegistry requires at least one map")

        key = default_map if default_map is not None else next(iter(self._maps))
        if key not in self._maps:
            raise KeyError(f"Unknown default map: {key}")
        self._default_map = key

    @property
    def default_map(self) -> str:
        """Return the default map identifier."""
        return self._default_map

    @property
    def keys(self) -> tuple[str, ...]:
        """Return known map identifiers in registration order."""
        return tuple(self._maps)

    def __iter__(self) -> Iterator[MapSpec]:
        return iter(self._maps.values())

    def __len__(self) -> int:
        return len(self._maps)

    def __contains__(self, key: object) -> bool:
        return key in self._maps

    def as_map_name(self, value: Any) -> Optional[str]:
        """Return ``value`` as a known map identifier, or ``None``.

        Strings are stripped of surrounding whitespace before lookup. Unknown
        values are never substituted with a default.
        """
        if not isinstance(value, str):
            return None
        key = value.strip()
        return key if key in self._maps else None

    def require(self, key: str) -> MapSpec:
        """Return the spec for ``key`` or raise ``KeyError``."""
        if key not in self._maps:
            raise KeyError(f"Unknown map: {key}")
        return self._maps[key]

    def default_state(self, key: Optional[str] = None) -> ViewState:
        """Return the default view of ``key`` (or of the default map)."""
        return self.require(self._default_map if key is None else key).default_state()

    def shares_coordinate_space(self, a: str, b: str) -> bool:
        """Return True when maps ``a`` and ``b`` use the same world coordinates."""
        return self.require(a).coordinate_space == self.require(b).coordinate_space

    @property
    def overlay_titles(self) -> dict[str, str]:
        """Return ``{overlay key: title}`` across all maps, first title wins."""
        titles: dict[str, str] = {}
        for spec in self._maps.values():
            for overlay in spec.overlays:
                titles.setdefault(overlay.key, overlay.title)
        return titles

    def as_overlay_key(self, value: Any) -> Optional[str]:
        """Return ``value`` as a known overlay key, or ``None``."""
        if not isinstance(value, str):
            return None
        key = value.strip()
        return key if key in self.overlay_titles else None


_WAYPOINTS = MapOverlay(
    key="waypoints",
    title="Waypoints",
    x=(4096.0, 3200.0, 5120.0),
    y=(4096.0, 4800.0, 3500.0),
    labels=("Spawn", "Harbor", "Watchtower"),
)

_TELEPORTS = MapOverlay(
    key="teleports",
    title="Teleports",
    x=(2048.0, 1500.0),
    y=(2048.0, 2600.0),
    labels=("Central shaft", "West stairs"),
    color="#a855f7",
)

DEFAULT_MAPS: tuple[MapSpec, ...] = (
    MapSpec(
        key="overworld",
        title="Overworld",
        coordinate_space="surface",
        default_x=4096.0,
        default_y=4096.0,
        default_zoom=0.125,
        extent=(1024.0, 1024.0),
        overlays=(_WAYPOINTS,),
    ),
    MapSpec(
        key="overworld-night",
        title="Overworld (Night)",
        coordinate_space="surface",
        default_x=4096.0,
        default_y=4096.0,
        default_zoom=0.125,
        extent=(1024.0, 1024.0),
        overlays=(_WAYPOINTS,),
    ),
    MapSpec(
        key="underground",
        title="Underground",
        coordinate_space="underground",
        default_x=2048.0,
        default_y=2048.0,
        default_zoom=0.25,
        extent=(1024.0, 1024.0),
        overlays=(_TELEPORTS,),
    ),
)


def default_registry() -> MapRegistry:
    """Return a registry over :data:`DEFAULT_MAPS`."""
    return MapRegistry(DEFAULT_MAPS, default_map="overworld")
