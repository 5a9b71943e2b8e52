"""Plotly canvas that displays a :class:`ViewState`.

Purpose
-------
``PlotlyMapRenderer`` is the rendering collaborator of
:class:`~tileview.controller.ViewStateController`. The controller pushes map
and viewport changes in; the renderer reports user pan/zoom back out through
``on_viewport_change`` callbacks. Tile decoding and overlay styling are not
handled here: a map is drawn as an optional background image, a center
marker and any point overlays the user switched on.

Architecture notes
------------------
A viewport ``(x, y, zoom)`` maps to axis ranges as::

    width  = extent_x / zoom
    height = extent_y / zoom
    xaxis.range = [x - width / 2, x + width / 2]
    yaxis.range = [y + height / 2, y - height / 2]   # y grows downward

Important gotchas
-----------------
- Plotly fires ``layout.on_change`` for programmatic range updates too. The
  renderer remembers the ranges it applied and ignores relayout events that
  match them, so pushed state never echoes back as a user change.
- Relayout events are throttled with :class:`QueuedDebouncer`; a separate
  quiet-window :class:`Debouncer` marks the end of a gesture.
- Every push drops the relayouts still queued in the throttle. Otherwise a
  pan made just before a telemetry override or map switch would land one
  tick later and move the view back.
- Overlays are extra traces after the center marker. Their visibility is
  kept by key, so a switched-on overlay reappears on any map defining it.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Set, Tuple

import numpy as np
import plotly.graph_objects as go

from .debouncing import Debouncer, QueuedDebouncer, Scheduler
from .maps import MapOverlay, MapRegistry, MapSpec
from .preferences import DEFAULT_RENDERER, is_renderer
from .view_state import ViewState

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

Range = Tuple[float, float]

INTERACTION_QUIET_MS = 250


def viewport_to_ranges(spec: MapSpec, x: float, y: float, zoom: float) -> Tuple[Range, Range]:
    """Return ``(xaxis.range, yaxis.range)`` showing ``(x, y)`` at ``zoom``."""
    half = np.asarray(spec.extent, dtype=float) / (2.0 * zoom)
    return (
        (float(x - half[0]), float(x + half[0])),
        (float(y + half[1]), float(y - half[1])),
    )


def ranges_to_viewport(spec: MapSpec, x_range: Any, y_range: Any) -> Optional[Tuple[float, float, float]]:
    """Invert :func:`viewport_to_ranges`; ``None`` for degenerate ranges."""
    try:
        xr = np.asarray(x_range, dtype=float)
        yr = np.asarray(y_range, dtype=float)
    except (TypeError, ValueError):
        return None
    if xr.shape != (2,) or yr.shape != (2,) or not (np.all(np.isfinite(xr)) and np.all(np.isfinite(yr))):
        return None
    width = abs(xr[1] - xr[0])
    if width <= 0.0:
        return None
    return float(xr.mean()), float(yr.mean()), float(spec.extent[0] / width)


class PlotlyMapRenderer:
    """Display a map viewport in a Plotly ``FigureWidget``.

    Parameters
    ----------
    registry : MapRegistry
        Known maps; supplies extents and background images.
    renderer : str, optional
        ``"webgl"`` or ``"svg"`` trace backend for the center marker and
        overlays.
    relayout_throttle_ms : int, optional
        Cadence for forwarding user pan/zoom to viewport callbacks.
    scheduler : Scheduler, optional
        Timer source shared by the throttles.
    height_px : int, optional
        Canvas height.
    """

    def __init__(
        self,
        registry: MapRegistry,
        *,
        renderer: str = DEFAULT_RENDERER,
        relayout_throttle_ms: int = 50,
        scheduler: Optional[Scheduler] = None,
        height_px: int = 600,
    ) -> None:
        if not is_renderer(renderer):
            raise ValueError(f"Unknown renderer: {renderer!r}")
        self._registry = registry
        self._renderer = renderer
        self._height_px = int(height_px)
        self._map: Optional[MapSpec] = None
        self._applied: Optional[Tuple[Range, Range]] = None
        self._ready = False
        self._interacting = False
        self._visible_overlays: Set[str] = set()
        self._marker: Any = None
        self._overlay_traces: Dict[str, Any] = {}

        self._ready_callbacks: List[Callable[[], Any]] = []
        self._loading_callbacks: List[Callable[[bool], Any]] = []
        self._viewport_callbacks: List[Callable[[float, float, float], Any]] = []
        self._interaction_callbacks: List[Callable[[bool], Any]] = []

        self._figure = go.FigureWidget()
        self._figure.update_layout(**self._default_figure_layout())
        self._rebuild_traces()

        self._relayout = QueuedDebouncer(
            self._run_relayout,
            execute_every_ms=relayout_throttle_ms,
            drop_overflow=True,
            scheduler=scheduler,
        )
        self._gesture_end = Debouncer(
            self._end_gesture, delay_ms=INTERACTION_QUIET_MS, scheduler=scheduler
        )
        self._figure.layout.on_change(self._on_relayout, "xaxis.range", "yaxis.range")

    # --- Properties ---

    @property
    def figure_widget(self) -> go.FigureWidget:
        """Return the underlying Plotly ``FigureWidget``."""
        return self._figure

    @property
    def renderer(self) -> str:
        return self._renderer

    @property
    def current_map(self) -> Optional[str]:
        return self._map.key if self._map is not None else None

    @property
    def ranges(self) -> Optional[Tuple[Range, Range]]:
        """Axis ranges most recently applied by the controller."""
        return self._applied

    @property
    def visible_overlays(self) -> FrozenSet[str]:
        """Overlay keys switched on, whether or not the current map has them."""
        return frozenset(self._visible_overlays)

    # --- Callback registration ---

    def on_ready(self, callback: Callable[[], Any]) -> None:
        self._ready_callbacks.append(callback)

    def on_loading_change(self, callback: Callable[[bool], Any]) -> None:
        self._loading_callbacks.append(callback)

    def on_viewport_change(self, callback: Callable[[float, float, float], Any]) -> None:
        self._viewport_callbacks.append(callback)

    def on_interaction_change(self, callback: Callable[[bool], Any]) -> None:
        self._interaction_callbacks.append(callback)

    # --- Renderer contract ---

    def set_map(self, map_id: str, view: Optional[ViewState] = None) -> None:
        """Load ``map_id`` and show ``view`` (or the map's default view)."""
        spec = self._registry.require(map_id)
        target = view if view is not None else spec.default_state()

        self._notify(self._loading_callbacks, True)
        try:
            self._map = spec
            self._figure.update_layout(
                title_text=spec.title,
                images=self._background_images(spec),
            )
            self._rebuild_traces()
            self._apply_viewport(spec, target.x, target.y, target.zoom)
        finally:
            self._notify(self._loading_callbacks, False)

        if not self._ready:
            self._ready = True
            self._notify(self._ready_callbacks)

    def set_zoom_pos(self, x: float, y: float, zoom: float) -> None:
        """Move the viewport on the current map."""
        if self._map is None:
            raise RuntimeError("set_zoom_pos called before set_map")
        self._apply_viewport(self._map, x, y, zoom)

    def set_renderer(self, renderer: str) -> None:
        """Rebuild the marker and overlay traces with another backend."""
        if not is_renderer(renderer):
            raise ValueError(f"Unknown renderer: {renderer!r}")
        if renderer == self._renderer:
            return
        self._renderer = renderer
        self._rebuild_traces()

    def show_overlay(self, key: str, visible: bool) -> None:
        """Switch the overlay ``key`` on or off.

        The choice sticks across map switches: an overlay switched on stays
        visible on every map that defines it.

        Raises
        ------
        KeyError
            If no registered map defines ``key``.
        """
        if key not in self._registry.overlay_titles:
            raise KeyError(f"Unknown overlay: {key}")
        if visible:
            self._visible_overlays.add(key)
        else:
            self._visible_overlays.discard(key)
        trace = self._overlay_traces.get(key)
        if trace is not None:
            trace.visible = bool(visible)

    def close(self) -> None:
        self._relayout.cancel()
        self._gesture_end.cancel()

    # --- Internal / Plumbing ---

    def _default_figure_layout(self) -> Dict[str, Any]:
        axis = dict(
            showgrid=False,
            zeroline=False,
            showticklabels=False,
            showline=False,
        )
        return dict(
            autosize=True,
            height=self._height_px,
            template="plotly_white",
            showlegend=False,
            dragmode="pan",
            margin=dict(l=0, r=0, t=32, b=0),
            paper_bgcolor="#ffffff",
            plot_bgcolor="#0f172a",
            xaxis=dict(axis),
            yaxis=dict(axis, scaleanchor="x", scaleratio=1),
        )

    def _trace_cls(self) -> type:
        return go.Scattergl if self._renderer == "webgl" else go.Scatter

    def _marker_trace(self, x: Any = (), y: Any = ()) -> go.Scatter | go.Scattergl:
        return self._trace_cls()(
            x=list(x),
            y=list(y),
            mode="markers",
            marker=dict(symbol="cross-thin", size=14, line=dict(width=2, color="#f97316")),
            hoverinfo="skip",
            name="center",
        )

    def _overlay_trace(self, overlay: MapOverlay) -> go.Scatter | go.Scattergl:
        return self._trace_cls()(
            x=list(overlay.x),
            y=list(overlay.y),
            text=list(overlay.labels) or None,
            mode="markers",
            marker=dict(size=9, color=overlay.color),
            hoverinfo="text" if overlay.labels else "skip",
            name=overlay.title,
            visible=overlay.key in self._visible_overlays,
        )

    def _rebuild_traces(self) -> None:
        # Marker first, then one trace per overlay of the current map.
        if self._marker is not None:
            center = (self._marker.x or (), self._marker.y or ())
        else:
            center = ((), ())
        overlays = self._map.overlays if self._map is not None else ()

        self._figure.data = []
        self._figure.add_trace(self._marker_trace(*center))
        self._marker = self._figure.data[0]
        self._overlay_traces = {}
        for overlay in overlays:
            self._figure.add_trace(self._overlay_trace(overlay))
            self._overlay_traces[overlay.key] = self._figure.data[-1]

    def _background_images(self, spec: MapSpec) -> List[Dict[str, Any]]:
        if not spec.image_source:
            return []
        width, height = spec.image_size
        return [
            dict(
                source=spec.image_source,
                xref="x",
                yref="y",
                x=0.0,
                y=0.0,
                sizex=width,
                sizey=height,
                xanchor="left",
                yanchor="top",
                sizing="stretch",
                layer="below",
            )
        ]

    def _apply_viewport(self, spec: MapSpec, x: float, y: float, zoom: float) -> None:
        x_range, y_range = viewport_to_ranges(spec, x, y, zoom)
        self._applied = (x_range, y_range)
        # Relayouts queued before this push describe an older view.
        self._relayout.cancel()
        # One batch so layout.on_change sees both ranges at once.
        with self._figure.batch_update():
            self._figure.layout.xaxis.range = x_range
            self._figure.layout.yaxis.range = y_range
            self._marker.x = [x]
            self._marker.y = [y]

    def _is_applied(self, x_range: Any, y_range: Any) -> bool:
        if self._applied is None or x_range is None or y_range is None:
            return False
        try:
            return bool(
                np.allclose(x_range, self._applied[0]) and np.allclose(y_range, self._applied[1])
            )
        except (TypeError, ValueError):
            return False

    def _on_relayout(self, _layout: Any, x_range: Any, y_range: Any) -> None:
        if self._map is None or self._is_applied(x_range, y_range):
            return
        if not self._interacting:
            self._interacting = True
            self._notify(self._interaction_callbacks, True)
        self._gesture_end()
        self._relayout(x_range, y_range)

    def _run_relayout(self, x_range: Any, y_range: Any) -> None:
        if self._map is None:
            return
        viewport = ranges_to_viewport(self._map, x_range, y_range)
        if viewport is None:
            logger.debug("Ignoring degenerate relayout x=%r y=%r", x_range, y_range)
            return
        self._notify(self._viewport_callbacks, *viewport)

    def _end_gesture(self) -> None:
        if self._interacting:
            self._interacting = False
            self._notify(self._interaction_callbacks, False)

    def _notify(self, callbacks: List[Callable[..., Any]], *args: Any) -> None:
        for callback in list(callbacks):
            try:
                callback(*args)
            except Exception:
                logger.exception("Renderer callback %r failed", callback)
