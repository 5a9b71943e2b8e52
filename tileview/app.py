"""Map viewer composition root.

Purpose
-------
This module provides ``MapViewer``, which constructs and wires every piece of
the viewer explicitly: the map registry, the event bus, the Plotly renderer,
the view-state controller, the widget layout, search, address-bar sync and
the telemetry channel. There is no module-level viewer instance; each
``MapViewer`` owns its own controller and bus.

Concepts and structure
----------------------
- ``ViewStateController`` (``controller.py``) owns the canonical state.
- ``PlotlyMapRenderer`` (``renderer.py``) draws it and reports pan/zoom.
- ``ViewerLayout`` (``layout.py``) owns widgets and user actions.
- ``UrlSync`` (``location.py``) writes the deep link after the view settles.
- ``RemoteViewChannel``/``WebSocketFeed`` (``remote.py``) apply telemetry.

Examples
--------
>>> from tileview import MapViewer, MemoryLocation
>>> viewer = MapViewer(location=MemoryLocation(query="map=underground&x=10&y=20&zoom=100"))  # doctest: +SKIP
>>> viewer.state  # doctest: +SKIP
ViewState(map='underground', x=10.0, y=20.0, zoom=0.5)
>>> viewer  # doctest: +SKIP
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import Any, Optional

from IPython.display import display

from . import codec
from .bus import EventBus
from .config import ViewerConfig
from .controller import ViewStateController
from .debouncing import Scheduler
from .events import LoadingChange, Selected, StateChange
from .layout import ViewerLayout
from .location import Location, MemoryLocation, UrlSync
from .maps import MapRegistry, default_registry
from .preferences import RendererPreference, is_renderer
from .remote import RemoteViewChannel, WebSocketFeed
from .renderer import PlotlyMapRenderer
from .search import SearchBox
from .view_state import TargetOfInterest, ViewState

# Module logger
# - Uses a NullHandler so importing this module never configures global logging.
# - Callers can enable logs via standard logging configuration.
logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


# SECTION: MapViewer (The Coordinator) [id: MapViewer]
# =============================================================================


class MapViewer:
    """
    An interactive tiled-map viewer with shareable deep links.

    What problem does this solve?
    -----------------------------
    Four things want to decide what the map shows: the deep link the page was
    opened with, the user (nav, search, pan/zoom, home), an external program
    streaming positions over a websocket, and the address bar which has to
    follow along for sharing. ``MapViewer`` routes all of them through one
    ``ViewStateController`` so they never disagree.

    Parameters
    ----------
    registry : MapRegistry, optional
        Known maps. Defaults to :func:`tileview.maps.default_registry`.
    targets : Iterable[TargetOfInterest], optional
        Search targets across all maps.
    location : Location, optional
        Address-bar collaborator; its query is read once as the deep link.
    config : ViewerConfig, optional
        Delays, feed endpoint, telemetry policy and preference path.
    preferences : RendererPreference, optional
        Stored renderer choice. Defaults to one at ``config.preferences_path``.
    scheduler : Scheduler, optional
        Timer source for every debouncer (tests pass a ``ManualScheduler``).
    """

    def __init__(
        self,
        *,
        registry: Optional[MapRegistry] = None,
        targets: Iterable[TargetOfInterest] = (),
        location: Optional[Location] = None,
        config: Optional[ViewerConfig] = None,
        preferences: Optional[RendererPreference] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self._config = config if config is not None else ViewerConfig()
        self._registry = registry if registry is not None else default_registry()
        self._location: Location = (
            location if location is not None else MemoryLocation(base_url=self._config.base_url)
        )
        self._preferences = (
            preferences if preferences is not None else RendererPreference(self._config.preferences_path)
        )
        self._feed: Optional[WebSocketFeed] = None

        # 1. Initialize Collaborators
        self._bus = EventBus()
        renderer_choice = self._preferences.load()
        self._renderer = PlotlyMapRenderer(
            self._registry,
            renderer=renderer_choice,
            relayout_throttle_ms=self._config.relayout_throttle_ms,
            scheduler=scheduler,
            height_px=self._config.canvas_height_px,
        )
        self._controller = ViewStateController(self._renderer, self._bus, self._registry)
        self._layout = ViewerLayout(self._registry, renderer=renderer_choice)
        self._layout.set_canvas(self._renderer.figure_widget)
        self._search = SearchBox(self._bus, targets, current_map=self._registry.default_map)
        self._layout.set_search(self._search.widget)
        self._channel = RemoteViewChannel(
            self._controller,
            allow_zero=self._config.remote_allow_zero,
            policy=self._config.remote_policy,
        )

        # 2. Bind Consumers (before boot so they see the first state)
        self._url_sync = UrlSync(
            self._bus,
            self._location,
            delay_ms=self._config.url_write_delay_ms,
            scheduler=scheduler,
        )
        self._bus.on(StateChange, self._on_state_change)
        self._bus.on(LoadingChange, self._on_loading_change)
        self._bus.on(Selected, self._on_selected)

        # 3. Bind Producers
        self._layout.observe_nav(self._on_nav)
        self._layout.observe_home(self.home)
        self._layout.observe_share(self.share)
        self._layout.observe_renderer(self.set_renderer)
        self._layout.observe_overlays(self.set_overlay)
        self._layout.observe_copy(self.copy_coordinates)
        self._renderer.on_viewport_change(self._controller.set_view)
        self._renderer.on_interaction_change(self._on_interaction)

        # 4. Boot from the deep link
        query = self._location.query
        initial = codec.decode(query, self._registry)
        if initial is None and query:
            logger.info("Ignoring unusable deep link %r; using default view", query)
        self._controller.initialize(initial)

    # --- Properties ---

    @property
    def state(self) -> ViewState:
        """Return the canonical view state."""
        return self._controller.state

    @property
    def controller(self) -> ViewStateController:
        return self._controller

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def registry(self) -> MapRegistry:
        return self._registry

    @property
    def location(self) -> Location:
        return self._location

    @property
    def renderer(self) -> PlotlyMapRenderer:
        return self._renderer

    @property
    def layout(self) -> ViewerLayout:
        return self._layout

    @property
    def search(self) -> SearchBox:
        return self._search

    @property
    def channel(self) -> RemoteViewChannel:
        return self._channel

    @property
    def config(self) -> ViewerConfig:
        return self._config

    # --- Navigation ---

    def set_map(self, map_id: str) -> bool:
        return self._controller.set_map(map_id)

    def goto(self, target: TargetOfInterest) -> bool:
        return self._controller.goto(target)

    def home(self) -> bool:
        return self._controller.home()

    # --- Sharing and status ---

    def share_url(self) -> str:
        """Return the deep link for the current view."""
        return f"{self._config.base_url}?{codec.encode(self.state)}"

    def share(self) -> str:
        """Write the location now, then show and copy the share link."""
        self._url_sync.flush()
        href = self.share_url()
        self._layout.show_share_link(href)
        self._layout.clipboard.copy(href)
        return href

    def coordinates_text(self) -> str:
        state = self.state
        return f"{state.map}  x={state.x:.1f}  y={state.y:.1f}  zoom={state.zoom:.4g}"

    def copy_coordinates(self) -> str:
        """Copy the coordinate readout to the clipboard and return it."""
        text = self.coordinates_text()
        self._layout.clipboard.copy(text)
        return text

    def set_overlay(self, key: Any, visible: bool) -> bool:
        """Show or hide an overlay on every map that defines it."""
        overlay = self._registry.as_overlay_key(key)
        if overlay is None:
            logger.warning("Ignoring unknown overlay %r", key)
            return False
        self._renderer.show_overlay(overlay, visible)
        self._layout.show_overlay(overlay, visible)
        return True

    def set_renderer(self, renderer: Any) -> bool:
        """Persist and apply a renderer choice; unknown values are ignored."""
        if not is_renderer(renderer):
            logger.warning("Ignoring unknown renderer %r", renderer)
            return False
        if renderer == self._renderer.renderer:
            return False
        self._preferences.save(renderer)
        self._renderer.set_renderer(renderer)
        self._layout.show_renderer(renderer)
        return True

    # --- Telemetry ---

    def handle_remote_message(self, text: str) -> bool:
        """Apply one telemetry message; return True when the view changed."""
        return self._channel.handle_message(text)

    def start_feed(self) -> asyncio.Task:
        """Connect to ``config.feed_url`` and apply incoming telemetry."""
        if self._feed is None:
            self._feed = WebSocketFeed(
                self._config.feed_url,
                self._channel.handle_message,
                reconnect_delay_s=self._config.feed_reconnect_delay_s,
            )
        return self._feed.start()

    def stop_feed(self) -> None:
        if self._feed is not None:
            self._feed.stop()

    def close(self) -> None:
        """Tear down timers, the feed and every subscription."""
        self.stop_feed()
        self._url_sync.close()
        self._renderer.close()
        self._bus.clear()

    # --- Internal / Plumbing ---

    def _on_state_change(self, event: StateChange) -> None:
        state = event.state
        self._layout.show_map(state.map)
        self._search.current_map = state.map
        self._layout.show_coordinates(self.coordinates_text())

    def _on_loading_change(self, event: LoadingChange) -> None:
        self._layout.show_loading(event.loading)

    def _on_selected(self, event: Selected) -> None:
        self._controller.goto(event.target)

    def _on_nav(self, value: Any) -> None:
        key = self._registry.as_map_name(value)
        if key is None:
            logger.error("Attempted to change to an unknown map: %r", value)
            self._layout.show_map(self.state.map)
            return
        if not self._controller.set_map(key):
            # Put the toggle back on the map that is actually shown.
            self._layout.show_map(self.state.map)

    def _on_interaction(self, active: bool) -> None:
        if active:
            self._controller.begin_interaction()
        else:
            self._controller.end_interaction()

    def _ipython_display_(self, **kwargs: Any) -> None:
        """
        Special method called by IPython to display the object.
        Uses IPython.display.display() to render the underlying widget.
        """
        display(self._layout.root_widget)

    def __repr__(self) -> str:
        return f"MapViewer(state={self._controller.state!r})"
