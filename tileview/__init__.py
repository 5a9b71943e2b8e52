"""Top-level public API for the ``tileview`` package.

This module re-exports the viewer and its state-synchronization building
blocks so users can import from a single namespace, for example:

>>> from tileview import MapViewer, ViewState  # doctest: +SKIP

The lower-level pieces (codec, debouncer, bus, controller, telemetry channel)
are exposed for integrations that bring their own renderer or location.
"""

from . import codec
from .app import MapViewer
from .bus import EventBus, Subscription
from .clipboard import ClipboardDriver
from .config import ViewerConfig
from .controller import ControllerPhase, MapRenderer, ViewStateController
from .debouncing import AmbientScheduler, Debouncer, ManualScheduler, QueuedDebouncer, debounce
from .events import LoadingChange, Selected, StateChange, Topic
from .location import Location, MemoryLocation, UrlSync
from .maps import DEFAULT_MAPS, MapOverlay, MapRegistry, MapSpec, default_registry
from .preferences import RendererPreference, is_renderer
from .remote import (
    RemoteFrame,
    RemoteOverridePolicy,
    RemoteViewChannel,
    WebSocketFeed,
    parse_frame,
)
from .renderer import PlotlyMapRenderer
from .search import SearchBox
from .view_state import ChangeSource, TargetOfInterest, ViewState

__all__ = [
    "AmbientScheduler",
    "ChangeSource",
    "ClipboardDriver",
    "ControllerPhase",
    "DEFAULT_MAPS",
    "Debouncer",
    "EventBus",
    "LoadingChange",
    "Location",
    "ManualScheduler",
    "MapOverlay",
    "MapRegistry",
    "MapRenderer",
    "MapSpec",
    "MapViewer",
    "MemoryLocation",
    "PlotlyMapRenderer",
    "QueuedDebouncer",
    "RemoteFrame",
    "RemoteOverridePolicy",
    "RemoteViewChannel",
    "RendererPreference",
    "SearchBox",
    "Selected",
    "StateChange",
    "Subscription",
    "TargetOfInterest",
    "Topic",
    "UrlSync",
    "ViewState",
    "ViewStateController",
    "ViewerConfig",
    "WebSocketFeed",
    "codec",
    "debounce",
    "default_registry",
    "is_renderer",
    "parse_frame",
]
