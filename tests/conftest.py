from __future__ import annotations

import sys
from pathlib import Path

import pytest

_START = Path(__file__).resolve().parent
_repo_root = _START
while _repo_root != _repo_root.parent and not (_repo_root / "tileview" / "__init__.py").exists():
    _repo_root = _repo_root.parent

sys.path.insert(0, str(_repo_root))

from tileview.bus import EventBus  # noqa: E402
from tileview.events import StateChange  # noqa: E402
from tileview.maps import MapRegistry, MapSpec  # noqa: E402
from tileview.view_state import ViewState  # noqa: E402


class RecordingRenderer:
    """Renderer double that records every call the controller makes."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def set_map(self, map_id, view=None) -> None:
        self.calls.append(("set_map", map_id, view))

    def set_zoom_pos(self, x, y, zoom) -> None:
        self.calls.append(("set_zoom_pos", x, y, zoom))


class DeferredReadyRenderer(RecordingRenderer):
    """Renderer double that reports readiness only when told to."""

    def __init__(self) -> None:
        super().__init__()
        self.ready_callbacks: list = []
        self.loading_callbacks: list = []

    def on_ready(self, callback) -> None:
        self.ready_callbacks.append(callback)

    def on_loading_change(self, callback) -> None:
        self.loading_callbacks.append(callback)

    def fire_ready(self) -> None:
        for callback in self.ready_callbacks:
            callback()

    def fire_loading(self, loading: bool) -> None:
        for callback in self.loading_callbacks:
            callback(loading)


@pytest.fixture
def registry() -> MapRegistry:
    return MapRegistry(
        [
            MapSpec(key="surface", title="Surface", coordinate_space="world",
                    default_x=100.0, default_y=200.0, default_zoom=0.5),
            MapSpec(key="surface-night", title="Surface (Night)", coordinate_space="world",
                    default_x=100.0, default_y=200.0, default_zoom=0.5),
            MapSpec(key="caves", title="Caves", coordinate_space="caves",
                    default_x=10.0, default_y=20.0, default_zoom=2.0),
        ],
        default_map="surface",
    )


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def state_changes(bus: EventBus) -> list[StateChange]:
    seen: list[StateChange] = []
    bus.on(StateChange, seen.append)
    return seen


@pytest.fixture
def start_state() -> ViewState:
    return ViewState(map="surface", x=1000.0, y=2000.0, zoom=0.25)


@pytest.fixture
def renderer() -> RecordingRenderer:
    return RecordingRenderer()


@pytest.fixture
def deferred_renderer() -> DeferredReadyRenderer:
    return DeferredReadyRenderer()
