from __future__ import annotations

from tileview.controller import ViewStateController
from tileview.debouncing import ManualScheduler
from tileview.location import MemoryLocation, UrlSync


def _setup(renderer, bus, registry, start_state):
    clock = ManualScheduler()
    location = MemoryLocation(base_url="https://maps.example/")
    sync = UrlSync(bus, location, scheduler=clock)
    controller = ViewStateController(renderer, bus, registry)
    controller.initialize(start_state)
    return clock, location, sync, controller


def test_boot_state_is_written_after_quiet_window(renderer, bus, registry, start_state) -> None:
    clock, location, _sync, _controller = _setup(renderer, bus, registry, start_state)

    clock.advance(99)
    assert location.writes == []

    clock.advance(1)
    assert location.writes == ["map=surface&x=1000&y=2000&zoom=200"]
    assert location.href == "https://maps.example/?map=surface&x=1000&y=2000&zoom=200"


def test_burst_of_pans_writes_only_final_state(renderer, bus, registry, start_state) -> None:
    clock, location, _sync, controller = _setup(renderer, bus, registry, start_state)
    clock.advance(100)
    location.writes.clear()

    for step in range(1, 6):
        controller.set_view(float(step), 0.5, 1.0)
        clock.advance(30)
    clock.advance(100)

    assert location.writes == ["map=surface&x=5&y=0.5&zoom=0"]


def test_map_switch_is_persisted(renderer, bus, registry, start_state) -> None:
    clock, location, _sync, controller = _setup(renderer, bus, registry, start_state)

    controller.set_map("caves")
    clock.advance(100)

    assert location.query == "map=caves&x=10&y=20&zoom=-100"


def test_flush_writes_pending_state_now(renderer, bus, registry, start_state) -> None:
    _clock, location, sync, controller = _setup(renderer, bus, registry, start_state)
    controller.set_view(1.0, 2.0, 0.5)

    assert sync.pending is True
    sync.flush()

    assert location.query == "map=surface&x=1&y=2&zoom=100"
    assert sync.pending is False


def test_close_drops_pending_write_and_unsubscribes(renderer, bus, registry, start_state) -> None:
    clock, location, sync, controller = _setup(renderer, bus, registry, start_state)

    sync.close()
    controller.set_view(1.0, 2.0, 0.5)
    clock.advance(1000)

    assert location.writes == []


def test_identical_query_is_not_rewritten() -> None:
    location = MemoryLocation(query="?map=surface&x=1&y=2&zoom=0")

    location.replace_query("map=surface&x=1&y=2&zoom=0")

    assert location.writes == []
    assert location.query == "map=surface&x=1&y=2&zoom=0"
