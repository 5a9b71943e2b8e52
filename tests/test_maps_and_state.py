from __future__ import annotations

import pytest

from tileview.maps import DEFAULT_MAPS, MapOverlay, MapRegistry, MapSpec, default_registry
from tileview.view_state import ViewState


def test_view_state_coerces_numbers() -> None:
    state = ViewState(map="surface", x=1, y="2.5", zoom=1)

    assert (state.x, state.y, state.zoom) == (1.0, 2.5, 1.0)
    assert isinstance(state.x, float)


@pytest.mark.parametrize(
    "kwargs",
    [
        dict(map="", x=0, y=0, zoom=1),
        dict(map=None, x=0, y=0, zoom=1),
        dict(map="m", x=float("nan"), y=0, zoom=1),
        dict(map="m", x=0, y=float("-inf"), zoom=1),
        dict(map="m", x=0, y=0, zoom=0),
        dict(map="m", x=0, y=0, zoom=-2),
        dict(map="m", x="east", y=0, zoom=1),
    ],
)
def test_view_state_rejects_invalid_values(kwargs) -> None:
    with pytest.raises(ValueError):
        ViewState(**kwargs)


def test_view_state_copies() -> None:
    state = ViewState(map="a", x=1.0, y=2.0, zoom=3.0)

    assert state.with_map("b") == ViewState(map="b", x=1.0, y=2.0, zoom=3.0)
    assert state.with_position(y=9.0) == ViewState(map="a", x=1.0, y=9.0, zoom=3.0)


def test_registry_lookup(registry: MapRegistry) -> None:
    assert registry.keys == ("surface", "surface-night", "caves")
    assert len(registry) == 3
    assert "caves" in registry
    assert registry.as_map_name(" caves ") == "caves"
    assert registry.as_map_name("Caves") is None
    assert registry.as_map_name(3) is None
    assert registry.shares_coordinate_space("surface", "surface-night")
    assert not registry.shares_coordinate_space("surface", "caves")


def test_registry_validation() -> None:
    spec = MapSpec(key="m", title="M", coordinate_space="s")

    with pytest.raises(ValueError):
        MapRegistry([])
    with pytest.raises(ValueError):
        MapRegistry([spec, spec])
    with pytest.raises(KeyError):
        MapRegistry([spec], default_map="other")
    with pytest.raises(KeyError):
        MapRegistry([spec]).require("other")


def test_default_registry_starts_on_overworld() -> None:
    registry = default_registry()

    assert registry.default_map == "overworld"
    assert registry.keys == tuple(spec.key for spec in DEFAULT_MAPS)
    assert registry.default_state() == ViewState(map="overworld", x=4096.0, y=4096.0, zoom=0.125)


def test_overlay_validation() -> None:
    with pytest.raises(ValueError):
        MapOverlay(key="o", title="O", x=(1.0, 2.0), y=(1.0,))
    with pytest.raises(ValueError):
        MapOverlay(key="o", title="O", x=(1.0,), y=(1.0,), labels=("a", "b"))


def test_registry_lists_overlays_across_maps() -> None:
    registry = default_registry()

    assert registry.overlay_titles == {"waypoints": "Waypoints", "teleports": "Teleports"}
    assert registry.as_overlay_key(" teleports ") == "teleports"
    assert registry.as_overlay_key("rivers") is None
    assert registry.as_overlay_key(None) is None
