from __future__ import annotations

import logging

import pytest

from tileview.debouncing import ManualScheduler
from tileview.maps import MapOverlay, MapRegistry, MapSpec
from tileview.renderer import PlotlyMapRenderer, ranges_to_viewport, viewport_to_ranges
from tileview.view_state import ViewState


@pytest.fixture
def clock() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def plotly_renderer(registry, clock) -> PlotlyMapRenderer:
    return PlotlyMapRenderer(registry, relayout_throttle_ms=50, scheduler=clock)


def _user_pan(fig, x_range, y_range) -> None:
    with fig.batch_update():
        fig.layout.xaxis.range = x_range
        fig.layout.yaxis.range = y_range


def test_viewport_ranges_round_trip() -> None:
    spec = MapSpec(key="m", title="M", coordinate_space="s", extent=(1024, 512))

    x_range, y_range = viewport_to_ranges(spec, 100.0, 50.0, 2.0)

    assert x_range == (-156.0, 356.0)
    assert y_range == (178.0, -78.0)
    assert ranges_to_viewport(spec, x_range, y_range) == pytest.approx((100.0, 50.0, 2.0))


@pytest.mark.parametrize(
    ("x_range", "y_range"),
    [((5.0, 5.0), (0.0, 1.0)), ((0.0, float("nan")), (0.0, 1.0)), (None, (0.0, 1.0)), ((0.0, 1.0, 2.0), (0.0, 1.0))],
)
def test_degenerate_ranges_have_no_viewport(x_range, y_range) -> None:
    spec = MapSpec(key="m", title="M", coordinate_space="s")

    assert ranges_to_viewport(spec, x_range, y_range) is None


def test_set_map_reports_loading_and_ready_once(plotly_renderer) -> None:
    loading: list[bool] = []
    ready: list[bool] = []
    plotly_renderer.on_loading_change(loading.append)
    plotly_renderer.on_ready(lambda: ready.append(True))

    plotly_renderer.set_map("surface", ViewState(map="surface", x=0.0, y=0.0, zoom=1.0))
    plotly_renderer.set_map("caves")

    assert loading == [True, False, True, False]
    assert ready == [True]
    assert plotly_renderer.current_map == "caves"
    assert plotly_renderer.figure_widget.layout.title.text == "Caves"


def test_set_map_without_view_uses_map_default(plotly_renderer) -> None:
    plotly_renderer.set_map("caves")

    spec = plotly_renderer._registry.require("caves")
    assert plotly_renderer.ranges == viewport_to_ranges(spec, 10.0, 20.0, 2.0)
    assert tuple(plotly_renderer.figure_widget.layout.xaxis.range) == pytest.approx((-246.0, 266.0))


def test_set_zoom_pos_requires_a_map(plotly_renderer) -> None:
    with pytest.raises(RuntimeError):
        plotly_renderer.set_zoom_pos(0.0, 0.0, 1.0)


def test_pushed_viewport_does_not_echo_back(plotly_renderer, clock) -> None:
    viewports: list[tuple] = []
    plotly_renderer.on_viewport_change(lambda *args: viewports.append(args))

    plotly_renderer.set_map("surface")
    plotly_renderer.set_zoom_pos(5.0, 6.0, 4.0)
    clock.advance(1000)

    assert viewports == []
    assert list(plotly_renderer.figure_widget.data[0].x) == [5.0]


def test_user_pan_is_throttled_and_reports_final_viewport(plotly_renderer, clock) -> None:
    viewports: list[tuple] = []
    interacting: list[bool] = []
    plotly_renderer.on_viewport_change(lambda *args: viewports.append(args))
    plotly_renderer.on_interaction_change(interacting.append)
    plotly_renderer.set_map("surface", ViewState(map="surface", x=512.0, y=512.0, zoom=1.0))

    fig = plotly_renderer.figure_widget
    _user_pan(fig, (10.0, 1034.0), (1034.0, 10.0))
    _user_pan(fig, (100.0, 612.0), (612.0, 100.0))
    assert interacting == [True]

    clock.advance(50)
    assert viewports == [pytest.approx((356.0, 356.0, 2.0))]

    clock.advance(250)
    assert interacting == [True, False]


def test_set_renderer_swaps_trace_type_and_keeps_marker(plotly_renderer) -> None:
    plotly_renderer.set_map("surface", ViewState(map="surface", x=1.0, y=2.0, zoom=1.0))
    assert plotly_renderer.figure_widget.data[0].type == "scattergl"

    plotly_renderer.set_renderer("svg")

    trace = plotly_renderer.figure_widget.data[0]
    assert plotly_renderer.renderer == "svg"
    assert trace.type == "scatter"
    assert list(trace.x) == [1.0]
    assert len(plotly_renderer.figure_widget.data) == 1

    with pytest.raises(ValueError):
        plotly_renderer.set_renderer("canvas")


def test_background_image_is_placed_in_map_coordinates(clock) -> None:
    registry = MapRegistry(
        [MapSpec(key="m", title="M", coordinate_space="s", image_source="https://tiles.example/m.png",
                 image_size=(256, 128))]
    )
    plotly_renderer = PlotlyMapRenderer(registry, renderer="svg", scheduler=clock)

    plotly_renderer.set_map("m")

    (image,) = plotly_renderer.figure_widget.layout.images
    assert image.source == "https://tiles.example/m.png"
    assert (image.sizex, image.sizey) == (256, 128)
    assert image.xref == "x"


def test_failing_callback_is_logged(plotly_renderer, caplog) -> None:
    def _boom(_loading) -> None:
        raise RuntimeError("boom")

    plotly_renderer.on_loading_change(_boom)

    with caplog.at_level(logging.ERROR, logger="tileview.renderer"):
        plotly_renderer.set_map("surface")

    assert plotly_renderer.current_map == "surface"
    assert "Renderer callback" in caplog.text


def test_unknown_renderer_is_rejected(registry) -> None:
    with pytest.raises(ValueError):
        PlotlyMapRenderer(registry, renderer="canvas")


# --- Overlays ---


@pytest.fixture
def overlay_registry() -> MapRegistry:
    towers = MapOverlay(key="towers", title="Towers", x=(1.0, 2.0), y=(3.0, 4.0), labels=("North", "South"))
    gates = MapOverlay(key="gates", title="Gates", x=(5.0,), y=(6.0,))
    return MapRegistry(
        [
            MapSpec(key="day", title="Day", coordinate_space="world", overlays=(towers,)),
            MapSpec(key="night", title="Night", coordinate_space="world", overlays=(towers,)),
            MapSpec(key="depths", title="Depths", coordinate_space="depths", overlays=(gates,)),
        ]
    )


def _overlay_traces(renderer: PlotlyMapRenderer) -> dict:
    return {trace.name: trace for trace in renderer.figure_widget.data[1:]}


def test_overlays_start_hidden_and_toggle(overlay_registry, clock) -> None:
    renderer = PlotlyMapRenderer(overlay_registry, scheduler=clock)
    renderer.set_map("day")

    towers = _overlay_traces(renderer)["Towers"]
    assert towers.visible is False
    assert list(towers.text) == ["North", "South"]

    renderer.show_overlay("towers", True)
    assert _overlay_traces(renderer)["Towers"].visible is True
    assert renderer.visible_overlays == frozenset({"towers"})

    renderer.show_overlay("towers", False)
    assert _overlay_traces(renderer)["Towers"].visible is False


def test_overlay_choice_follows_map_switches(overlay_registry, clock) -> None:
    renderer = PlotlyMapRenderer(overlay_registry, scheduler=clock)
    renderer.set_map("day")
    renderer.show_overlay("towers", True)

    renderer.set_map("depths")
    assert set(_overlay_traces(renderer)) == {"Gates"}
    assert _overlay_traces(renderer)["Gates"].visible is False

    renderer.set_map("night")
    assert _overlay_traces(renderer)["Towers"].visible is True


def test_overlays_survive_renderer_swap(overlay_registry, clock) -> None:
    renderer = PlotlyMapRenderer(overlay_registry, scheduler=clock)
    renderer.set_map("day", ViewState(map="day", x=7.0, y=8.0, zoom=1.0))
    renderer.show_overlay("towers", True)

    renderer.set_renderer("svg")

    marker, towers = renderer.figure_widget.data
    assert (marker.type, towers.type) == ("scatter", "scatter")
    assert list(marker.x) == [7.0]
    assert towers.visible is True


def test_unknown_overlay_is_rejected(overlay_registry, clock) -> None:
    renderer = PlotlyMapRenderer(overlay_registry, scheduler=clock)

    with pytest.raises(KeyError):
        renderer.show_overlay("rivers", True)


def test_push_drops_pan_still_waiting_for_its_tick(plotly_renderer, clock) -> None:
    viewports: list[tuple] = []
    plotly_renderer.on_viewport_change(lambda *viewport: viewports.append(viewport))
    plotly_renderer.set_map("surface", ViewState(map="surface", x=512.0, y=512.0, zoom=1.0))

    _user_pan(plotly_renderer.figure_widget, (0.0, 2048.0), (2048.0, 0.0))
    plotly_renderer.set_zoom_pos(3.0, 4.0, 0.5)
    clock.advance(50)

    assert viewports == []
