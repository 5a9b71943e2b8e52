"""Viewer layout primitives.

This module builds the notebook widget tree used by :class:`MapViewer` and
keeps all ipywidgets wiring out of the state-synchronization code.

Layout
------
::

    +-----------------------------------------------------------------+
    | [Home] [map A | map B | ...]  Current map   search   [Share] ... |
    +-----------------------------------------------------------------+
    | loading...                                                      |
    | <Plotly canvas>                                                 |
    | coordinates [Copy]   [ ] overlay ...   renderer: (o) webgl ( ) svg |
    +-----------------------------------------------------------------+
"""

from __future__ import annotations

import html
from collections.abc import Callable
from typing import Any, Optional

import ipywidgets as widgets

from .clipboard import ClipboardDriver
from .maps import MapRegistry
from .preferences import RENDERERS


def _change_value(change: Any) -> Any:
    if isinstance(change, dict):
        return change.get("new")
    return getattr(change, "new", None)


# SECTION: ViewerLayout (The View) [id: ViewerLayout]
# =============================================================================


class ViewerLayout:
    """
    Own the widget hierarchy of a map viewer.

    Responsibilities:
    - Building the nav bar, canvas slot and status row.
    - Exposing small ``observe_*`` hooks for user actions.
    - Reflecting state pushed in by consumers (active map, loading, share
      link, coordinates).

    Nothing here reads or writes view state; the composition root decides
    what each action does.
    """

    def __init__(self, registry: MapRegistry, *, renderer: str) -> None:
        self._titles = {spec.key: spec.title for spec in registry}
        self._syncing_nav = False
        self._syncing_overlays = False

        self.home_button = widgets.Button(
            description="Home",
            icon="home",
            tooltip="Back to the default view",
            layout=widgets.Layout(width="auto"),
        )
        self.nav = widgets.ToggleButtons(
            options=[(spec.title, spec.key) for spec in registry],
            value=registry.default_map,
            style=widgets.ToggleButtonsStyle(button_width="auto"),
        )
        self.map_name = widgets.HTML(value="")
        self.search_slot = widgets.Box(layout=widgets.Layout(align_items="center"))
        self.share_button = widgets.Button(
            description="Share",
            icon="link",
            tooltip="Show a link to this view",
            layout=widgets.Layout(width="auto"),
        )
        self.share_text = widgets.Text(
            value="",
            disabled=True,
            layout=widgets.Layout(width="360px", display="none"),
        )
        self.loading_indicator = widgets.HTML(
            value="<em>loading&hellip;</em>",
            layout=widgets.Layout(display="none"),
        )
        self.canvas_slot = widgets.Box(layout=widgets.Layout(width="100%"))
        self.coordinates = widgets.HTML(value="")
        self.copy_button = widgets.Button(
            description="Copy",
            icon="copy",
            tooltip="Copy the coordinates",
            layout=widgets.Layout(width="auto"),
        )
        self.clipboard = ClipboardDriver()
        self.overlay_checkboxes = {
            key: widgets.Checkbox(value=False, description=title, indent=False)
            for key, title in registry.overlay_titles.items()
        }
        self.overlay_selector = widgets.HBox(list(self.overlay_checkboxes.values()))
        self.renderer_choice = widgets.RadioButtons(
            options=list(RENDERERS),
            value=renderer,
            description="Renderer",
            layout=widgets.Layout(width="auto"),
        )

        nav_bar = widgets.HBox(
            [
                self.home_button,
                self.nav,
                self.map_name,
                self.search_slot,
                self.share_button,
                self.share_text,
            ],
            layout=widgets.Layout(align_items="center", flex_flow="row wrap"),
        )
        status_bar = widgets.HBox(
            [
                widgets.HBox([self.coordinates, self.copy_button, self.clipboard]),
                self.overlay_selector,
                self.renderer_choice,
            ],
            layout=widgets.Layout(justify_content="space-between", align_items="center"),
        )
        self.root_widget = widgets.VBox(
            [nav_bar, self.loading_indicator, self.canvas_slot, status_bar],
            layout=widgets.Layout(width="100%"),
        )

    # --- Slots ---

    def set_canvas(self, widget: widgets.DOMWidget) -> None:
        self.canvas_slot.children = (widget,)

    def set_search(self, widget: widgets.DOMWidget) -> None:
        self.search_slot.children = (widget,)

    # --- User actions ---

    def observe_nav(self, callback: Callable[[str], Any]) -> None:
        """Call ``callback(map_key)`` when the user picks a nav entry."""

        def _handler(change: Any) -> None:
            if self._syncing_nav:
                return
            callback(_change_value(change))

        self.nav.observe(_handler, names="value")

    def observe_home(self, callback: Callable[[], Any]) -> None:
        self.home_button.on_click(lambda _button: callback())

    def observe_share(self, callback: Callable[[], Any]) -> None:
        self.share_button.on_click(lambda _button: callback())

    def observe_renderer(self, callback: Callable[[str], Any]) -> None:
        self.renderer_choice.observe(lambda change: callback(_change_value(change)), names="value")

    def observe_copy(self, callback: Callable[[], Any]) -> None:
        self.copy_button.on_click(lambda _button: callback())

    def observe_overlays(self, callback: Callable[[str, bool], Any]) -> None:
        """Call ``callback(overlay_key, checked)`` when a checkbox is toggled."""
        for key, checkbox in self.overlay_checkboxes.items():

            def _handler(change: Any, key: str = key) -> None:
                if self._syncing_overlays:
                    return
                callback(key, bool(_change_value(change)))

            checkbox.observe(_handler, names="value")

    # --- Reflected state ---

    def show_map(self, map_key: str) -> None:
        """Highlight ``map_key`` in the nav bar and show its name."""
        title = self._titles.get(map_key)
        if title is None:
            return
        self.map_name.value = f"<b>{html.escape(title)}</b>"
        if self.nav.value != map_key:
            self._syncing_nav = True
            try:
                self.nav.value = map_key
            finally:
                self._syncing_nav = False

    def show_loading(self, loading: bool) -> None:
        self.loading_indicator.layout.display = "block" if loading else "none"

    def show_share_link(self, href: str) -> None:
        self.share_text.value = href
        self.share_text.layout.display = "flex"

    def show_renderer(self, renderer: str) -> None:
        if self.renderer_choice.value != renderer:
            self.renderer_choice.value = renderer

    def show_coordinates(self, text: str) -> None:
        self.coordinates.value = f"<code>{html.escape(text)}</code>"

    def show_overlay(self, key: str, visible: bool) -> None:
        checkbox = self.overlay_checkboxes.get(key)
        if checkbox is None or checkbox.value == bool(visible):
            return
        self._syncing_overlays = True
        try:
            checkbox.value = bool(visible)
        finally:
            self._syncing_overlays = False

    @property
    def is_loading_visible(self) -> bool:
        return self.loading_indicator.layout.display == "block"

    def active_nav(self) -> Optional[str]:
        return self.nav.value
