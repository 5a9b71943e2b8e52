"""Search box collaborator.

Autocomplete is delegated to ``ipywidgets.Combobox``; this module only keeps
the per-map option list and turns a submitted label into a
:class:`~tileview.events.Selected` event.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Dict, Optional

import ipywidgets as widgets

from .bus import EventBus
from .events import Selected
from .view_state import TargetOfInterest

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


class SearchBox:
    """Combobox over the search targets of the current map.

    Parameters
    ----------
    bus : EventBus
        Receives ``Selected`` events.
    targets : Iterable[TargetOfInterest]
        Every searchable target, across all maps.
    current_map : str
        Map whose targets are offered first.
    """

    def __init__(self, bus: EventBus, targets: Iterable[TargetOfInterest], *, current_map: str) -> None:
        self._bus = bus
        self._targets: Dict[str, Dict[str, TargetOfInterest]] = {}
        for target in targets:
            self._targets.setdefault(target.map, {})[target.label] = target
        self._current_map = current_map
        self._clearing = False

        self._combobox = widgets.Combobox(
            placeholder="Search this map",
            ensure_option=True,
            continuous_update=False,
            layout=widgets.Layout(width="260px"),
        )
        self._combobox.observe(self._on_value, names="value")
        self._refresh_options()

    @property
    def widget(self) -> widgets.Combobox:
        return self._combobox

    @property
    def current_map(self) -> str:
        return self._current_map

    @current_map.setter
    def current_map(self, map_id: str) -> None:
        if map_id == self._current_map:
            return
        self._current_map = map_id
        self._refresh_options()

    def find(self, label: str) -> Optional[TargetOfInterest]:
        """Return the current map's target with ``label``, if any."""
        return self._targets.get(self._current_map, {}).get(label)

    def select(self, label: str) -> bool:
        """Publish the target named ``label``; return False when unknown."""
        target = self.find(label)
        if target is None:
            logger.debug("No search target %r on map %r", label, self._current_map)
            return False
        self._bus.emit(Selected(target=target))
        return True

    def _refresh_options(self) -> None:
        labels = sorted(self._targets.get(self._current_map, {}))
        self._combobox.options = tuple(labels)
        if self._combobox.value and self._combobox.value not in labels:
            self._combobox.value = ""

    def _on_value(self, change: Any) -> None:
        label = change.get("new") if isinstance(change, dict) else getattr(change, "new", None)
        if not label or self._clearing:
            return
        if not self.select(label):
            return
        # Empty the box so choosing the same label again is a fresh change.
        self._clearing = True
        try:
            self._combobox.value = ""
        finally:
            self._clearing = False
