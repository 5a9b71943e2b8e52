"""Persisted renderer preference.

The viewer remembers one setting across sessions: which Plotly backend draws
markers on the map canvas. ``"webgl"`` uses ``Scattergl`` traces and
``"svg"`` uses ``Scatter`` traces. The value lives under the ``renderer`` key
of a small JSON file.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Literal, Optional

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

Renderer = Literal["webgl", "svg"]

RENDERERS: tuple[str, ...] = ("webgl", "svg")
DEFAULT_RENDERER: Renderer = "webgl"
PREFERENCE_KEY = "renderer"
DEFAULT_PREFERENCES_PATH = Path.home() / ".tileview" / "preferences.json"


def is_renderer(value: Any) -> bool:
    """Return True when ``value`` names a supported renderer."""
    return isinstance(value, str) and value in RENDERERS


class RendererPreference:
    """Read and write the stored renderer choice.

    Parameters
    ----------
    path : Path or str, optional
        JSON file holding the preference. Defaults to
        ``~/.tileview/preferences.json``.
    """

    def __init__(self, path: Optional[Path | str] = None) -> None:
        self._path = Path(path) if path is not None else DEFAULT_PREFERENCES_PATH

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, Any]:
        try:
            with self._path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            logger.warning("Could not read preferences from %s: %s", self._path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def load(self) -> Renderer:
        """Return the stored renderer, or the default when unset or invalid."""
        value = self._read_all().get(PREFERENCE_KEY)
        if is_renderer(value):
            return value
        if value is not None:
            logger.warning("Ignoring unknown stored renderer %r", value)
        return DEFAULT_RENDERER

    def save(self, value: str) -> None:
        """Persist ``value``.

        Raises
        ------
        ValueError
            If ``value`` is not a supported renderer.
        """
        if not is_renderer(value):
            raise ValueError(f"Unknown renderer: {value!r}")
        data = self._read_all()
        data[PREFERENCE_KEY] = value
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
