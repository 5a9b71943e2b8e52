"""URL query encoding for :class:`~tileview.view_state.ViewState`.

The deep-link format carries exactly four parameters, always in this order::

    ?map=<key>&x=<float>&y=<float>&zoom=<zoom code>

``zoom`` is written as an integer *zoom code*, the same logarithmic unit the
telemetry feed uses (``zoom = 2 ** (-code / 100)``). Decoding therefore
recovers zoom only up to that quantization; ``x`` and ``y`` round-trip
exactly.
"""

from __future__ import annotations

import logging
import math
from typing import Optional
from urllib.parse import parse_qs, urlencode, urlsplit

from .maps import MapRegistry
from .view_state import ViewState

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

QUERY_KEYS: tuple[str, str, str, str] = ("map", "x", "y", "zoom")

ZOOM_CODE_SCALE = 100.0


def zoom_from_code(code: float) -> float:
    """Convert a logarithmic zoom code to a linear zoom factor.

    >>> zoom_from_code(100)
    0.5
    >>> zoom_from_code(-100)
    2.0
    """
    return math.pow(2.0, -code / ZOOM_CODE_SCALE)


def zoom_to_code(zoom: float) -> int:
    """Convert a linear zoom factor to the nearest integer zoom code."""
    if not (math.isfinite(zoom) and zoom > 0.0):
        raise ValueError(f"zoom must be finite and positive, got {zoom!r}")
    return int(round(-ZOOM_CODE_SCALE * math.log2(zoom)))


def _format_number(value: float) -> str:
    if value.is_integer():
        return str(int(value))
    return repr(value)


def encode(state: ViewState) -> str:
    """Return the canonical query string (without ``?``) for ``state``."""
    return urlencode(
        [
            ("map", state.map),
            ("x", _format_number(state.x)),
            ("y", _format_number(state.y)),
            ("zoom", str(zoom_to_code(state.zoom))),
        ]
    )


def _query_part(query: str) -> str:
    text = query.strip()
    if "://" in text or text.startswith("/"):
        return urlsplit(text).query
    return text[1:] if text.startswith("?") else text


def decode(query: str, registry: MapRegistry) -> Optional[ViewState]:
    """Parse ``query`` into a :class:`ViewState`, or return ``None``.

    Parameters
    ----------
    query : str
        Raw query string, with or without a leading ``?``. A full URL is also
        accepted; only its query component is read.
    registry : MapRegistry
        Known maps used to validate the ``map`` parameter.

    Returns
    -------
    ViewState or None
        ``None`` when any parameter is missing or malformed, the map is
        unknown, or a number is not finite.
    """
    if not isinstance(query, str):
        return None
    params = parse_qs(_query_part(query), keep_blank_values=False)

    values: dict[str, str] = {}
    for key in QUERY_KEYS:
        found = params.get(key)
        if not found:
            logger.debug("deep link is missing %r", key)
            return None
        values[key] = found[0]

    map_name = registry.as_map_name(values["map"])
    if map_name is None:
        logger.debug("deep link names unknown map %r", values["map"])
        return None

    try:
        x = float(values["x"])
        y = float(values["y"])
        zoom = zoom_from_code(float(values["zoom"]))
        return ViewState(map=map_name, x=x, y=y, zoom=zoom)
    except (ValueError, OverflowError) as exc:
        logger.debug("malformed deep link %r: %s", query, exc)
        return None
