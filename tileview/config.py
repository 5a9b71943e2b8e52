"""Viewer configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .location import URL_WRITE_DELAY_MS
from .preferences import DEFAULT_PREFERENCES_PATH
from .remote import DEFAULT_FEED_URL, RemoteOverridePolicy


@dataclass(frozen=True)
class ViewerConfig:
    """Settings for :class:`tileview.app.MapViewer`.

    Parameters
    ----------
    url_write_delay_ms : float
        Quiet window before the deep link is written to the location.
    relayout_throttle_ms : int
        Cadence at which canvas pan/zoom events reach the controller.
    feed_url : str
        Telemetry websocket endpoint.
    feed_reconnect_delay_s : float or None
        Delay before reconnecting the feed; ``None`` disables reconnection.
    remote_allow_zero : bool
        Accept ``0`` coordinates and zoom codes in telemetry frames.
    remote_policy : RemoteOverridePolicy
        Whether telemetry may interrupt a local gesture.
    preferences_path : Path
        JSON file with the stored renderer preference.
    base_url : str
        URL prefix for share links.
    canvas_height_px : int
        Height of the map canvas.
    """

    url_write_delay_ms: float = URL_WRITE_DELAY_MS
    relayout_throttle_ms: int = 50
    feed_url: str = DEFAULT_FEED_URL
    feed_reconnect_delay_s: Optional[float] = 2.0
    remote_allow_zero: bool = False
    remote_policy: RemoteOverridePolicy = RemoteOverridePolicy.ALWAYS
    preferences_path: Path = field(default=DEFAULT_PREFERENCES_PATH)
    base_url: str = ""
    canvas_height_px: int = 600

    def __post_init__(self) -> None:
        if self.url_write_delay_ms <= 0:
            raise ValueError("url_write_delay_ms must be > 0")
        if self.relayout_throttle_ms <= 0:
            raise ValueError("relayout_throttle_ms must be > 0")
        object.__setattr__(self, "remote_policy", RemoteOverridePolicy(self.remote_policy))
        object.__setattr__(self, "preferences_path", Path(self.preferences_path))
