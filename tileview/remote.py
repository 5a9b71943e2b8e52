"""Live telemetry feed that can override the view.

Purpose
-------
An external program streams the position it wants the viewer to show over a
websocket. Each text message is one record::

    x;y;zoomCode;map

``RemoteViewChannel`` validates a record and forwards it to
:meth:`ViewStateController.apply_remote_override`. ``WebSocketFeed`` owns the
connection and hands every text message to the channel.

Notes
-----
Validation is strict and silent: a malformed, partial or unknown-map frame is
dropped with a debug log line and never touches the canonical state.

By default a coordinate or zoom code of exactly ``0`` is treated as invalid,
matching what existing senders expect. Pass ``allow_zero=True`` to accept
zero as an ordinary value.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from .codec import zoom_from_code
from .controller import ViewStateController
from .maps import MapRegistry

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

DEFAULT_FEED_URL = "ws://localhost:25568"

FIELD_SEPARATOR = ";"


@dataclass(frozen=True)
class RemoteFrame:
    """One validated telemetry record, zoom already converted to linear scale."""

    x: float
    y: float
    zoom: float
    map: str


class RemoteOverridePolicy(str, Enum):
    """When remote frames may replace the view."""

    ALWAYS = "always"
    DEFER_TO_INTERACTION = "defer-to-interaction"


def _parse_number(text: str, *, allow_zero: bool) -> Optional[float]:
    try:
        value = float(text.strip())
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    if value == 0.0 and not allow_zero:
        return None
    return value


def parse_frame(text: Any, registry: MapRegistry, *, allow_zero: bool = False) -> Optional[RemoteFrame]:
    """Decode one ``x;y;zoomCode;map`` record.

    Parameters
    ----------
    text : str
        Raw websocket text message.
    registry : MapRegistry
        Known maps used to resolve the map field.
    allow_zero : bool, optional
        Accept ``0`` for x, y and the zoom code.

    Returns
    -------
    RemoteFrame or None
        ``None`` for any malformed record.

    Examples
    --------
    >>> from tileview.maps import default_registry
    >>> parse_frame("10;20;100;overworld", default_registry())
    RemoteFrame(x=10.0, y=20.0, zoom=0.5, map='overworld')
    >>> parse_frame("10;20;0;overworld", default_registry()) is None
    True
    """
    if not isinstance(text, str):
        return None
    fields = text.split(FIELD_SEPARATOR)
    if len(fields) < 4:
        return None

    x = _parse_number(fields[0], allow_zero=allow_zero)
    y = _parse_number(fields[1], allow_zero=allow_zero)
    code = _parse_number(fields[2], allow_zero=allow_zero)
    if x is None or y is None or code is None:
        return None

    map_name = registry.as_map_name(fields[3])
    if map_name is None:
        return None

    try:
        zoom = zoom_from_code(code)
    except OverflowError:
        return None
    if not (math.isfinite(zoom) and zoom > 0.0):
        return None
    return RemoteFrame(x=x, y=y, zoom=zoom, map=map_name)


class RemoteViewChannel:
    """Turn telemetry messages into controller overrides.

    Parameters
    ----------
    controller : ViewStateController
        Receiver of accepted overrides.
    allow_zero : bool, optional
        Accept ``0`` coordinates and zoom codes.
    policy : RemoteOverridePolicy, optional
        ``ALWAYS`` applies frames immediately; ``DEFER_TO_INTERACTION`` drops
        frames while the controller reports a local gesture.
    """

    def __init__(
        self,
        controller: ViewStateController,
        *,
        allow_zero: bool = False,
        policy: RemoteOverridePolicy = RemoteOverridePolicy.ALWAYS,
    ) -> None:
        self._controller = controller
        self._allow_zero = bool(allow_zero)
        self._policy = RemoteOverridePolicy(policy)
        self.accepted = 0
        self.rejected = 0
        self.suppressed = 0

    @property
    def policy(self) -> RemoteOverridePolicy:
        return self._policy

    def handle_message(self, text: Any) -> bool:
        """Apply one message; return ``True`` when the view changed."""
        frame = parse_frame(text, self._controller.registry, allow_zero=self._allow_zero)
        if frame is None:
            self.rejected += 1
            logger.debug("Discarding malformed telemetry frame %r", text)
            return False

        if (
            self._policy is RemoteOverridePolicy.DEFER_TO_INTERACTION
            and self._controller.is_interacting
        ):
            self.suppressed += 1
            logger.debug("Suppressing telemetry frame during local interaction")
            return False

        self.accepted += 1
        return self._controller.apply_remote_override(frame)


class WebSocketFeed:
    """Long-lived websocket client delivering text messages to a callback.

    Parameters
    ----------
    url : str
        Endpoint to connect to.
    on_message : callable
        Called with each inbound text message. Binary messages are ignored.
    reconnect_delay_s : float or None, optional
        Pause before reconnecting after the connection drops or fails.
        ``None`` disables reconnection.
    connect : callable, optional
        Factory returning an async context manager for one connection;
        defaults to :func:`websockets.asyncio.client.connect`.
    """

    def __init__(
        self,
        url: str,
        on_message: Callable[[str], Any],
        *,
        reconnect_delay_s: Optional[float] = 2.0,
        connect: Optional[Callable[[str], Any]] = None,
    ) -> None:
        self._url = url
        self._on_message = on_message
        self._reconnect_delay_s = reconnect_delay_s
        self._connect = connect if connect is not None else ws_connect
        self._task: Optional[asyncio.Task] = None
        self._stopped = False
        self._connected = False
        self.messages = 0

    @property
    def url(self) -> str:
        return self._url

    @property
    def connected(self) -> bool:
        return self._connected

    async def run(self) -> None:
        """Receive messages until :meth:`stop` is called or reconnection is off."""
        while not self._stopped:
            try:
                async with self._connect(self._url) as connection:
                    self._connected = True
                    logger.info("Telemetry feed connected to %s", self._url)
                    async for message in connection:
                        self._dispatch(message)
            except ConnectionClosed as exc:
                logger.info("Telemetry feed closed: %s", exc)
            except (OSError, WebSocketException, asyncio.TimeoutError) as exc:
                logger.warning("Telemetry feed connection to %s failed: %s", self._url, exc)
            finally:
                self._connected = False

            if self._stopped or self._reconnect_delay_s is None:
                break
            await asyncio.sleep(self._reconnect_delay_s)

    def start(self) -> asyncio.Task:
        """Schedule :meth:`run` on the current event loop."""
        if self._task is not None and not self._task.done():
            return self._task
        self._stopped = False
        self._task = asyncio.ensure_future(self.run())
        return self._task

    def stop(self) -> None:
        """Stop receiving; no further overrides arrive after this."""
        self._stopped = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    def _dispatch(self, message: Any) -> None:
        if not isinstance(message, str):
            logger.debug("Ignoring binary telemetry message (%d bytes)", len(message))
            return
        self.messages += 1
        try:
            self._on_message(message)
        except Exception:
            logger.exception("Telemetry message handler failed")
