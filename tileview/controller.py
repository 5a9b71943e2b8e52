"""Owner of the canonical view state.

Purpose
-------
``ViewStateController`` is the single mutator of :class:`ViewState`. Every
producer (deep link at boot, nav and search UI, pan/zoom on the canvas, the
remote telemetry feed) asks the controller for a change; the controller
validates the request, pushes the result to the rendering collaborator and
publishes exactly one :class:`~tileview.events.StateChange` per logical
change. Rejected or no-op requests publish nothing.

Concepts and structure
----------------------
The controller has two phases. In ``UNINITIALIZED`` only :meth:`initialize`
is accepted; afterwards every mutation is a transition ``READY(old) ->
READY(new)``.

Handlers of ``StateChange`` run synchronously. A mutation requested from
inside such a handler is queued and applied once the current emission has
been delivered to every subscriber, so consumers never observe a state that
was replaced mid-delivery.

Important gotchas
-----------------
- The controller pushes state to the renderer and never reads it back.
- :meth:`apply_remote_override` ignores :attr:`is_interacting`; suppressing
  remote frames during local interaction is a policy of
  :class:`tileview.remote.RemoteViewChannel`.
"""

from __future__ import annotations

import logging
from collections import deque
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Deque, Optional, Protocol

from .bus import EventBus
from .events import LoadingChange, StateChange
from .maps import MapRegistry
from .view_state import ChangeSource, TargetOfInterest, ViewState

if TYPE_CHECKING:
    from .remote import RemoteFrame

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


class MapRenderer(Protocol):
    """Rendering collaborator driven by the controller.

    Renderers may additionally expose ``on_ready(callback)``,
    ``on_loading_change(callback)`` and ``on_viewport_change(callback)``
    registration hooks.
    """

    def set_map(self, map_id: str, view: Optional[ViewState] = None) -> None: ...

    def set_zoom_pos(self, x: float, y: float, zoom: float) -> None: ...


class ControllerPhase(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"


class ViewStateController:
    """Single source of truth for ``{map, x, y, zoom}``.

    Parameters
    ----------
    renderer : MapRenderer
        Collaborator that displays the state.
    bus : EventBus
        Channel used to publish ``StateChange`` and ``LoadingChange``.
    registry : MapRegistry
        Known maps; used to validate every map identifier.

    Examples
    --------
    >>> from tileview.maps import default_registry
    >>> class _Null:
    ...     def set_map(self, map_id, view=None): pass
    ...     def set_zoom_pos(self, x, y, zoom): pass
    >>> ctl = ViewStateController(_Null(), EventBus(), default_registry())
    >>> ctl.initialize(None)
    >>> ctl.set_map("underground")
    True
    >>> ctl.set_map("doesNotExist")
    False
    """

    def __init__(self, renderer: MapRenderer, bus: EventBus, registry: MapRegistry) -> None:
        self._renderer = renderer
        self._bus = bus
        self._registry = registry

        self._phase = ControllerPhase.UNINITIALIZED
        self._state: Optional[ViewState] = None
        self._emitting = False
        self._draining = False
        self._deferred: Deque[Callable[[], bool]] = deque()
        self._boot_pending = False
        self._loading = False
        self._interaction_depth = 0

        on_ready = getattr(renderer, "on_ready", None)
        self._defers_ready = callable(on_ready)
        if self._defers_ready:
            on_ready(self._on_renderer_ready)
        on_loading_change = getattr(renderer, "on_loading_change", None)
        if callable(on_loading_change):
            on_loading_change(self._on_renderer_loading)

    # --- Properties ---

    @property
    def phase(self) -> ControllerPhase:
        return self._phase

    @property
    def state(self) -> ViewState:
        """Return the canonical state.

        Raises
        ------
        RuntimeError
            If :meth:`initialize` has not run yet.
        """
        if self._state is None:
            raise RuntimeError("ViewStateController is not initialized")
        return self._state

    @property
    def registry(self) -> MapRegistry:
        return self._registry

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def is_interacting(self) -> bool:
        """Whether a local pan/zoom gesture is in progress."""
        return self._interaction_depth > 0

    # --- Lifecycle ---

    def initialize(self, initial_state: Optional[ViewState]) -> None:
        """Set the boot state and hand it to the renderer.

        Parameters
        ----------
        initial_state : ViewState or None
            Decoded deep link. ``None`` or a state on an unknown map falls back
            to the registry's default view.

        Raises
        ------
        RuntimeError
            If called more than once.

        Notes
        -----
        When the renderer exposes ``on_ready`` the boot ``StateChange`` is
        published from its first ready callback; otherwise it is published
        here. Either way exactly one boot event is emitted.
        """
        if self._phase is ControllerPhase.READY:
            raise RuntimeError("ViewStateController is already initialized")

        state = initial_state
        if state is not None and state.map not in self._registry:
            logger.warning("Initial state names unknown map %r; using default view", state.map)
            state = None
        if state is None:
            state = self._registry.default_state()

        self._state = state
        self._phase = ControllerPhase.READY
        self._boot_pending = True
        pushed = self._push(lambda: self._renderer.set_map(state.map, state))
        if not pushed:
            # A renderer that failed to load will not report ready.
            logger.warning("Renderer rejected the initial view %r", state)
        if self._boot_pending and (not pushed or not self._defers_ready):
            self._announce_boot()

    # --- Mutations ---

    def set_map(self, map_id: Any) -> bool:
        """Switch to ``map_id``.

        Pan and zoom are kept when the new map shares the current map's
        coordinate space; otherwise the new map's default view is used.

        Returns
        -------
        bool
            ``True`` when the canonical state changed.
        """
        return self._request("set_map", lambda: self._set_map(map_id))

    def goto(self, target: TargetOfInterest) -> bool:
        """Navigate to a search target, switching map when needed."""
        return self._request("goto", lambda: self._goto(target))

    def set_view(self, x: float, y: float, zoom: float) -> bool:
        """Record a pan/zoom on the current map."""
        return self._request("set_view", lambda: self._set_view(x, y, zoom))

    def home(self) -> bool:
        """Return to the current map's default view."""
        return self._request("home", self._home)

    def apply_remote_override(self, frame: "RemoteFrame") -> bool:
        """Replace map, position and zoom with a remote telemetry frame.

        The override wins unconditionally, including while a local gesture is
        in progress.
        """
        return self._request("apply_remote_override", lambda: self._apply_remote(frame))

    # --- Interaction tracking ---

    def begin_interaction(self) -> None:
        self._interaction_depth += 1

    def end_interaction(self) -> None:
        self._interaction_depth = max(0, self._interaction_depth - 1)

    # --- Internal / Plumbing ---

    def _request(self, name: str, action: Callable[[], bool]) -> bool:
        if self._phase is not ControllerPhase.READY:
            logger.warning("%s ignored: controller is not initialized", name)
            return False
        if self._emitting:
            logger.debug("%s requested during state-change delivery; deferred", name)
            self._deferred.append(action)
            return False
        return action()

    def _set_map(self, map_id: Any) -> bool:
        key = self._registry.as_map_name(map_id)
        if key is None:
            logger.warning("Attempted to change to an unknown map: %r", map_id)
            return False
        current = self.state
        if key == current.map:
            return False

        if self._registry.shares_coordinate_space(current.map, key):
            new = current.with_map(key)
        else:
            new = self._registry.default_state(key)
        if not self._push(lambda: self._renderer.set_map(key, new)):
            return False
        return self._commit(new, ChangeSource.USER)

    def _goto(self, target: TargetOfInterest) -> bool:
        key = self._registry.as_map_name(getattr(target, "map", None))
        if key is None:
            logger.warning("Search target on unknown map: %r", target)
            return False
        current = self.state
        zoom = current.zoom if target.zoom is None else target.zoom
        try:
            new = ViewState(map=key, x=target.x, y=target.y, zoom=zoom)
        except ValueError as exc:
            logger.warning("Invalid search target %r: %s", target, exc)
            return False
        if new == current:
            return False

        if key != current.map:
            pushed = self._push(lambda: self._renderer.set_map(key, new))
        else:
            pushed = self._push(lambda: self._renderer.set_zoom_pos(new.x, new.y, new.zoom))
        if not pushed:
            return False
        return self._commit(new, ChangeSource.SEARCH)

    def _set_view(self, x: float, y: float, zoom: float) -> bool:
        current = self.state
        try:
            new = current.with_position(x=x, y=y, zoom=zoom)
        except ValueError as exc:
            logger.debug("Ignoring invalid viewport (%r, %r, %r): %s", x, y, zoom, exc)
            return False
        if new == current:
            return False
        if not self._push(lambda: self._renderer.set_zoom_pos(new.x, new.y, new.zoom)):
            return False
        return self._commit(new, ChangeSource.USER)

    def _home(self) -> bool:
        current = self.state
        new = self._registry.default_state(current.map)
        if new == current:
            return False
        if not self._push(lambda: self._renderer.set_zoom_pos(new.x, new.y, new.zoom)):
            return False
        return self._commit(new, ChangeSource.USER)

    def _apply_remote(self, frame: "RemoteFrame") -> bool:
        key = self._registry.as_map_name(getattr(frame, "map", None))
        if key is None:
            logger.debug("Remote override on unknown map ignored: %r", frame)
            return False
        try:
            new = ViewState(map=key, x=frame.x, y=frame.y, zoom=frame.zoom)
        except ValueError as exc:
            logger.debug("Remote override %r ignored: %s", frame, exc)
            return False
        current = self.state
        if new == current:
            return False

        def _apply() -> None:
            if key != current.map:
                self._renderer.set_map(key, new)
            self._renderer.set_zoom_pos(new.x, new.y, new.zoom)

        if not self._push(_apply):
            return False
        return self._commit(new, ChangeSource.REMOTE)

    def _push(self, apply: Callable[[], None]) -> bool:
        try:
            apply()
        except Exception:
            logger.exception("Renderer failed to apply view state")
            return False
        return True

    def _commit(self, new: ViewState, source: ChangeSource) -> bool:
        previous = self._state
        self._state = new
        self._boot_pending = False
        self._publish(StateChange(state=new, previous=previous, source=source))
        return True

    def _announce_boot(self) -> None:
        self._boot_pending = False
        self._publish(StateChange(state=self.state, previous=None, source=ChangeSource.BOOT))

    def _publish(self, event: StateChange) -> None:
        self._emitting = True
        try:
            self._bus.emit(event)
        finally:
            self._emitting = False
        self._drain()

    def _drain(self) -> None:
        if self._draining:
            return
        self._draining = True
        try:
            while self._deferred and not self._emitting:
                action = self._deferred.popleft()
                action()
        finally:
            self._draining = False

    def _on_renderer_ready(self, *_: Any) -> None:
        if self._phase is ControllerPhase.READY and self._boot_pending:
            self._announce_boot()

    def _on_renderer_loading(self, loading: Any) -> None:
        value = bool(loading)
        if value == self._loading:
            return
        self._loading = value
        self._bus.emit(LoadingChange(loading=value))
