"""Timer-driven call coalescing helpers.

Two primitives live here:

- ``Debouncer`` runs its callback once a quiet window has elapsed since the
  most recent call, always with that call's arguments. The viewer uses it to
  write the address-bar query after the view settles.
- ``QueuedDebouncer`` executes queued calls at a fixed cadence. The viewer
  uses it to throttle Plotly relayout events while the user drags.

Both take a scheduler with a ``call_later(delay_s, callback)`` method that
returns a cancellable handle. By default the running asyncio loop is used;
outside a loop a daemon ``threading.Timer`` stands in. ``ManualScheduler``
advances virtual time for deterministic tests.

Delivery is best effort: a pending call is lost if the kernel or page goes
away before its window elapses. For address-bar persistence this only means
the last few hundred milliseconds of movement may not be written.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, List, Optional, Protocol, Tuple
import asyncio
import heapq
import itertools
import logging
import threading

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle: ...


class AmbientScheduler:
    """Schedule on the running asyncio loop, or on a daemon thread timer."""

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            timer = threading.Timer(delay_s, callback)
            timer.daemon = True
            timer.start()
            return timer
        return loop.call_later(delay_s, callback)


class _ManualHandle:
    __slots__ = ("due_ms", "callback", "cancelled")

    def __init__(self, due_ms: float, callback: Callable[[], None]) -> None:
        self.due_ms = due_ms
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Virtual-time scheduler driven explicitly by :meth:`advance`.

    Examples
    --------
    >>> fired = []
    >>> clock = ManualScheduler()
    >>> _ = clock.call_later(0.1, lambda: fired.append(clock.now_ms))
    >>> clock.advance(100)
    >>> fired
    [100.0]
    """

    def __init__(self) -> None:
        self._now_ms = 0.0
        self._seq = itertools.count()
        self._heap: List[Tuple[float, int, _ManualHandle]] = []

    @property
    def now_ms(self) -> float:
        """Current virtual time in milliseconds."""
        return self._now_ms

    @property
    def pending(self) -> int:
        """Number of timers that are scheduled and not cancelled."""
        return sum(1 for _, _, handle in self._heap if not handle.cancelled)

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> _ManualHandle:
        handle = _ManualHandle(self._now_ms + delay_s * 1000.0, callback)
        heapq.heappush(self._heap, (handle.due_ms, next(self._seq), handle))
        return handle

    def advance(self, ms: float) -> None:
        """Move virtual time forward by ``ms``, firing due timers in order."""
        target = self._now_ms + ms
        while self._heap and self._heap[0][0] <= target:
            due_ms, _, handle = heapq.heappop(self._heap)
            if handle.cancelled:
                continue
            self._now_ms = due_ms
            handle.callback()
        self._now_ms = target


@dataclass
class _QueuedCall:
    args: Tuple[Any, ...]
    kwargs: dict[str, Any]


class Debouncer:
    """Run ``callback`` after ``delay_ms`` of quiescence with the latest arguments.

    Parameters
    ----------
    callback:
        Callable to execute once calls stop arriving.
    delay_ms:
        Quiet window in milliseconds.
    scheduler:
        Timer source. Defaults to :class:`AmbientScheduler`.

    Notes
    -----
    Each call cancels the pending timer and reschedules with its own
    arguments, so at most one call is pending at any time and intermediate
    arguments are never delivered.
    """

    def __init__(
        self,
        callback: Callable[..., Any],
        *,
        delay_ms: float,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        if delay_ms <= 0:
            raise ValueError("delay_ms must be > 0")
        self._callback = callback
        self._delay_s = delay_ms / 1000.0
        self._scheduler: Scheduler = scheduler if scheduler is not None else AmbientScheduler()

        self._lock = threading.Lock()
        self._pending: Optional[_QueuedCall] = None
        self._timer: Optional[TimerHandle] = None
        self._generation = 0

    @property
    def pending(self) -> bool:
        """Whether a call is waiting for its quiet window to elapse."""
        return self._pending is not None

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._pending = _QueuedCall(args=args, kwargs=dict(kwargs))
            self._generation += 1
            generation = self._generation
            self._timer = self._scheduler.call_later(
                self._delay_s, lambda: self._on_timer(generation)
            )

    def cancel(self) -> None:
        """Drop the pending call, if any."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None
            self._pending = None
            self._generation += 1

    def flush(self) -> None:
        """Run the pending call now instead of waiting for the window."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            call = self._take_locked()
        self._run(call)

    def _take_locked(self) -> Optional[_QueuedCall]:
        call = self._pending
        self._pending = None
        self._timer = None
        return call

    def _on_timer(self, generation: int) -> None:
        with self._lock:
            # A thread timer may fire after cancel() lost the race.
            if generation != self._generation:
                return
            call = self._take_locked()
        self._run(call)

    def _run(self, call: Optional[_QueuedCall]) -> None:
        if call is None:
            return
        try:
            self._callback(*call.args, **call.kwargs)
        except Exception:
            logger.exception("Debouncer callback failed")


def debounce(
    delay_ms: float,
    fn: Callable[..., Any],
    *,
    scheduler: Optional[Scheduler] = None,
) -> Debouncer:
    """Return a :class:`Debouncer` wrapping ``fn`` with a ``delay_ms`` window."""
    return Debouncer(fn, delay_ms=delay_ms, scheduler=scheduler)


class QueuedDebouncer:
    """Queue callback invocations and execute at a fixed cadence.

    Parameters
    ----------
    callback:
        Callable to execute from queued events.
    execute_every_ms:
        Execution cadence in milliseconds.
    drop_overflow:
        If ``True``, each tick keeps only the last queued event before executing.
    scheduler:
        Timer source. Defaults to :class:`AmbientScheduler`.
    """

    def __init__(
        self,
        callback: Callable[..., Any],
        *,
        execute_every_ms: int,
        drop_overflow: bool = True,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        if execute_every_ms <= 0:
            raise ValueError("execute_every_ms must be > 0")
        self._callback = callback
        self._execute_every_s = execute_every_ms / 1000.0
        self._drop_overflow = bool(drop_overflow)
        self._scheduler: Scheduler = scheduler if scheduler is not None else AmbientScheduler()

        self._queue: Deque[_QueuedCall] = deque()
        self._lock = threading.Lock()
        self._timer: Optional[TimerHandle] = None

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        with self._lock:
            self._queue.append(_QueuedCall(args=args, kwargs=dict(kwargs)))
            if self._timer is None:
                self._schedule_next_locked()

    def cancel(self) -> None:
        """Drop every queued call and the pending tick."""
        with self._lock:
            self._queue.clear()
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None

    def _schedule_next_locked(self) -> None:
        self._timer = self._scheduler.call_later(self._execute_every_s, self._on_tick)

    def _on_tick(self) -> None:
        call: Optional[_QueuedCall] = None

        with self._lock:
            self._timer = None
            if not self._queue:
                return

            if self._drop_overflow and len(self._queue) > 1:
                last = self._queue[-1]
                self._queue.clear()
                self._queue.append(last)

            call = self._queue.popleft()
            if self._queue:
                self._schedule_next_locked()

        try:
            self._callback(*call.args, **call.kwargs)
        except Exception:
            logger.exception("QueuedDebouncer callback failed")
