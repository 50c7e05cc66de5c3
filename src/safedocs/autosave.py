"""Debounced autosave.

Every mutation calls :meth:`AutosaveScheduler.notify`.  A push only happens
after ``quiet_interval_ms`` without further mutations, so a burst of edits
produces a single write carrying the final state::

    t=0     notify()   → timer due at 1000
    t=200   notify()   → timer moved to 1200
    t=400   notify()   → timer moved to 1400
    t=1400  push()

A push that has already started is never cancelled.  Mutations arriving while
it runs mark the scheduler dirty and a fresh quiet period starts as soon as the
push settles, whatever its result.

Timers come from a :class:`TimerQueue`.  :class:`ManualTimerQueue` runs on a
virtual millisecond clock (tests, deterministic drivers);
:class:`AsyncioTimerQueue` schedules on an event loop and runs pushes in its
executor.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from typing import Any, Callable, Protocol

from safedocs.errors import Failure, Outcome, Rejection

logger = logging.getLogger("safedocs.autosave")

DEFAULT_QUIET_INTERVAL_MS = 1000

SAVING = "saving"
SAVED = "saved"
SAVE_FAILED = "saveFailed"


# ---------------------------------------------------------------------------
# Timers
# ---------------------------------------------------------------------------


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class TimerQueue(Protocol):
    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle: ...

    def run(self, work: Callable[[], Outcome], done: Callable[[Outcome], None]) -> None: ...


class _ManualHandle:
    def __init__(self, due: int, callback: Callable[[], None]) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualTimerQueue:
    """Single-threaded timer queue driven by :meth:`advance`."""

    def __init__(self, start_ms: int = 0) -> None:
        self.now = start_ms
        self._heap: list[tuple[int, int, _ManualHandle]] = []
        self._seq = itertools.count()

    def time(self) -> int:
        return self.now

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> _ManualHandle:
        handle = _ManualHandle(self.now + delay_ms, callback)
        heapq.heappush(self._heap, (handle.due, next(self._seq), handle))
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for _, _, h in self._heap if not h.cancelled)

    def advance(self, delta_ms: int) -> None:
        """Move the clock forward, firing every timer that comes due in order."""
        target = self.now + delta_ms
        while self._heap and self._heap[0][0] <= target:
            due, _, handle = heapq.heappop(self._heap)
            if handle.cancelled:
                continue
            self.now = due
            handle.callback()
        self.now = target

    def run(self, work: Callable[[], Outcome], done: Callable[[Outcome], None]) -> None:
        done(work())


class AsyncioTimerQueue:
    """Timers on an asyncio event loop (the running loop by default).

    Pushes run in the loop's default executor so a slow store never blocks
    the loop; their outcome is delivered back on the loop thread.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self._get_loop().call_later(delay_ms / 1000, callback)

    def run(self, work: Callable[[], Outcome], done: Callable[[Outcome], None]) -> None:
        future = self._get_loop().run_in_executor(None, work)

        def _finished(fut: asyncio.Future) -> None:
            if fut.cancelled():
                outcome = Outcome.fail(Failure.CONNECTION_ERROR, "push cancelled")
            elif fut.exception() is not None:
                exc = fut.exception()
                logger.error("push raised %s: %s", type(exc).__name__, exc)
                outcome = Outcome.fail(Failure.CONNECTION_ERROR, str(exc))
            else:
                outcome = fut.result()
            done(outcome)

        future.add_done_callback(_finished)


# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------


class AutosaveScheduler:
    """Coalesce mutation bursts into one push per quiet period.

    With *snapshot*, the state to save is captured on the caller's thread when
    the timer fires and handed to ``push(state)``; the push itself may then run
    elsewhere while further mutations continue.  Without it ``push()`` takes no
    arguments.
    """

    def __init__(
        self,
        timers: TimerQueue,
        push: Callable[..., Outcome],
        *,
        quiet_interval_ms: int = DEFAULT_QUIET_INTERVAL_MS,
        on_status: Callable[[str], None] | None = None,
        snapshot: Callable[[], Any] | None = None,
    ) -> None:
        self._timers = timers
        self._push = push
        self._snapshot = snapshot
        self.quiet_interval_ms = quiet_interval_ms
        self._on_status = on_status
        self._handle: TimerHandle | None = None
        self._in_flight = False
        self._dirty = False
        self.last_outcome: Outcome | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def _emit(self, status: str) -> None:
        if self._on_status is not None:
            self._on_status(status)

    def notify(self) -> None:
        """Record a mutation and (re)start the quiet period."""
        self._emit(SAVING)
        if self._in_flight:
            self._dirty = True
            return
        if self._handle is not None:
            self._handle.cancel()
        self._handle = self._timers.call_later(self.quiet_interval_ms, self._fire)

    def cancel(self) -> None:
        """Drop a scheduled (not yet started) push."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._dirty = False

    def flush(self) -> Outcome | None:
        """Run a scheduled push now and return its outcome.

        Returns ``None`` when nothing is scheduled and a ``saveInProgress``
        rejection while a push is still running.
        """
        if self._in_flight:
            return Outcome.rejected(Rejection.SAVE_IN_PROGRESS, "a save is already running")
        if self._handle is None:
            return None
        self._handle.cancel()
        self._handle = None
        job = self._job()
        self._in_flight = True
        try:
            outcome = job()
        finally:
            self._in_flight = False
        self._settle(outcome)
        return outcome

    def _job(self) -> Callable[[], Outcome]:
        if self._snapshot is None:
            return self._push
        state = self._snapshot()
        return lambda: self._push(state)

    def _fire(self) -> None:
        self._handle = None
        job = self._job()
        self._in_flight = True
        self._timers.run(job, self._settle)

    def _settle(self, outcome: Outcome) -> None:
        self._in_flight = False
        self.last_outcome = outcome
        if outcome.ok:
            self._emit(SAVED)
        else:
            logger.warning("autosave failed: %s %s", outcome.failure.value, outcome.detail)
            self._emit(SAVE_FAILED)
        if self._dirty:
            self._dirty = False
            self.notify()
