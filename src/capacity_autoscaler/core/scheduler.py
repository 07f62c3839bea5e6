#!/usr/bin/env python3
"""
Clock and cancellable timer queue driving the periodic loops and escalations
"""

import asyncio
import heapq
import inspect
import itertools
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class Clock:
    """Source of wall-clock and monotonic time"""

    def now(self) -> datetime:
        raise NotImplementedError

    def monotonic(self) -> float:
        raise NotImplementedError


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def monotonic(self) -> float:
        return time.monotonic()


class ManualClock(Clock):
    """Clock that only moves when told to; used to drive time deterministically"""

    def __init__(self, start: Optional[datetime] = None):
        self.start = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.offset = 0.0

    def now(self) -> datetime:
        return self.start + timedelta(seconds=self.offset)

    def monotonic(self) -> float:
        return self.offset

    def advance(self, seconds: float):
        if seconds < 0:
            raise ValueError("Cannot move a clock backwards")
        self.offset += seconds

    def set_monotonic(self, value: float):
        if value < self.offset:
            raise ValueError("Cannot move a clock backwards")
        self.offset = value


class TimerHandle:
    """A scheduled callback; periodic when ``interval`` is set"""

    _ids = itertools.count(1)

    def __init__(
        self,
        scheduler: "TaskScheduler",
        when: float,
        callback: Callable[..., Any],
        args: Tuple[Any, ...] = (),
        interval: Optional[float] = None,
        tags: Iterable[str] = (),
    ):
        self.id = next(self._ids)
        self.when = when
        self.callback = callback
        self.args = args
        self.interval = interval
        self.tags = frozenset(tags)
        self.cancelled = False
        self.done = False
        self.run_count = 0
        self._scheduler = scheduler

    @property
    def periodic(self) -> bool:
        return self.interval is not None

    def cancel(self) -> bool:
        """Cancel the timer; returns False if it was already cancelled or done"""
        if self.cancelled or self.done:
            return False
        self.cancelled = True
        self._scheduler._forget(self)
        return True

    def __repr__(self):
        name = getattr(self.callback, "__qualname__", repr(self.callback))
        return f"<TimerHandle id={self.id} when={self.when:.3f} callback={name} tags={sorted(self.tags)}>"


class TaskScheduler:
    """
    Single-threaded timer queue

    Due callbacks run one at a time in deadline order. Coroutine callbacks are
    awaited. A failing callback is logged and never stops the queue; periodic
    timers are re-armed after each run unless cancelled meanwhile.
    """

    def __init__(self, clock: Optional[Clock] = None, idle_interval: float = 1.0):
        self.clock = clock or SystemClock()
        self.idle_interval = idle_interval
        self.running = False
        self._queue: List[Tuple[float, int, TimerHandle]] = []
        self._handles: Dict[int, TimerHandle] = {}
        self._seq = itertools.count()
        self._wakeup: Optional[asyncio.Event] = None

    def now(self) -> datetime:
        return self.clock.now()

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any, tags: Iterable[str] = ()) -> TimerHandle:
        if delay < 0:
            raise ValueError("delay must be non-negative")
        handle = TimerHandle(self, self.clock.monotonic() + delay, callback, args, tags=tags)
        self._push(handle)
        return handle

    def call_every(
        self,
        interval: float,
        callback: Callable[..., Any],
        *args: Any,
        tags: Iterable[str] = (),
        first_delay: Optional[float] = None,
    ) -> TimerHandle:
        if interval <= 0:
            raise ValueError("interval must be positive")
        delay = interval if first_delay is None else first_delay
        handle = TimerHandle(self, self.clock.monotonic() + delay, callback, args, interval=interval, tags=tags)
        self._push(handle)
        return handle

    def cancel_tagged(self, tag: str) -> int:
        """Cancel every pending timer carrying ``tag``"""
        handles = [h for h in self._handles.values() if tag in h.tags]
        for handle in handles:
            handle.cancel()
        return len(handles)

    def cancel_all(self) -> int:
        handles = list(self._handles.values())
        for handle in handles:
            handle.cancel()
        self._queue.clear()
        return len(handles)

    def pending(self, tag: Optional[str] = None) -> List[TimerHandle]:
        handles = sorted(self._handles.values(), key=lambda h: (h.when, h.id))
        if tag is None:
            return handles
        return [h for h in handles if tag in h.tags]

    def next_deadline(self) -> Optional[float]:
        self._discard_cancelled()
        return self._queue[0][0] if self._queue else None

    async def run_pending(self) -> int:
        """Run every timer that is due at the current clock time"""
        executed = 0
        while True:
            self._discard_cancelled()
            if not self._queue or self._queue[0][0] > self.clock.monotonic():
                return executed

            _, _, handle = heapq.heappop(self._queue)
            if handle.periodic:
                handle.when += handle.interval
                while handle.when <= self.clock.monotonic() - handle.interval:
                    # Drop ticks missed while the process was stalled
                    handle.when += handle.interval
            else:
                handle.done = True
                self._handles.pop(handle.id, None)

            await self._invoke(handle)
            executed += 1

            if handle.periodic and not handle.cancelled:
                heapq.heappush(self._queue, (handle.when, next(self._seq), handle))

    async def advance(self, seconds: float) -> int:
        """
        Move a ManualClock forward, firing timers at their own deadlines

        Timers scheduled by callbacks during the advance also fire if they fall
        inside the window.
        """
        if not isinstance(self.clock, ManualClock):
            raise TypeError("advance() requires a ManualClock")

        target = self.clock.monotonic() + seconds
        executed = await self.run_pending()
        while True:
            deadline = self.next_deadline()
            if deadline is None or deadline > target:
                break
            self.clock.set_monotonic(max(deadline, self.clock.monotonic()))
            executed += await self.run_pending()
        self.clock.set_monotonic(target)
        executed += await self.run_pending()
        return executed

    async def run_forever(self):
        """Sleep until the next deadline and run due timers until stop() is called"""
        self.running = True
        self._wakeup = asyncio.Event()
        logger.info("Task scheduler started")
        try:
            while self.running:
                await self.run_pending()
                deadline = self.next_deadline()
                timeout = self.idle_interval
                if deadline is not None:
                    timeout = max(0.0, min(timeout, deadline - self.clock.monotonic()))
                try:
                    await asyncio.wait_for(self._wakeup.wait(), timeout=timeout)
                except asyncio.TimeoutError:
                    pass
                self._wakeup.clear()
        finally:
            self.running = False
            logger.info("Task scheduler stopped")

    def stop(self):
        self.running = False
        if self._wakeup is not None:
            self._wakeup.set()

    async def _invoke(self, handle: TimerHandle):
        handle.run_count += 1
        try:
            result = handle.callback(*handle.args)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Scheduled callback {handle!r} failed: {e}")

    def _push(self, handle: TimerHandle):
        self._handles[handle.id] = handle
        heapq.heappush(self._queue, (handle.when, next(self._seq), handle))
        if self._wakeup is not None:
            self._wakeup.set()

    def _forget(self, handle: TimerHandle):
        self._handles.pop(handle.id, None)

    def _discard_cancelled(self):
        while self._queue and self._queue[0][2].cancelled:
            heapq.heappop(self._queue)
