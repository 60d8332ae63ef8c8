"""
Delayed single-shot callbacks.

The game never sleeps or polls: bot moves, dealing and countdown ticks are
scheduled continuations. ``AsyncioScheduler`` runs them on an event loop;
``ManualScheduler`` keeps a virtual clock that tests and headless
simulations advance explicitly.
"""

import asyncio
import heapq
import itertools
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional

logger = logging.getLogger(__name__)


class TimerHandle(ABC):
    @abstractmethod
    def cancel(self) -> None:
        pass


class Scheduler(ABC):
    """Schedules ``callback(*args)`` to run once after ``delay`` seconds."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        pass


class _AsyncioHandle(TimerHandle):
    def __init__(self, handle: asyncio.TimerHandle):
        self._handle = handle

    def cancel(self) -> None:
        self._handle.cancel()


class AsyncioScheduler(Scheduler):
    """Scheduler backed by an asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        return _AsyncioHandle(self.loop.call_later(max(delay, 0.0), callback, *args))


class _ManualHandle(TimerHandle):
    def __init__(self):
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler(Scheduler):
    """
    Virtual-clock scheduler.

    Callbacks due at the same instant run in the order they were scheduled.

    Usage:
        scheduler = ManualScheduler()
        game = Game(scheduler=scheduler)
        scheduler.advance(1.0)      # run everything due within a second
        scheduler.run_until_idle()  # run until nothing is pending
    """

    def __init__(self):
        self.now = 0.0
        self._queue: List[tuple] = []
        self._counter = itertools.count()

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        handle = _ManualHandle()
        when = self.now + max(delay, 0.0)
        heapq.heappush(self._queue, (when, next(self._counter), handle, callback, args))
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for entry in self._queue if not entry[2].cancelled)

    def _run_next(self) -> bool:
        while self._queue:
            when, _, handle, callback, args = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self.now = max(self.now, when)
            callback(*args)
            return True
        return False

    def advance(self, seconds: float) -> int:
        """Run every callback due within ``seconds``; returns how many ran."""
        deadline = self.now + seconds
        ran = 0
        while self._queue and self._queue[0][0] <= deadline:
            when, _, handle, callback, args = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self.now = max(self.now, when)
            callback(*args)
            ran += 1
        self.now = max(self.now, deadline)
        return ran

    def run_until_idle(self, max_steps: int = 100000) -> int:
        """Run callbacks until the queue is empty or ``max_steps`` is hit."""
        ran = 0
        while ran < max_steps and self._run_next():
            ran += 1
        if ran >= max_steps:
            logger.warning(f"Scheduler still busy after {max_steps} callbacks")
        return ran
