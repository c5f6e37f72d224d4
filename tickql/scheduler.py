"""Explicit wave scheduler for cooperative field resolution.

Resolver coroutines run as asyncio tasks, but loader flushes are never left to
event-loop ordering. The scheduler counts *runnable* resolver tasks:

- spawning a task makes it runnable;
- a task parks when it waits on a loader handle or on its own children;
- a parked task is counted runnable again *before* the value it waits for is
  delivered, so the count cannot reach zero while wakeups are in flight.

When the count reaches zero the current wave is over: every loader that queued
keys during the wave dispatches exactly one batch, then the next wave starts.
"""
from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set

from .errors import Cancelled

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from .loader import BatchLoader

logger = logging.getLogger(__name__)


class _Group:
    """Children spawned by one ``gather`` call; wakes the parent when all finish."""

    __slots__ = ('remaining', 'done')

    def __init__(self, size: int, done: asyncio.Future):
        self.remaining = size
        self.done = done


class WaveScheduler:
    def __init__(self) -> None:
        self._active = False
        self._running = 0
        self._dirty: Dict['BatchLoader', None] = {}
        self._idle: Optional[asyncio.Event] = None
        self._tasks: Set[asyncio.Task] = set()
        self._cancelled: Optional[Cancelled] = None
        self.waves = 0

    # ----- state -----
    @property
    def active(self) -> bool:
        return self._active

    @property
    def cancelled(self) -> bool:
        return self._cancelled is not None

    @property
    def cancel_error(self) -> Optional[Cancelled]:
        return self._cancelled

    @property
    def runnable(self) -> int:
        return self._running

    def mark_cancelled(self, error: Cancelled) -> None:
        if self._cancelled is None:
            self._cancelled = error
        self._dirty.clear()

    def mark_dirty(self, loader: 'BatchLoader') -> None:
        self._dirty[loader] = None

    # ----- accounting -----
    def park(self) -> None:
        if not self._active:
            return
        self._running -= 1
        self._check_idle()

    def wake(self, count: int = 1) -> None:
        if self._active and count:
            self._running += count

    def _check_idle(self) -> None:
        if self._idle is not None and self._running <= 0:
            self._idle.set()

    def _spawn(self, coro: Awaitable[Any], group: Optional[_Group] = None) -> asyncio.Task:
        if self._active:
            self._running += 1
        task = asyncio.ensure_future(self._track(coro, group))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _track(self, coro: Awaitable[Any], group: Optional[_Group]) -> Any:
        try:
            return await coro
        finally:
            if group is not None:
                group.remaining -= 1
                if group.remaining == 0:
                    # parent becomes runnable before this child stops counting
                    self.wake(1)
                    if not group.done.done():
                        group.done.set_result(None)
            if self._active:
                self._running -= 1
                self._check_idle()

    async def gather(self, coros: Iterable[Awaitable[Any]]) -> List[Any]:
        """Run sibling coroutines in the current wave and collect their results.

        The first exception (in argument order) is re-raised once every child
        has finished.
        """
        coros = list(coros)
        if not coros:
            return []
        if not self._active:
            return list(await asyncio.gather(*coros))
        if len(coros) == 1:
            return [await coros[0]]
        group = _Group(len(coros), asyncio.get_running_loop().create_future())
        tasks = [self._spawn(c, group) for c in coros]
        self.park()
        await group.done
        first_error: Optional[BaseException] = None
        for t in tasks:
            exc = t.exception()
            if exc is not None and first_error is None:
                first_error = exc
        if first_error is not None:
            raise first_error
        return [t.result() for t in tasks]

    # ----- waves -----
    async def flush(self) -> int:
        """Dispatch every dirty loader once; returns how many loaders fired."""
        if not self._dirty:
            return 0
        loaders = list(self._dirty)
        self._dirty.clear()
        if self._cancelled is not None:
            return 0
        self.waves += 1
        logger.debug("tickql.scheduler: wave %d flushes %d loader(s)", self.waves, len(loaders))
        await asyncio.gather(*(loader.dispatch() for loader in loaders))
        return len(loaders)

    async def run(self, coro: Awaitable[Any], *, timeout: Optional[float] = None,
                  on_cancel: Optional[Callable[[Cancelled], None]] = None) -> Any:
        """Drive ``coro`` (and everything it gathers) to completion.

        ``on_cancel`` is invoked on timeout or when the awaiting task itself is
        cancelled; it is expected to fail outstanding loader handles.
        """
        if self._active:
            raise RuntimeError("scheduler is already running")
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout if timeout is not None else None
        self._active = True
        self._running = 0
        self._idle = asyncio.Event()
        root = self._spawn(coro)
        idle_wait: Optional[asyncio.Future] = None
        flushing: Optional[asyncio.Future] = None
        try:
            while not root.done():
                idle_wait = asyncio.ensure_future(self._idle.wait())
                remaining = None if deadline is None else max(0.0, deadline - loop.time())
                done, _ = await asyncio.wait({root, idle_wait}, timeout=remaining,
                                             return_when=asyncio.FIRST_COMPLETED)
                if not idle_wait.done():
                    idle_wait.cancel()
                if root.done():
                    break
                if not done:
                    deadline = None
                    self._cancel(Cancelled('execution timed out'), on_cancel)
                    continue
                self._idle.clear()
                if self._running > 0:
                    continue
                if not self._dirty:
                    raise RuntimeError("resolution stalled: no runnable resolver and no pending batch")
                flushing = asyncio.ensure_future(self.flush())
                remaining = None if deadline is None else max(0.0, deadline - loop.time())
                done, _ = await asyncio.wait({flushing}, timeout=remaining)
                if not done:
                    deadline = None
                    self._cancel(Cancelled('execution timed out'), on_cancel)
                    flushing.cancel()
                else:
                    flushing.result()
                self._check_idle()
            return root.result()
        except asyncio.CancelledError:
            self._cancel(Cancelled('execution cancelled'), on_cancel)
            for t in list(self._tasks):
                t.cancel()
            raise
        finally:
            for pending in (idle_wait, flushing):
                if pending is not None and not pending.done():
                    pending.cancel()
            self._active = False
            self._idle = None

    def _cancel(self, error: Cancelled, on_cancel: Optional[Callable[[Cancelled], None]]) -> None:
        logger.debug("tickql.scheduler: %s", error.reason)
        self.mark_cancelled(error)
        if on_cancel is not None:
            on_cancel(error)
