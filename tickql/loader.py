"""Per-collection batch loader scoped to one resolution context."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Generic, Hashable, Iterable, List, Mapping, Optional, Set, TypeVar, Union

from .core.utils import maybe_await
from .errors import BatchFetchFailed, Cancelled
from .scheduler import WaveScheduler

logger = logging.getLogger(__name__)

K = TypeVar('K', bound=Hashable)
V = TypeVar('V')


class _NotFound:
    """Marker for keys the backing store did not return."""

    _instance: Optional['_NotFound'] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return 'NOT_FOUND'

    def __bool__(self) -> bool:
        return False


NOT_FOUND: Any = _NotFound()

FetchMany = Callable[[str, Set[Any]], Union[Mapping[Any, Any], Awaitable[Mapping[Any, Any]]]]


class BatchLoader(Generic[K, V]):
    """Collects keys during a wave, fetches them in one call and caches results.

    ``load`` never triggers a fetch by itself: the key is queued and the
    calling task parks until the owning scheduler decides the wave is over and
    calls :meth:`dispatch`. A key is fetched at most once for the loader's
    lifetime; errors are cached as well, so a failed batch is not retried
    within the same request.

    Args:
        collection: Backing-collection identifier passed to ``fetch_many``.
        fetch_many: ``fetch_many(collection, keys) -> {key: value}`` (sync or
            async). Keys missing from the mapping resolve to ``NOT_FOUND``.
        scheduler: The wave scheduler of the owning context.
        max_batch_size: Split a wave's keys into several fetches of at most
            this many keys. ``None`` (default) keeps one fetch per wave. Each
            chunk settles on its own: a failing chunk fails only its keys.
    """

    def __init__(self, collection: str, fetch_many: FetchMany, scheduler: WaveScheduler, *,
                 max_batch_size: Optional[int] = None):
        if max_batch_size is not None and max_batch_size < 1:
            raise ValueError("max_batch_size must be positive")
        self.collection = collection
        self._fetch_many = fetch_many
        self._scheduler = scheduler
        self._max_batch_size = max_batch_size
        self._cache: Dict[K, asyncio.Future] = {}
        self._pending: Dict[K, asyncio.Future] = {}
        self._inflight: Dict[K, asyncio.Future] = {}
        self._waiters: Dict[K, int] = {}
        self._closed = False
        self.fetch_count = 0
        self.cache_hits = 0

    def __repr__(self) -> str:
        return f"<BatchLoader {self.collection!r} cached={len(self._cache)} pending={len(self._pending)}>"

    @property
    def pending_keys(self) -> List[K]:
        return list(self._pending)

    def _check_usable(self) -> None:
        if self._closed:
            raise RuntimeError(f"loader {self.collection!r} belongs to a closed context")
        error = self._scheduler.cancel_error
        if error is not None:
            raise error

    async def load(self, key: K) -> V:
        """Value for ``key`` (``NOT_FOUND`` when the store has none).

        Resolved keys stay readable after the context is cancelled.
        """
        if self._closed:
            raise RuntimeError(f"loader {self.collection!r} belongs to a closed context")
        cached = self._cache.get(key)
        if cached is not None:
            self.cache_hits += 1
            return cached.result()
        self._check_usable()
        fut = self._pending.get(key) or self._inflight.get(key)
        if fut is None:
            fut = asyncio.get_running_loop().create_future()
            self._pending[key] = fut
            self._scheduler.mark_dirty(self)
        self._waiters[key] = self._waiters.get(key, 0) + 1
        self._scheduler.park()
        return await fut

    async def load_many(self, keys: Iterable[K]) -> List[V]:
        return await self._scheduler.gather(self.load(k) for k in keys)

    def prime(self, key: K, value: V) -> None:
        """Seed the cache (e.g. with an entity a mutation just created)."""
        self._check_usable()
        if key in self._cache or key in self._pending or key in self._inflight:
            return
        fut = asyncio.get_running_loop().create_future()
        fut.set_result(value)
        self._cache[key] = fut

    async def dispatch(self) -> None:
        """Fetch every queued key; one backend call per chunk."""
        if not self._pending:
            return
        batch, self._pending = self._pending, {}
        self._inflight.update(batch)
        keys = list(batch)
        size = self._max_batch_size or len(keys)
        chunks = [keys[i:i + size] for i in range(0, len(keys), size)]
        await asyncio.gather(*(self._dispatch_chunk(chunk) for chunk in chunks))

    async def _dispatch_chunk(self, keys: List[K]) -> None:
        self.fetch_count += 1
        logger.debug("tickql.loader: fetching %d key(s) from %r", len(keys), self.collection)
        try:
            result = await maybe_await(self._fetch_many(self.collection, set(keys)))
            if result is None:
                result = {}
            if not isinstance(result, Mapping):
                raise TypeError(f"fetch_many returned {type(result).__name__}, expected a mapping")
        except Exception as e:
            logger.warning("tickql.loader: batch fetch of %r failed: %s", self.collection, e)
            self._settle(keys, error=BatchFetchFailed(self.collection, keys, e))
            return
        self._settle(keys, values=result)

    def _settle(self, keys: List[K], *, values: Optional[Mapping[Any, Any]] = None,
                error: Optional[BaseException] = None) -> None:
        woken = 0
        for key in keys:
            fut = self._inflight.pop(key, None)
            if fut is None:
                continue
            if not fut.done():
                if error is not None:
                    fut.set_exception(error)
                else:
                    fut.set_result(values.get(key, NOT_FOUND))
            self._cache[key] = fut
            woken += self._waiters.pop(key, 0)
        self._scheduler.wake(woken)

    def cancel_pending(self, error: Cancelled) -> int:
        """Fail queued and in-flight handles with ``error``; resolved ones keep their values."""
        woken = 0
        failed = 0
        for table in (self._pending, self._inflight):
            for key, fut in table.items():
                if not fut.done():
                    fut.set_exception(error)
                    failed += 1
                woken += self._waiters.pop(key, 0)
            table.clear()
        self._scheduler.wake(woken)
        if failed:
            logger.debug("tickql.loader: cancelled %d handle(s) of %r", failed, self.collection)
        return failed

    def close(self) -> None:
        self._cache.clear()
        self._closed = True

    def stats(self) -> Dict[str, Any]:
        return {
            'collection': self.collection,
            'cached': len(self._cache),
            'pending': len(self._pending),
            'inflight': len(self._inflight),
            'fetches': self.fetch_count,
            'hits': self.cache_hits,
        }


__all__ = ['BatchLoader', 'NOT_FOUND', 'FetchMany']
