from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Dict, Iterable, List, Mapping, Optional, Tuple

from .config import EngineSettings
from .errors import Cancelled
from .loader import BatchLoader, FetchMany
from .scheduler import WaveScheduler

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from .adapters.base import BackingStore
    from .core.fields import FieldDecl
    from .plan import FieldSelection, QueryPlan
    from .registry import Schema, TypeDescriptor
    from .result import PathKey, QueryResult

logger = logging.getLogger(__name__)


class ResolutionContext:
    """Per-request scope: owns the wave scheduler and one loader per collection.

    A context executes exactly one plan. Loaders (and their caches) live until
    :meth:`close`, which :meth:`run` calls on completion; nothing is shared
    with other requests.

    Args:
        schema: The schema to resolve against (frozen on first use).
        store: Backing store providing ``fetch_many`` and ``apply``.
        values: Request-scoped values for resolvers (current user, tokens...).
        settings: Engine settings; defaults to :class:`EngineSettings()`.
        fetchers: Per-collection ``fetch_many`` overrides, used before ``store``.
    """

    def __init__(self, schema: 'Schema', store: Optional['BackingStore'] = None, *,
                 values: Optional[Mapping[str, Any]] = None,
                 settings: Optional[EngineSettings] = None,
                 fetchers: Optional[Mapping[str, FetchMany]] = None):
        self.schema = schema
        self.store = store
        self.values: Dict[str, Any] = dict(values or {})
        self.settings = settings or EngineSettings()
        self.scheduler = WaveScheduler()
        self._fetchers: Dict[str, FetchMany] = dict(fetchers or {})
        self._loaders: Dict[str, BatchLoader] = {}
        self._closed = False
        self._used = False

    def __repr__(self) -> str:
        return f"<ResolutionContext loaders={sorted(self._loaders)} closed={self._closed}>"

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def cancelled(self) -> bool:
        return self.scheduler.cancelled

    @property
    def loaders(self) -> Mapping[str, BatchLoader]:
        return dict(self._loaders)

    def loader_for(self, collection: str) -> BatchLoader:
        """Create-or-return the loader of ``collection`` for this context."""
        if self._closed:
            raise RuntimeError("ResolutionContext is closed")
        loader = self._loaders.get(collection)
        if loader is None:
            fetch = self._fetchers.get(collection)
            if fetch is None:
                if self.store is None:
                    raise LookupError(f"No fetcher registered for collection {collection!r} and no store configured")
                fetch = self.store.fetch_many
            loader = BatchLoader(collection, fetch, self.scheduler, max_batch_size=self.settings.max_batch_size)
            self._loaders[collection] = loader
        return loader

    async def gather(self, coros: Iterable[Awaitable[Any]]) -> List[Any]:
        """Run coroutines as siblings of the current wave."""
        return await self.scheduler.gather(coros)

    async def flush(self) -> int:
        """Dispatch queued keys now (for code driving loaders outside ``run``/``drive``)."""
        return await self.scheduler.flush()

    async def drive(self, coro: Awaitable[Any]) -> Any:
        """Run an arbitrary coroutine under this context's wave scheduler."""
        if self._closed:
            raise RuntimeError("ResolutionContext is closed")
        return await self.scheduler.run(coro, timeout=self.settings.timeout, on_cancel=self._cancel_loaders)

    async def run(self, plan: 'QueryPlan') -> 'QueryResult':
        """Execute ``plan`` and close the context afterwards.

        Field errors end up in ``QueryResult.errors``; schema errors propagate.
        """
        from .execution import Executor

        if self._used:
            raise RuntimeError("A ResolutionContext executes a single plan; create a new one per request")
        self._used = True
        try:
            return await self.drive(Executor(self).execute(plan))
        finally:
            self.close()

    def cancel(self, reason: str = 'execution cancelled') -> None:
        """Fail every outstanding loader handle with ``Cancelled``; no more batches run."""
        error = Cancelled(reason)
        self.scheduler.mark_cancelled(error)
        self._cancel_loaders(self.scheduler.cancel_error or error)

    def _cancel_loaders(self, error: Cancelled) -> None:
        for loader in self._loaders.values():
            loader.cancel_pending(error)

    def close(self) -> None:
        if self._closed:
            return
        error = Cancelled('context closed')
        for loader in self._loaders.values():
            loader.cancel_pending(error)
            loader.close()
        logger.debug("tickql.context: closed after %d wave(s), loaders=%s",
                     self.scheduler.waves, [l.stats() for l in self._loaders.values()])
        self._loaders.clear()
        self._closed = True

    async def __aenter__(self) -> 'ResolutionContext':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()


@dataclass
class ResolveInfo:
    """Second positional argument of every resolver."""

    context: ResolutionContext
    parent_type: 'TypeDescriptor'
    field: 'FieldDecl'
    path: Tuple['PathKey', ...]
    selections: Tuple['FieldSelection', ...] = field(default_factory=tuple)

    @property
    def schema(self) -> 'Schema':
        return self.context.schema

    @property
    def store(self) -> Optional['BackingStore']:
        return self.context.store

    @property
    def values(self) -> Dict[str, Any]:
        return self.context.values

    def loader(self, collection: str) -> BatchLoader:
        return self.context.loader_for(collection)


__all__ = ['ResolutionContext', 'ResolveInfo']
