"""Dictionary-backed store, handy for tests and prototypes."""
from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Callable, Dict, Hashable, Iterable, List, Mapping, MutableMapping, Optional, Set, Tuple

from ..envelope import Failure, Result, Success, ValidationErrors
from .base import BaseStore, Delete, Insert, Update

logger = logging.getLogger(__name__)


class MemoryStore(BaseStore):
    """Records kept as dicts in ``tables[collection][key]``.

    ``indexes`` declares grouped collections: ``{'reviews_by_repo': ('reviews',
    'repo_id')}`` makes ``fetch_many('reviews_by_repo', {1, 2})`` return the
    reviews of each repo as lists. ``unique`` lists attributes whose values
    must not repeat within a table. ``factories`` turn stored dicts into the
    objects handed to resolvers (per table, also used for grouped reads).
    Every ``fetch_many`` call is appended to :attr:`calls` as
    ``(collection, keys)``.
    """

    name = 'memory'

    def __init__(self, tables: Optional[Mapping[str, Mapping[Hashable, Mapping[str, Any]]]] = None, *,
                 indexes: Optional[Mapping[str, Tuple[str, str]]] = None,
                 unique: Optional[Mapping[str, Iterable[str]]] = None,
                 factories: Optional[Mapping[str, Callable[[Dict[str, Any]], Any]]] = None,
                 key_attr: str = 'id',
                 latency: float = 0.0):
        self.tables: Dict[str, Dict[Hashable, Dict[str, Any]]] = {
            name: {k: dict(v) for k, v in rows.items()} for name, rows in (tables or {}).items()
        }
        self.indexes: Dict[str, Tuple[str, str]] = dict(indexes or {})
        self.unique: Dict[str, List[str]] = {k: list(v) for k, v in (unique or {}).items()}
        self.factories: Dict[str, Callable[[Dict[str, Any]], Any]] = dict(factories or {})
        self.key_attr = key_attr
        self.latency = latency
        self.calls: List[Tuple[str, frozenset]] = []
        self._ids: Dict[str, itertools.count] = {}

    def calls_for(self, collection: str) -> List[frozenset]:
        return [keys for name, keys in self.calls if name == collection]

    def _expose(self, table: str, row: Dict[str, Any]) -> Any:
        factory = self.factories.get(table)
        return factory(row) if factory is not None else row

    def _table(self, collection: str) -> MutableMapping[Hashable, Dict[str, Any]]:
        return self.tables.setdefault(collection, {})

    async def fetch_many(self, collection: str, keys: Set[Any]) -> Mapping[Any, Any]:
        self.calls.append((collection, frozenset(keys)))
        if self.latency:
            await asyncio.sleep(self.latency)
        if collection in self.indexes:
            source, attr = self.indexes[collection]
            grouped: Dict[Any, List[Dict[str, Any]]] = {}
            for row in self._table(source).values():
                if row.get(attr) in keys:
                    grouped.setdefault(row[attr], []).append(self._expose(source, row))
            return grouped
        if collection not in self.tables:
            raise KeyError(f"Unknown collection {collection!r}")
        table = self.tables[collection]
        return {k: self._expose(collection, table[k]) for k in keys if k in table}

    def _next_id(self, collection: str) -> int:
        counter = self._ids.get(collection)
        if counter is None:
            numeric = [k for k in self._table(collection) if isinstance(k, int)]
            counter = self._ids[collection] = itertools.count(max(numeric, default=0) + 1)
        table = self._table(collection)
        key = next(counter)
        while key in table:
            key = next(counter)
        return key

    def _uniqueness_errors(self, collection: str, values: Mapping[str, Any], own_key: Any = None) -> ValidationErrors:
        errors = ValidationErrors()
        for attr in self.unique.get(collection, ()):
            if attr not in values:
                continue
            for key, row in self._table(collection).items():
                if key != own_key and row.get(attr) == values[attr]:
                    errors.add(attr, 'has already been taken')
                    break
        return errors

    async def insert(self, op: Insert) -> Result:
        errors = self._uniqueness_errors(op.collection, op.values)
        if errors:
            return Failure(errors)
        row = dict(op.values)
        key = row.get(self.key_attr)
        if key is None:
            key = row[self.key_attr] = self._next_id(op.collection)
        elif key in self._table(op.collection):
            return Failure(ValidationErrors().add(self.key_attr, 'has already been taken'))
        self._table(op.collection)[key] = row
        logger.debug("tickql.memory: inserted %r into %r", key, op.collection)
        return Success(self._expose(op.collection, row))

    async def update(self, op: Update) -> Result:
        row = self._table(op.collection).get(op.key)
        if row is None:
            return Failure(ValidationErrors().add_base('Record not found'))
        errors = self._uniqueness_errors(op.collection, op.values, own_key=op.key)
        if errors:
            return Failure(errors)
        row.update(op.values)
        return Success(self._expose(op.collection, row))

    async def delete(self, op: Delete) -> Result:
        row = self._table(op.collection).pop(op.key, None)
        if row is None:
            return Failure(ValidationErrors().add_base('Record not found'))
        return Success(self._expose(op.collection, row))


__all__ = ['MemoryStore']
