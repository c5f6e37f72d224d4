"""SQLAlchemy (async) backing store.

Each collection maps to a mapped class and a key column; a wave's keys are
fetched with one ``SELECT ... WHERE key IN (...)``. Collections declared with
``many=True`` group rows by the key column (``reviews_by_repo`` keyed on
``Review.repo_id``).
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
import re
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Dict, List, Mapping, Optional, Set, Tuple, Type, Union

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.utils import maybe_await
from ..envelope import Failure, Result, Success, ValidationErrors
from .base import BaseStore, Delete, Insert, Update

logger = logging.getLogger(__name__)

SessionSource = Union[AsyncSession, Callable[[], AsyncSession]]


@dataclass(frozen=True)
class Collection:
    model: Type[Any]
    key: str = 'id'
    many: bool = False
    order_by: Optional[str] = None

    def key_column(self):
        try:
            return getattr(self.model, self.key)
        except AttributeError:
            raise LookupError(f"{self.model.__name__} has no column {self.key!r}") from None


class SQLAlchemyStore(BaseStore):
    """Store over an ``AsyncSession`` or a session factory (``async_sessionmaker``).

    A shared session is used one statement at a time; with a factory every
    call opens (and closes) its own session.
    """

    name = 'sqlalchemy'

    def __init__(self, sessions: SessionSource, collections: Mapping[str, Union[Collection, Type[Any]]]):
        self._sessions = sessions
        self._lock = asyncio.Lock() if isinstance(sessions, AsyncSession) else None
        self.collections: Dict[str, Collection] = {
            name: c if isinstance(c, Collection) else Collection(c) for name, c in collections.items()
        }
        self.statements: List[Tuple[str, int]] = []

    def collection(self, name: str) -> Collection:
        try:
            return self.collections[name]
        except KeyError:
            raise LookupError(f"Unknown collection {name!r}") from None

    @contextlib.asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        if self._lock is not None:
            async with self._lock:
                yield self._sessions
            return
        async with self._sessions() as session:
            yield session

    async def fetch_many(self, collection: str, keys: Set[Any]) -> Mapping[Any, Any]:
        coll = self.collection(collection)
        column = coll.key_column()
        stmt = select(coll.model).where(column.in_(sorted(keys, key=repr)))
        if coll.order_by:
            stmt = stmt.order_by(getattr(coll.model, coll.order_by))
        async with self.session() as session:
            rows = (await session.execute(stmt)).scalars().all()
        self.statements.append((collection, len(keys)))
        logger.debug("tickql.sqlalchemy: %r fetched %d row(s) for %d key(s)", collection, len(rows), len(keys))
        if coll.many:
            grouped: Dict[Any, List[Any]] = {}
            for row in rows:
                grouped.setdefault(getattr(row, coll.key), []).append(row)
            return grouped
        return {getattr(row, coll.key): row for row in rows}

    async def insert(self, op: Insert) -> Result:
        coll = self.collection(op.collection)
        obj = coll.model(**op.values)
        async with self.session() as session:
            return await self._commit(session, coll, obj, lambda: session.add(obj))

    async def update(self, op: Update) -> Result:
        coll = self.collection(op.collection)
        async with self.session() as session:
            obj = await session.get(coll.model, op.key)
            if obj is None:
                return Failure(ValidationErrors().add_base('Record not found'))
            return await self._commit(session, coll, obj, lambda: _assign(obj, op.values))

    async def delete(self, op: Delete) -> Result:
        coll = self.collection(op.collection)
        async with self.session() as session:
            obj = await session.get(coll.model, op.key)
            if obj is None:
                return Failure(ValidationErrors().add_base('Record not found'))
            return await self._commit(session, coll, obj, lambda: session.delete(obj), refresh=False)

    async def _commit(self, session: AsyncSession, coll: Collection, obj: Any,
                      change: Callable[[], Any], *, refresh: bool = True) -> Result:
        # a failed write only rolls back its savepoint; instances already
        # handed out by loaders on a shared session stay loaded
        try:
            async with session.begin_nested():
                await maybe_await(change())
                await session.flush()
        except IntegrityError as e:
            logger.debug("tickql.sqlalchemy: integrity error on %s: %s", coll.model.__name__, e.orig)
            if obj in session:
                await session.refresh(obj)
            return Failure(integrity_errors(coll, e))
        await session.commit()
        if refresh:
            await session.refresh(obj)
        return Success(obj)


def _assign(obj: Any, values: Mapping[str, Any]) -> None:
    for attr, value in values.items():
        setattr(obj, attr, value)


def integrity_errors(coll: Collection, error: IntegrityError) -> ValidationErrors:
    """Translate a driver integrity message into attribute errors.

    Columns named in the message get ``has already been taken`` (unique) or
    ``can't be blank`` (not null); anything unrecognised lands on ``base``.
    """
    message = str(error.orig) if error.orig is not None else str(error)
    upper = message.upper()
    if 'NOT NULL' in upper or 'NULL VALUE' in upper:
        text = "can't be blank"
    elif 'UNIQUE' in upper or 'DUPLICATE' in upper:
        text = 'has already been taken'
    else:
        text = 'is invalid'
    table = getattr(coll.model, '__table__', None)
    errors = ValidationErrors()
    if table is not None:
        for column in table.columns:
            pattern = rf'\b{re.escape(table.name)}\.{re.escape(column.name)}\b|\({re.escape(column.name)}\)|"{re.escape(column.name)}"'
            if re.search(pattern, message):
                errors.add(column.key, text)
    if not errors:
        errors.add_base('could not be saved')
    return errors


__all__ = ['Collection', 'SQLAlchemyStore', 'integrity_errors']
