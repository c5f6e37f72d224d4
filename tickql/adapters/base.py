from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Hashable, Mapping, Optional, Protocol, Set, Union, runtime_checkable

from ..envelope import Failure, Result
from ..validation import Rules, validate


@dataclass(frozen=True)
class Insert:
    collection: str
    values: Mapping[str, Any]
    rules: Optional[Rules] = None


@dataclass(frozen=True)
class Update:
    collection: str
    key: Hashable
    values: Mapping[str, Any]
    rules: Optional[Rules] = None


@dataclass(frozen=True)
class Delete:
    collection: str
    key: Hashable


Operation = Union[Insert, Update, Delete]


@runtime_checkable
class BackingStore(Protocol):
    """What the engine needs from persistence: batched reads and enveloped writes."""

    def fetch_many(self, collection: str, keys: Set[Any]) -> Union[Mapping[Any, Any], Awaitable[Mapping[Any, Any]]]:
        ...

    def apply(self, operation: Operation) -> Union[Result, Awaitable[Result]]:
        ...


class BaseStore:
    """Shared ``apply`` dispatch; subclasses implement the primitives.

    Rules attached to an operation are checked before the store is touched;
    a store reports persistence problems (e.g. uniqueness) as ``Failure``.
    """

    name = 'base'

    async def fetch_many(self, collection: str, keys: Set[Any]) -> Mapping[Any, Any]:
        raise NotImplementedError

    async def apply(self, operation: Operation) -> Result:
        rules = getattr(operation, 'rules', None)
        if rules:
            errors = validate(operation.values, rules)
            if errors:
                return Failure(errors)
        if isinstance(operation, Insert):
            return await self.insert(operation)
        if isinstance(operation, Update):
            return await self.update(operation)
        if isinstance(operation, Delete):
            return await self.delete(operation)
        raise TypeError(f"Unsupported operation {type(operation).__name__}")

    async def insert(self, op: Insert) -> Result:
        raise NotImplementedError

    async def update(self, op: Update) -> Result:
        raise NotImplementedError

    async def delete(self, op: Delete) -> Result:
        raise NotImplementedError


__all__ = ['Insert', 'Update', 'Delete', 'Operation', 'BackingStore', 'BaseStore']
