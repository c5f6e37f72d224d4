from __future__ import annotations

from .base import BackingStore, BaseStore, Delete, Insert, Operation, Update
from .memory import MemoryStore


def __getattr__(name: str):
    # SQLAlchemy is only imported when its store is asked for
    if name in ('SQLAlchemyStore', 'Collection', 'integrity_errors'):
        from . import sqlalchemy as _sa
        return getattr(_sa, name)
    raise AttributeError(name)


__all__ = [
    'BackingStore',
    'BaseStore',
    'Insert',
    'Update',
    'Delete',
    'Operation',
    'MemoryStore',
    'SQLAlchemyStore',
    'Collection',
    'integrity_errors',
]
