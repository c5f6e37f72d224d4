from __future__ import annotations

import inspect
from typing import Any, Mapping

__all__ = ['read_attr', 'maybe_await']


def read_attr(obj: Any, name: str, default: Any = None) -> Any:
    """Read ``name`` from a mapping key or an attribute.

    Mappings are tried first so plain dict rows coming from stores work the
    same as ORM instances or dataclasses.
    """
    if obj is None:
        return default
    if isinstance(obj, Mapping):
        return obj.get(name, default)
    return getattr(obj, name, default)


async def maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value
