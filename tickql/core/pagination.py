"""Relay-style connections over plain sequences.

Cursors are opaque base64 strings wrapping a zero-based offset.
"""
from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from ..errors import InvalidResult

_CURSOR_PREFIX = 'cursor:'


def encode_cursor(offset: int) -> str:
    return base64.b64encode(f"{_CURSOR_PREFIX}{offset}".encode('ascii')).decode('ascii')


def decode_cursor(cursor: str) -> int:
    try:
        raw = base64.b64decode(cursor.encode('ascii')).decode('ascii')
    except (ValueError, UnicodeError) as e:
        raise InvalidResult(f"Invalid cursor: {cursor!r}") from e
    if not raw.startswith(_CURSOR_PREFIX):
        raise InvalidResult(f"Invalid cursor: {cursor!r}")
    try:
        offset = int(raw[len(_CURSOR_PREFIX):])
    except ValueError as e:
        raise InvalidResult(f"Invalid cursor: {cursor!r}") from e
    if offset < 0:
        raise InvalidResult(f"Invalid cursor: {cursor!r}")
    return offset


@dataclass
class Page:
    """A slice already cut by the data source.

    ``start_offset`` is the offset of ``items[0]`` within the full result so
    cursors stay stable across pages.
    """

    items: Sequence[Any]
    start_offset: int = 0
    has_next_page: bool = False
    total_count: Optional[int] = None


@dataclass
class PageInfo:
    has_next_page: bool
    has_previous_page: bool
    start_cursor: Optional[str]
    end_cursor: Optional[str]


@dataclass
class Edge:
    cursor: str
    node: Any


@dataclass
class Connection:
    edges: List[Edge] = field(default_factory=list)
    page_info: PageInfo = field(default_factory=lambda: PageInfo(False, False, None, None))
    total_count: Optional[int] = None

    @property
    def nodes(self) -> List[Any]:
        return [e.node for e in self.edges]


def paginate(value: Any, *, first: Optional[int] = None, after: Optional[str] = None) -> Connection:
    """Build a :class:`Connection` from a sequence or a :class:`Page`."""
    if first is not None and first < 0:
        raise InvalidResult("Argument 'first' must be non-negative")
    if isinstance(value, Page):
        return _from_page(value)
    if value is None:
        value = []
    items = list(value)
    start = decode_cursor(after) + 1 if after else 0
    end = len(items) if first is None else min(len(items), start + first)
    window = items[start:end]
    edges = [Edge(cursor=encode_cursor(start + i), node=node) for i, node in enumerate(window)]
    return Connection(
        edges=edges,
        page_info=PageInfo(
            has_next_page=end < len(items),
            has_previous_page=start > 0,
            start_cursor=edges[0].cursor if edges else None,
            end_cursor=edges[-1].cursor if edges else None,
        ),
        total_count=len(items),
    )


def _from_page(page: Page) -> Connection:
    edges = [Edge(cursor=encode_cursor(page.start_offset + i), node=node) for i, node in enumerate(page.items)]
    return Connection(
        edges=edges,
        page_info=PageInfo(
            has_next_page=page.has_next_page,
            has_previous_page=page.start_offset > 0,
            start_cursor=edges[0].cursor if edges else None,
            end_cursor=edges[-1].cursor if edges else None,
        ),
        total_count=page.total_count,
    )


__all__ = ['Page', 'PageInfo', 'Edge', 'Connection', 'paginate', 'encode_cursor', 'decode_cursor']
