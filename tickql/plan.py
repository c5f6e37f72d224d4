"""Pre-parsed query plans consumed by the executor.

A plan is a selection tree: ``FieldSelection`` nodes (field name, alias,
already-coerced arguments, nested selections) and ``InlineFragment`` nodes
carrying a type condition. Plans are built by hand, by
:func:`tickql.document.plan_from_source`, or by any other front end.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Tuple, Union

QUERY = 'query'
MUTATION = 'mutation'


@dataclass(frozen=True)
class FieldSelection:
    name: str
    alias: Optional[str] = None
    arguments: Dict[str, Any] = field(default_factory=dict)
    selections: Tuple['Selection', ...] = ()

    @property
    def response_key(self) -> str:
        return self.alias or self.name


@dataclass(frozen=True)
class InlineFragment:
    type_condition: Optional[str]
    selections: Tuple['Selection', ...] = ()


Selection = Union[FieldSelection, InlineFragment]


@dataclass(frozen=True)
class QueryPlan:
    selections: Tuple[Selection, ...]
    operation: str = QUERY
    root_value: Any = None
    name: Optional[str] = None

    def __post_init__(self):
        if self.operation not in (QUERY, MUTATION):
            raise ValueError(f"Unsupported operation: {self.operation!r}")

    @property
    def root_type(self) -> str:
        return 'Mutation' if self.operation == MUTATION else 'Query'


def select(name: str, *children: Selection, alias: Optional[str] = None, **arguments: Any) -> FieldSelection:
    """Shorthand for building plans in code: ``select('repo', select('name'), id=1)``."""
    return FieldSelection(name=name, alias=alias, arguments=dict(arguments), selections=tuple(children))


def on(type_condition: str, *children: Selection) -> InlineFragment:
    return InlineFragment(type_condition=type_condition, selections=tuple(children))


def query(*selections: Selection, root_value: Any = None) -> QueryPlan:
    return QueryPlan(selections=tuple(selections), operation=QUERY, root_value=root_value)


def mutation(*selections: Selection, root_value: Any = None) -> QueryPlan:
    return QueryPlan(selections=tuple(selections), operation=MUTATION, root_value=root_value)


__all__ = [
    'FieldSelection',
    'InlineFragment',
    'Selection',
    'QueryPlan',
    'QUERY',
    'MUTATION',
    'select',
    'on',
    'query',
    'mutation',
]
