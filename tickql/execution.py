"""Field resolver dispatch.

Walks a :class:`~tickql.plan.QueryPlan` against the schema, invoking
resolvers and completing their values by declared shape. Error handling
follows GraphQL execution semantics:

- a field error is recorded once, at the path where it happened;
- the field becomes null if nullable, otherwise null propagates to the
  nearest nullable ancestor (list items included);
- sibling branches keep resolving;
- ``SchemaError`` is fatal and aborts the execution.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable as _IterableABC
from typing import Any, Awaitable, Dict, List, Mapping, Sequence, Tuple

from .context import ResolutionContext, ResolveInfo
from .core.fields import FieldDecl, Shape
from .core.pagination import paginate
from .core.utils import maybe_await, read_attr
from .envelope import Failure, Success, is_envelope
from .errors import InvalidResult, NonNullViolation, SchemaError, TickQLError
from .loader import NOT_FOUND
from .plan import MUTATION, FieldSelection, InlineFragment, QueryPlan, Selection
from .registry import TypeDescriptor, TypeKind
from .result import ExecutionError, PathKey, QueryResult

logger = logging.getLogger(__name__)

TYPENAME = '__typename'


class _NullPropagation(Exception):
    """Internal: a non-null position became null; its error is already recorded."""


_NULLED = object()


def _raise_if_nulled(values: List[Any]) -> List[Any]:
    if any(v is _NULLED for v in values):
        raise _NullPropagation()
    return values


def default_resolver(parent: Any, info: ResolveInfo, **_arguments: Any) -> Any:
    value = read_attr(parent, info.field.attr)
    if value is None and info.field.attr != info.field.name:
        value = read_attr(parent, info.field.name)
    return value


def _is_result_union(desc: TypeDescriptor) -> bool:
    return any(m.tag in (Success, Failure) for m in desc.members)


class Executor:
    def __init__(self, context: ResolutionContext):
        self.context = context
        self.schema = context.schema
        self.errors: List[ExecutionError] = []

    # ----- entry point -----
    async def execute(self, plan: QueryPlan) -> QueryResult:
        root = self.schema.describe(plan.root_type)
        fields = self.collect_fields(root, plan.selections)
        try:
            if plan.operation == MUTATION:
                data = await self.execute_fields_serially(root, plan.root_value, fields, ())
            else:
                data = await self.execute_fields(root, plan.root_value, fields, ())
        except _NullPropagation:
            data = None
        return QueryResult(data=data, errors=list(self.errors))

    # ----- selection handling -----
    def collect_fields(self, type_desc: TypeDescriptor, selections: Sequence[Selection]) -> Dict[str, List[FieldSelection]]:
        """Group field selections by response key, applying type conditions."""
        grouped: Dict[str, List[FieldSelection]] = {}
        for sel in selections:
            if isinstance(sel, InlineFragment):
                if sel.type_condition is None or self.schema.is_possible_type(sel.type_condition, type_desc.name):
                    for key, nodes in self.collect_fields(type_desc, sel.selections).items():
                        grouped.setdefault(key, []).extend(nodes)
                continue
            grouped.setdefault(sel.response_key, []).append(sel)
        return grouped

    @staticmethod
    def _subselections(nodes: Sequence[FieldSelection]) -> Tuple[Selection, ...]:
        out: List[Selection] = []
        for node in nodes:
            out.extend(node.selections)
        return tuple(out)

    # ----- fields -----
    async def execute_fields(self, type_desc: TypeDescriptor, parent: Any,
                             fields: Dict[str, List[FieldSelection]], path: Tuple[PathKey, ...]) -> Dict[str, Any]:
        keys = list(fields)
        values = await self.context.gather(
            self._sibling(self.execute_field(type_desc, parent, fields[key], path + (key,))) for key in keys
        )
        return dict(zip(keys, _raise_if_nulled(values)))

    async def execute_fields_serially(self, type_desc: TypeDescriptor, parent: Any,
                                      fields: Dict[str, List[FieldSelection]], path: Tuple[PathKey, ...]) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for key, nodes in fields.items():
            out[key] = await self.execute_field(type_desc, parent, nodes, path + (key,))
        return out

    async def execute_field(self, parent_type: TypeDescriptor, parent: Any,
                            nodes: List[FieldSelection], path: Tuple[PathKey, ...]) -> Any:
        node = nodes[0]
        if node.name == TYPENAME:
            return parent_type.name
        decl = parent_type.field(node.name)
        try:
            cancel_error = self.context.scheduler.cancel_error
            if cancel_error is not None:
                raise cancel_error
            arguments = self.coerce_arguments(parent_type, decl, node.arguments)
            info = ResolveInfo(context=self.context, parent_type=parent_type, field=decl,
                               path=path, selections=tuple(nodes))
            resolver = decl.resolver or default_resolver
            value = await maybe_await(resolver(parent, info, **arguments))
            return await self.complete_field(parent_type, decl, value, arguments, nodes, path)
        except SchemaError:
            raise
        except _NullPropagation:
            if decl.nullable:
                return None
            raise
        except Exception as e:
            self.record(path, e)
            if decl.nullable:
                return None
            raise _NullPropagation() from e

    def coerce_arguments(self, parent_type: TypeDescriptor, decl: FieldDecl, provided: Mapping[str, Any]) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for name in provided:
            if decl.argument(name) is None:
                raise InvalidResult(f"Unknown argument {name!r} on field {parent_type.name}.{decl.name}")
        for arg in decl.arguments:
            if arg.name in provided:
                value = provided[arg.name]
            elif arg.python_name in provided:
                value = provided[arg.python_name]
            elif arg.has_default:
                value = arg.default
            elif arg.type_ref.endswith('!'):
                raise InvalidResult(f"Missing required argument {arg.name!r} on field {parent_type.name}.{decl.name}")
            else:
                continue
            where = f"Argument {arg.name!r} on field {parent_type.name}.{decl.name}"
            out[arg.python_name] = self.schema.coerce_input(arg.type_ref, value, where)
        return out

    # ----- completion -----
    async def complete_field(self, parent_type: TypeDescriptor, decl: FieldDecl, value: Any,
                             arguments: Mapping[str, Any], nodes: Sequence[FieldSelection],
                             path: Tuple[PathKey, ...]) -> Any:
        if value is NOT_FOUND:
            value = None
        if value is None:
            if not decl.nullable:
                raise NonNullViolation(parent_type.name, decl.name)
            return None
        selections = self._subselections(nodes)
        if decl.shape == Shape.LIST:
            return await self.complete_list(parent_type, decl, value, selections, path)
        if decl.shape == Shape.CONNECTION:
            conn = paginate(value, first=arguments.get('first'), after=arguments.get('after'))
            return await self.complete_named(f"{decl.type_name}Connection", conn, selections, path)
        return await self.complete_named(decl.type_name, value, selections, path)

    async def complete_list(self, parent_type: TypeDescriptor, decl: FieldDecl, value: Any,
                            selections: Tuple[Selection, ...], path: Tuple[PathKey, ...]) -> List[Any]:
        if isinstance(value, (str, bytes, Mapping)) or not isinstance(value, _IterableABC):
            raise InvalidResult(f"Expected a list for {parent_type.name}.{decl.name}, got {type(value).__name__}")
        items = list(value)
        values = await self.context.gather(
            self._sibling(self.complete_item(parent_type, decl, item, selections, path + (i,)))
            for i, item in enumerate(items)
        )
        return _raise_if_nulled(values)

    async def complete_item(self, parent_type: TypeDescriptor, decl: FieldDecl, item: Any,
                            selections: Tuple[Selection, ...], path: Tuple[PathKey, ...]) -> Any:
        try:
            if item is None or item is NOT_FOUND:
                if not decl.item_nullable:
                    raise NonNullViolation(parent_type.name, decl.name)
                return None
            return await self.complete_named(decl.type_name, item, selections, path)
        except SchemaError:
            raise
        except _NullPropagation:
            if decl.item_nullable:
                return None
            raise
        except Exception as e:
            self.record(path, e)
            if decl.item_nullable:
                return None
            raise _NullPropagation() from e

    async def complete_named(self, type_name: str, value: Any, selections: Tuple[Selection, ...],
                             path: Tuple[PathKey, ...]) -> Any:
        desc = self.schema.describe(type_name)
        if desc.kind in (TypeKind.SCALAR, TypeKind.ENUM):
            try:
                return desc.serialize(value)
            except (TypeError, ValueError) as e:
                raise InvalidResult(f"{type_name} cannot represent {value!r}: {e}") from e
        if desc.is_abstract:
            if _is_result_union(desc) and not is_envelope(value):
                raise InvalidResult(
                    f"{type_name} expects a Success or Failure result, got {type(value).__name__}")
            desc, value = self.schema.resolve_abstract_value(type_name, value)
        fields = self.collect_fields(desc, selections)
        return await self.execute_fields(desc, value, fields, path)

    # ----- errors -----
    async def _sibling(self, coro: Awaitable[Any]) -> Any:
        # propagation is reported as a value so a fatal error in another sibling is never masked
        try:
            return await coro
        except _NullPropagation:
            return _NULLED
        except SchemaError as e:
            self.context.cancel(f"aborted by {e.kind}: {e}")
            raise

    def record(self, path: Tuple[PathKey, ...], error: BaseException) -> None:
        kind = error.kind if isinstance(error, TickQLError) else 'resolver_error'
        message = str(error) or type(error).__name__
        logger.debug("tickql.execution: %s at %s: %s", kind, '.'.join(map(str, path)), message)
        self.errors.append(ExecutionError(path=path, message=message, kind=kind))


__all__ = ['Executor', 'default_resolver', 'TYPENAME']
