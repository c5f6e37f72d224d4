from __future__ import annotations

import enum
from dataclasses import dataclass, field as dc_field, replace
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from .naming import graphql_name, NameConverter

_MISSING = object()


class Shape(str, enum.Enum):
    """Declared result shape of a field."""

    SCALAR = 'scalar'
    OBJECT = 'object'
    LIST = 'list'
    CONNECTION = 'connection'
    # placeholder until the registry knows whether the named type is a scalar
    NAMED = 'named'


@dataclass(frozen=True)
class Argument:
    name: str
    python_name: str
    type_ref: str
    default: Any = _MISSING

    @property
    def has_default(self) -> bool:
        return self.default is not _MISSING


@dataclass(frozen=True)
class FieldDecl:
    """Normalized, immutable field declaration held by a TypeDescriptor.

    Attributes:
        name: Public (GraphQL) field name, e.g. ``fullMessages``.
        attr: Python attribute/key read by the default resolver, e.g. ``full_messages``.
        type_name: Named type of the field, or of the items for lists/connections.
        shape: Result shape; ``NAMED`` is replaced by ``SCALAR``/``OBJECT`` on freeze.
        nullable: Whether the field itself may resolve to null.
        item_nullable: For lists, whether individual items may be null.
        arguments: Declared arguments in declaration order.
        resolver: Optional callable ``(parent, info, **arguments)``.
        meta: Extra data interpreted by helpers (relations use collection/key).
    """

    name: str
    attr: str
    type_name: str
    shape: Shape = Shape.NAMED
    nullable: bool = True
    item_nullable: bool = True
    arguments: Tuple[Argument, ...] = ()
    resolver: Optional[Callable[..., Any]] = None
    description: Optional[str] = None
    meta: Mapping[str, Any] = dc_field(default_factory=dict)

    def with_shape(self, shape: Shape) -> 'FieldDecl':
        return replace(self, shape=shape)

    def with_resolver(self, resolver: Callable[..., Any]) -> 'FieldDecl':
        return replace(self, resolver=resolver)

    @property
    def has_default(self) -> bool:
        """Input fields only: whether a default was declared."""
        return 'default' in self.meta

    @property
    def default(self) -> Any:
        return self.meta.get('default', _MISSING)

    def argument(self, name: str) -> Optional[Argument]:
        for a in self.arguments:
            if a.name == name or a.python_name == name:
                return a
        return None

    def type_ref(self) -> str:
        """SDL type reference (``[Review!]!``, ``User``, ``RepoConnection!``)."""
        if self.shape == Shape.LIST:
            inner = self.type_name + ('' if self.item_nullable else '!')
            ref = f"[{inner}]"
        elif self.shape == Shape.CONNECTION:
            ref = f"{self.type_name}Connection"
        else:
            ref = self.type_name
        return ref if self.nullable else ref + '!'


ArgSpec = Union[str, Tuple[str, Any]]


class FieldDescriptor:
    """Descriptor placed on declared types to describe fields.

    Users normally call :func:`field`, :func:`list_field`, :func:`relation` or
    :func:`connection`. The registry collects descriptors from the class body
    and turns each into a :class:`FieldDecl`.
    """

    def __init__(self, *, kind: str, type_name: str, **meta):
        self.kind = kind
        self.type_name = type_name
        self.meta = dict(meta)
        self.name: str | None = None

    def __set_name__(self, owner, name):  # pragma: no cover - simple
        self.name = name

    def resolver(self, fn: Callable[..., Any]) -> Callable[..., Any]:
        """Decorator form: ``@name.resolver`` right after the descriptor."""
        self.meta['resolver'] = fn
        return fn

    def build(self, parent_name: str, *, auto_camel: bool = True, name_converter: NameConverter = None) -> FieldDecl:
        attr = self.meta.get('attr') or self.name or ''
        public = self.meta.get('name') or graphql_name(self.name or attr, auto_camel=auto_camel, name_converter=name_converter)
        shape = {
            'list': Shape.LIST,
            'connection': Shape.CONNECTION,
        }.get(self.kind, Shape.NAMED)
        return FieldDecl(
            name=public,
            attr=attr,
            type_name=self.type_name,
            shape=shape,
            nullable=bool(self.meta.get('null', True)),
            item_nullable=bool(self.meta.get('item_null', False)),
            arguments=_build_arguments(self.meta.get('args'), auto_camel=auto_camel, name_converter=name_converter),
            resolver=self.meta.get('resolver'),
            description=self.meta.get('description'),
            meta={**{k: v for k, v in self.meta.items() if k in ('collection', 'key', 'many', 'default')}, 'kind': self.kind},
        )


def _build_arguments(spec: Optional[Mapping[str, ArgSpec]], *, auto_camel: bool, name_converter: NameConverter) -> Tuple[Argument, ...]:
    if not spec:
        return ()
    out = []
    for py_name, raw in spec.items():
        if isinstance(raw, tuple):
            type_ref, default = raw
        else:
            type_ref, default = raw, _MISSING
        out.append(Argument(
            name=graphql_name(py_name, auto_camel=auto_camel, name_converter=name_converter),
            python_name=py_name,
            type_ref=type_ref,
            default=default,
        ))
    return tuple(out)


def field(type_name: str = 'String', /, *, null: bool = True, **meta) -> FieldDescriptor:
    """Declare a scalar or object field.

    Args:
        type_name: Name of a scalar (``String``, ``ID``...) or object/union type.
        null: Whether the field is nullable.
        **meta: ``attr`` (python attribute read by the default resolver),
            ``name`` (explicit public name), ``args`` (``{"id": "ID!"}`` or
            ``{"first": ("Int", 10)}``), ``resolver``, ``description``;
            on input types ``default`` is used when the field is omitted.

    Example:
        @schema.type
        class Repo:
            id = field('ID', null=False)
            name = field('String', null=False)
            owner = field('User')
    """
    return FieldDescriptor(kind='named', type_name=type_name, null=null, **meta)


def list_field(type_name: str, /, *, null: bool = True, item_null: bool = False, **meta) -> FieldDescriptor:
    """Declare a list field; ``item_null`` controls nullability of the items."""
    return FieldDescriptor(kind='list', type_name=type_name, null=null, item_null=item_null, **meta)


def connection(type_name: str, /, *, null: bool = False, **meta) -> FieldDescriptor:
    """Declare a paginated connection of ``type_name``.

    The resolver (or default attribute) yields a sequence or a
    :class:`~tickql.core.pagination.Page`; the engine slices it using the
    ``first``/``after`` arguments, which are added automatically.
    """
    args = dict(meta.pop('args', None) or {})
    args.setdefault('first', ('Int', None))
    args.setdefault('after', ('String', None))
    return FieldDescriptor(kind='connection', type_name=type_name, null=null, args=args, **meta)


def relation(target: Any, /, *, collection: str, key: str, many: bool = False, null: bool = True, **meta) -> FieldDescriptor:
    """Declare a field loaded through the request's batch loader.

    Reads ``key`` from the parent and loads it from ``collection``. With
    ``many=True`` the field is a list: a list of keys is loaded with
    ``load_many``, a single key is expected to map to a list (grouped
    collections such as ``reviews_by_repo``).

    Examples:
        class Review:
            user = relation('User', collection='users', key='user_id', null=False)

        class Repo:
            reviews = relation('Review', collection='reviews_by_repo', key='id', many=True, null=False)
    """
    type_name = target.__name__ if hasattr(target, '__name__') and not isinstance(target, str) else str(target)
    kind = 'list' if many else 'named'
    meta.setdefault('resolver', _relation_resolver(collection, key, many))
    if many:
        meta.setdefault('item_null', False)
    return FieldDescriptor(kind=kind, type_name=type_name, null=null, collection=collection, key=key, many=many, **meta)


def _relation_resolver(collection: str, key: str, many: bool) -> Callable[..., Any]:
    from ..loader import NOT_FOUND
    from .utils import read_attr

    async def resolve_relation(parent, info, **_):
        value = read_attr(parent, key)
        if value is None:
            return [] if many else None
        loader = info.loader(collection)
        if many and isinstance(value, (list, tuple, set, frozenset)):
            return await loader.load_many(list(value))
        loaded = await loader.load(value)
        if many and loaded is NOT_FOUND:
            return []
        return loaded

    resolve_relation.__name__ = f"resolve_{collection}_by_{key}"
    return resolve_relation


__all__ = [
    'Shape',
    'Argument',
    'FieldDecl',
    'FieldDescriptor',
    'field',
    'list_field',
    'connection',
    'relation',
]
