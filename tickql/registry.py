from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field as dc_field, replace
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Type, Union

from .core.fields import FieldDecl, FieldDescriptor, Shape, field, list_field
from .core.naming import NameConverter
from .envelope import Failure, Success
from .errors import AmbiguousOrUnmatchedType, InvalidResult, SchemaError, UnknownField, UnknownType

_logger = logging.getLogger("tickql.registry")


class TypeKind(str, enum.Enum):
    SCALAR = 'scalar'
    OBJECT = 'object'
    INTERFACE = 'interface'
    UNION = 'union'
    ENUM = 'enum'
    INPUT = 'input'


@dataclass(frozen=True)
class UnionMember:
    """Closed tag -> concrete type mapping entry of a union/interface."""

    tag: type
    type_name: str
    unwrap: Optional[Callable[[Any], Any]] = None


@dataclass(frozen=True)
class TypeDescriptor:
    name: str
    kind: TypeKind
    fields: Mapping[str, FieldDecl] = dc_field(default_factory=dict)
    members: Tuple[UnionMember, ...] = ()
    interfaces: Tuple[str, ...] = ()
    model: Optional[type] = None
    serialize: Optional[Callable[[Any], Any]] = None
    parse: Optional[Callable[[Any], Any]] = None
    values: Tuple[str, ...] = ()
    description: Optional[str] = None

    @property
    def is_abstract(self) -> bool:
        return self.kind in (TypeKind.UNION, TypeKind.INTERFACE)

    @property
    def possible_types(self) -> Tuple[str, ...]:
        seen: Dict[str, None] = {}
        for m in self.members:
            seen.setdefault(m.type_name, None)
        return tuple(seen)

    def field(self, name: str) -> FieldDecl:
        decl = self.fields.get(name)
        if decl is None:
            raise UnknownField(self.name, name)
        return decl


# ---- built-in scalars ------------------------------------------------------

def _serialize_id(value: Any) -> str:
    return str(value)


def _serialize_string(value: Any) -> str:
    if isinstance(value, enum.Enum):
        return str(value.name)
    return str(value)


def _serialize_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, float) and not value.is_integer():
        raise TypeError(f"Int cannot represent non-integer value: {value!r}")
    return int(value)


def _serialize_float(value: Any) -> float:
    return float(value)


def _serialize_boolean(value: Any) -> bool:
    return bool(value)


def _serialize_json(value: Any) -> Any:
    return value


BUILTIN_SCALARS: Dict[str, Callable[[Any], Any]] = {
    'ID': _serialize_id,
    'String': _serialize_string,
    'Int': _serialize_int,
    'Float': _serialize_float,
    'Boolean': _serialize_boolean,
    'JSON': _serialize_json,
}
_SPEC_SCALARS = {'ID', 'String', 'Int', 'Float', 'Boolean'}


def _enum_serializer(type_name: str, enum_cls: Type[enum.Enum]) -> Callable[[Any], str]:
    """Members, raw member values and member names all serialize to the name."""
    def serialize(value: Any) -> str:
        if isinstance(value, enum_cls):
            return value.name
        if isinstance(value, str) and value in enum_cls.__members__:
            return value
        try:
            return enum_cls(value).name
        except ValueError:
            raise ValueError(f"{value!r} is not a member of {type_name}") from None
    return serialize


def _enum_parser(type_name: str, enum_cls: Type[enum.Enum]) -> Callable[[Any], enum.Enum]:
    def parse(value: Any) -> enum.Enum:
        if isinstance(value, enum_cls):
            return value
        if isinstance(value, str) and value in enum_cls.__members__:
            return enum_cls[value]
        raise InvalidResult(f"{value!r} is not a valid {type_name}; expected one of {list(enum_cls.__members__)}")
    return parse


def _base_name(type_ref: str) -> str:
    return type_ref.strip('[]!')


_INPUT_KINDS = (TypeKind.SCALAR, TypeKind.ENUM, TypeKind.INPUT)


@dataclass
class _TypeSpec:
    name: str
    kind: TypeKind
    fields: List[FieldDecl] = dc_field(default_factory=list)
    members: List[UnionMember] = dc_field(default_factory=list)
    member_names: Optional[Tuple[str, ...]] = None
    possible_types: Optional[Tuple[str, ...]] = None
    interfaces: Tuple[str, ...] = ()
    model: Optional[type] = None
    description: Optional[str] = None


def _success_payload(value: Success) -> Any:
    return value.payload


class Schema:
    """Registry of object, interface, union, enum, input and scalar types.

    Declarations happen at import time through decorators; ``freeze()`` checks
    every reference and turns the declarations into immutable
    :class:`TypeDescriptor` objects. The executor freezes lazily on first use.

    Usage:

        schema = Schema()

        @schema.type
        class Repo:
            id = field('ID', null=False)
            name = field('String', null=False)
            name_reversed = field('String', null=False)

            def resolve_name_reversed(repo, info):
                return repo.name[::-1]

        schema.result_union('SignupResult', success='AuthenticatedUser')
    """

    def __init__(self, *, auto_camel_case: bool = True, name_converter: NameConverter = None):
        self._auto_camel = bool(auto_camel_case)
        self._name_converter = name_converter
        self._specs: Dict[str, _TypeSpec] = {}
        self._scalars: Dict[str, Callable[[Any], Any]] = dict(BUILTIN_SCALARS)
        self._external_resolvers: List[Tuple[str, str, Callable[..., Any]]] = []
        self._types: Dict[str, TypeDescriptor] = {}
        self._frozen = False
        self._register_builtins()

    # ----- declaration API -----
    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def auto_camel_case(self) -> bool:
        return self._auto_camel

    def _ensure_mutable(self, what: str) -> None:
        if self._frozen:
            raise SchemaError(f"Schema is frozen; cannot register {what}")

    def _add_spec(self, spec: _TypeSpec) -> None:
        self._ensure_mutable(spec.name)
        if spec.name in self._specs or spec.name in self._scalars:
            raise SchemaError(f"Type {spec.name} is already registered")
        self._specs[spec.name] = spec

    def _collect_fields(self, cls: type, type_name: str) -> List[FieldDecl]:
        descriptors: Dict[str, FieldDescriptor] = {}
        # bases first so subclasses can override and keep base ordering
        for klass in reversed(cls.__mro__):
            for attr, value in vars(klass).items():
                if isinstance(value, FieldDescriptor):
                    if value.name is None:
                        value.name = attr
                    descriptors[attr] = value
        decls = []
        for attr, desc in descriptors.items():
            decl = desc.build(type_name, auto_camel=self._auto_camel, name_converter=self._name_converter)
            method = getattr(cls, f"resolve_{attr}", None)
            if decl.resolver is None and callable(method):
                decl = decl.with_resolver(method)
            decls.append(decl)
        names = [d.name for d in decls]
        dupes = {n for n in names if names.count(n) > 1}
        if dupes:
            raise SchemaError(f"Type {type_name} declares duplicate fields: {sorted(dupes)}")
        return decls

    def type(self, cls: Optional[type] = None, *, name: Optional[str] = None, model: Optional[type] = None,
             interfaces: Sequence[str] = (), description: Optional[str] = None):
        """Register an object type from a class with field descriptors.

        Usable bare (``@schema.type``) or with options
        (``@schema.type(name='User', model=UserModel)``). ``model`` is the
        Python class of values of this type; unions and interfaces declared
        by member name use it as the dispatch tag.
        """
        def wrap(klass: type) -> type:
            type_name = name or klass.__name__
            self._add_spec(_TypeSpec(
                name=type_name,
                kind=TypeKind.OBJECT,
                fields=self._collect_fields(klass, type_name),
                interfaces=tuple(interfaces),
                model=model,
                description=description or (klass.__doc__.strip() if klass.__doc__ else None),
            ))
            setattr(klass, '__tickql_type__', type_name)
            return klass

        if cls is not None:
            return wrap(cls)
        return wrap

    def query(self, cls: Optional[type] = None, *, description: Optional[str] = None):
        """Register the root ``Query`` type."""
        return self.type(cls, name='Query', description=description)

    def mutation(self, cls: Optional[type] = None, *, description: Optional[str] = None):
        """Register the root ``Mutation`` type."""
        return self.type(cls, name='Mutation', description=description)

    def interface(self, cls: Optional[type] = None, *, name: Optional[str] = None,
                  members: Union[Mapping[type, str], Sequence[str], None] = None, description: Optional[str] = None):
        """Register an interface; implementing objects declare ``interfaces=(name,)``.

        ``members`` optionally maps tag classes to implementing type names.
        Objects without an explicit tag are dispatched on their ``model``.
        """
        def wrap(klass: type) -> type:
            type_name = name or klass.__name__
            spec = _TypeSpec(
                name=type_name,
                kind=TypeKind.INTERFACE,
                fields=self._collect_fields(klass, type_name),
                description=description,
            )
            self._apply_members(spec, members)
            self._add_spec(spec)
            setattr(klass, '__tickql_type__', type_name)
            return klass

        if cls is not None:
            return wrap(cls)
        return wrap

    def union(self, name: str, members: Union[Mapping[type, str], Sequence[str]], *,
              possible_types: Optional[Sequence[str]] = None, description: Optional[str] = None) -> None:
        """Register a union with a closed tag mapping.

        ``members`` is either ``{TagClass: 'TypeName'}`` or a list of type
        names whose ``model`` acts as tag. ``possible_types`` (optional) lists
        the member types explicitly; freeze then checks the mapping covers
        exactly those types.
        """
        spec = _TypeSpec(name=name, kind=TypeKind.UNION, description=description,
                         possible_types=tuple(possible_types) if possible_types is not None else None)
        self._apply_members(spec, members)
        self._add_spec(spec)

    def result_union(self, name: str, *, success: str, failure: str = 'ValidationError',
                     description: Optional[str] = None) -> None:
        """Register the output union of a mutation returning an envelope.

        ``Success`` maps to ``success`` (children resolve against the payload),
        ``Failure`` maps to ``failure`` (children resolve against the Failure).
        """
        spec = _TypeSpec(name=name, kind=TypeKind.UNION, description=description,
                         possible_types=(success, failure))
        spec.members = [
            UnionMember(tag=Success, type_name=success, unwrap=_success_payload),
            UnionMember(tag=Failure, type_name=failure),
        ]
        self._add_spec(spec)

    def _apply_members(self, spec: _TypeSpec, members: Union[Mapping[type, str], Sequence[str], None]) -> None:
        if members is None:
            return
        if isinstance(members, Mapping):
            for tag, type_name in members.items():
                if not isinstance(tag, type):
                    raise SchemaError(f"{spec.name}: union tags must be classes, got {tag!r}")
                spec.members.append(UnionMember(tag=tag, type_name=type_name))
        else:
            spec.member_names = tuple(members)

    def enum(self, cls: Optional[Type[enum.Enum]] = None, *, name: Optional[str] = None,
             description: Optional[str] = None):
        """Register a Python ``enum.Enum`` as a GraphQL enum.

        Member names are the GraphQL values. Arguments of the enum type reach
        resolvers as members; fields may return members, raw values or names.
        """
        def wrap(klass: Type[enum.Enum]) -> Type[enum.Enum]:
            if not (isinstance(klass, type) and issubclass(klass, enum.Enum)):
                raise SchemaError(f"schema.enum expects an enum.Enum subclass, got {klass!r}")
            self._add_spec(_TypeSpec(name=name or klass.__name__, kind=TypeKind.ENUM,
                                     model=klass, description=description))
            return klass

        if cls is not None:
            return wrap(cls)
        return wrap

    def input(self, cls: Optional[type] = None, *, name: Optional[str] = None,
              description: Optional[str] = None):
        """Register an input object type declared with ``field``/``list_field``.

        Values arrive in resolvers as dicts keyed by python attribute name;
        omitted fields take their ``default`` or are left out.

            @schema.input
            class SignupInput:
                email = field('String', null=False)
                name = field('String', default=None)
        """
        def wrap(klass: type) -> type:
            type_name = name or klass.__name__
            self._add_spec(_TypeSpec(
                name=type_name,
                kind=TypeKind.INPUT,
                fields=self._collect_fields(klass, type_name),
                description=description or (klass.__doc__.strip() if klass.__doc__ else None),
            ))
            setattr(klass, '__tickql_type__', type_name)
            return klass

        if cls is not None:
            return wrap(cls)
        return wrap

    def scalar(self, name: str, serialize: Optional[Callable[[Any], Any]] = None) -> None:
        self._ensure_mutable(name)
        if name in self._specs or name in self._scalars:
            raise SchemaError(f"Type {name} is already registered")
        self._scalars[name] = serialize or _serialize_json

    def resolver(self, type_name: str, field_name: str):
        """Attach a resolver to ``type_name.field_name`` from outside the class body."""
        def wrap(fn: Callable[..., Any]) -> Callable[..., Any]:
            self._ensure_mutable(f"resolver {type_name}.{field_name}")
            self._external_resolvers.append((type_name, field_name, fn))
            return fn
        return wrap

    def _register_builtins(self) -> None:
        class AttributeErrors:
            attribute = field('String', null=False, name='attribute')
            errors = list_field('String', null=False, name='errors')

        class ErrorSet:
            full_messages = list_field('String', null=False, name='fullMessages')
            attribute_errors = list_field('AttributeErrors', null=False, name='attributeErrors')

        class ValidationError:
            errors = field('ErrorSet', null=False, name='errors')

        class PageInfo:
            has_next_page = field('Boolean', null=False, name='hasNextPage')
            has_previous_page = field('Boolean', null=False, name='hasPreviousPage')
            start_cursor = field('String', name='startCursor')
            end_cursor = field('String', name='endCursor')

        for klass in (AttributeErrors, ErrorSet, ValidationError, PageInfo):
            self.type(klass)

    # ----- freeze -----
    def freeze(self) -> 'Schema':
        if self._frozen:
            return self
        self._synthesize_connections()
        types: Dict[str, TypeDescriptor] = {}
        for name, serialize in self._scalars.items():
            types[name] = TypeDescriptor(name=name, kind=TypeKind.SCALAR, serialize=serialize)

        field_lists = {name: list(spec.fields) for name, spec in self._specs.items()}
        for type_name, field_name, fn in self._external_resolvers:
            decls = field_lists.get(type_name)
            if decls is None:
                raise UnknownType(type_name)
            for i, decl in enumerate(decls):
                if field_name in (decl.name, decl.attr):
                    decls[i] = decl.with_resolver(fn)
                    break
            else:
                raise UnknownField(type_name, field_name)

        for name, spec in self._specs.items():
            if spec.kind == TypeKind.ENUM:
                types[name] = TypeDescriptor(
                    name=name,
                    kind=TypeKind.ENUM,
                    model=spec.model,
                    serialize=_enum_serializer(name, spec.model),
                    parse=_enum_parser(name, spec.model),
                    values=tuple(spec.model.__members__),
                    description=spec.description,
                )
                continue
            fields: Dict[str, FieldDecl] = {}
            for decl in field_lists[name]:
                target = self._kind_of(decl.type_name)
                if spec.kind == TypeKind.INPUT:
                    if target not in _INPUT_KINDS:
                        raise SchemaError(f"{name}.{decl.name}: {decl.type_name} is not an input type")
                elif target == TypeKind.INPUT:
                    raise SchemaError(f"{name}.{decl.name}: input type {decl.type_name} cannot be a field type")
                if decl.shape == Shape.NAMED:
                    decl = decl.with_shape(Shape.SCALAR if target in (TypeKind.SCALAR, TypeKind.ENUM) else Shape.OBJECT)
                for arg in decl.arguments:
                    if self._kind_of(_base_name(arg.type_ref)) not in _INPUT_KINDS:
                        raise SchemaError(
                            f"Argument {arg.name!r} of {name}.{decl.name}: {_base_name(arg.type_ref)} is not an input type")
                fields[decl.name] = decl
            types[name] = TypeDescriptor(
                name=name,
                kind=spec.kind,
                fields=MappingProxyType(fields),
                members=(),
                interfaces=spec.interfaces,
                model=spec.model,
                description=spec.description,
            )

        for name, spec in self._specs.items():
            if spec.kind in (TypeKind.UNION, TypeKind.INTERFACE):
                members = self._resolve_members(spec, types)
                types[name] = replace(types[name], members=members)
        self._check_interfaces(types)

        self._types = types
        self._frozen = True
        _logger.debug("tickql.registry: frozen with %d types", len(types))
        return self

    def _kind_of(self, type_name: str) -> TypeKind:
        if type_name in self._scalars:
            return TypeKind.SCALAR
        spec = self._specs.get(type_name)
        if spec is None:
            raise UnknownType(type_name)
        return spec.kind

    def _synthesize_connections(self) -> None:
        wanted: Dict[str, None] = {}
        for spec in self._specs.values():
            for decl in spec.fields:
                if decl.shape == Shape.CONNECTION:
                    wanted.setdefault(decl.type_name, None)
        for node_type in wanted:
            edge_name = f"{node_type}Edge"
            conn_name = f"{node_type}Connection"
            if edge_name not in self._specs:
                self._specs[edge_name] = _TypeSpec(name=edge_name, kind=TypeKind.OBJECT, fields=[
                    FieldDecl(name='cursor', attr='cursor', type_name='String', nullable=False),
                    FieldDecl(name='node', attr='node', type_name=node_type, nullable=False),
                ])
            if conn_name not in self._specs:
                self._specs[conn_name] = _TypeSpec(name=conn_name, kind=TypeKind.OBJECT, fields=[
                    FieldDecl(name='edges', attr='edges', type_name=edge_name, shape=Shape.LIST, nullable=False, item_nullable=False),
                    FieldDecl(name='nodes', attr='nodes', type_name=node_type, shape=Shape.LIST, nullable=False, item_nullable=False),
                    FieldDecl(name='pageInfo', attr='page_info', type_name='PageInfo', nullable=False),
                    FieldDecl(name='totalCount', attr='total_count', type_name='Int'),
                ])

    def _resolve_members(self, spec: _TypeSpec, types: Mapping[str, TypeDescriptor]) -> Tuple[UnionMember, ...]:
        members = list(spec.members)
        names: List[str] = list(spec.member_names or ())
        if spec.kind == TypeKind.INTERFACE:
            names.extend(t.name for t in types.values()
                         if t.kind == TypeKind.OBJECT and spec.name in t.interfaces)
        tagged = {m.type_name for m in members}
        for type_name in dict.fromkeys(names):
            if type_name in tagged:
                continue
            target = types.get(type_name)
            if target is None:
                raise UnknownType(type_name)
            if target.model is None:
                raise AmbiguousOrUnmatchedType(
                    spec.name, f"member {type_name} has no tag; declare it with model= or an explicit mapping")
            members.append(UnionMember(tag=target.model, type_name=type_name))

        if not members:
            raise AmbiguousOrUnmatchedType(spec.name, "declares no possible types")
        for m in members:
            target = types.get(m.type_name)
            if target is None:
                raise UnknownType(m.type_name)
            if target.kind != TypeKind.OBJECT:
                raise AmbiguousOrUnmatchedType(spec.name, f"member {m.type_name} is not an object type")
            if spec.kind == TypeKind.INTERFACE and spec.name not in target.interfaces:
                raise AmbiguousOrUnmatchedType(spec.name, f"{m.type_name} does not implement {spec.name}")

        seen_tags: Dict[type, str] = {}
        for m in members:
            if m.tag in seen_tags:
                raise AmbiguousOrUnmatchedType(
                    spec.name, f"tag {m.tag.__name__} maps to both {seen_tags[m.tag]} and {m.type_name}",
                    (seen_tags[m.tag], m.type_name))
            seen_tags[m.tag] = m.type_name
        for a in members:
            for b in members:
                if a is not b and a.type_name != b.type_name and issubclass(a.tag, b.tag):
                    raise AmbiguousOrUnmatchedType(
                        spec.name,
                        f"tag {a.tag.__name__} ({a.type_name}) is a subclass of {b.tag.__name__} ({b.type_name})",
                        (a.type_name, b.type_name))

        mapped = {m.type_name for m in members}
        if spec.possible_types is not None:
            missing = [t for t in spec.possible_types if t not in mapped]
            if missing:
                raise AmbiguousOrUnmatchedType(spec.name, f"no tag maps to possible type(s) {missing}", missing)
            extra = sorted(mapped - set(spec.possible_types))
            if extra:
                raise AmbiguousOrUnmatchedType(spec.name, f"tags map to undeclared type(s) {extra}", extra)
        return tuple(members)

    def _check_interfaces(self, types: Mapping[str, TypeDescriptor]) -> None:
        for t in types.values():
            for iface_name in t.interfaces:
                iface = types.get(iface_name)
                if iface is None:
                    raise UnknownType(iface_name)
                if iface.kind != TypeKind.INTERFACE:
                    raise SchemaError(f"{t.name} implements {iface_name}, which is not an interface")
                for fname, idecl in iface.fields.items():
                    odecl = t.fields.get(fname)
                    if odecl is None:
                        raise SchemaError(f"{t.name} must declare field {fname!r} of interface {iface_name}")
                    if odecl.type_ref() != idecl.type_ref():
                        raise SchemaError(
                            f"{t.name}.{fname} is {odecl.type_ref()} but interface {iface_name} declares {idecl.type_ref()}")

    # ----- lookup -----
    def _require_frozen(self) -> None:
        if not self._frozen:
            self.freeze()

    def describe(self, type_name: str) -> TypeDescriptor:
        self._require_frozen()
        desc = self._types.get(type_name)
        if desc is None:
            raise UnknownType(type_name)
        return desc

    def has_type(self, type_name: str) -> bool:
        self._require_frozen()
        return type_name in self._types

    @property
    def types(self) -> Mapping[str, TypeDescriptor]:
        self._require_frozen()
        return MappingProxyType(self._types)

    @property
    def query_type(self) -> TypeDescriptor:
        return self.describe('Query')

    @property
    def mutation_type(self) -> TypeDescriptor:
        return self.describe('Mutation')

    def _match_member(self, abstract: TypeDescriptor, instance: Any) -> UnionMember:
        matches: Dict[str, UnionMember] = {}
        for m in abstract.members:
            if isinstance(instance, m.tag):
                matches.setdefault(m.type_name, m)
        if len(matches) != 1:
            detail = 'no member matches' if not matches else 'several members match'
            raise AmbiguousOrUnmatchedType(
                abstract.name, f"{detail} value of type {type(instance).__name__}", tuple(matches))
        return next(iter(matches.values()))

    def resolve_union_member(self, union_name: str, instance: Any) -> TypeDescriptor:
        """Concrete descriptor for ``instance`` within a union or interface.

        Raises ``AmbiguousOrUnmatchedType`` unless exactly one member type matches.
        """
        abstract = self.describe(union_name)
        if not abstract.is_abstract:
            raise SchemaError(f"{union_name} is not a union or interface")
        return self.describe(self._match_member(abstract, instance).type_name)

    def resolve_abstract_value(self, abstract_name: str, instance: Any) -> Tuple[TypeDescriptor, Any]:
        """Like ``resolve_union_member`` but also returns the value children resolve against."""
        abstract = self.describe(abstract_name)
        member = self._match_member(abstract, instance)
        value = member.unwrap(instance) if member.unwrap is not None else instance
        return self.describe(member.type_name), value

    def is_possible_type(self, condition: str, object_name: str) -> bool:
        """Whether an inline fragment on ``condition`` applies to ``object_name``."""
        if condition == object_name:
            return True
        target = self._types.get(condition)
        return bool(target is not None and target.is_abstract and object_name in target.possible_types)

    def coerce_input(self, type_ref: str, value: Any, where: str = 'input') -> Any:
        """Coerce an argument value against an input type reference (``[ReviewRating!]``, ``SignupInput!``).

        Enums become members, input objects become dicts keyed by python
        attribute name, a single value given for a list is wrapped. Scalars
        pass through. Raises ``InvalidResult`` describing ``where`` on mismatch.
        """
        if type_ref.endswith('!'):
            if value is None:
                raise InvalidResult(f"{where} cannot be null")
            return self.coerce_input(type_ref[:-1], value, where)
        if value is None:
            return None
        if type_ref.startswith('['):
            inner = type_ref[1:-1]
            if isinstance(value, (list, tuple)):
                return [self.coerce_input(inner, item, f"{where}[{i}]") for i, item in enumerate(value)]
            return [self.coerce_input(inner, value, where)]
        desc = self.describe(type_ref)
        if desc.kind == TypeKind.ENUM:
            return desc.parse(value)
        if desc.kind != TypeKind.INPUT:
            return value
        if not isinstance(value, Mapping):
            raise InvalidResult(f"{where} expects an {type_ref} object, got {type(value).__name__}")
        known = {n for decl in desc.fields.values() for n in (decl.name, decl.attr)}
        unknown = sorted(set(value) - known)
        if unknown:
            raise InvalidResult(f"{where}: {type_ref} has no field(s) {unknown}")
        out: Dict[str, Any] = {}
        for decl in desc.fields.values():
            if decl.name in value:
                raw = value[decl.name]
            elif decl.attr in value:
                raw = value[decl.attr]
            elif decl.has_default:
                raw = decl.default
            elif not decl.nullable:
                raise InvalidResult(f"{where}: missing required field {decl.name!r} of {type_ref}")
            else:
                continue
            out[decl.attr] = self.coerce_input(decl.type_ref(), raw, f"{where}.{decl.name}")
        return out

    # ----- SDL -----
    def to_sdl(self) -> str:
        """Render the schema in GraphQL SDL (accepted by ``graphql.build_schema``)."""
        self._require_frozen()
        blocks: List[str] = []
        for name, desc in self._types.items():
            if desc.kind == TypeKind.SCALAR:
                if name not in _SPEC_SCALARS:
                    blocks.append(f"scalar {name}")
                continue
            head = _sdl_description(desc.description)
            if desc.kind == TypeKind.UNION:
                blocks.append(f"{head}union {name} = {' | '.join(desc.possible_types)}")
                continue
            if desc.kind == TypeKind.ENUM:
                blocks.append('\n'.join([f"{head}enum {name} {{", *(f"  {v}" for v in desc.values), '}']))
                continue
            if desc.kind == TypeKind.INPUT:
                lines = [f"{head}input {name} {{"]
                for decl in desc.fields.values():
                    default = f" = {_literal(decl.default)}" if decl.has_default else ''
                    lines.append(f"  {decl.name}: {decl.type_ref()}{default}")
                lines.append('}')
                blocks.append('\n'.join(lines))
                continue
            keyword = 'interface' if desc.kind == TypeKind.INTERFACE else 'type'
            implements = f" implements {' & '.join(desc.interfaces)}" if desc.interfaces else ''
            lines = [f"{head}{keyword} {name}{implements} {{"]
            for decl in desc.fields.values():
                lines.append(f"  {_field_sdl(decl)}")
            lines.append('}')
            blocks.append('\n'.join(lines))
        return '\n\n'.join(blocks) + '\n'


def _sdl_description(text: Optional[str]) -> str:
    if not text:
        return ''
    return '"""' + text.replace('"""', '\\"""') + '"""\n'


def _literal(value: Any) -> str:
    if value is None:
        return 'null'
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, enum.Enum):
        return str(value.name)
    if isinstance(value, (list, tuple)):
        return '[' + ', '.join(_literal(v) for v in value) + ']'
    if isinstance(value, Mapping):
        return '{' + ', '.join(f"{k}: {_literal(v)}" for k, v in value.items()) + '}'
    text = str(value).replace('\\', '\\\\').replace('"', '\\"')
    return f'"{text}"'


def _field_sdl(decl: FieldDecl) -> str:
    args = ''
    if decl.arguments:
        parts = []
        for a in decl.arguments:
            default = f" = {_literal(a.default)}" if a.has_default else ''
            parts.append(f"{a.name}: {a.type_ref}{default}")
        args = '(' + ', '.join(parts) + ')'
    return f"{decl.name}{args}: {decl.type_ref()}"


__all__ = [
    'Schema',
    'TypeDescriptor',
    'TypeKind',
    'UnionMember',
    'BUILTIN_SCALARS',
]
