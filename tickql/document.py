"""Build query plans from GraphQL documents.

Parsing (and optional validation) is delegated to graphql-core; this module
only lowers the AST into :mod:`tickql.plan` nodes: variables are substituted,
named fragments become inline fragments and ``@skip``/``@include`` are
applied.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, FrozenSet, Mapping, Optional, Tuple, Union

from graphql import GraphQLError, GraphQLSyntaxError, build_schema, parse, validate
from graphql.language import (
    DocumentNode,
    FieldNode,
    FragmentDefinitionNode,
    FragmentSpreadNode,
    InlineFragmentNode,
    NonNullTypeNode,
    OperationDefinitionNode,
    OperationType,
    SelectionSetNode,
)
from graphql.pyutils import Undefined
from graphql.utilities import value_from_ast_untyped

from .errors import DocumentError
from .plan import MUTATION, QUERY, FieldSelection, InlineFragment, QueryPlan, Selection

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from .registry import Schema


def parse_document(source: str) -> DocumentNode:
    try:
        return parse(source)
    except GraphQLSyntaxError as e:
        raise DocumentError(e.message) from e


def validate_document(schema: 'Schema', document: DocumentNode) -> None:
    """Validate ``document`` against the SDL rendering of ``schema``."""
    try:
        gql_schema = build_schema(schema.to_sdl())
    except (GraphQLError, TypeError) as e:
        raise DocumentError(f"Schema cannot be rendered for validation: {e}") from e
    errors = validate(gql_schema, document)
    if errors:
        raise DocumentError('; '.join(err.message for err in errors))


def plan_from_source(source: str, variables: Optional[Mapping[str, Any]] = None, *,
                     operation_name: Optional[str] = None, root_value: Any = None,
                     schema: Optional['Schema'] = None) -> QueryPlan:
    """Parse ``source`` and lower it into a :class:`QueryPlan`.

    When ``schema`` is given the document is validated first.
    """
    document = parse_document(source)
    if schema is not None:
        validate_document(schema, document)
    return plan_from_document(document, variables, operation_name=operation_name, root_value=root_value)


def plan_from_document(document: DocumentNode, variables: Optional[Mapping[str, Any]] = None, *,
                       operation_name: Optional[str] = None, root_value: Any = None) -> QueryPlan:
    operations = [d for d in document.definitions if isinstance(d, OperationDefinitionNode)]
    fragments = {d.name.value: d for d in document.definitions if isinstance(d, FragmentDefinitionNode)}
    operation = _pick_operation(operations, operation_name)
    if operation.operation == OperationType.SUBSCRIPTION:
        raise DocumentError("Subscriptions are not supported")
    values = _variable_values(operation, variables or {})
    selections = _lower(operation.selection_set, fragments, values, frozenset())
    return QueryPlan(
        selections=selections,
        operation=MUTATION if operation.operation == OperationType.MUTATION else QUERY,
        root_value=root_value,
        name=operation.name.value if operation.name else None,
    )


def _pick_operation(operations, operation_name: Optional[str]) -> OperationDefinitionNode:
    if not operations:
        raise DocumentError("Document contains no operation")
    if operation_name is None:
        if len(operations) > 1:
            raise DocumentError("Document contains several operations; operation_name is required")
        return operations[0]
    for op in operations:
        if op.name is not None and op.name.value == operation_name:
            return op
    raise DocumentError(f"Unknown operation named {operation_name!r}")


def _variable_values(operation: OperationDefinitionNode, provided: Mapping[str, Any]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for definition in operation.variable_definitions or ():
        name = definition.variable.name.value
        if name in provided:
            values[name] = provided[name]
        elif definition.default_value is not None:
            values[name] = value_from_ast_untyped(definition.default_value)
        elif isinstance(definition.type, NonNullTypeNode):
            raise DocumentError(f"Variable ${name} of required type was not provided")
    return values


def _included(node: Union[FieldNode, InlineFragmentNode, FragmentSpreadNode], variables: Mapping[str, Any]) -> bool:
    for directive in node.directives or ():
        name = directive.name.value
        if name not in ('skip', 'include'):
            continue
        condition = False
        for arg in directive.arguments or ():
            if arg.name.value == 'if':
                condition = bool(value_from_ast_untyped(arg.value, variables))
        if name == 'skip' and condition:
            return False
        if name == 'include' and not condition:
            return False
    return True


def _without_undefined(value: Any) -> Any:
    # unset variables inside object literals drop the field; inside lists they read as null
    if isinstance(value, dict):
        return {k: _without_undefined(v) for k, v in value.items() if v is not Undefined}
    if isinstance(value, list):
        return [None if v is Undefined else _without_undefined(v) for v in value]
    return value


def _lower(selection_set: Optional[SelectionSetNode], fragments: Mapping[str, FragmentDefinitionNode],
           variables: Mapping[str, Any], visiting: FrozenSet[str]) -> Tuple[Selection, ...]:
    if selection_set is None:
        return ()
    out = []
    for node in selection_set.selections:
        if not _included(node, variables):
            continue
        if isinstance(node, FieldNode):
            arguments = {}
            for arg in node.arguments or ():
                value = value_from_ast_untyped(arg.value, variables)
                if value is not Undefined:
                    arguments[arg.name.value] = _without_undefined(value)
            out.append(FieldSelection(
                name=node.name.value,
                alias=node.alias.value if node.alias else None,
                arguments=arguments,
                selections=_lower(node.selection_set, fragments, variables, visiting),
            ))
        elif isinstance(node, InlineFragmentNode):
            condition = node.type_condition.name.value if node.type_condition else None
            out.append(InlineFragment(condition, _lower(node.selection_set, fragments, variables, visiting)))
        elif isinstance(node, FragmentSpreadNode):
            name = node.name.value
            fragment = fragments.get(name)
            if fragment is None:
                raise DocumentError(f"Unknown fragment {name!r}")
            if name in visiting:
                raise DocumentError(f"Fragment {name!r} spreads itself")
            out.append(InlineFragment(
                fragment.type_condition.name.value,
                _lower(fragment.selection_set, fragments, variables, visiting | {name}),
            ))
    return tuple(out)


__all__ = ['parse_document', 'validate_document', 'plan_from_source', 'plan_from_document']
