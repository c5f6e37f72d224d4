"""tickql public API with lazy exports.

Submodules are imported on first attribute access so that importing
``tickql`` stays cheap and model modules can import helpers (e.g. the
envelope types) without pulling in the executor.

Exposes:
- Schema, TypeKind (registry); field, list_field, connection, relation (declarations)
- Engine, EngineSettings, ResolutionContext, ResolveInfo
- BatchLoader, NOT_FOUND
- Success, Failure, ValidationErrors, failure
- QueryPlan, select, on, query, mutation, plan_from_source
- QueryResult, ExecutionError and the error hierarchy
"""
from __future__ import annotations

_EXPORTS = {
    'Schema': 'registry',
    'TypeKind': 'registry',
    'TypeDescriptor': 'registry',
    'field': 'core.fields',
    'list_field': 'core.fields',
    'connection': 'core.fields',
    'relation': 'core.fields',
    'Connection': 'core.pagination',
    'Engine': 'engine',
    'EngineSettings': 'config',
    'ResolutionContext': 'context',
    'ResolveInfo': 'context',
    'BatchLoader': 'loader',
    'NOT_FOUND': 'loader',
    'Success': 'envelope',
    'Failure': 'envelope',
    'ValidationErrors': 'envelope',
    'failure': 'envelope',
    'QueryPlan': 'plan',
    'select': 'plan',
    'on': 'plan',
    'query': 'plan',
    'mutation': 'plan',
    'plan_from_source': 'document',
    'QueryResult': 'result',
    'ExecutionError': 'result',
    'TickQLError': 'errors',
    'SchemaError': 'errors',
    'UnknownType': 'errors',
    'UnknownField': 'errors',
    'AmbiguousOrUnmatchedType': 'errors',
    'DocumentError': 'errors',
    'FieldError': 'errors',
    'NonNullViolation': 'errors',
    'BatchFetchFailed': 'errors',
    'Cancelled': 'errors',
    'InvalidResult': 'errors',
}


def __getattr__(name: str):  # PEP 562 lazy exports
    import importlib as _importlib
    module = _EXPORTS.get(name)
    if module is None:
        if name in {'adapters', 'validation', 'execution', 'scheduler'}:
            return _importlib.import_module(__name__ + '.' + name)
        raise AttributeError(name)
    return getattr(_importlib.import_module(__name__ + '.' + module), name)


__all__ = sorted(_EXPORTS)
