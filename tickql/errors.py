"""Exception taxonomy for tickql.

Two families exist:

- ``SchemaError`` and subclasses signal programming/configuration mistakes.
  They abort the whole execution.
- ``FieldError`` and subclasses are runtime data problems. The executor
  records them against the failing field path and keeps resolving siblings.

Validation failures of mutations are *not* exceptions; they travel as
``Failure`` envelopes (see :mod:`tickql.envelope`).
"""
from __future__ import annotations

from typing import Any, Optional, Sequence


class TickQLError(Exception):
    """Base class for every error raised by the engine."""

    kind = 'error'


class SchemaError(TickQLError):
    kind = 'schema_error'


class UnknownType(SchemaError):
    kind = 'unknown_type'

    def __init__(self, type_name: str):
        super().__init__(f"Unknown type: {type_name}")
        self.type_name = type_name


class UnknownField(SchemaError):
    kind = 'unknown_field'

    def __init__(self, type_name: str, field_name: str):
        super().__init__(f"Type {type_name} has no field {field_name!r}")
        self.type_name = type_name
        self.field_name = field_name


class AmbiguousOrUnmatchedType(SchemaError):
    kind = 'ambiguous_or_unmatched_type'

    def __init__(self, union_name: str, message: str, candidates: Sequence[str] = ()):
        super().__init__(f"{union_name}: {message}")
        self.union_name = union_name
        self.candidates = tuple(candidates)


class DocumentError(TickQLError):
    """Raised when query text cannot be turned into a plan."""

    kind = 'document_error'


class FieldError(TickQLError):
    """Error local to one field; recorded in the result error list."""

    kind = 'field_error'


class NonNullViolation(FieldError):
    kind = 'non_null_violation'

    def __init__(self, type_name: str, field_name: str):
        super().__init__(f"Cannot return null for non-nullable field {type_name}.{field_name}.")
        self.type_name = type_name
        self.field_name = field_name


class BatchFetchFailed(FieldError):
    kind = 'batch_fetch_failed'

    def __init__(self, collection: str, keys: Sequence[Any], cause: Optional[BaseException] = None):
        detail = f": {cause}" if cause is not None else ''
        super().__init__(f"Batch fetch of {collection!r} failed for {len(keys)} key(s){detail}")
        self.collection = collection
        self.keys = tuple(keys)
        self.__cause__ = cause


class Cancelled(FieldError):
    kind = 'cancelled'

    def __init__(self, reason: str = 'execution cancelled'):
        super().__init__(reason)
        self.reason = reason


class InvalidResult(FieldError):
    """A resolver returned a value that cannot be completed for its field."""

    kind = 'invalid_result'


__all__ = [
    'TickQLError',
    'SchemaError',
    'UnknownType',
    'UnknownField',
    'AmbiguousOrUnmatchedType',
    'DocumentError',
    'FieldError',
    'NonNullViolation',
    'BatchFetchFailed',
    'Cancelled',
    'InvalidResult',
]
