"""Polymorphic result envelope used by mutations.

A mutation resolver returns exactly one of :class:`Success` or :class:`Failure`.
Validation problems are data carried by ``Failure``; they are never raised
across the resolver boundary. Union resolution (``Schema.result_union``) maps
``Success`` to the success output type and ``Failure`` to ``ValidationError``.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Generic, Iterable, Iterator, List, Sequence, Tuple, TypeVar, Union

from .core.naming import attribute_path, humanize_attribute

T = TypeVar('T')

BASE_ATTRIBUTE = 'base'


@dataclass(frozen=True)
class ErrorEntry:
    """One ``{attribute path, message}`` pair."""

    attribute: str
    message: str

    @property
    def full_message(self) -> str:
        if self.attribute == BASE_ATTRIBUTE:
            return self.message
        return f"{humanize_attribute(self.attribute)} {self.message}"


@dataclass(frozen=True)
class AttributeErrors:
    """Messages grouped under one attribute (``attributeErrors`` entry)."""

    attribute: str
    errors: Tuple[str, ...]


class ValidationErrors:
    """Ordered collection of attribute errors.

    Mirrors ActiveModel::Errors closely enough for clients written against it:
    ``full_messages`` flattens entries, ``attribute_errors`` groups messages
    by attribute in first-seen order.
    """

    def __init__(self, entries: Iterable[ErrorEntry] = ()):
        self._entries: List[ErrorEntry] = list(entries)

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[Union[str, Sequence[Any]], str]]) -> 'ValidationErrors':
        return cls(ErrorEntry(attribute_path(a), str(m)) for a, m in pairs)

    @classmethod
    def from_dict(cls, data: Dict[str, Union[str, Sequence[str]]]) -> 'ValidationErrors':
        out = cls()
        for attr, msgs in data.items():
            if isinstance(msgs, str):
                msgs = [msgs]
            for msg in msgs:
                out.add(attr, msg)
        return out

    def add(self, attribute: Union[str, Sequence[Any]], message: str) -> 'ValidationErrors':
        self._entries.append(ErrorEntry(attribute_path(attribute), str(message)))
        return self

    def add_base(self, message: str) -> 'ValidationErrors':
        return self.add(BASE_ATTRIBUTE, message)

    def merge(self, other: 'ValidationErrors') -> 'ValidationErrors':
        return ValidationErrors([*self._entries, *other._entries])

    @property
    def entries(self) -> Tuple[ErrorEntry, ...]:
        return tuple(self._entries)

    @property
    def full_messages(self) -> List[str]:
        return [e.full_message for e in self._entries]

    @property
    def attribute_errors(self) -> List[AttributeErrors]:
        grouped: Dict[str, List[str]] = {}
        for e in self._entries:
            grouped.setdefault(e.attribute, []).append(e.message)
        return [AttributeErrors(attribute=a, errors=tuple(m)) for a, m in grouped.items()]

    def messages_for(self, attribute: str) -> List[str]:
        return [e.message for e in self._entries if e.attribute == attribute]

    def __iter__(self) -> Iterator[ErrorEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ValidationErrors):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"ValidationErrors({self.full_messages!r})"


@dataclass(frozen=True)
class Success(Generic[T]):
    payload: T

    @property
    def is_success(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.payload


@dataclass(frozen=True)
class Failure:
    errors: ValidationErrors

    def __post_init__(self):
        if not isinstance(self.errors, ValidationErrors):
            raise TypeError("Failure expects a ValidationErrors instance")
        if not self.errors:
            raise ValueError("Failure requires at least one error entry")

    @property
    def is_success(self) -> bool:
        return False

    def unwrap(self) -> ValidationErrors:
        return self.errors


Result = Union[Success[T], Failure]


def is_envelope(value: Any) -> bool:
    return isinstance(value, (Success, Failure))


def failure(*pairs: Tuple[Union[str, Sequence[Any]], str]) -> Failure:
    """Shorthand: ``failure(('email', "can't be blank"))``."""
    return Failure(ValidationErrors.from_pairs(pairs))


__all__ = [
    'ErrorEntry',
    'AttributeErrors',
    'ValidationErrors',
    'Success',
    'Failure',
    'Result',
    'is_envelope',
    'failure',
    'BASE_ATTRIBUTE',
]
