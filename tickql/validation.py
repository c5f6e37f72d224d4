"""Attribute validators producing :class:`~tickql.envelope.ValidationErrors`.

Rules map an attribute name to a list of validators::

    rules = {
        'email': [presence(), format_of(r'.+@.+')],
        'password': [length(minimum=8), confirmation()],
    }
    errors = validate(values, rules)

A validator is called as ``validator(attribute, value, values)`` and returns
``(attribute, message)`` pairs; the attribute is usually the one being
checked, but a validator may report on another one. Messages follow the
ActiveModel wording so ``full_messages`` read like ``"Email can't be blank"``.
"""
from __future__ import annotations

import re
from numbers import Number
from typing import Any, Callable, Collection, Iterable, List, Mapping, Optional, Pattern, Sequence, Tuple, Union

from .core.naming import humanize_attribute
from .envelope import Failure, Result, Success, ValidationErrors

Message = Tuple[str, str]
Validator = Callable[[str, Any, Mapping[str, Any]], Iterable[Message]]
Rules = Mapping[str, Sequence[Validator]]


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, frozenset, dict)):
        return len(value) == 0
    return value is False


def presence(message: str = "can't be blank") -> Validator:
    def check(attribute: str, value: Any, values: Mapping[str, Any]) -> List[Message]:
        return [(attribute, message)] if is_blank(value) else []
    return check


def length(*, minimum: Optional[int] = None, maximum: Optional[int] = None, is_: Optional[int] = None,
           allow_none: bool = False) -> Validator:
    if minimum is None and maximum is None and is_ is None:
        raise ValueError("length() needs minimum, maximum or is_")

    def check(attribute: str, value: Any, values: Mapping[str, Any]) -> List[Message]:
        if value is None:
            if allow_none:
                return []
            value = ''
        size = len(value)
        out = []
        if is_ is not None and size != is_:
            out.append((attribute, f"is the wrong length (should be {is_} characters)"))
        if minimum is not None and size < minimum:
            out.append((attribute, f"is too short (minimum is {minimum} characters)"))
        if maximum is not None and size > maximum:
            out.append((attribute, f"is too long (maximum is {maximum} characters)"))
        return out
    return check


def inclusion(choices: Collection[Any], *, allow_none: bool = False,
              message: str = "is not included in the list") -> Validator:
    def check(attribute: str, value: Any, values: Mapping[str, Any]) -> List[Message]:
        if value is None and allow_none:
            return []
        return [] if value in choices else [(attribute, message)]
    return check


_COMPARISONS = (
    ('greater_than', lambda v, n: v > n, "must be greater than {}"),
    ('greater_than_or_equal_to', lambda v, n: v >= n, "must be greater than or equal to {}"),
    ('less_than', lambda v, n: v < n, "must be less than {}"),
    ('less_than_or_equal_to', lambda v, n: v <= n, "must be less than or equal to {}"),
    ('equal_to', lambda v, n: v == n, "must be equal to {}"),
)


def _to_number(value: Any) -> Optional[Number]:
    if isinstance(value, bool):
        return None
    if isinstance(value, Number):
        return value
    if isinstance(value, str):
        try:
            return int(value) if re.fullmatch(r'\s*[+-]?\d+\s*', value) else float(value)
        except ValueError:
            return None
    return None


def numericality(*, only_integer: bool = False, allow_none: bool = False, **bounds: Number) -> Validator:
    """Number check with optional ``greater_than``/``less_than``/``equal_to`` style bounds."""
    known = {name for name, _, _ in _COMPARISONS}
    unknown = set(bounds) - known
    if unknown:
        raise TypeError(f"numericality() got unexpected bounds: {sorted(unknown)}")

    def check(attribute: str, value: Any, values: Mapping[str, Any]) -> List[Message]:
        if value is None and allow_none:
            return []
        number = _to_number(value)
        if number is None:
            return [(attribute, "is not a number")]
        if only_integer and not (isinstance(number, int) or float(number).is_integer()):
            return [(attribute, "must be an integer")]
        return [
            (attribute, template.format(bounds[name]))
            for name, ok, template in _COMPARISONS
            if name in bounds and not ok(number, bounds[name])
        ]
    return check


def confirmation(confirmation_attribute: Optional[str] = None) -> Validator:
    """``<attribute>_confirmation`` must equal the attribute when it is given.

    The error is reported on the confirmation attribute.
    """
    def check(attribute: str, value: Any, values: Mapping[str, Any]) -> List[Message]:
        other = confirmation_attribute or f"{attribute}_confirmation"
        if values.get(other) is None or values[other] == value:
            return []
        return [(other, f"doesn't match {humanize_attribute(attribute)}")]
    return check


def format_of(pattern: Union[str, Pattern[str]], *, allow_none: bool = False,
              message: str = "is invalid") -> Validator:
    regex = re.compile(pattern) if isinstance(pattern, str) else pattern

    def check(attribute: str, value: Any, values: Mapping[str, Any]) -> List[Message]:
        if value is None and allow_none:
            return []
        if not isinstance(value, str) or regex.search(value) is None:
            return [(attribute, message)]
        return []
    return check


def validate(values: Mapping[str, Any], rules: Rules) -> ValidationErrors:
    """Run ``rules`` over ``values``; entries keep rule order."""
    errors = ValidationErrors()
    for attribute, validators in rules.items():
        value = values.get(attribute)
        for validator in validators:
            for target, message in validator(attribute, value, values):
                errors.add(target, message)
    return errors


def validated(values: Mapping[str, Any], rules: Rules, payload: Any = None) -> Result:
    """``Success(payload)`` (``values`` when omitted) or ``Failure`` with the collected errors."""
    errors = validate(values, rules)
    if errors:
        return Failure(errors)
    return Success(values if payload is None else payload)


__all__ = [
    'Message', 'Validator', 'Rules', 'is_blank', 'presence', 'length', 'inclusion', 'numericality',
    'confirmation', 'format_of', 'validate', 'validated',
]
