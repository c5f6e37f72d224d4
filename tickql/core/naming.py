from __future__ import annotations

from typing import Any, Callable, Optional, Sequence, Union

import inflection

NameConverter = Optional[Callable[[str], str]]


def to_camel(name: str) -> str:
    """``snake_case`` -> ``snakeCase``."""
    if not name:
        return name
    return inflection.camelize(str(name), uppercase_first_letter=False)


def graphql_name(py_name: str, *, auto_camel: bool, name_converter: NameConverter = None) -> str:
    """Public name of a python attribute; an explicit converter wins over camel casing."""
    if name_converter is not None:
        return name_converter(py_name)
    return to_camel(py_name) if auto_camel else py_name


def attribute_path(attribute: Union[str, Sequence[Any]]) -> str:
    """Dotted form of an attribute path (``('address', 'city')`` -> ``address.city``)."""
    if isinstance(attribute, str):
        return attribute
    return '.'.join(str(p) for p in attribute)


def humanize_attribute(attribute: Union[str, Sequence[Any]]) -> str:
    """Rails-style human attribute name: ``password_confirmation`` -> ``Password confirmation``."""
    return inflection.humanize(attribute_path(attribute).replace('.', ' '))


__all__ = ['NameConverter', 'to_camel', 'graphql_name', 'humanize_attribute', 'attribute_path']
