"""
Built-in template helpers.

Pure string transforms exposed to every template under their camelCase
names (``toPascalCase``, ``defaultValue``, ...). Callers can override any
of them by passing a helper with the same name to the context builder.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from typing import Any

# Irregular plurals that don't follow standard rules
_IRREGULAR_PLURALS = {
    "person": "people",
    "child": "children",
    "datum": "data",
    "index": "indices",
    "vertex": "vertices",
    "status": "statuses",
    "process": "processes",
}

# Literal for types with no obvious default
UNDEFINED = "undefined"


def to_lower_case(value: str | None) -> str:
    return value.lower() if value else ""


def to_upper_case(value: str | None) -> str:
    return value.upper() if value else ""


def to_pascal_case(value: str | None) -> str:
    """
    Split on dashes, underscores and whitespace; capitalize each segment.

    Examples:
        >>> to_pascal_case("state-machine")
        'StateMachine'
        >>> to_pascal_case("my_DSL name")
        'MyDslName'
    """
    if not value:
        return ""
    return "".join(
        word[:1].upper() + word[1:].lower() for word in re.split(r"[-_\s]+", value)
    )


def to_camel_case(value: str | None) -> str:
    """PascalCase with the first character lower-cased."""
    pascal = to_pascal_case(value)
    return pascal[:1].lower() + pascal[1:]


def to_kebab_case(value: str | None) -> str:
    """
    Convert an identifier to kebab-case.

    Examples:
        >>> to_kebab_case("StateMachine")
        'state-machine'
        >>> to_kebab_case("Edge")
        'edge'
    """
    if not value:
        return ""
    return re.sub(r"([A-Z])", r"-\1", value).lower().lstrip("-")


def join(seq: Sequence[Any] | None, sep: str = ", ") -> str:
    """Join items with ``sep``; empty string when ``seq`` is absent."""
    if not seq:
        return ""
    return sep.join(str(item) for item in seq)


def has_elements(seq: Sequence[Any] | None) -> bool:
    return seq is not None and len(seq) > 0


def default_value(type_name: str | None) -> str:
    """
    Default value literal for a generated property.

    Unknown types map to ``undefined``, never to ``0`` or ``''``.
    """
    return {
        "string": "''",
        "number": "0",
        "boolean": "false",
        "array": "[]",
    }.get(type_name or "", UNDEFINED)


def pluralize(word: str | None) -> str:
    """
    Convert a singular English word to its plural form.

    Examples:
        >>> pluralize("State")
        'States'
        >>> pluralize("Entity")
        'Entities'
        >>> pluralize("TaskStatus")
        'TaskStatuses'
    """
    if not word:
        return ""

    lower_word = word.lower()
    if lower_word in _IRREGULAR_PLURALS:
        plural = _IRREGULAR_PLURALS[lower_word]
        return plural.capitalize() if word[0].isupper() else plural

    # Pluralize only the last word of a CamelCase name
    camel_match = re.match(r"^(.+)([A-Z][a-z]+)$", word)
    if camel_match:
        prefix, last_word = camel_match.groups()
        return prefix + pluralize(last_word)

    if lower_word.endswith(("s", "x", "z", "ch", "sh")):
        return word + "es"
    if lower_word.endswith("y") and not (len(word) > 1 and lower_word[-2] in "aeiou"):
        return word[:-1] + "ies"
    return word + "s"


def humanize(value: str | None) -> str:
    """
    Turn an identifier into a label.

    Examples:
        >>> humanize("StartState")
        'Start State'
        >>> humanize("snap_to_grid")
        'Snap To Grid'
    """
    if not value:
        return ""
    spaced = re.sub(r"([a-z0-9])([A-Z])", r"\1 \2", value)
    words = re.split(r"[-_\s]+", spaced)
    return " ".join(w[:1].upper() + w[1:] for w in words if w)


BUILTIN_HELPERS: dict[str, Callable[..., Any]] = {
    "toLowerCase": to_lower_case,
    "toUpperCase": to_upper_case,
    "toPascalCase": to_pascal_case,
    "toCamelCase": to_camel_case,
    "toKebabCase": to_kebab_case,
    "join": join,
    "hasElements": has_elements,
    "defaultValue": default_value,
    "pluralize": pluralize,
    "humanize": humanize,
}
