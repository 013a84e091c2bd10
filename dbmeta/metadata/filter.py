"""Query filters and search pattern parsing."""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Pattern, Tuple

LIKE_ESCAPE = "\\"


@dataclass(frozen=True)
class Filter:
    """Parameters of a single catalog query.

    Empty strings mean "no restriction". ``schema``, ``name`` and ``parent``
    are SQL LIKE patterns with ``\\`` as escape character (see
    :func:`escape_like` for exact lookups); ``catalog`` and ``reference`` are
    compared exactly.
    """

    catalog: str = ""
    schema: str = ""
    parent: str = ""
    reference: str = ""
    name: str = ""
    types: Tuple[str, ...] = ()
    with_system: bool = False

    def __post_init__(self):
        # accept any iterable of types but store an immutable tuple
        object.__setattr__(self, "types", tuple(self.types))


def parse_pattern(pattern: str) -> Tuple[str, str]:
    """Split a ``[schema.]name`` pattern into LIKE-ready fragments.

    Args:
        pattern: Search pattern; ``*`` is a multi-character wildcard

    Returns:
        Tuple of (schema fragment, name fragment)

    Example:
        >>> parse_pattern("tut*.h*")
        ('tut%', 'h%')
    """
    if "." in pattern:
        schema, name = pattern.split(".", 1)
        return schema.replace("*", "%"), name.replace("*", "%")
    return "", pattern.replace("*", "%")


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so ``value`` only matches itself.

    Example:
        >>> escape_like("t_1")
        't\\\\_1'
    """
    for char in (LIKE_ESCAPE, "%", "_"):
        value = value.replace(char, LIKE_ESCAPE + char)
    return value


@lru_cache(maxsize=256)
def like_to_regex(pattern: str) -> Pattern:
    """Compile a LIKE pattern into an anchored, case-sensitive regex."""
    parts = []
    escaped = False
    for char in pattern:
        if escaped:
            parts.append(re.escape(char))
            escaped = False
        elif char == LIKE_ESCAPE:
            escaped = True
        elif char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.DOTALL)


def matches_like(pattern: str, value: str) -> bool:
    """Check value against a LIKE pattern; an empty pattern matches anything."""
    if not pattern:
        return True
    return like_to_regex(pattern).fullmatch(value or "") is not None


def qualified_identifier(schema: str, name: str) -> str:
    """Quote a possibly schema-qualified name for report titles."""
    if not schema:
        return f'"{name}"'
    return f'"{schema}.{name}"'
