"""Naming helpers shared by the generators."""

import re
from collections.abc import Callable, Collection

from .errors import ValidationError

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_NON_ALNUM = re.compile(r"[^0-9A-Za-z]+")


def to_snake_case(name: str) -> str:
    """Convert ``EchoService`` or ``getValue`` to ``echo_service`` / ``get_value``."""
    return _NON_ALNUM.sub("_", _CAMEL_BOUNDARY.sub("_", name)).strip("_").lower()


def to_code_part(name: str) -> str:
    """Normalize a name into an upper-case task code segment."""
    return _NON_ALNUM.sub("_", name).strip("_").upper()


def escape_names(
    names: list[str],
    reserved: Collection[str],
    owner: str,
    escape: Callable[[str], str] = lambda name: name,
) -> list[str]:
    """Spell IDL names next to names the generator adds.

    Names in ``reserved`` get a trailing ``_``. Raises ValidationError when
    two names end up with the same spelling.
    """
    spelled: dict[str, str] = {}
    for name in names:
        spelling = escape(name)
        if spelling in reserved:
            spelling = f"{spelling}_"
        if spelling in spelled:
            raise ValidationError(
                f"{owner}: {spelled[spelling]} and {name} are both spelled {spelling}", owner
            )
        spelled[spelling] = name
    return list(spelled)


def fnv1a_32(s: str) -> int:
    """FNV-1a 32-bit hash."""
    h = 0x811C9DC5
    for b in s.encode("utf-8"):
        h ^= b
        h = (h * 0x01000193) & 0xFFFFFFFF
    return h
