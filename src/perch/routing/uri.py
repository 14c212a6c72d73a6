"""Outbound URI building — the inverse of route binding.

Fills a route template from a message instance so a client can call the
endpoint the message is mapped to::

    @dataclass
    class FindUsers(Query[list[User]]):
        team_id: int
        name: str | None = None
        since: datetime | None = None

    build_uri("/teams/{team_id:int}/users", FindUsers(7, name="Ann Lee"))
    # "/teams/7/users?name=Ann%20Lee"

Token values and query values share one string form (``format_value``),
the same one the conversion engine parses back.
"""

import base64
import datetime
import enum
from collections.abc import Iterator
from typing import Any
from urllib.parse import quote

from perch.binding.shape import resolve_shape
from perch.routing.template import TOKEN_PATTERN, parse_token


def format_value(value: Any) -> str:
    """Canonical string form of a field value for URIs."""
    if isinstance(value, enum.Enum):
        return value.name
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, bytes):
        return base64.b64encode(value).decode("ascii")
    return str(value)


def replace_placeholders(template: str, instance: Any) -> str:
    """Substitute every ``{token}`` in *template* with the matching field.

    Lookup is case-insensitive. Raises ``ValueError`` when a token names no
    field of the instance or the field is ``None``.
    """
    result, _ = _substitute(template, instance)
    return result


def build_uri(template: str, instance: Any) -> str:
    """``replace_placeholders``, then every other non-``None`` field as a query pair.

    Query pairs follow field declaration order and are URL-encoded.
    Sequence values (``list``/``tuple``/``set``) repeat the key per item.
    """
    result, consumed = _substitute(template, instance)

    pairs: list[str] = []
    for name, value in _field_values(instance):
        if name.casefold() in consumed or value is None:
            continue
        for item in _items(value):
            pairs.append(f"{quote(name, safe='')}={quote(format_value(item), safe='')}")

    if not pairs:
        return result
    separator = "&" if "?" in result else "?"
    return f"{result}{separator}{'&'.join(pairs)}"


def _substitute(template: str, instance: Any) -> tuple[str, set[str]]:
    shape = resolve_shape(type(instance))
    type_name = type(instance).__name__
    consumed: set[str] = set()

    def replace(match: Any) -> str:
        token = parse_token(match.group(0))
        member = shape.field(token.name)
        if member is None:
            msg = f"Property '{token.name}' not found on object of type '{type_name}'."
            raise ValueError(msg)
        value = getattr(instance, member.name, None)
        if value is None:
            msg = f"Property '{token.name}' on object of type '{type_name}' is None."
            raise ValueError(msg)
        consumed.add(member.name.casefold())
        return quote(format_value(value), safe="")

    return TOKEN_PATTERN.sub(replace, template), consumed


def _field_values(instance: Any) -> Iterator[tuple[str, Any]]:
    for member in resolve_shape(type(instance)).fields:
        yield member.name, getattr(instance, member.name, None)


def _items(value: Any) -> Iterator[Any]:
    if isinstance(value, (list, tuple, set, frozenset)):
        for item in value:
            if item is not None:
                yield item
    else:
        yield value
