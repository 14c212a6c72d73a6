"""Route template parsing.

Tokenizes a route pattern into its placeholder tokens::

    "/users/{id:int}/posts/{slug?}"
        -> [RouteToken("{id:int}", "id", "int", False),
            RouteToken("{slug?}", "slug", None, True)]

Parsing is purely syntactic. Constraints are passed through untouched;
matching a token to a field happens in ``perch.binding.parameters``.
"""

import re
import threading
from dataclasses import dataclass

from perch.errors import RouteTemplateError

TOKEN_PATTERN = re.compile(r"\{([^{}]+)\}")


@dataclass(frozen=True, slots=True)
class RouteToken:
    """One placeholder in a route template.

    Plain:       ``{id}``         (name="id")
    Constrained: ``{id:int}``     (name="id", constraint="int")
    Optional:    ``{id?}``        (name="id", is_optional=True)
    Both:        ``{id:guid?}``   (name="id", constraint="guid", is_optional=True)
    """

    raw: str
    name: str
    constraint: str | None = None
    is_optional: bool = False


_cache: dict[str, tuple[RouteToken, ...]] = {}
_cache_lock = threading.Lock()


def parse_token(raw: str) -> RouteToken:
    """Parse a single ``{...}`` span (braces included)."""
    body = raw[1:-1].strip()
    name, sep, constraint = body.partition(":")
    is_optional = False

    # The marker may sit on either segment: "{id:int?}" or "{id?:int}"
    if constraint.endswith("?"):
        is_optional = True
        constraint = constraint[:-1]
    if name.endswith("?"):
        is_optional = True
        name = name[:-1]

    return RouteToken(
        raw=raw,
        name=name.strip(),
        constraint=(constraint.strip() or None) if sep else None,
        is_optional=is_optional,
    )


def parse_template(template: str) -> list[RouteToken]:
    """Return the tokens of *template* in left-to-right order.

    A template without tokens yields an empty list. A token name that
    appears twice (compared case-insensitively) raises ``RouteTemplateError``.
    """
    cached = _cache.get(template)
    if cached is not None:
        return list(cached)

    tokens: list[RouteToken] = []
    seen: set[str] = set()
    for match in TOKEN_PATTERN.finditer(template):
        token = parse_token(match.group(0))
        key = token.name.casefold()
        if key in seen:
            msg = f"Route parameter '{token.name}' appears more than once in {template!r}."
            raise RouteTemplateError(msg)
        seen.add(key)
        tokens.append(token)

    with _cache_lock:
        published = _cache.setdefault(template, tuple(tokens))
    return list(published)


def token_names(template: str) -> list[str]:
    """Return just the token names of *template*, in order."""
    return [token.name for token in parse_template(template)]
