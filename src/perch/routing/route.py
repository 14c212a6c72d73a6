"""Route, PathSegment and RouteMatch frozen dataclasses."""

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class PathSegment:
    """A parsed segment of a route path.

    Static:   ``/users``         (pattern=None)
    Token:    ``/{id:int}``      (pattern matches one int, names=("id",))
    Embedded: ``/{name}.{ext}``  (names=("name", "ext"))
    Optional: ``/{page?}``       (is_optional=True; the route also matches
                                  without this segment when it is trailing)
    """

    value: str
    pattern: re.Pattern[str] | None = None
    names: tuple[str, ...] = ()
    is_optional: bool = False

    @property
    def is_param(self) -> bool:
        return self.pattern is not None


@dataclass(frozen=True, slots=True)
class Route:
    """A frozen route definition.

    Created during app setup, compiled into the router at freeze time.
    """

    path: str
    handler: Callable[..., Any]
    methods: frozenset[str]
    name: str | None = None


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of a successful route match."""

    route: Route
    path_params: dict[str, str]
