"""Parameter extraction — which message fields bind from route and query.

Combines the route template parser with the target shape::

    @dataclass
    class GetOrders(Query[list[Order]]):
        customer_id: Annotated[UUID, Description("Owning customer")]
        status: Status | None = None
        page: int = 1

    extract_all_parameters("/customers/{customer_id:guid}/orders", GetOrders)
    # [ParameterDescriptor("customer_id", UUID, "Owning customer", False, "guid", ROUTE),
    #  ParameterDescriptor("status", Status | None, "", True, None, QUERY),
    #  ParameterDescriptor("page", int, "", False, None, QUERY)]

Every route token must name a field of the target type. A mismatch is a
registration error, never a silent drop.
"""

import enum
import threading
from dataclasses import dataclass
from typing import Any

from perch._internal.annotations import permits_none
from perch.binding.shape import describe, resolve_shape
from perch.errors import RouteParameterMismatchError
from perch.routing.template import parse_template


class ParameterSource(enum.Enum):
    """Where a bound value comes from."""

    ROUTE = "route"
    QUERY = "query"


@dataclass(frozen=True, slots=True)
class ParameterDescriptor:
    """Resolved metadata for one bindable field."""

    name: str
    annotation: Any
    description: str
    is_optional: bool
    constraint: str | None
    source: ParameterSource


def extract_route_parameters(template: str, cls: type) -> list[ParameterDescriptor]:
    """One ROUTE descriptor per token of *template*, in template order.

    Raises ``RouteParameterMismatchError`` when a token names no field of *cls*.
    """
    shape = resolve_shape(cls)
    result: list[ParameterDescriptor] = []

    for token in parse_template(template):
        member = shape.field(token.name)
        if member is None:
            raise RouteParameterMismatchError(token.name, cls.__name__)

        result.append(
            ParameterDescriptor(
                name=member.name,
                annotation=member.annotation,
                description=describe(cls, member.name),
                is_optional=token.is_optional,
                constraint=token.constraint,
                source=ParameterSource.ROUTE,
            )
        )

    return result


def extract_query_parameters(cls: type, *exclude: str) -> list[ParameterDescriptor]:
    """QUERY descriptors for every field of *cls* not named in *exclude*.

    Names are compared case-insensitively. Order follows field declaration.
    """
    excluded = {name.casefold() for name in exclude}
    result: list[ParameterDescriptor] = []

    for member in resolve_shape(cls).fields:
        if member.name.casefold() in excluded:
            continue
        result.append(
            ParameterDescriptor(
                name=member.name,
                annotation=member.annotation,
                description=describe(cls, member.name),
                is_optional=is_optional_query_type(member.annotation),
                constraint=None,
                source=ParameterSource.QUERY,
            )
        )

    return result


def extract_all_parameters(template: str, cls: type) -> list[ParameterDescriptor]:
    """Route descriptors first, then query descriptors for the remaining fields."""
    route = extract_route_parameters(template, cls)
    query = extract_query_parameters(cls, *(p.name for p in route))
    return [*route, *query]


def is_optional_query_type(annotation: Any) -> bool:
    """Structural optionality for query-bound fields.

    Nullable annotations are optional, and so is every reference-like
    type (``str``, ``bytes``, containers, classes) whatever its annotation
    says. Only bare value types such as ``int`` or an enum are required.
    """
    return permits_none(annotation)


# -- Cache --


@dataclass(frozen=True, slots=True)
class RouteParameters:
    """Descriptor sets derived from one (template, type) pair."""

    route: tuple[ParameterDescriptor, ...]
    query: tuple[ParameterDescriptor, ...]

    @property
    def all(self) -> tuple[ParameterDescriptor, ...]:
        return (*self.route, *self.query)


_parameters: dict[tuple[str, type], RouteParameters] = {}
_parameters_lock = threading.Lock()


def cached_parameters(template: str, cls: type) -> RouteParameters:
    """Return the descriptor sets for (*template*, *cls*), computing them once.

    Extraction is deterministic, so a race between two first callers
    produces equal results; the first one published wins.
    """
    key = (template, cls)
    cached = _parameters.get(key)
    if cached is not None:
        return cached

    route = tuple(extract_route_parameters(template, cls))
    query = tuple(extract_query_parameters(cls, *(p.name for p in route)))
    with _parameters_lock:
        return _parameters.setdefault(key, RouteParameters(route=route, query=query))
