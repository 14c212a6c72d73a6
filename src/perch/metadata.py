"""Route metadata — class decorators that declare a message's endpoint.

Decorate a message type with the verb it answers to::

    @get("/customers/{id:guid}", summary="Fetch one customer", tags=("customers",))
    @dataclass(frozen=True)
    class GetCustomer(Query[Customer]):
        id: UUID

    @post("/customers")
    @dataclass
    class CreateCustomer(PostCommand):
        name: str

A class may carry several decorators (e.g. ``@put`` and ``@patch`` on
the same command). ``@from_parameters`` marks a body-verb command that
should still bind from route and query values only.

Types are collected explicitly through a ``Manifest``; nothing scans
modules behind your back::

    manifest = Manifest(GetCustomer, CreateCustomer)
    app.map_manifest(manifest)
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass

# Class attribute holding the declared routes, in decoration order
ROUTES_ATTR = "__perch_routes__"

# Class attribute set by @from_parameters
FROM_PARAMETERS_ATTR = "__perch_from_parameters__"


@dataclass(frozen=True, slots=True)
class RouteMetadata:
    """One endpoint declared on a message type."""

    verb: str
    route: str
    description: str = ""
    summary: str = ""
    name: str = ""
    exclude_from_description: bool = False
    tags: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Endpoint:
    """A (message type, route metadata) pair yielded by ``Manifest``."""

    message_type: type
    metadata: RouteMetadata


def _route_decorator(verb: str) -> Callable[..., Callable[[type], type]]:
    def decorator_factory(
        route: str,
        *,
        description: str = "",
        summary: str = "",
        name: str = "",
        exclude_from_description: bool = False,
        tags: tuple[str, ...] | list[str] = (),
    ) -> Callable[[type], type]:
        metadata = RouteMetadata(
            verb=verb,
            route=route,
            description=description,
            summary=summary,
            name=name,
            exclude_from_description=exclude_from_description,
            tags=tuple(tags),
        )

        def decorator(cls: type) -> type:
            # Own attribute only; subclasses do not inherit their parent's routes
            existing = cls.__dict__.get(ROUTES_ATTR, ())
            setattr(cls, ROUTES_ATTR, (*existing, metadata))
            return cls

        return decorator

    decorator_factory.__name__ = verb.lower()
    decorator_factory.__qualname__ = verb.lower()
    decorator_factory.__doc__ = f"Declare a {verb} endpoint for the decorated message type."
    return decorator_factory


get = _route_decorator("GET")
post = _route_decorator("POST")
put = _route_decorator("PUT")
patch = _route_decorator("PATCH")
delete = _route_decorator("DELETE")


def from_parameters[T: type](cls: T) -> T:
    """Bind the decorated message from route and query values, never a body."""
    setattr(cls, FROM_PARAMETERS_ATTR, True)
    return cls


def is_from_parameters(cls: type) -> bool:
    return bool(cls.__dict__.get(FROM_PARAMETERS_ATTR, False))


def routes_of(cls: type) -> tuple[RouteMetadata, ...]:
    """Routes declared directly on *cls*, innermost decorator first."""
    return tuple(cls.__dict__.get(ROUTES_ATTR, ()))


class Manifest:
    """An explicit collection of decorated message types.

    Usage::

        manifest = Manifest(GetCustomer)
        manifest.add(CreateCustomer, DeleteCustomer)

        for endpoint in manifest.endpoints():
            print(endpoint.metadata.verb, endpoint.metadata.route)
    """

    __slots__ = ("_types",)

    def __init__(self, *message_types: type) -> None:
        self._types: list[type] = []
        self.add(*message_types)

    def add(self, *message_types: type) -> None:
        """Add types. Adding a type twice keeps the first position."""
        for message_type in message_types:
            if message_type not in self._types:
                self._types.append(message_type)

    def include(self, other: Manifest) -> None:
        """Add every type of *other*."""
        self.add(*other._types)

    @property
    def types(self) -> tuple[type, ...]:
        return tuple(self._types)

    def endpoints(self) -> Iterator[Endpoint]:
        """One ``Endpoint`` per route decorator, types in insertion order.

        Types without route decorators are skipped.
        """
        for message_type in self._types:
            for metadata in routes_of(message_type):
                yield Endpoint(message_type=message_type, metadata=metadata)

    def __len__(self) -> int:
        return len(self._types)

    def __iter__(self) -> Iterator[type]:
        return iter(self._types)
