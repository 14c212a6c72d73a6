"""Projection types — minimal dataclasses synthesized from descriptors.

When a command binds part of its fields from the route and the rest
from a body, the route part is bound through a *projection*: a dataclass
built at runtime with one keyword-only field per route descriptor::

    descriptors = extract_route_parameters("/orders/{id:int}", PlaceOrder)
    OrderRoute = synthesize("PlaceOrderRouteParameters", descriptors)
    # @dataclass(kw_only=True)
    # class PlaceOrderRouteParameters:
    #     id: Annotated[int, Description("...")]

    bind_projection(OrderRoute, {"id": "7"})  # -> PlaceOrderRouteParameters(id=7)

Projection types are ordinary dataclasses: the shape resolver, the
conversion engine and ``dataclasses.asdict`` treat them like hand-written
ones. Identity is not stable across calls, shape is; compare with
``projection_signature`` when in doubt.
"""

import dataclasses
import logging
import threading
from collections.abc import Mapping, Sequence
from typing import Annotated, Any

from perch._internal.annotations import make_nullable, permits_none
from perch.binding.conversion import convert
from perch.binding.parameters import ParameterDescriptor
from perch.binding.shape import Description, fields

logger = logging.getLogger("perch.binding")

_MODULE = "perch.projections"


def synthesize(type_name: str, descriptors: Sequence[ParameterDescriptor]) -> type:
    """Build a dataclass exposing exactly the fields in *descriptors*.

    Each field keeps the descriptor's name and type and carries its
    description as ``Annotated`` metadata. Optional descriptors default to
    ``None``; when their type can hold a null (``str``, containers,
    ``X | None``) the annotation is widened to ``X | None``.

    Raises ``ValueError`` if *type_name* is blank.
    """
    if not type_name or not type_name.strip():
        msg = "Type name must be provided."
        raise ValueError(msg)

    field_defs: list[tuple[str, Any, dataclasses.Field[Any]]] = []
    for descriptor in descriptors:
        annotation = descriptor.annotation
        if descriptor.is_optional and permits_none(annotation):
            annotation = make_nullable(annotation)

        metadata = {
            "description": descriptor.description,
            "source": descriptor.source.value,
            "constraint": descriptor.constraint,
        }
        if descriptor.is_optional:
            default = dataclasses.field(default=None, metadata=metadata)
        else:
            default = dataclasses.field(metadata=metadata)

        field_defs.append(
            (descriptor.name, Annotated[annotation, Description(descriptor.description)], default)
        )

    projection = dataclasses.make_dataclass(
        type_name.strip(),
        field_defs,
        kw_only=True,
        module=_MODULE,
    )
    logger.debug("Synthesized projection %s(%s)", projection.__name__, ", ".join(n for n, _, _ in field_defs))
    return projection


def bind_projection(projection: type, values: Mapping[str, str | None]) -> Any:
    """Convert raw string *values* into an instance of *projection*.

    Keys match field names case-insensitively. Absent keys leave optional
    fields at ``None``; an absent required field raises ``NullValueError``.
    """
    folded = {key.casefold(): value for key, value in values.items()}
    kwargs: dict[str, Any] = {}

    for f in dataclasses.fields(projection):
        key = f.name.casefold()
        if key not in folded and f.default is not dataclasses.MISSING:
            continue
        kwargs[f.name] = convert(folded.get(key), f.type, name=f.name)

    return projection(**kwargs)


def projection_signature(cls: type) -> tuple[tuple[str, Any, str | None], ...]:
    """Structural fingerprint: (name, annotation, description) per field."""
    return tuple((f.name, f.annotation, f.description) for f in fields(cls))


class ProjectionCache:
    """Projection types keyed by (route template, message type).

    A type is synthesized at most once per key and then reused, so every
    handler built for the same key sees the same projection.
    """

    __slots__ = ("_lock", "_types")

    def __init__(self) -> None:
        self._types: dict[tuple[str, type], type] = {}
        self._lock = threading.Lock()

    def get_or_create(
        self,
        template: str,
        cls: type,
        descriptors: Sequence[ParameterDescriptor],
        *,
        suffix: str = "RouteParameters",
    ) -> type:
        key = (template, cls)
        cached = self._types.get(key)
        if cached is not None:
            return cached

        # Double-checked: synthesis happens under the lock so racing
        # first callers cannot publish two different types for one key.
        with self._lock:
            cached = self._types.get(key)
            if cached is None:
                cached = synthesize(f"{cls.__name__}{suffix}", descriptors)
                self._types[key] = cached
            return cached

    def __len__(self) -> int:
        return len(self._types)

    def __contains__(self, key: object) -> bool:
        return key in self._types
