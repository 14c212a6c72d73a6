"""Annotation helpers — nullability, Annotated metadata, value types.

Everything that inspects a type annotation goes through here so the
rules for ``X | None``, ``Optional[X]`` and ``Annotated[X, ...]`` live in
exactly one place.
"""

import datetime
import decimal
import enum
import types
import uuid
from typing import Annotated, Any, Union, get_args, get_origin

NoneType = type(None)

# Types that cannot hold None unless wrapped in ``X | None``. Mirrors the
# value-type / reference-type split of typed wire formats: strings, bytes
# and containers are reference-like and always permit a null.
VALUE_TYPES: tuple[type, ...] = (
    bool,
    int,
    float,
    complex,
    decimal.Decimal,
    datetime.datetime,
    datetime.date,
    datetime.time,
    datetime.timedelta,
    uuid.UUID,
)


def strip_annotated(annotation: Any) -> Any:
    """``Annotated[X, ...]`` -> ``X``; anything else unchanged."""
    while get_origin(annotation) is Annotated:
        annotation = get_args(annotation)[0]
    return annotation


def annotated_metadata(annotation: Any) -> tuple[Any, ...]:
    """Return the metadata of an ``Annotated`` annotation, or ``()``."""
    if get_origin(annotation) is Annotated:
        return tuple(annotation.__metadata__)
    return ()


def is_union(annotation: Any) -> bool:
    origin = get_origin(annotation)
    return origin is Union or origin is types.UnionType


def is_nullable(annotation: Any) -> bool:
    """True if *annotation* accepts ``None`` (``X | None``, ``Optional[X]``, ``Any``)."""
    annotation = strip_annotated(annotation)
    if annotation is Any or annotation is object or annotation is NoneType or annotation is None:
        return True
    if is_union(annotation):
        return NoneType in get_args(annotation)
    return False


def unwrap_nullable(annotation: Any) -> Any:
    """Extract the non-None type from ``X | None``.

    Multi-type unions are returned unchanged (minus ``None``) so the
    caller can decide how to handle them.
    """
    annotation = strip_annotated(annotation)
    if not is_union(annotation):
        return annotation
    non_none = [strip_annotated(a) for a in get_args(annotation) if a is not NoneType]
    if len(non_none) == 1:
        return non_none[0]
    return Union[tuple(non_none)]  # noqa: UP007 — rebuilt from runtime args


def make_nullable(annotation: Any) -> Any:
    """``X`` -> ``X | None``; already-nullable annotations unchanged."""
    if is_nullable(annotation):
        return annotation
    return Union[annotation, None]  # noqa: UP007 — works for typing special forms too


def is_value_type(annotation: Any) -> bool:
    """True for scalar types that cannot hold None without a wrapper."""
    annotation = strip_annotated(annotation)
    if not isinstance(annotation, type):
        return False
    return issubclass(annotation, VALUE_TYPES) or issubclass(annotation, enum.Enum)


def permits_none(annotation: Any) -> bool:
    """True if a field of this type may legitimately be left as None.

    Either the annotation is already nullable, or it names a
    reference-like type (``str``, ``bytes``, containers, classes).
    """
    return is_nullable(annotation) or not is_value_type(unwrap_nullable(annotation))


def type_name(annotation: Any) -> str:
    """Human-readable name for error messages."""
    annotation = strip_annotated(annotation)
    name = getattr(annotation, "__name__", None)
    if name and not is_union(annotation):
        return name
    return repr(annotation).replace("typing.", "")
