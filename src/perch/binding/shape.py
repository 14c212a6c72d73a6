"""Target shape resolution and description lookup.

A message type exposes two independent views:

- its **fields** — dataclass fields, or public class-level annotations on
  a plain class, in declaration order;
- its **constructor parameters** — the ``__init__`` signature.

Both can carry a human-readable description, written either as
``Annotated[T, Description("...")]`` or as
``dataclasses.field(metadata={"description": "..."})``::

    @dataclass
    class GetUser(Query[User]):
        id: Annotated[UUID, Description("The unique identifier")]
        verbose: bool = field(default=False, metadata={"description": "Include details"})

Description lookup is ordered: the field's own description wins over the
constructor parameter's, which wins over the empty string. Field-level
documentation can be added without touching the constructor signature,
so it is authoritative.

Shapes are resolved once per type and cached.
"""

import dataclasses
import inspect
import threading
from dataclasses import dataclass
from typing import Any, ClassVar, get_origin, get_type_hints

from perch._internal.annotations import annotated_metadata, strip_annotated
from perch.errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class Description:
    """Annotation marker carrying a field's human-readable description."""

    text: str


@dataclass(frozen=True, slots=True)
class FieldInfo:
    """One member of a target shape.

    ``annotation`` has ``Annotated`` stripped; ``description`` is ``None``
    when the member carries no description at all (as opposed to an
    explicitly empty one).
    """

    name: str
    annotation: Any
    description: str | None = None
    has_default: bool = False


@dataclass(frozen=True, slots=True)
class TargetShape:
    """Resolved fields and constructor parameters of a message type."""

    type: type
    fields: tuple[FieldInfo, ...]
    constructor: tuple[FieldInfo, ...]

    def field(self, name: str) -> FieldInfo | None:
        """Case-insensitive field lookup."""
        return _lookup(self.fields, name)

    def constructor_param(self, name: str) -> FieldInfo | None:
        """Case-insensitive constructor parameter lookup."""
        return _lookup(self.constructor, name)


_shapes: dict[type, TargetShape] = {}
_shapes_lock = threading.Lock()


def resolve_shape(cls: type) -> TargetShape:
    """Return the cached ``TargetShape`` for *cls*, resolving it on first use."""
    shape = _shapes.get(cls)
    if shape is not None:
        return shape

    shape = TargetShape(
        type=cls,
        fields=tuple(_resolve_fields(cls)),
        constructor=tuple(_resolve_constructor(cls)),
    )
    with _shapes_lock:
        return _shapes.setdefault(cls, shape)


def fields(cls: type) -> list[FieldInfo]:
    """Public instance fields of *cls* in declaration order."""
    return list(resolve_shape(cls).fields)


def constructor_params(cls: type) -> list[FieldInfo]:
    """Parameters of the constructor of *cls*, ``self`` and ``*args`` excluded."""
    return list(resolve_shape(cls).constructor)


def find_field(cls: type, name: str) -> FieldInfo | None:
    """Case-insensitive field lookup; ``None`` when *cls* has no such field."""
    return resolve_shape(cls).field(name)


def describe(cls: type, name: str) -> str:
    """Best-available description for the member *name* of *cls*.

    Tries, in order: the field's description, the constructor parameter's
    description, then ``""``.
    """
    shape = resolve_shape(cls)

    member = shape.field(name)
    if member is not None and member.description is not None:
        return member.description

    param = shape.constructor_param(name)
    if param is not None and param.description is not None:
        return param.description

    return ""


# -- Resolution --


def _lookup(members: tuple[FieldInfo, ...], name: str) -> FieldInfo | None:
    key = name.casefold()
    for member in members:
        if member.name.casefold() == key:
            return member
    return None


def _type_hints(obj: Any, owner: type) -> dict[str, Any]:
    """``get_type_hints`` with extras.

    Raises ``ConfigurationError`` naming *owner* when an annotation cannot
    be evaluated, e.g. a string annotation naming a type local to a
    function. Left as a string it would fail every conversion later.
    """
    try:
        return get_type_hints(obj, include_extras=True)
    except (NameError, TypeError) as exc:
        msg = (
            f"Cannot resolve the annotations of '{owner.__name__}': {exc}. "
            "Annotations must name types reachable from the module that defines it."
        )
        raise ConfigurationError(msg) from exc


def _description_from(annotation: Any, metadata: Any = None) -> str | None:
    for item in annotated_metadata(annotation):
        if isinstance(item, Description):
            return item.text
    if metadata:
        value = metadata.get("description")
        if value is not None:
            return str(value)
    return None


def _resolve_fields(cls: type) -> list[FieldInfo]:
    hints = _type_hints(cls, cls)

    if dataclasses.is_dataclass(cls):
        result: list[FieldInfo] = []
        for f in dataclasses.fields(cls):
            if f.name.startswith("_"):
                continue
            annotation = hints.get(f.name, f.type)
            result.append(
                FieldInfo(
                    name=f.name,
                    annotation=strip_annotated(annotation),
                    description=_description_from(annotation, f.metadata),
                    has_default=(
                        f.default is not dataclasses.MISSING
                        or f.default_factory is not dataclasses.MISSING
                    ),
                )
            )
        return result

    result = []
    for name, annotation in hints.items():
        if name.startswith("_") or get_origin(annotation) is ClassVar or annotation is ClassVar:
            continue
        result.append(
            FieldInfo(
                name=name,
                annotation=strip_annotated(annotation),
                description=_description_from(annotation),
                has_default=hasattr(cls, name),
            )
        )
    return result


def _resolve_constructor(cls: type) -> list[FieldInfo]:
    init = cls.__init__
    if init is object.__init__:
        return []

    try:
        sig = inspect.signature(init)
    except (TypeError, ValueError):
        return []

    # Slot wrappers and other C-level initializers carry no annotations
    hints = _type_hints(init, cls) if inspect.isfunction(init) else {}
    result: list[FieldInfo] = []
    for index, (name, param) in enumerate(sig.parameters.items()):
        if index == 0 or param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        annotation = hints.get(name, param.annotation)
        if annotation is inspect.Parameter.empty:
            annotation = Any
        result.append(
            FieldInfo(
                name=name,
                annotation=strip_annotated(annotation),
                description=_description_from(annotation),
                has_default=param.default is not inspect.Parameter.empty,
            )
        )
    return result
