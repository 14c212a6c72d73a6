"""Mapping-to-message construction and value overlay.

Turns decoded JSON (or any mapping) into a message instance, using the
same shape view and conversion rules as route/query binding::

    from_mapping(CreateOrder, {"customerId": "…", "lines": [{"sku": "A1", "qty": 2}]})

Keys match fields case-insensitively. Nested dataclasses and
``list``/``tuple``/``set``/``dict`` containers of them are built
recursively. Unknown keys are ignored.

``overlay`` writes values onto an existing instance (route values over a
body-built message). Frozen dataclasses are never mutated: a modified
copy is returned via ``dataclasses.replace``.
"""

import collections.abc
import dataclasses
import json as json_module
from collections.abc import Iterable, Mapping
from typing import Any, get_args, get_origin

from perch._internal.annotations import is_nullable, unwrap_nullable
from perch.binding.conversion import coerce, convert
from perch.binding.shape import FieldInfo, resolve_shape
from perch.errors import BodyDecodeError

_MISSING: Any = object()

SEQUENCE_ORIGINS: dict[Any, type] = {
    list: list,
    tuple: tuple,
    set: set,
    frozenset: frozenset,
    collections.abc.Sequence: list,
    collections.abc.MutableSequence: list,
    collections.abc.Set: frozenset,
    collections.abc.MutableSet: set,
    collections.abc.Iterable: list,
}

_MAPPING_ORIGINS = frozenset({dict, collections.abc.Mapping, collections.abc.MutableMapping})


def decode_body(body: bytes | str | Mapping[str, Any] | None) -> Mapping[str, Any]:
    """Decode a request body into a JSON object.

    ``None`` and empty bodies decode to ``{}``. Anything that is not a
    JSON object raises ``BodyDecodeError``.
    """
    if body is None:
        return {}
    if isinstance(body, Mapping):
        return body
    if isinstance(body, (bytes, bytearray, memoryview)):
        body = bytes(body)
        if not body.strip():
            return {}
        try:
            text = body.decode("utf-8")
        except UnicodeDecodeError as exc:
            msg = "Request body is not valid UTF-8."
            raise BodyDecodeError(msg) from exc
    else:
        text = body
        if not text.strip():
            return {}

    try:
        data = json_module.loads(text)
    except json_module.JSONDecodeError as exc:
        msg = f"Request body is not valid JSON: {exc.msg} (line {exc.lineno}, column {exc.colno})."
        raise BodyDecodeError(msg) from exc

    if not isinstance(data, Mapping):
        msg = f"Request body must be a JSON object, got {type(data).__name__}."
        raise BodyDecodeError(msg)
    return data


def from_mapping[T](
    cls: type[T],
    data: Mapping[str, Any],
    *,
    overrides: Mapping[str, Any] | None = None,
) -> T:
    """Build an instance of *cls* from *data*.

    *overrides* are already-typed values keyed by field name; they win
    over *data* and satisfy required fields *data* does not carry.

    Raises ``BodyDecodeError`` for a missing required field and the
    ``InvalidValueError`` family for values that do not convert.
    """
    if not isinstance(data, Mapping):
        msg = f"Expected a JSON object for '{cls.__name__}', got {type(data).__name__}."
        raise BodyDecodeError(msg)

    folded = {str(key).casefold(): value for key, value in data.items()}
    typed_overrides = {key.casefold(): value for key, value in (overrides or {}).items()}
    values: dict[str, Any] = {}

    for member in resolve_shape(cls).fields:
        key = member.name.casefold()
        if key in typed_overrides:
            values[member.name] = typed_overrides[key]
            continue
        raw = folded.get(key, _MISSING)
        if raw is _MISSING:
            if member.has_default:
                continue
            if is_nullable(member.annotation):
                values[member.name] = None
                continue
            msg = f"Missing required field '{member.name}' for '{cls.__name__}'."
            raise BodyDecodeError(msg)
        values[member.name] = coerce_value(raw, member.annotation, name=member.name)

    return instantiate(cls, values)


def coerce_value(value: Any, annotation: Any, *, name: str | None = None) -> Any:
    """Bring a decoded JSON value to *annotation*, recursing into containers."""
    if value is None:
        return coerce(None, annotation, name=name)

    underlying = unwrap_nullable(annotation)

    if isinstance(underlying, type) and dataclasses.is_dataclass(underlying):
        if isinstance(value, underlying):
            return value
        return from_mapping(underlying, value)

    origin = get_origin(underlying)
    args = get_args(underlying)

    if origin in SEQUENCE_ORIGINS and isinstance(value, (list, tuple, set, frozenset)):
        container = SEQUENCE_ORIGINS[origin]
        if origin is tuple and args and (len(args) != 2 or args[1] is not Ellipsis):
            if len(args) != len(value):
                msg = f"Expected {len(args)} items for '{name or 'value'}', got {len(value)}."
                raise BodyDecodeError(msg)
            return tuple(coerce_value(v, a, name=name) for v, a in zip(value, args, strict=True))
        item = args[0] if args else Any
        return container(coerce_value(v, item, name=name) for v in value)

    if origin in _MAPPING_ORIGINS and isinstance(value, Mapping):
        key_type, value_type = args if len(args) == 2 else (Any, Any)
        return {
            coerce(k, key_type, name=name): coerce_value(v, value_type, name=name)
            for k, v in value.items()
        }

    return coerce(value, annotation, name=name)


def instantiate[T](cls: type[T], values: Mapping[str, Any]) -> T:
    """Create *cls* from field values, honoring its constructor.

    Values for constructor parameters are passed as keywords; the rest are
    assigned as attributes afterwards.
    """
    if dataclasses.is_dataclass(cls):
        init_names = {f.name for f in dataclasses.fields(cls) if f.init}
        kwargs = {k: v for k, v in values.items() if k in init_names}
        instance = cls(**kwargs)
        for key, value in values.items():
            if key not in init_names:
                object.__setattr__(instance, key, value)
        return instance

    shape = resolve_shape(cls)
    kwargs = {}
    rest: dict[str, Any] = {}
    for key, value in values.items():
        param = shape.constructor_param(key)
        if param is not None:
            kwargs[param.name] = value
        else:
            rest[key] = value

    try:
        instance = cls(**kwargs)
    except TypeError as exc:
        msg = f"Cannot construct '{cls.__name__}': {exc}"
        raise BodyDecodeError(msg) from exc
    for key, value in rest.items():
        setattr(instance, key, value)
    return instance


def overlay[T](instance: T, values: Mapping[str, Any] | Iterable[tuple[str, Any]], *, raw: bool = True) -> T:
    """Write *values* onto matching fields of *instance*.

    Field lookup is case-insensitive and unmatched keys are ignored.
    With *raw* (the default) values are strings converted per field type;
    otherwise they are used as-is.

    Returns the updated instance: the same object for mutable messages,
    a copy for frozen dataclasses.
    """
    items = values.items() if isinstance(values, Mapping) else values
    shape = resolve_shape(type(instance))
    updates: dict[str, Any] = {}

    for key, value in items:
        member: FieldInfo | None = shape.field(key)
        if member is None:
            continue
        updates[member.name] = convert(value, member.annotation, name=member.name) if raw else value

    if not updates:
        return instance

    if dataclasses.is_dataclass(instance) and _is_frozen(type(instance)):
        return dataclasses.replace(instance, **updates)

    for name, value in updates.items():
        setattr(instance, name, value)
    return instance


def _is_frozen(cls: type) -> bool:
    params = getattr(cls, "__dataclass_params__", None)
    return bool(params is not None and params.frozen)
