"""Conversion engine — raw strings to typed field values.

Built-in converters for path segments, query values and overlay values::

    convert("123", int)            -> 123
    convert("", int | None)        -> None
    convert("Active", Status)      -> Status.Active
    convert("2023-12-25", datetime) -> datetime(2023, 12, 25, 0, 0)

Rules, in order:

1. ``None`` or blank input becomes ``None`` when the target accepts
   ``None``; otherwise ``NullValueError``.
2. ``X | None`` and ``Annotated[X, ...]`` are unwrapped.
3. ``Enum`` targets match member names exactly (case-sensitive);
   a miss raises ``EnumConversionError``.
4. Everything else goes through a culture-invariant converter table;
   a miss raises ``ConversionError``.

Parsing never depends on the process locale: numbers are ASCII digits
with ``.`` as the decimal separator, dates are ISO 8601.
"""

import base64
import binascii
import datetime
import decimal
import enum
import re
import uuid
from collections.abc import Callable
from typing import Any, get_args

from perch._internal.annotations import (
    is_nullable,
    is_union,
    strip_annotated,
    unwrap_nullable,
)
from perch.errors import ConversionError, EnumConversionError, NullValueError


class Char(str):
    """A single-character string.

    Annotate a field as ``Char`` to have conversion reject anything that
    is not exactly one character long.
    """

    __slots__ = ()


_INT_RE = re.compile(r"[+-]?[0-9]+")
_FLOAT_RE = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")
_FLOAT_SPECIALS: dict[str, float] = {
    "nan": float("nan"),
    "infinity": float("inf"),
    "+infinity": float("inf"),
    "-infinity": float("-inf"),
}
_TRUE = frozenset({"true", "1"})
_FALSE = frozenset({"false", "0"})


def _to_int(raw: str) -> int:
    text = raw.strip()
    if not _INT_RE.fullmatch(text):
        raise ValueError("not an integer")
    return int(text)


def _to_float(raw: str) -> float:
    text = raw.strip()
    special = _FLOAT_SPECIALS.get(text.lower())
    if special is not None:
        return special
    if not _FLOAT_RE.fullmatch(text):
        raise ValueError("not a number")
    return float(text)


def _to_decimal(raw: str) -> decimal.Decimal:
    text = raw.strip()
    if not _FLOAT_RE.fullmatch(text):
        raise ValueError("not a decimal")
    return decimal.Decimal(text)


def _to_bool(raw: str) -> bool:
    text = raw.strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError("expected 'true' or 'false'")


def _to_char(raw: str) -> Char:
    if len(raw) != 1:
        raise ValueError("expected exactly one character")
    return Char(raw)


def _to_bytes(raw: str) -> bytes:
    try:
        return base64.b64decode(raw.strip(), validate=True)
    except binascii.Error as exc:
        raise ValueError("not valid base64") from exc


# (python_type -> converter) for each supported target; looked up along the MRO
CONVERTERS: dict[type, Callable[[str], Any]] = {
    str: lambda raw: raw,
    Char: _to_char,
    bool: _to_bool,
    int: _to_int,
    float: _to_float,
    decimal.Decimal: _to_decimal,
    datetime.datetime: lambda raw: datetime.datetime.fromisoformat(raw.strip()),
    datetime.date: lambda raw: datetime.date.fromisoformat(raw.strip()),
    datetime.time: lambda raw: datetime.time.fromisoformat(raw.strip()),
    uuid.UUID: lambda raw: uuid.UUID(raw.strip()),
    bytes: _to_bytes,
}


def is_blank(raw: str | None) -> bool:
    return raw is None or not raw.strip()


def convert(raw: str | None, target: Any, *, name: str | None = None) -> Any:
    """Convert *raw* to *target*.

    *name* only decorates error messages.

    Raises ``NullValueError`` for blank input into a non-nullable target,
    ``EnumConversionError`` for an unknown enum member name, and
    ``ConversionError`` for anything else that does not parse.
    """
    if is_blank(raw):
        if is_nullable(target):
            return None
        raise NullValueError(strip_annotated(target), name)

    underlying = unwrap_nullable(target)

    if isinstance(underlying, type) and issubclass(underlying, enum.Enum):
        return _convert_enum(raw, underlying)

    if is_union(underlying):
        for option in get_args(underlying):
            try:
                return convert(raw, option, name=name)
            except (ConversionError, EnumConversionError):
                continue
        raise ConversionError(raw, underlying)

    return _convert_structural(raw, underlying)


def coerce(value: Any, target: Any, *, name: str | None = None) -> Any:
    """Bring an already-decoded value (e.g. from JSON) to *target*.

    Strings go through ``convert``; values that already have the right
    type pass through; ``int`` widens to ``float``/``Decimal``.
    """
    if value is None:
        if is_nullable(target):
            return None
        raise NullValueError(strip_annotated(target), name)

    underlying = unwrap_nullable(target)

    # JSON strings are already text; "" is a value here, not a missing one
    if isinstance(value, str):
        if underlying is str or underlying is Any or underlying is object:
            return value
        return convert(value, target, name=name)

    if underlying is Any or underlying is object or not isinstance(underlying, type):
        return value
    if issubclass(underlying, enum.Enum) and not isinstance(value, underlying):
        try:
            return underlying(value)
        except ValueError as exc:
            raise EnumConversionError(value, underlying) from exc
    if isinstance(value, underlying) and not (isinstance(value, bool) and underlying is not bool):
        return value
    if underlying is float and isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    if underlying is decimal.Decimal and isinstance(value, (int, float)) and not isinstance(value, bool):
        return decimal.Decimal(str(value))
    raise ConversionError(value, underlying)


def _convert_enum(raw: str, target: type[enum.Enum]) -> enum.Enum:
    member = target.__members__.get(raw)
    if member is None:
        raise EnumConversionError(raw, target)
    return member


def _convert_structural(raw: str, target: Any) -> Any:
    if target is Any or target is object:
        return raw

    if not isinstance(target, type):
        raise ConversionError(raw, target, "Unsupported target annotation.")

    for base in target.__mro__:
        converter = CONVERTERS.get(base)
        if converter is None:
            continue
        try:
            value = converter(raw)
        except (ValueError, TypeError, ArithmeticError) as exc:
            raise ConversionError(raw, target, str(exc)) from exc
        # str subclasses (other than Char) keep their own type
        if base is str and target is not str:
            return target(value)
        return value

    # Unknown type — construct from the string, like ``Path(raw)``
    try:
        return target(raw)
    except (ValueError, TypeError) as exc:
        raise ConversionError(raw, target, str(exc)) from exc
