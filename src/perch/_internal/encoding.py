"""JSON encoding of message results.

Dataclasses become objects, enums their member name, UUIDs, decimals and
date/time values their canonical string form. The output of ``to_jsonable``
can always be fed back through ``perch.binding.conversion`` to recover the
typed value.
"""

import base64
import dataclasses
import datetime
import decimal
import enum
import json as json_module
import uuid
from collections.abc import Mapping
from typing import Any


def to_jsonable(value: Any) -> Any:
    """Recursively convert *value* into JSON-compatible builtins."""
    if isinstance(value, enum.Enum):
        return value.name
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            f.name: to_jsonable(getattr(value, f.name))
            for f in dataclasses.fields(value)
            if not f.name.startswith("_")
        }
    if isinstance(value, Mapping):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, (uuid.UUID, decimal.Decimal)):
        return str(value)
    if isinstance(value, bytes):
        return base64.b64encode(value).decode("ascii")
    return str(value)


def dumps(value: Any) -> str:
    """Serialize *value* as compact JSON."""
    return json_module.dumps(to_jsonable(value), separators=(",", ":"), ensure_ascii=False)
