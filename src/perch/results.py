"""Typed HTTP results.

Handlers may return (or store via ``set_result``) one of these to choose
the status code explicitly. Any other value is sent as ``200`` JSON;
``None`` as ``204``.

Problem bodies follow RFC 9457 (``application/problem+json``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any

from perch._internal.encoding import dumps, to_jsonable
from perch.config import BindingConfig
from perch.http.response import Response


@dataclass(frozen=True, slots=True)
class Ok:
    """``200 OK`` with a JSON body."""

    value: Any = None
    status: int = 200

    def to_response(self, config: BindingConfig) -> Response:
        return Response(body=dumps(self.value), status=self.status, content_type=config.json_content_type)


@dataclass(frozen=True, slots=True)
class Created:
    """``201 Created`` with an optional ``Location`` and JSON body."""

    location: str = ""
    value: Any = None
    status: int = 201

    def to_response(self, config: BindingConfig) -> Response:
        if self.value is None:
            response = Response(body=b"", status=self.status)
        else:
            response = Response(
                body=dumps(self.value),
                status=self.status,
                content_type=config.json_content_type,
            )
        if self.location:
            response = response.with_header("Location", self.location)
        return response


@dataclass(frozen=True, slots=True)
class NoContent:
    """``204 No Content``."""

    status: int = 204

    def to_response(self, config: BindingConfig) -> Response:  # noqa: ARG002
        return Response(body=b"", status=self.status)


@dataclass(frozen=True, slots=True)
class Problem:
    """RFC 9457 problem details."""

    status: int = 500
    title: str | None = None
    detail: str | None = None
    instance: str | None = None
    type: str | None = None
    extensions: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        title = self.title
        if title is None:
            try:
                title = HTTPStatus(self.status).phrase
            except ValueError:
                title = None
        payload: dict[str, Any] = {
            "type": self.type,
            "title": title,
            "status": self.status,
            "detail": self.detail,
            "instance": self.instance,
        }
        payload = {k: v for k, v in payload.items() if v is not None}
        for key, value in self.extensions.items():
            payload.setdefault(key, to_jsonable(value))
        return payload

    def to_response(self, config: BindingConfig) -> Response:
        return Response(
            body=dumps(self.to_dict()),
            status=self.status,
            content_type=config.problem_content_type,
        )


type HttpResult = Ok | Created | NoContent | Problem

_RESULT_TYPES = (Ok, Created, NoContent, Problem)


def is_http_result(value: object) -> bool:
    return isinstance(value, _RESULT_TYPES)


def to_response(value: Any, config: BindingConfig) -> Response:
    """Map a handler's result to the wire.

    Typed results pick their own status; ``Response`` passes through;
    ``None`` is ``204``; anything else is ``200`` JSON.
    """
    if isinstance(value, Response):
        return value
    if isinstance(value, _RESULT_TYPES):
        return value.to_response(config)
    if value is None:
        return NoContent().to_response(config)
    return Ok(value).to_response(config)
