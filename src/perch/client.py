"""Outbound client — send messages to endpoints declared with route metadata.

The mirror image of the host side: the message's ``@get``/``@post``/...
declaration says where it goes, ``build_uri`` fills in the route, and the
response is read back into the declared result type::

    async with MessageClient(base_url="https://api.example.com") as client:
        customer = await client.get(GetCustomer(id=customer_id))
        response = await client.post(CreateCustomer(name="Ada"))
        location = response.headers["location"]

Unsuccessful responses raise ``ClientResponseError``. When the server
answered with problem details, their members are part of the message.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from types import TracebackType
from typing import Any

import httpx

from perch._internal.encoding import to_jsonable
from perch.binding.mapping import coerce_value
from perch.binding.shape import resolve_shape
from perch.errors import ClientResponseError, ConfigurationError, InvalidValueError
from perch.messages import result_type
from perch.metadata import routes_of
from perch.routing.uri import build_uri, replace_placeholders

logger = logging.getLogger("perch.client")

type SuccessPredicate = Callable[[httpx.Response], bool]
type ErrorHandler = Callable[[httpx.Response], Awaitable[None]]

PROBLEM_CONTENT_TYPE = "application/problem+json"


def is_success_status(response: httpx.Response) -> bool:
    return response.is_success


def is_created(response: httpx.Response) -> bool:
    return response.status_code == 201


def is_no_content(response: httpx.Response) -> bool:
    return response.status_code == 204


def has_problem_details(response: httpx.Response) -> bool:
    content_type = response.headers.get("content-type", "")
    return content_type.split(";", 1)[0].strip().lower() == PROBLEM_CONTENT_TYPE


def problem_details_message(problem: dict[str, Any]) -> str:
    """One ``Key: value`` line per problem member, standard members first."""
    lines = [
        f"Title: {problem.get('title')}",
        f"Status: {problem.get('status')}",
        f"Detail: {problem.get('detail')}",
        f"Instance: {problem.get('instance')}",
    ]
    standard = {"type", "title", "status", "detail", "instance"}
    lines.extend(f"{key}: {value}" for key, value in problem.items() if key not in standard)
    return "\n".join(lines)


async def raise_for_response(response: httpx.Response) -> None:
    """Default error handler: raise ``ClientResponseError`` describing *response*."""
    await response.aread()
    try:
        url = str(response.request.url)
    except RuntimeError:
        url = ""
    prefix = (
        f"HTTP request ({url}) failed with status code "
        f"{response.status_code} ({response.reason_phrase})."
    )

    if has_problem_details(response):
        try:
            problem = response.json()
        except json.JSONDecodeError:
            problem = None
        if isinstance(problem, dict):
            message = f"{prefix} Problem Details:\n{problem_details_message(problem)}"
            raise ClientResponseError(message, response.status_code)

    message = f"{prefix} The raw string response was: {response.text}"
    raise ClientResponseError(message, response.status_code)


def read_json(response: httpx.Response, cls: Any = None) -> Any:
    """Parse *response* as JSON and map it onto *cls*.

    Dataclasses (nested ones included), containers of them and scalars
    are supported. Raises ``ClientResponseError`` when the body is not
    JSON or does not fit *cls*.
    """
    try:
        data = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        message = (
            f"There was a problem deserializing the response into {_name(cls)}. "
            f"The raw string response was: {response.text}"
        )
        raise ClientResponseError(message, response.status_code) from exc

    if cls is None or cls is Any:
        return data
    try:
        return coerce_value(data, cls)
    except InvalidValueError as exc:
        message = f"There was a problem deserializing the response into {_name(cls)}: {exc}"
        raise ClientResponseError(message, response.status_code) from exc


class MessageClient:
    """Sends messages over an ``httpx.AsyncClient``.

    Pass an existing client to share its connection pool and settings, or
    keyword arguments to have one created (and closed) for you.
    """

    __slots__ = ("_client", "_owns_client")

    def __init__(self, client: httpx.AsyncClient | None = None, **client_options: Any) -> None:
        if client is not None and client_options:
            msg = "Pass either an httpx.AsyncClient or client options, not both."
            raise TypeError(msg)
        self._owns_client = client is None
        self._client = client if client is not None else httpx.AsyncClient(**client_options)

    @property
    def http(self) -> httpx.AsyncClient:
        return self._client

    async def __aenter__(self) -> MessageClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # -- Core --

    async def send_and_handle_response(
        self,
        request: httpx.Request,
        is_successful: SuccessPredicate | None = None,
        error_handler: ErrorHandler | None = None,
    ) -> httpx.Response:
        """Send *request*; hand unsuccessful responses to *error_handler*.

        Defaults: any 2xx is success, ``raise_for_response`` handles errors.
        The response is returned when the error handler does not raise.
        """
        is_successful = is_successful or is_success_status
        error_handler = error_handler or raise_for_response

        logger.debug("%s %s", request.method, request.url)
        response = await self._client.send(request)
        logger.debug("%s %s -> %d", request.method, request.url, response.status_code)

        if not is_successful(response):
            await error_handler(response)
        return response

    # -- Verbs --

    async def get(
        self,
        query: Any,
        *,
        route: str | None = None,
        cls: Any = None,
        is_successful: SuccessPredicate | None = None,
        error_handler: ErrorHandler | None = None,
    ) -> Any:
        """Send a query and return its typed result.

        Every field not consumed by the route goes into the query string.
        The result maps onto *cls*, defaulting to the query's declared result
        type. An empty response body returns ``None``.
        """
        uri = build_uri(route or _route_for(query, "GET"), query)
        request = self._client.build_request("GET", uri)
        response = await self.send_and_handle_response(request, is_successful, error_handler)
        # A query answered with no value comes back as 204
        if not response.content:
            return None
        return read_json(response, cls if cls is not None else result_type(type(query)))

    async def post(
        self,
        command: Any,
        *,
        route: str | None = None,
        is_successful: SuccessPredicate | None = None,
        error_handler: ErrorHandler | None = None,
    ) -> httpx.Response:
        """Send a command as JSON. Success is ``201 Created`` by default."""
        return await self._send_with_body("POST", command, route, is_successful or is_created, error_handler)

    async def put(
        self,
        command: Any,
        *,
        route: str | None = None,
        is_successful: SuccessPredicate | None = None,
        error_handler: ErrorHandler | None = None,
    ) -> httpx.Response:
        """Send a command as JSON. Success is ``204 No Content`` by default."""
        return await self._send_with_body("PUT", command, route, is_successful or is_no_content, error_handler)

    async def patch(
        self,
        command: Any,
        *,
        route: str | None = None,
        is_successful: SuccessPredicate | None = None,
        error_handler: ErrorHandler | None = None,
    ) -> httpx.Response:
        """Send a command as JSON. Success is ``204 No Content`` by default."""
        return await self._send_with_body("PATCH", command, route, is_successful or is_no_content, error_handler)

    async def delete(
        self,
        command: Any,
        *,
        route: str | None = None,
        is_successful: SuccessPredicate | None = None,
        error_handler: ErrorHandler | None = None,
    ) -> httpx.Response:
        """Send a command without a body; leftover fields go into the query string.

        Success is ``204 No Content`` by default.
        """
        uri = build_uri(route or _route_for(command, "DELETE"), command)
        request = self._client.build_request("DELETE", uri)
        return await self.send_and_handle_response(request, is_successful or is_no_content, error_handler)

    async def _send_with_body(
        self,
        verb: str,
        command: Any,
        route: str | None,
        is_successful: SuccessPredicate,
        error_handler: ErrorHandler | None,
    ) -> httpx.Response:
        uri = replace_placeholders(route or _route_for(command, verb), command)
        request = self._client.build_request(verb, uri, json=message_body(command))
        return await self.send_and_handle_response(request, is_successful, error_handler)


def message_body(message: Any) -> dict[str, Any]:
    """JSON object for a message: its public fields, JSON-encoded."""
    return {
        member.name: to_jsonable(getattr(message, member.name, None))
        for member in resolve_shape(type(message)).fields
    }


def _route_for(message: Any, verb: str) -> str:
    for metadata in routes_of(type(message)):
        if metadata.verb == verb:
            return metadata.route
    msg = f"Type '{type(message).__name__}' declares no {verb} route."
    raise ConfigurationError(msg)


def _name(cls: Any) -> str:
    return getattr(cls, "__name__", None) or repr(cls)
