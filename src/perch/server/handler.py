"""ASGI handler — translates ASGI scope/messages to bound-handler calls.

The only component that touches raw ASGI directly. Matches the path,
reads the body when the endpoint binds one, calls the bound handler and
sends its Response back through ASGI send().
"""

import logging

from perch._internal.asgi import Receive, Scope, Send
from perch.binding.dispatcher import BindingStrategy, BoundHandler
from perch.config import BindingConfig
from perch.errors import HTTPError, PayloadTooLarge
from perch.http.query import QueryParams
from perch.http.response import Response
from perch.results import Problem
from perch.routing.router import Router
from perch.server.sender import send_response

logger = logging.getLogger("perch.server")


async def handle_request(
    scope: Scope,
    receive: Receive,
    send: Send,
    *,
    router: Router,
    config: BindingConfig,
) -> None:
    """Process a single HTTP request through the pipeline."""
    if scope["type"] != "http":
        return

    method: str = scope["method"].upper()
    path: str = scope["path"]

    try:
        match = router.match(method, path)
        handler: BoundHandler = match.route.handler
        query = QueryParams(scope.get("query_string", b""))

        body = b""
        if handler.plan.strategy is not BindingStrategy.PARAMETERS_ONLY:
            body = await read_body(receive, config.max_body_size)

        response = await handler(match.path_params, query, body)

    except HTTPError as exc:
        response = handle_http_error(exc, method, path, config)
    except Exception as exc:
        response = handle_internal_error(exc, method, path, config)

    await send_response(response, send, head=method == "HEAD")


async def read_body(receive: Receive, limit: int) -> bytes:
    """Drain the ASGI receive channel, enforcing *limit*."""
    chunks: list[bytes] = []
    size = 0
    while True:
        message = await receive()
        if message["type"] == "http.disconnect":
            break
        chunk = message.get("body", b"")
        if chunk:
            size += len(chunk)
            if size > limit:
                raise PayloadTooLarge(limit)
            chunks.append(chunk)
        if not message.get("more_body", False):
            break
    return b"".join(chunks)


def handle_http_error(exc: HTTPError, method: str, path: str, config: BindingConfig) -> Response:
    """Map an HTTPError to a problem-details Response."""
    logger.debug("%d %s %s — %s", exc.status, method, path, exc.detail)
    response = Problem(status=exc.status, detail=exc.detail or None).to_response(config)
    for name, value in exc.headers:
        response = response.with_header(name, value)
    return response


def handle_internal_error(exc: Exception, method: str, path: str, config: BindingConfig) -> Response:
    """Handle unexpected exceptions (handler defects, unset results) as 500 errors."""
    logger.exception("500 %s %s", method, path)
    detail = f"{type(exc).__name__}: {exc}" if config.debug else None
    return Problem(status=500, detail=detail).to_response(config)
