"""Perch ASGI application.

Mutable during setup (endpoint registration). Frozen on the first ASGI
call, when the pending endpoints compile into the router.

Usage::

    registry = HandlerRegistry()
    registry.add(GetCustomer, get_customer)

    app = App(registry)
    app.map("/customers/{id:guid}", GetCustomer, "GET")
    app.map_manifest(Manifest(CreateCustomer, DeleteCustomer))

Registration resolves the binding plan immediately, so a route token
without a matching field or a message type in the wrong role fails at
``map()`` and never at the first request.
"""

import logging
import threading
from dataclasses import dataclass

from perch._internal.asgi import Receive, Scope, Send
from perch.binding.dispatcher import BoundHandler, Dispatcher
from perch.config import BindingConfig
from perch.errors import ConfigurationError
from perch.executor import Executor
from perch.metadata import Manifest, routes_of
from perch.routing.route import Route
from perch.routing.router import Router
from perch.routing.template import TOKEN_PATTERN, parse_token
from perch.server.handler import handle_request

logger = logging.getLogger("perch.server")


@dataclass(frozen=True, slots=True)
class _PendingRoute:
    """A bound endpoint waiting to be compiled."""

    path: str
    verb: str
    handler: BoundHandler
    name: str | None


class App:
    """ASGI 3 host for message endpoints.

    Thread safety:
        The setup phase is single-threaded (registration at import time).
        The freeze transition uses a Lock + double-check to ensure exactly
        one thread compiles the router, even when several workers receive
        their first request at once.
    """

    __slots__ = (
        "_dispatcher",
        "_freeze_lock",
        "_frozen",
        "_pending_routes",
        "_router",
        "config",
    )

    def __init__(self, executor: Executor, config: BindingConfig | None = None) -> None:
        self.config: BindingConfig = config or BindingConfig()
        self._dispatcher = Dispatcher(executor, self.config)
        self._pending_routes: list[_PendingRoute] = []
        self._frozen: bool = False
        self._freeze_lock: threading.Lock = threading.Lock()

        # Compiled state — set during _freeze()
        self._router: Router | None = None

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    # -- Endpoint registration --

    def map(self, route: str, message_type: type, verb: str, *, name: str | None = None) -> BoundHandler:
        """Bind *message_type* to *verb* on *route*.

        Raises ``ConfigurationError`` (or a subclass) when the binding is
        invalid or the same verb is already mapped on an equivalent route.
        """
        self._check_not_frozen()
        verb = verb.upper()
        path = "/" + route.strip("/")

        key = _route_key(path)
        for pending in self._pending_routes:
            if pending.verb == verb and _route_key(pending.path) == key:
                msg = (
                    f"{verb} {path} is already mapped to "
                    f"'{pending.handler.message_type.__name__}'."
                )
                raise ConfigurationError(msg)

        handler = self._dispatcher.register(path, message_type, verb)
        self._pending_routes.append(_PendingRoute(path=path, verb=verb, handler=handler, name=name))
        logger.debug("Mapped %s %s -> %s", verb, path, message_type.__name__)
        return handler

    def map_message(self, message_type: type) -> list[BoundHandler]:
        """Map every route declared on *message_type* with ``@get``/``@post``/...

        Raises ``ConfigurationError`` if the type declares no routes.
        """
        declared = routes_of(message_type)
        if not declared:
            msg = f"Type '{message_type.__name__}' declares no routes."
            raise ConfigurationError(msg)
        return [
            self.map(metadata.route, message_type, metadata.verb, name=metadata.name or None)
            for metadata in declared
        ]

    def map_manifest(self, manifest: Manifest) -> list[BoundHandler]:
        """Map every endpoint of *manifest*, in manifest order."""
        return [
            self.map(
                endpoint.metadata.route,
                endpoint.message_type,
                endpoint.metadata.verb,
                name=endpoint.metadata.name or None,
            )
            for endpoint in manifest.endpoints()
        ]

    @property
    def routes(self) -> list[Route]:
        self._ensure_frozen()
        assert self._router is not None
        return self._router.routes

    # -- ASGI --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return

        self._ensure_frozen()

        assert self._router is not None

        await handle_request(scope, receive, send, router=self._router, config=self.config)

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                try:
                    self._ensure_frozen()
                except Exception as exc:
                    logger.exception("Startup failed")
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                await send({"type": "lifespan.shutdown.complete"})
                return

    # -- Internal --

    def _ensure_frozen(self) -> None:
        """Thread-safe freeze with double-check locking."""
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._freeze()

    def _freeze(self) -> None:
        """Compile the pending endpoints into the router.

        MUST only be called while holding _freeze_lock.
        """
        router = Router()
        for pending in self._pending_routes:
            router.add(
                Route(
                    path=pending.path,
                    handler=pending.handler,
                    methods=frozenset({pending.verb}),
                    name=pending.name,
                )
            )
        router.compile()
        self._router = router
        self._frozen = True
        logger.debug("Compiled %d route(s)", len(self._pending_routes))

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the app after it has started serving requests. "
                "Map all endpoints before the first request."
            )
            raise RuntimeError(msg)


def _route_key(path: str) -> str:
    """Path with token names erased, so ``/a/{id}`` and ``/a/{key}`` compare equal."""
    return "/".join(
        TOKEN_PATTERN.sub(lambda m: "{" + (parse_token(m.group(0)).constraint or "") + "}", segment)
        if "{" in segment
        else segment.casefold()
        for segment in path.strip("/").split("/")
    )
