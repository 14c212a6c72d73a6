"""Binding dispatcher — turns (route, message type, verb) into a bound handler.

Registration resolves a *plan* once per (message type, verb, route) and
caches it; every request through the returned handler reuses it::

    dispatcher = Dispatcher(registry)
    handler = dispatcher.register("/orders/{id:int}", UpdateOrder, "PUT")

    response = await handler({"id": "7"}, {}, b'{"note": "rush"}')

Strategies:

- ``PARAMETERS_ONLY`` — the message is built from route and query values.
  GET, HEAD and DELETE always bind this way, as does any type marked
  ``@from_parameters``. The body is never read.
- ``BODY_ONLY`` — body verb, no route tokens. The JSON body becomes the
  message; route values (if the host supplies any) are overlaid after.
- ``SPLIT_PARAMETERS_AND_BODY`` — body verb with route tokens. Route
  values bind into the type's projection, the body binds into the
  message (route-covered fields may be missing from it), and the
  projection values are overlaid. Route values always win.

Results:

- ``Query[T]`` answers with the executor's return value.
- ``Command[T]`` answers with the result its handler stored on the message.
  A missing result raises ``ResultNotSetError``; it is never defaulted.
- A plain ``Command`` answers ``204 No Content``.

Client-input errors (``InvalidValueError``) become a 400 problem response.
Everything else propagates to the host.
"""

from __future__ import annotations

import dataclasses
import enum
import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, get_origin

from perch._internal.annotations import unwrap_nullable
from perch._internal.invoke import invoke, invoke_offloaded
from perch.binding.conversion import convert, is_blank
from perch.binding.mapping import SEQUENCE_ORIGINS, decode_body, from_mapping, instantiate, overlay
from perch.binding.parameters import ParameterDescriptor, RouteParameters, cached_parameters
from perch.binding.projection import ProjectionCache, bind_projection
from perch.binding.shape import resolve_shape
from perch.config import BindingConfig
from perch.errors import BindingClassificationError, InvalidValueError
from perch.executor import Executor, HandlerRegistry
from perch.http.response import Response
from perch.messages import Command, Query, result_type
from perch.metadata import is_from_parameters
from perch.results import Problem, to_response

logger = logging.getLogger("perch.binding")

_KNOWN_VERBS = frozenset({"GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"})


class BindingStrategy(enum.Enum):
    """How a message instance is assembled from a request."""

    BODY_ONLY = "body_only"
    PARAMETERS_ONLY = "parameters_only"
    SPLIT_PARAMETERS_AND_BODY = "split_parameters_and_body"


class ResultKind(enum.Enum):
    """Where the response value comes from after execution."""

    RETURN_VALUE = "return_value"  # the executor's return value
    RESULT_SLOT = "result_slot"  # Command[T].get_result()
    NONE = "none"  # plain Command: 204


@dataclass(frozen=True, slots=True)
class BindingPlan:
    """Everything resolved at registration for one endpoint."""

    message_type: type
    verb: str
    route: str
    strategy: BindingStrategy
    parameters: RouteParameters
    projection: type | None
    result_kind: ResultKind
    result_type: Any = None


def classify(message_type: type, verb: str, route: str, config: BindingConfig) -> BindingStrategy:
    """Pick the binding strategy for *message_type* under *verb*.

    Raises ``BindingClassificationError`` when the type cannot fill the role
    the verb implies (a GET needs a ``Query``; body verbs and DELETE need a
    non-query message).
    """
    verb = verb.upper()
    if verb not in _KNOWN_VERBS:
        msg = f"Unsupported HTTP verb '{verb}' for type '{message_type.__name__}'."
        raise BindingClassificationError(msg)

    is_query_type = issubclass(message_type, Query)
    if verb in ("GET", "HEAD") and not is_query_type:
        msg = f"Type '{message_type.__name__}' must derive from Query to be mapped to {verb} '{route}'."
        raise BindingClassificationError(msg)
    if verb not in ("GET", "HEAD") and is_query_type:
        msg = f"Query type '{message_type.__name__}' cannot be mapped to {verb} '{route}'."
        raise BindingClassificationError(msg)

    if is_from_parameters(message_type) or verb in config.parameter_methods:
        return BindingStrategy.PARAMETERS_ONLY
    if verb not in config.body_methods:
        return BindingStrategy.PARAMETERS_ONLY

    parameters = cached_parameters(route, message_type)
    if parameters.route:
        return BindingStrategy.SPLIT_PARAMETERS_AND_BODY
    return BindingStrategy.BODY_ONLY


def _result_kind(message_type: type) -> tuple[ResultKind, Any]:
    declared = result_type(message_type)
    if issubclass(message_type, Command):
        if declared is None:
            return ResultKind.NONE, None
        return ResultKind.RESULT_SLOT, declared
    return ResultKind.RETURN_VALUE, declared


class Dispatcher:
    """Registers message types against routes and produces bound handlers.

    Thread safety:
        Plans and projections are cached behind locks with double-checked
        publication, so concurrent first registrations of one key resolve
        a single plan and a single projection type.
    """

    __slots__ = ("_executor", "_plans", "_plans_lock", "config", "projections")

    def __init__(self, executor: Executor, config: BindingConfig | None = None) -> None:
        if not isinstance(executor, Executor):
            msg = f"Executor must define an 'execute(message, cancel)' method, got {executor!r}."
            raise TypeError(msg)
        self._executor = executor
        self.config: BindingConfig = config or BindingConfig()
        self.projections = ProjectionCache()
        self._plans: dict[tuple[type, str, str], BindingPlan] = {}
        self._plans_lock = threading.Lock()

    def plan(self, route: str, message_type: type, verb: str) -> BindingPlan:
        """Resolve (or fetch the cached) plan for one endpoint.

        Registration errors surface here: ``RouteParameterMismatchError``
        for tokens without a field, ``BindingClassificationError`` for a
        type used in the wrong role.
        """
        verb = verb.upper()
        key = (message_type, verb, route)
        cached = self._plans.get(key)
        if cached is not None:
            return cached

        with self._plans_lock:
            cached = self._plans.get(key)
            if cached is not None:
                return cached
            plan = self._resolve(route, message_type, verb)
            self._plans[key] = plan
            return plan

    def register(self, route: str, message_type: type, verb: str) -> BoundHandler:
        """Resolve the plan and return the handler the host should call."""
        return BoundHandler(plan=self.plan(route, message_type, verb), dispatcher=self)

    def _resolve(self, route: str, message_type: type, verb: str) -> BindingPlan:
        if not isinstance(message_type, type):
            msg = f"Expected a message type, got {message_type!r}."
            raise BindingClassificationError(msg)

        # Resolving parameters first reports token/field mismatches before role errors
        parameters = cached_parameters(route, message_type)
        strategy = classify(message_type, verb, route, self.config)
        kind, declared = _result_kind(message_type)

        projection = None
        if strategy is BindingStrategy.SPLIT_PARAMETERS_AND_BODY:
            projection = self.projections.get_or_create(
                route,
                message_type,
                parameters.route,
                suffix=self.config.projection_suffix,
            )

        logger.debug(
            "Planned %s %s -> %s (%s, result: %s)",
            verb,
            route,
            message_type.__name__,
            strategy.value,
            kind.value,
        )
        return BindingPlan(
            message_type=message_type,
            verb=verb,
            route=route,
            strategy=strategy,
            parameters=parameters,
            projection=projection,
            result_kind=kind,
            result_type=declared,
        )

    # -- Request time --

    def bind(
        self,
        plan: BindingPlan,
        path_values: Mapping[str, str] | None,
        query_values: Mapping[str, str] | None,
        body: bytes | str | Mapping[str, Any] | None,
    ) -> Any:
        """Assemble the message instance for one request."""
        path_values = path_values or {}
        query_values = query_values or {}

        if plan.strategy is BindingStrategy.PARAMETERS_ONLY:
            return _bind_parameters(plan, path_values, query_values)

        data = decode_body(body)

        if plan.strategy is BindingStrategy.BODY_ONLY:
            message = from_mapping(plan.message_type, data)
            return overlay(message, path_values)

        assert plan.projection is not None
        projected = bind_projection(plan.projection, _route_subset(plan.parameters.route, path_values))
        route_values = {
            f.name: getattr(projected, f.name)
            for f in dataclasses.fields(projected)
            if _has_value(f.name, path_values) or not _is_optional(plan.parameters.route, f.name)
        }
        return from_mapping(plan.message_type, data, overrides=route_values)

    async def execute(self, plan: BindingPlan, message: Any, cancel: Any) -> Response:
        """Run *message* through the executor and map its result."""
        offload = self.config.offload_sync_executors
        if isinstance(self._executor, HandlerRegistry):
            # The registry is async itself; offloading applies to its handlers
            returned = await self._executor.execute(message, cancel, offload_sync=offload or None)
        else:
            run = invoke_offloaded if offload else invoke
            returned = await run(self._executor.execute, message, cancel)

        if plan.result_kind is ResultKind.RESULT_SLOT:
            return to_response(message.get_result(), self.config)
        if plan.result_kind is ResultKind.NONE:
            return to_response(None, self.config)
        return to_response(returned, self.config)

    def problem(self, exc: InvalidValueError, plan: BindingPlan) -> Response:
        logger.debug("400 %s %s: %s", plan.verb, plan.route, exc)
        return Problem(status=400, title="Bad Request", detail=str(exc)).to_response(self.config)

    def __len__(self) -> int:
        return len(self._plans)


@dataclass(frozen=True, slots=True)
class BoundHandler:
    """A registered endpoint. Call it once per request.

    ``path_values`` are the router's captured segments, ``query_values`` the
    parsed query string (a ``QueryParams`` supplies repeated keys for
    list-typed fields), ``body`` the raw request body. ``cancel`` is handed
    to the executor untouched.
    """

    plan: BindingPlan
    dispatcher: Dispatcher

    @property
    def message_type(self) -> type:
        return self.plan.message_type

    def bind(
        self,
        path_values: Mapping[str, str] | None = None,
        query_values: Mapping[str, str] | None = None,
        body: bytes | str | Mapping[str, Any] | None = None,
    ) -> Any:
        """Build the message without executing it."""
        return self.dispatcher.bind(self.plan, path_values, query_values, body)

    async def __call__(
        self,
        path_values: Mapping[str, str] | None = None,
        query_values: Mapping[str, str] | None = None,
        body: bytes | str | Mapping[str, Any] | None = None,
        cancel: Any = None,
    ) -> Response:
        try:
            message = self.dispatcher.bind(self.plan, path_values, query_values, body)
        except InvalidValueError as exc:
            return self.dispatcher.problem(exc, self.plan)
        return await self.dispatcher.execute(self.plan, message, cancel)


# -- Parameter binding --


def _bind_parameters(
    plan: BindingPlan,
    path_values: Mapping[str, str],
    query_values: Mapping[str, str],
) -> Any:
    shape = resolve_shape(plan.message_type)
    folded_path = {key.casefold(): value for key, value in path_values.items()}
    folded_query = _fold_query(query_values)
    values: dict[str, Any] = {}

    for descriptor in plan.parameters.all:
        key = descriptor.name.casefold()
        member = shape.field(descriptor.name)
        has_default = member is not None and member.has_default

        if key in folded_path:
            raws: list[str] = [folded_path[key]]
        else:
            raws = folded_query.get(key, [])

        if not raws or (descriptor.is_optional and all(is_blank(r) for r in raws)):
            if has_default:
                continue
            if descriptor.is_optional:
                values[descriptor.name] = None
                continue
            values[descriptor.name] = convert(None, descriptor.annotation, name=descriptor.name)
            continue

        values[descriptor.name] = _convert_descriptor(descriptor, raws)

    return instantiate(plan.message_type, values)


def _convert_descriptor(descriptor: ParameterDescriptor, raws: list[str]) -> Any:
    underlying = unwrap_nullable(descriptor.annotation)
    origin = get_origin(underlying)
    if origin in SEQUENCE_ORIGINS:
        args = getattr(underlying, "__args__", ())
        item = args[0] if args else str
        container = SEQUENCE_ORIGINS[origin]
        return container(convert(raw, item, name=descriptor.name) for raw in raws)
    return convert(raws[0], descriptor.annotation, name=descriptor.name)


def _fold_query(query_values: Mapping[str, str]) -> dict[str, list[str]]:
    get_list = getattr(query_values, "get_list", None)
    folded: dict[str, list[str]] = {}
    for key in query_values:
        values = get_list(key) if get_list is not None else [query_values[key]]
        folded.setdefault(key.casefold(), []).extend(values)
    return folded


def _route_subset(
    descriptors: tuple[ParameterDescriptor, ...],
    path_values: Mapping[str, str],
) -> dict[str, str | None]:
    folded = {key.casefold(): value for key, value in path_values.items()}
    return {d.name: folded[d.name.casefold()] for d in descriptors if d.name.casefold() in folded}


def _has_value(name: str, path_values: Mapping[str, str]) -> bool:
    key = name.casefold()
    return any(k.casefold() == key and not is_blank(v) for k, v in path_values.items())


def _is_optional(descriptors: tuple[ParameterDescriptor, ...], name: str) -> bool:
    return any(d.name == name and d.is_optional for d in descriptors)
