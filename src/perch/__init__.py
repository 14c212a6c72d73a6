"""Perch — bind HTTP requests to typed query and command messages.

Declare messages as dataclasses, map them to routes, and let perch turn
path segments, query strings and JSON bodies into message instances for
your executor.

Basic usage::

    from dataclasses import dataclass
    from uuid import UUID

    from perch import App, HandlerRegistry, Query, get

    @get("/customers/{id:guid}")
    @dataclass(frozen=True)
    class GetCustomer(Query[Customer]):
        id: UUID

    registry = HandlerRegistry()
    registry.add(GetCustomer, load_customer)

    app = App(registry)
    app.map_message(GetCustomer)

Outbound, the same declarations drive the client::

    async with MessageClient(base_url="https://api.example.com") as client:
        customer = await client.get(GetCustomer(id=customer_id))
"""

__version__ = "0.1.0"
__all__ = [
    "App",
    "BindingConfig",
    "BindingClassificationError",
    "ClientResponseError",
    "Command",
    "ConfigurationError",
    "ConversionError",
    "Created",
    "DeleteCommand",
    "Description",
    "Dispatcher",
    "EnumConversionError",
    "Executor",
    "HandlerRegistry",
    "HTTPError",
    "InvalidValueError",
    "Manifest",
    "MessageClient",
    "NoContent",
    "NullValueError",
    "Ok",
    "PatchCommand",
    "PerchError",
    "PostCommand",
    "Problem",
    "ProblemCommand",
    "PutCommand",
    "Query",
    "Response",
    "ResultNotSetError",
    "RouteParameterMismatchError",
    "build_uri",
    "delete",
    "from_parameters",
    "get",
    "patch",
    "post",
    "put",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import perch`` fast while providing a clean top-level API.
    """
    if name == "App":
        from perch.app import App

        return App

    if name == "BindingConfig":
        from perch.config import BindingConfig

        return BindingConfig

    if name == "Dispatcher":
        from perch.binding.dispatcher import Dispatcher

        return Dispatcher

    if name == "Description":
        from perch.binding.shape import Description

        return Description

    if name in ("Executor", "HandlerRegistry"):
        from perch import executor as _executor

        return getattr(_executor, name)

    if name in (
        "Command",
        "DeleteCommand",
        "PatchCommand",
        "PostCommand",
        "ProblemCommand",
        "PutCommand",
        "Query",
    ):
        from perch import messages as _messages

        return getattr(_messages, name)

    if name in ("Created", "NoContent", "Ok", "Problem"):
        from perch import results as _results

        return getattr(_results, name)

    if name in ("Manifest", "delete", "from_parameters", "get", "patch", "post", "put"):
        from perch import metadata as _metadata

        return getattr(_metadata, name)

    if name == "MessageClient":
        from perch.client import MessageClient

        return MessageClient

    if name == "Response":
        from perch.http.response import Response

        return Response

    if name == "build_uri":
        from perch.routing.uri import build_uri

        return build_uri

    if name in (
        "BindingClassificationError",
        "ClientResponseError",
        "ConfigurationError",
        "ConversionError",
        "EnumConversionError",
        "HTTPError",
        "InvalidValueError",
        "NullValueError",
        "PerchError",
        "ResultNotSetError",
        "RouteParameterMismatchError",
    ):
        from perch import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
