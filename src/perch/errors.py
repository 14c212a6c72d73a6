"""Perch exception hierarchy.

Shared across the binding engine, the dispatcher, the host adapter and
the outbound client so every module raises and catches the same types.

Two families matter to callers:

- ``ConfigurationError`` — raised while endpoints are registered. A route
  token without a matching field, or a message type used in a binding
  role it cannot fill, aborts registration.
- ``InvalidValueError`` — raised while a request is bound. The dispatcher
  turns these into a 400 problem-details response.
"""

from dataclasses import dataclass


class PerchError(Exception):
    """Base for all perch-specific errors."""


class ConfigurationError(PerchError):
    """Raised when endpoint registration is invalid.

    Surfaces at registration time, never deferred to the first request.
    """


class RouteTemplateError(ConfigurationError):
    """A route template is syntactically unusable (e.g. a repeated token)."""


class RouteParameterMismatchError(ConfigurationError):
    """A route token has no matching field on the target type."""

    def __init__(self, parameter: str, type_name: str) -> None:
        self.parameter = parameter
        self.type_name = type_name
        super().__init__(
            f"Route parameter '{parameter}' does not match any property in type '{type_name}'."
        )


class BindingClassificationError(ConfigurationError):
    """A message type lacks the capability its binding role requires."""


# -- Request-time input errors --


class InvalidValueError(PerchError):
    """Base for client-input errors raised while binding a request."""


class ConversionError(InvalidValueError):
    """A raw value cannot become the declared field type."""

    def __init__(self, raw: object, target: object, reason: str = "") -> None:
        self.raw = raw
        self.target = target
        name = getattr(target, "__name__", None) or repr(target)
        msg = f"Cannot convert {raw!r} to type '{name}'."
        if reason:
            msg = f"{msg} {reason}"
        super().__init__(msg)


class EnumConversionError(InvalidValueError):
    """A raw value is not a member name of the target enumeration."""

    def __init__(self, raw: object, target: type) -> None:
        self.raw = raw
        self.target = target
        members = ", ".join(target.__members__)
        super().__init__(
            f"Invalid enum value {raw!r} for '{target.__name__}'. Expected one of: {members}."
        )


class NullValueError(InvalidValueError):
    """A missing or blank value was bound to a non-nullable target."""

    def __init__(self, target: object, name: str | None = None) -> None:
        self.target = target
        self.name = name
        type_name = getattr(target, "__name__", None) or repr(target)
        subject = f"'{name}' of type '{type_name}'" if name else f"type '{type_name}'"
        super().__init__(f"Cannot convert null or whitespace to non-nullable {subject}.")


class BodyDecodeError(InvalidValueError):
    """The request body could not be decoded into the message type."""


# -- Execution errors --


class ResultNotSetError(PerchError):
    """A message declared a result but its handler never populated it.

    Indicates a handler defect, so it surfaces as a server-side error.
    """


# -- HTTP errors (host adapter and client) --


@dataclass(frozen=True, slots=True)
class HTTPError(PerchError):
    """A request the host rejects before any message is bound.

    ``Router.match`` raises the 404 and 405 subclasses and ``read_body``
    raises ``PayloadTooLarge``. ``handle_request`` turns every one of them
    into a problem-details response carrying ``status`` and ``detail``,
    and copies ``headers`` onto it. Binding and conversion failures are
    not HTTPErrors: the bound handler answers those with its own 400.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class NotFound(HTTPError):  # noqa: N818 — conventional name in web frameworks
    """404: no registered route shape accepts the path.

    Also raised when a token constraint rejects a segment, e.g. a
    non-GUID value for ``{id:guid}``.
    """

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(status=404, detail=detail)


class MethodNotAllowed(HTTPError):  # noqa: N818 — conventional name in web frameworks
    """405: the path matches, but no message is mapped to this verb on it.

    ``allowed`` holds the verbs mapped on the matching route shape. They
    go back sorted in the ``Allow`` header and in ``detail``.
    """

    def __init__(self, allowed: frozenset[str], detail: str = "") -> None:
        allow_value = ", ".join(sorted(allowed))
        default_detail = f"This route accepts {allow_value}."
        super().__init__(
            status=405,
            detail=detail or default_detail,
            headers=(("Allow", allow_value),),
        )


class PayloadTooLarge(HTTPError):  # noqa: N818 — conventional name in web frameworks
    """413: the request body is larger than ``BindingConfig.max_body_size``."""

    def __init__(self, limit: int) -> None:
        super().__init__(status=413, detail=f"Request body exceeds {limit} bytes.")


class ClientResponseError(PerchError):
    """An outbound request came back with an unsuccessful status."""

    def __init__(self, message: str, status: int) -> None:
        self.status = status
        super().__init__(message)
