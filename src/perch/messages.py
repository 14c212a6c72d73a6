"""Message base classes — queries, commands and result slots.

Messages are plain dataclasses (frozen or not) that inherit one of:

- ``Query[T]`` — read side. The executor's return value is the result.
- ``Command`` — write side without a result.
- ``Command[T]`` — write side whose handler stores a result on the
  message itself via ``set_result``; the dispatcher reads it back after
  execution.
- ``ProblemCommand[T]`` — a ``Command[T]`` whose handler may instead
  report an RFC 9457 problem via ``set_problem_result``.

Usage::

    @dataclass(frozen=True)
    class GetUser(Query[User]):
        id: UUID

    @dataclass
    class CreateUser(PostCommand):
        name: str

    def handle_create(command: CreateUser) -> None:
        command.set_result(Created(f"/users/{new_id}"))
"""

import types
from typing import Any, TypeVar, get_args, get_origin

from perch.errors import ResultNotSetError
from perch.results import Created, NoContent, Problem

_UNSET: Any = object()


class Query[TResult]:
    """Marker base for messages answered by the executor's return value."""

    __slots__ = ()


class Command[TResult]:
    """Base for commands. Parameterize to declare a result slot.

    The slot lives outside the dataclass fields, so frozen messages can
    still carry a result and it never leaks into binding or serialization.
    """

    __slots__ = ("_result",)

    def set_result(self, result: TResult) -> None:
        """Store the handler's result on the message."""
        object.__setattr__(self, "_result", result)

    def get_result(self) -> TResult:
        """Return the stored result.

        Raises ``ResultNotSetError`` if the handler never called ``set_result``.
        """
        result = getattr(self, "_result", _UNSET)
        if result is _UNSET:
            msg = f"Result of '{type(self).__name__}' was never set by its handler."
            raise ResultNotSetError(msg)
        return result

    @property
    def has_result(self) -> bool:
        return getattr(self, "_result", _UNSET) is not _UNSET


class ProblemCommand[TResult](Command[TResult]):
    """A command whose handler may answer with a ``Problem`` instead."""

    __slots__ = ()

    def set_problem_result(
        self,
        detail: str | None = None,
        instance: str | None = None,
        status: int | None = None,
        title: str | None = None,
        type: str | None = None,  # noqa: A002 — RFC 9457 member name
        extensions: dict[str, Any] | None = None,
    ) -> None:
        """Store a ``Problem`` as this command's result."""
        problem = Problem(
            status=status or 500,
            title=title,
            detail=detail,
            instance=instance,
            type=type,
            extensions=dict(extensions or {}),
        )
        object.__setattr__(self, "_result", problem)

    @property
    def has_problem_result(self) -> bool:
        return isinstance(getattr(self, "_result", _UNSET), Problem)


class PostCommand(ProblemCommand[Created]):
    """Command for POST endpoints; answers ``201 Created`` or a problem."""

    __slots__ = ()


class PatchCommand(ProblemCommand[NoContent]):
    """Command for PATCH endpoints; answers ``204 No Content`` or a problem."""

    __slots__ = ()


class PutCommand(ProblemCommand[NoContent]):
    """Command for PUT endpoints; answers ``204 No Content`` or a problem."""

    __slots__ = ()


class DeleteCommand(ProblemCommand[NoContent]):
    """Command for DELETE endpoints; answers ``204 No Content`` or a problem."""

    __slots__ = ()


# -- Introspection --


def is_query(cls: type) -> bool:
    return isinstance(cls, type) and issubclass(cls, Query)


def is_command(cls: type) -> bool:
    return isinstance(cls, type) and issubclass(cls, Command)


def result_type(cls: type) -> Any | None:
    """Declared result type of a query or command, or ``None``.

    ``Command`` used bare (or as ``Command[None]``) declares no result.
    """
    for klass in cls.__mro__:
        for base in types.get_original_bases(klass):
            origin = get_origin(base)
            if not isinstance(origin, type) or not issubclass(origin, (Query, Command)):
                continue
            args = get_args(base)
            if not args or isinstance(args[0], TypeVar) or args[0] is None or args[0] is type(None):
                continue
            return args[0]
    return None
