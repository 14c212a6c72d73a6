"""Tests for perch.messages — message bases and result slots."""

from dataclasses import dataclass

import pytest

from perch.errors import ResultNotSetError
from perch.messages import (
    Command,
    DeleteCommand,
    PatchCommand,
    PostCommand,
    ProblemCommand,
    PutCommand,
    Query,
    is_command,
    is_query,
    result_type,
)
from perch.results import Created, NoContent, Problem


@dataclass
class User:
    name: str


@dataclass(frozen=True)
class GetUser(Query[User]):
    id: int


@dataclass
class ListUsers(Query[list[User]]):
    pass


@dataclass
class Ping(Command):
    pass


@dataclass(frozen=True)
class Count(Command[int]):
    pass


@dataclass
class CreateUser(PostCommand):
    name: str


@dataclass
class SpecialCreate(CreateUser):
    pass


class TestIntrospection:
    def test_query_and_command(self) -> None:
        assert is_query(GetUser)
        assert not is_command(GetUser)
        assert is_command(CreateUser)
        assert not is_query(CreateUser)
        assert not is_query("GetUser")  # type: ignore[arg-type]

    @pytest.mark.parametrize(
        ("cls", "expected"),
        [
            (GetUser, User),
            (ListUsers, list[User]),
            (Ping, None),
            (Count, int),
            (CreateUser, Created),
            (SpecialCreate, Created),
        ],
    )
    def test_result_type(self, cls: type, expected: object) -> None:
        assert result_type(cls) == expected

    @pytest.mark.parametrize(
        ("cls", "expected"),
        [(PostCommand, Created), (PutCommand, NoContent), (PatchCommand, NoContent), (DeleteCommand, NoContent)],
    )
    def test_verb_commands(self, cls: type, expected: type) -> None:
        assert result_type(cls) is expected
        assert issubclass(cls, ProblemCommand)


class TestResultSlot:
    def test_set_and_get(self) -> None:
        command = Count()
        assert command.has_result is False
        command.set_result(3)
        assert command.has_result is True
        assert command.get_result() == 3

    def test_unset_raises(self) -> None:
        with pytest.raises(ResultNotSetError, match="Result of 'Count' was never set"):
            Count().get_result()

    def test_frozen_message_accepts_result(self) -> None:
        command = Count()
        command.set_result(1)
        assert command.get_result() == 1

    def test_result_not_a_field(self) -> None:
        command = CreateUser(name="a")
        command.set_result(Created("/users/1"))
        assert command == CreateUser(name="a")
        assert "_result" not in repr(command)


class TestProblemResult:
    def test_set_problem(self) -> None:
        command = CreateUser(name="a")
        command.set_problem_result(detail="Duplicate", status=409, title="Conflict", extensions={"field": "name"})

        assert command.has_problem_result is True
        problem = command.get_result()
        assert isinstance(problem, Problem)
        assert problem.status == 409
        assert problem.detail == "Duplicate"
        assert problem.extensions == {"field": "name"}

    def test_status_defaults_to_500(self) -> None:
        command = CreateUser(name="a")
        command.set_problem_result(detail="boom")
        assert command.get_result().status == 500

    def test_regular_result_is_not_a_problem(self) -> None:
        command = CreateUser(name="a")
        command.set_result(Created("/users/1"))
        assert command.has_problem_result is False

    def test_plain_command_has_no_problem_api(self) -> None:
        assert not hasattr(Command, "set_problem_result")
