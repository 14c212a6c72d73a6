"""Tests for perch.routing.uri — filling route templates from messages."""

import datetime
import enum
from dataclasses import dataclass

import pytest

from perch.routing.uri import build_uri, format_value, replace_placeholders


class Kind(enum.Enum):
    Retail = 1
    Wholesale = 2


@dataclass
class Person:
    Id: int
    Name: str | None = None
    Age: int | None = None


@dataclass
class Search:
    team_id: int
    name: str | None = None
    tags: list[str] | None = None
    kind: Kind | None = None
    active: bool | None = None
    since: datetime.date | None = None


class TestFormatValue:
    def test_enum_uses_member_name(self) -> None:
        assert format_value(Kind.Wholesale) == "Wholesale"

    def test_bool_lowercase(self) -> None:
        assert format_value(True) == "true"
        assert format_value(False) == "false"

    def test_dates_iso(self) -> None:
        assert format_value(datetime.date(2024, 3, 1)) == "2024-03-01"
        assert format_value(datetime.datetime(2024, 3, 1, 9, 5)) == "2024-03-01T09:05:00"

    def test_bytes_base64(self) -> None:
        assert format_value(b"hi") == "aGk="


class TestReplacePlaceholders:
    def test_substitutes_tokens(self) -> None:
        assert replace_placeholders("/api/{Id}", Person(Id=5)) == "/api/5"

    def test_token_lookup_case_insensitive(self) -> None:
        assert replace_placeholders("/api/{id:int}", Person(Id=5)) == "/api/5"

    def test_no_query_string(self) -> None:
        assert replace_placeholders("/api/{Id}", Person(Id=5, Name="John")) == "/api/5"

    def test_values_are_escaped(self) -> None:
        assert replace_placeholders("/people/{Name}", Person(Id=1, Name="a/b c")) == "/people/a%2Fb%20c"

    def test_unknown_token(self) -> None:
        with pytest.raises(ValueError, match="Property 'slug' not found on object of type 'Person'"):
            replace_placeholders("/api/{slug}", Person(Id=1))

    def test_none_value(self) -> None:
        with pytest.raises(ValueError, match="Property 'Name' on object of type 'Person' is None"):
            replace_placeholders("/api/{Name}", Person(Id=1))


class TestBuildUri:
    def test_leftover_fields_become_query(self) -> None:
        assert build_uri("/api/{Id}", Person(Id=1, Name="John", Age=30)) == "/api/1?Name=John&Age=30"

    def test_none_fields_skipped(self) -> None:
        assert build_uri("/api/{Id}", Person(Id=1, Age=30)) == "/api/1?Age=30"

    def test_no_leftovers(self) -> None:
        assert build_uri("/api/{Id}", Person(Id=1)) == "/api/1"

    def test_template_without_tokens(self) -> None:
        assert build_uri("/api", Person(Id=1)) == "/api?Id=1"

    def test_existing_query_string(self) -> None:
        assert build_uri("/api/{Id}?v=2", Person(Id=1, Age=3)) == "/api/1?v=2&Age=3"

    def test_encoding_and_formatting(self) -> None:
        search = Search(
            team_id=7,
            name="Ann Lee",
            tags=["a&b", "c"],
            kind=Kind.Retail,
            active=False,
            since=datetime.date(2024, 1, 2),
        )
        assert build_uri("/teams/{team_id:int}/users", search) == (
            "/teams/7/users?name=Ann%20Lee&tags=a%26b&tags=c&kind=Retail&active=false&since=2024-01-02"
        )
