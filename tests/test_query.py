"""Tests for perch.http.query — immutable QueryParams."""

import pytest

from perch.http.query import QueryParams


class TestQueryParams:
    def test_getitem(self) -> None:
        q = QueryParams(b"q=hello&page=2")
        assert q["q"] == "hello"
        assert q["page"] == "2"

    def test_missing_key_raises(self) -> None:
        q = QueryParams(b"q=hello")
        with pytest.raises(KeyError):
            q["missing"]

    def test_contains(self) -> None:
        q = QueryParams(b"q=hello")
        assert "q" in q
        assert "missing" not in q

    def test_len_and_iter(self) -> None:
        q = QueryParams(b"a=1&b=2&c=3")
        assert len(q) == 3
        assert set(q) == {"a", "b", "c"}

    def test_get_with_default(self) -> None:
        q = QueryParams(b"q=hello")
        assert q.get("q") == "hello"
        assert q.get("missing") is None
        assert q.get("missing", "fallback") == "fallback"

    def test_get_list(self) -> None:
        q = QueryParams(b"tag=python&tag=rust&q=hello")
        assert q.get_list("tag") == ["python", "rust"]
        assert q.get_list("missing") == []

    def test_str_input(self) -> None:
        q = QueryParams("name=Ann%20Lee")
        assert q["name"] == "Ann Lee"
        assert q.raw == b"name=Ann%20Lee"

    def test_empty(self) -> None:
        q = QueryParams(b"")
        assert len(q) == 0
        assert list(q) == []

    def test_blank_value_preserved(self) -> None:
        assert QueryParams(b"flag=")["flag"] == ""

    def test_first_value_returned(self) -> None:
        assert QueryParams(b"x=first&x=second")["x"] == "first"

    def test_repr(self) -> None:
        assert "hello" in repr(QueryParams(b"q=hello"))
