"""Tests for perch.binding.parameters — route and query descriptor extraction."""

import enum
from dataclasses import dataclass
from typing import Annotated
from uuid import UUID

import pytest

from perch.binding.parameters import (
    ParameterSource,
    cached_parameters,
    extract_all_parameters,
    extract_query_parameters,
    extract_route_parameters,
    is_optional_query_type,
)
from perch.binding.shape import Description
from perch.errors import RouteParameterMismatchError


class Status(enum.Enum):
    Active = 1
    Closed = 2


@dataclass
class GetOrders:
    customer_id: Annotated[UUID, Description("Owning customer")]
    status: Status | None = None
    page: int = 1
    search: str = ""


@dataclass
class DateRange:
    start: str
    end: str


class TestRouteParameters:
    def test_descriptor_per_token(self) -> None:
        params = extract_route_parameters("/customers/{customer_id:guid}/orders", GetOrders)
        assert len(params) == 1
        descriptor = params[0]
        assert descriptor.name == "customer_id"
        assert descriptor.annotation is UUID
        assert descriptor.description == "Owning customer"
        assert descriptor.constraint == "guid"
        assert descriptor.is_optional is False
        assert descriptor.source is ParameterSource.ROUTE

    def test_token_matches_case_insensitively(self) -> None:
        params = extract_route_parameters("/c/{CUSTOMER_ID}", GetOrders)
        assert params[0].name == "customer_id"

    def test_optional_token(self) -> None:
        params = extract_route_parameters("/orders/{page?}", GetOrders)
        assert params[0].is_optional is True

    def test_mismatch_raises(self) -> None:
        with pytest.raises(RouteParameterMismatchError) as exc_info:
            extract_route_parameters("/orders/{orderId}", GetOrders)
        assert exc_info.value.parameter == "orderId"
        assert exc_info.value.type_name == "GetOrders"
        assert str(exc_info.value) == (
            "Route parameter 'orderId' does not match any property in type 'GetOrders'."
        )

    def test_no_tokens(self) -> None:
        assert extract_route_parameters("/orders", GetOrders) == []


class TestQueryParameters:
    def test_remaining_fields(self) -> None:
        params = extract_query_parameters(GetOrders, "customer_id")
        assert [p.name for p in params] == ["status", "page", "search"]
        assert all(p.source is ParameterSource.QUERY for p in params)
        assert all(p.constraint is None for p in params)

    def test_exclusion_is_case_insensitive(self) -> None:
        params = extract_query_parameters(GetOrders, "CUSTOMER_ID", "Page")
        assert [p.name for p in params] == ["status", "search"]

    def test_optionality(self) -> None:
        by_name = {p.name: p for p in extract_query_parameters(GetOrders)}
        assert by_name["status"].is_optional is True
        assert by_name["page"].is_optional is False
        assert by_name["search"].is_optional is True
        assert by_name["customer_id"].is_optional is False

    def test_containers_and_classes_are_optional(self) -> None:
        @dataclass
        class SearchOrders:
            tags: list[str]
            window: DateRange
            name: str
            page: int

        optional = {p.name: p.is_optional for p in extract_query_parameters(SearchOrders)}
        assert optional == {"tags": True, "window": True, "name": True, "page": False}


class TestAllParameters:
    def test_route_first_then_query(self) -> None:
        params = extract_all_parameters("/customers/{customer_id}/orders", GetOrders)
        assert [(p.name, p.source) for p in params] == [
            ("customer_id", ParameterSource.ROUTE),
            ("status", ParameterSource.QUERY),
            ("page", ParameterSource.QUERY),
            ("search", ParameterSource.QUERY),
        ]

    def test_cached(self) -> None:
        first = cached_parameters("/customers/{customer_id}", GetOrders)
        second = cached_parameters("/customers/{customer_id}", GetOrders)
        assert first is second
        assert [p.name for p in first.all] == ["customer_id", "status", "page", "search"]


class TestOptionalQueryType:
    @pytest.mark.parametrize(
        ("annotation", "expected"),
        [
            (int, False),
            (int | None, True),
            (str, True),
            (str | None, True),
            (Status, False),
            (Status | None, True),
            (UUID, False),
            (list[str], True),
            (dict[str, int], True),
            (DateRange, True),
            (bytes, True),
        ],
    )
    def test_structural_optionality(self, annotation: object, expected: bool) -> None:
        assert is_optional_query_type(annotation) is expected
