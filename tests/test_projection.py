"""Tests for perch.binding.projection — synthesized route-parameter types."""

import dataclasses
import datetime
import enum
import threading
from dataclasses import dataclass
from typing import Annotated
from uuid import UUID

import pytest

from perch.binding.conversion import convert
from perch.binding.parameters import extract_route_parameters
from perch.binding.projection import (
    ProjectionCache,
    bind_projection,
    projection_signature,
    synthesize,
)
from perch.binding.shape import Description, describe, fields
from perch.errors import NullValueError


@dataclass
class UpdateOrder:
    id: Annotated[int, Description("Order number")]
    note: str
    region: str | None = None
    version: int = 0


@dataclass
class OrderRoute:
    id: Annotated[int, Description("Order number")]


class TestSynthesize:
    def test_fields_mirror_descriptors(self) -> None:
        descriptors = extract_route_parameters("/orders/{id:int}", UpdateOrder)
        projection = synthesize("UpdateOrderRouteParameters", descriptors)

        assert projection.__name__ == "UpdateOrderRouteParameters"
        assert dataclasses.is_dataclass(projection)
        assert [f.name for f in fields(projection)] == ["id"]
        assert describe(projection, "id") == "Order number"

    def test_signature_matches_hand_written_type(self) -> None:
        descriptors = extract_route_parameters("/orders/{id:int}", UpdateOrder)
        projection = synthesize("Anything", descriptors)
        assert projection_signature(projection) == projection_signature(OrderRoute)

    def test_no_descriptors(self) -> None:
        projection = synthesize("Empty", [])
        assert fields(projection) == []
        assert projection() is not None

    @pytest.mark.parametrize("name", ["", "   "])
    def test_blank_name_rejected(self, name: str) -> None:
        with pytest.raises(ValueError, match="Type name must be provided"):
            synthesize(name, [])

    def test_optional_reference_type_widened(self) -> None:
        descriptors = extract_route_parameters("/orders/{id}/{region?}", UpdateOrder)
        projection = synthesize("P", descriptors)
        by_name = {f.name: f for f in fields(projection)}
        assert by_name["region"].annotation == (str | None)
        assert by_name["region"].has_default is True
        assert by_name["id"].has_default is False

    def test_optional_value_type_defaults_to_none(self) -> None:
        descriptors = extract_route_parameters("/orders/{id}/{version?}", UpdateOrder)
        projection = synthesize("P", descriptors)
        instance = bind_projection(projection, {"id": "3"})
        assert instance.version is None

    def test_fields_are_keyword_only(self) -> None:
        descriptors = extract_route_parameters("/orders/{id}", UpdateOrder)
        projection = synthesize("P", descriptors)
        with pytest.raises(TypeError):
            projection(1)


class TestBindProjection:
    def test_converts_values(self) -> None:
        descriptors = extract_route_parameters("/orders/{id:int}", UpdateOrder)
        projection = synthesize("P", descriptors)
        assert bind_projection(projection, {"ID": "42"}).id == 42

    def test_missing_required_value(self) -> None:
        descriptors = extract_route_parameters("/orders/{id:int}", UpdateOrder)
        projection = synthesize("P", descriptors)
        with pytest.raises(NullValueError):
            bind_projection(projection, {})

    def test_uuid_value(self) -> None:
        @dataclass
        class GetThing:
            key: UUID

        projection = synthesize("P", extract_route_parameters("/things/{key:guid}", GetThing))
        value = "6f9619ff-8b86-d011-b42d-00c04fc964ff"
        assert bind_projection(projection, {"key": value}).key == UUID(value)


class TestProjectionCache:
    def test_same_key_same_type(self) -> None:
        cache = ProjectionCache()
        descriptors = extract_route_parameters("/orders/{id}", UpdateOrder)
        first = cache.get_or_create("/orders/{id}", UpdateOrder, descriptors)
        second = cache.get_or_create("/orders/{id}", UpdateOrder, descriptors)
        assert first is second
        assert first.__name__ == "UpdateOrderRouteParameters"
        assert len(cache) == 1
        assert ("/orders/{id}", UpdateOrder) in cache

    def test_distinct_templates(self) -> None:
        cache = ProjectionCache()
        a = cache.get_or_create("/a/{id}", UpdateOrder, extract_route_parameters("/a/{id}", UpdateOrder))
        b = cache.get_or_create("/b/{id}", UpdateOrder, extract_route_parameters("/b/{id}", UpdateOrder))
        assert a is not b
        assert projection_signature(a) == projection_signature(b)

    def test_custom_suffix(self) -> None:
        cache = ProjectionCache()
        projection = cache.get_or_create("/x/{id}", UpdateOrder, [], suffix="Route")
        assert projection.__name__ == "UpdateOrderRoute"

    def test_concurrent_first_use_publishes_one_type(self) -> None:
        cache = ProjectionCache()
        descriptors = extract_route_parameters("/orders/{id}", UpdateOrder)
        barrier = threading.Barrier(8)
        results: list[type] = []
        lock = threading.Lock()

        def worker() -> None:
            barrier.wait()
            projection = cache.get_or_create("/orders/{id}", UpdateOrder, descriptors)
            with lock:
                results.append(projection)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(results) == 8
        assert all(r is results[0] for r in results)
        assert len(cache) == 1


class Shade(enum.Enum):
    Light = 1
    Dark = 2


@dataclass
class PaintRoom:
    room: int
    shade: Shade
    scheduled: datetime.date
    crew: UUID
    label: str


def test_bound_values_read_back_as_converted_raw_inputs() -> None:
    template = "/rooms/{room:int}/{shade}/{scheduled}/{crew:guid}/{label}"
    raw = {
        "room": "12",
        "shade": "Dark",
        "scheduled": "2024-06-01",
        "crew": "6f9619ff-8b86-d011-b42d-00c04fc964ff",
        "label": "north wall",
    }
    descriptors = extract_route_parameters(template, PaintRoom)
    projection = synthesize("PaintRoomRouteParameters", descriptors)

    instance = bind_projection(projection, raw)

    for descriptor in descriptors:
        expected = convert(raw[descriptor.name], descriptor.annotation)
        assert getattr(instance, descriptor.name) == expected
