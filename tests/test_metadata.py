"""Tests for perch.metadata — route decorators and manifests."""

from dataclasses import dataclass

from perch.messages import Command, PatchCommand, Query
from perch.metadata import (
    Endpoint,
    Manifest,
    RouteMetadata,
    delete,
    from_parameters,
    get,
    is_from_parameters,
    patch,
    put,
    routes_of,
)


@get("/items/{id}", summary="Fetch an item", tags=["items"], name="item")
@dataclass
class GetItem(Query[dict]):
    id: int


@put("/items/{id}")
@patch("/items/{id}", description="Partial update")
@dataclass
class UpdateItem(PatchCommand):
    id: int
    name: str = ""


@delete("/items/{id}", exclude_from_description=True)
@from_parameters
@dataclass
class DeleteItem(Command):
    id: int


@dataclass
class SpecialUpdate(UpdateItem):
    pass


@dataclass
class Undecorated(Command):
    pass


class TestDecorators:
    def test_metadata_recorded(self) -> None:
        assert routes_of(GetItem) == (
            RouteMetadata(verb="GET", route="/items/{id}", summary="Fetch an item", name="item", tags=("items",)),
        )

    def test_stacked_decorators_innermost_first(self) -> None:
        verbs = [m.verb for m in routes_of(UpdateItem)]
        assert verbs == ["PATCH", "PUT"]
        assert routes_of(UpdateItem)[0].description == "Partial update"

    def test_options(self) -> None:
        (metadata,) = routes_of(DeleteItem)
        assert metadata.exclude_from_description is True

    def test_routes_not_inherited(self) -> None:
        assert routes_of(SpecialUpdate) == ()

    def test_from_parameters(self) -> None:
        assert is_from_parameters(DeleteItem) is True
        assert is_from_parameters(UpdateItem) is False

    def test_decorator_names(self) -> None:
        assert get.__name__ == "get"
        assert delete.__name__ == "delete"


class TestManifest:
    def test_endpoints_in_order(self) -> None:
        manifest = Manifest(GetItem, UpdateItem, Undecorated)
        assert [(e.message_type, e.metadata.verb) for e in manifest.endpoints()] == [
            (GetItem, "GET"),
            (UpdateItem, "PATCH"),
            (UpdateItem, "PUT"),
        ]

    def test_add_deduplicates(self) -> None:
        manifest = Manifest(GetItem)
        manifest.add(GetItem, DeleteItem)
        assert manifest.types == (GetItem, DeleteItem)
        assert len(manifest) == 2

    def test_include(self) -> None:
        manifest = Manifest(GetItem)
        manifest.include(Manifest(DeleteItem, GetItem))
        assert list(manifest) == [GetItem, DeleteItem]

    def test_endpoint_value(self) -> None:
        (endpoint,) = Manifest(DeleteItem).endpoints()
        assert endpoint == Endpoint(message_type=DeleteItem, metadata=routes_of(DeleteItem)[0])
