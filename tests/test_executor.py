"""Tests for perch.executor — the handler registry executor."""

import threading
from dataclasses import dataclass
from typing import Any

import pytest

from perch.errors import ConfigurationError
from perch.executor import Executor, HandlerRegistry
from perch.messages import Command, Query


@dataclass
class Lookup(Query[str]):
    key: str


@dataclass
class SpecialLookup(Lookup):
    pass


@dataclass
class Store(Command):
    key: str


class TestRegistration:
    def test_add_and_lookup(self) -> None:
        registry = HandlerRegistry()
        registry.add(Lookup, lambda query: query.key)
        assert Lookup in registry
        assert Store not in registry
        assert len(registry) == 1

    def test_decorator(self) -> None:
        registry = HandlerRegistry()

        @registry.handles(Lookup)
        def lookup(query: Lookup) -> str:
            return query.key

        assert registry.handler_for(Lookup) is lookup

    def test_duplicate_rejected(self) -> None:
        registry = HandlerRegistry()
        registry.add(Lookup, lambda query: None)
        with pytest.raises(ConfigurationError, match="already registered"):
            registry.add(Lookup, lambda query: None)

    def test_handler_must_take_message(self) -> None:
        registry = HandlerRegistry()
        with pytest.raises(ConfigurationError, match="must accept the message"):
            registry.add(Lookup, lambda: None)

    def test_subclass_uses_base_handler(self) -> None:
        registry = HandlerRegistry()
        registry.add(Lookup, lambda query: query.key)
        assert SpecialLookup in registry

    def test_is_an_executor(self) -> None:
        assert isinstance(HandlerRegistry(), Executor)


class TestExecute:
    async def test_sync_handler(self) -> None:
        registry = HandlerRegistry()
        registry.add(Lookup, lambda query: query.key.upper())
        assert await registry.execute(Lookup("abc")) == "ABC"

    async def test_async_handler(self) -> None:
        registry = HandlerRegistry()

        @registry.handles(Lookup)
        async def lookup(query: Lookup) -> str:
            return f"<{query.key}>"

        assert await registry.execute(Lookup("k"), None) == "<k>"

    async def test_cancel_passed_when_accepted(self) -> None:
        registry = HandlerRegistry()
        seen: list[Any] = []

        @registry.handles(Store)
        async def store(command: Store, cancel: Any) -> None:
            seen.append(cancel)

        token = object()
        await registry.execute(Store("k"), token)
        assert seen == [token]

    async def test_most_specific_handler_wins(self) -> None:
        registry = HandlerRegistry()
        registry.add(Lookup, lambda query: "base")
        registry.add(SpecialLookup, lambda query: "special")
        assert await registry.execute(SpecialLookup("k")) == "special"
        assert await registry.execute(Lookup("k")) == "base"

    async def test_unregistered_type(self) -> None:
        with pytest.raises(ConfigurationError, match="No handler registered for message type 'Store'"):
            await HandlerRegistry().execute(Store("k"))

    async def test_bound_method_handler(self) -> None:
        class Service:
            def __init__(self) -> None:
                self.stored: list[str] = []

            def store(self, command: Store) -> None:
                self.stored.append(command.key)

        service = Service()
        registry = HandlerRegistry()
        registry.add(Store, service.store)
        await registry.execute(Store("k"))
        assert service.stored == ["k"]


class TestOffload:
    async def test_sync_handler_inline_by_default(self) -> None:
        registry = HandlerRegistry()
        registry.add(Lookup, lambda query: threading.get_ident())
        assert await registry.execute(Lookup("k")) == threading.get_ident()

    async def test_sync_handler_runs_in_worker_thread(self) -> None:
        registry = HandlerRegistry(offload_sync=True)
        registry.add(Lookup, lambda query: threading.get_ident())
        assert await registry.execute(Lookup("k")) != threading.get_ident()

    async def test_per_call_override(self) -> None:
        registry = HandlerRegistry()
        registry.add(Store, lambda command, cancel: threading.get_ident())
        assert await registry.execute(Store("k"), None, offload_sync=True) != threading.get_ident()

    async def test_async_handler_stays_on_loop(self) -> None:
        registry = HandlerRegistry(offload_sync=True)

        @registry.handles(Lookup)
        async def lookup(query: Lookup) -> int:
            return threading.get_ident()

        assert await registry.execute(Lookup("k")) == threading.get_ident()
