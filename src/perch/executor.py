"""Executor protocol and a handler registry implementing it.

The dispatcher never runs business logic itself. It hands the bound
message to an *executor*, any object with an ``execute`` method::

    class Executor(Protocol):
        def execute(self, message, cancel) -> Any: ...

``execute`` may be sync or async. ``cancel`` is whatever the host passed
to the bound handler; perch forwards it without looking at it.

``HandlerRegistry`` is the executor most apps want: one handler per
message type, registered up front::

    registry = HandlerRegistry()

    @registry.handles(GetUser)
    async def get_user(query: GetUser) -> User: ...

    registry.add(CreateUser, create_user)  # (command) or (command, cancel)
"""

import inspect
import threading
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from perch._internal.invoke import invoke, invoke_offloaded
from perch.errors import ConfigurationError

# A message handler: (message) or (message, cancel), sync or async
type Handler = Callable[..., Any]


@runtime_checkable
class Executor(Protocol):
    """Runs a bound message and returns its result (queries) or ``None``."""

    def execute(self, message: Any, cancel: Any) -> Any: ...


class HandlerRegistry:
    """Executor dispatching each message to the handler registered for its type.

    Lookup walks the message type's MRO, so a handler registered for a
    base class serves its subclasses too.

    With ``offload_sync=True`` sync handlers run in an anyio worker thread
    instead of on the event loop. ``execute`` can override it per call,
    which is how the dispatcher applies ``BindingConfig.offload_sync_executors``.

    Thread safety:
        Registration takes a lock; lookups read a dict that is only
        ever extended.
    """

    __slots__ = ("_accepts_cancel", "_handlers", "_lock", "offload_sync")

    def __init__(self, *, offload_sync: bool = False) -> None:
        self._handlers: dict[type, Handler] = {}
        self._accepts_cancel: dict[type, bool] = {}
        self._lock = threading.Lock()
        self.offload_sync = offload_sync

    def add(self, message_type: type, handler: Handler) -> None:
        """Register *handler* for *message_type*.

        Raises ``ConfigurationError`` if the type already has a handler or
        the handler cannot take a message argument.
        """
        accepts_cancel = _accepts_cancel(handler)
        with self._lock:
            if message_type in self._handlers:
                msg = f"A handler for '{message_type.__name__}' is already registered."
                raise ConfigurationError(msg)
            self._handlers[message_type] = handler
            self._accepts_cancel[message_type] = accepts_cancel

    def handles(self, message_type: type) -> Callable[[Handler], Handler]:
        """Decorator form of ``add``."""

        def decorator(func: Handler) -> Handler:
            self.add(message_type, func)
            return func

        return decorator

    def handler_for(self, message_type: type) -> Handler | None:
        for klass in message_type.__mro__:
            handler = self._handlers.get(klass)
            if handler is not None:
                return handler
        return None

    def __contains__(self, message_type: object) -> bool:
        return isinstance(message_type, type) and self.handler_for(message_type) is not None

    def __len__(self) -> int:
        return len(self._handlers)

    async def execute(self, message: Any, cancel: Any = None, *, offload_sync: bool | None = None) -> Any:
        """Run the handler registered for ``type(message)``.

        *offload_sync* overrides the registry default for this call.
        Raises ``ConfigurationError`` when no handler is registered.
        """
        offload = self.offload_sync if offload_sync is None else offload_sync
        run = invoke_offloaded if offload else invoke
        message_type = type(message)
        for klass in message_type.__mro__:
            handler = self._handlers.get(klass)
            if handler is None:
                continue
            if self._accepts_cancel[klass]:
                return await run(handler, message, cancel)
            return await run(handler, message)

        msg = f"No handler registered for message type '{message_type.__name__}'."
        raise ConfigurationError(msg)


def _accepts_cancel(handler: Handler) -> bool:
    """Whether *handler* takes a second (cancel) positional argument."""
    try:
        sig = inspect.signature(handler)
    except (TypeError, ValueError):
        return False

    positional = 0
    for param in sig.parameters.values():
        if param.kind is param.VAR_POSITIONAL:
            return True
        if param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD):
            positional += 1

    if positional == 0:
        msg = f"Handler {handler!r} must accept the message as its first argument."
        raise ConfigurationError(msg)
    return positional >= 2
