"""Invoke helpers — call sync or async handlers uniformly.

Executors and handlers can be ``def`` or ``async def``. Any code that
calls a user-provided callable must handle both cases. This module keeps
the sync/async check in exactly one place.

Usage::

    from perch._internal.invoke import invoke, invoke_offloaded

    result = await invoke(handler, message)
    result = await invoke_offloaded(handler, message)  # sync runs in a worker thread
"""

import functools
import inspect
from typing import Any

import anyio.to_thread


async def invoke(handler: Any, *args: Any, **kwargs: Any) -> Any:
    """Call a handler and await the result if it's a coroutine."""
    result = handler(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result


async def invoke_offloaded(handler: Any, *args: Any, **kwargs: Any) -> Any:
    """Like ``invoke``, but a sync handler runs in an anyio worker thread.

    Coroutine functions are awaited on the event loop as usual.
    """
    if is_async_callable(handler):
        return await handler(*args, **kwargs)
    result = await anyio.to_thread.run_sync(functools.partial(handler, *args, **kwargs))
    if inspect.isawaitable(result):
        result = await result
    return result


def is_async_callable(obj: Any) -> bool:
    """True for coroutine functions and objects whose ``__call__`` is one."""
    while isinstance(obj, functools.partial):
        obj = obj.func
    if inspect.iscoroutinefunction(obj):
        return True
    call = getattr(obj, "__call__", None)  # noqa: B004
    return call is not None and inspect.iscoroutinefunction(call)
