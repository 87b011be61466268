"""Calling user code that may or may not be a coroutine.

Plugin ``handle``, barrier ``perform_check`` and the not-found callback
can each be ``def`` or ``async def``. ``returns_awaitable`` tells the two
apart after the call; ``invoke`` awaits only when the call produced
something to await::

    passed = await invoke(barrier.perform_check, link)
"""

import inspect
from collections.abc import Awaitable, Callable
from typing import Any, TypeGuard


def returns_awaitable(result: object) -> TypeGuard[Awaitable[Any]]:
    return inspect.isawaitable(result)


async def invoke[R](func: Callable[..., R | Awaitable[R]], *args: Any) -> R:
    """Call *func* with *args* and await the result if it is awaitable."""
    result = func(*args)
    if returns_awaitable(result):
        return await result
    return result
