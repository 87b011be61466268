"""Completion governor — every handled link finishes, exactly once.

Once a plugin's ``handle`` is called, two producers race to finish the
dispatch cycle:

1. the plugin calling ``on_complete``
2. the plugin's ``completion_timeout`` elapsing

Both write to one single-assignment ``Completion``. The first write
releases the link; the second is a no-op, so a plugin completing long
after its timeout cannot advance the queue twice.
"""

import logging
import threading
from collections.abc import Awaitable, Callable
from typing import Any

import anyio
from anyio.abc import TaskGroup

from waypoint._internal.invoke import returns_awaitable
from waypoint.diagnostics import Diagnostic, DiagnosticKind, Reporter
from waypoint.errors import PayloadDecodeError
from waypoint.links import Link
from waypoint.plugins import Plugin, plugin_name

logger = logging.getLogger("waypoint.dispatch")


class Completion:
    """Single-assignment completion flag for one dispatch cycle.

    ``settle()`` runs *on_settle* the first time it is called and
    returns ``True``; later calls return ``False`` and do nothing.
    """

    __slots__ = ("_done", "_lock", "_on_settle", "_settled")

    def __init__(self, on_settle: Callable[[], None]) -> None:
        self._on_settle = on_settle
        self._settled = False
        self._lock = threading.Lock()
        self._done = anyio.Event()

    @property
    def settled(self) -> bool:
        return self._settled

    def settle(self) -> bool:
        with self._lock:
            if self._settled:
                return False
            self._settled = True
        self._done.set()
        self._on_settle()
        return True

    async def wait(self, timeout: float) -> bool:
        """Wait up to *timeout* seconds. Return ``True`` if settled."""
        with anyio.move_on_after(timeout):
            await self._done.wait()
        return self._settled


def completion_timeout(plugin: Plugin, default: float) -> float:
    timeout = getattr(plugin, "completion_timeout", None)
    return default if timeout is None else float(timeout)


class CompletionGovernor:
    """Run a plugin's ``handle`` and guarantee its cycle settles.

    Coroutines returned by ``handle`` are started in *task_group* so the
    timeout races them rather than waiting for them. Each runs in its own
    cancel scope; ``cancel_handlers`` stops the ones that outlive their
    cycle, which the dispatcher does on shutdown.
    """

    __slots__ = ("_default_timeout", "_handlers", "_report", "_task_group")

    def __init__(self, task_group: TaskGroup, *, default_timeout: float, report: Reporter) -> None:
        self._task_group = task_group
        self._default_timeout = default_timeout
        self._report = report
        # One scope per handler coroutine still running
        self._handlers: set[anyio.CancelScope] = set()

    @property
    def running_handlers(self) -> int:
        return len(self._handlers)

    def cancel_handlers(self) -> int:
        """Cancel every handler coroutine still running. Return how many."""
        scopes = list(self._handlers)
        for scope in scopes:
            scope.cancel()
        return len(scopes)

    async def run(
        self,
        plugin: Plugin,
        payload: bytes | None,
        completion: Completion,
        link: Link,
    ) -> None:
        timeout = completion_timeout(plugin, self._default_timeout)
        try:
            result = plugin.handle(payload, completion.settle)
        except Exception as exc:
            self._fail(exc, plugin, completion, link)
            return

        if returns_awaitable(result):
            self._task_group.start_soon(self._drive, result, plugin, completion, link)

        if not await completion.wait(timeout):
            logger.info(
                "%s did not complete %s within %.3fs; moving on",
                plugin_name(plugin), link, timeout,
            )
            completion.settle()

    async def _drive(
        self,
        awaitable: Awaitable[Any],
        plugin: Plugin,
        completion: Completion,
        link: Link,
    ) -> None:
        with anyio.CancelScope() as scope:
            self._handlers.add(scope)
            try:
                await awaitable
            except Exception as exc:
                self._fail(exc, plugin, completion, link)
            finally:
                self._handlers.discard(scope)
        if scope.cancelled_caught:
            logger.debug("Cancelled %s still handling %s", plugin_name(plugin), link)
            completion.settle()

    def _fail(self, exc: Exception, plugin: Plugin, completion: Completion, link: Link) -> None:
        name = plugin_name(plugin)
        if isinstance(exc, PayloadDecodeError):
            self._report(
                Diagnostic(
                    DiagnosticKind.DECODE_FAILED,
                    f"{name} could not decode the payload for {link}: {exc}",
                    link,
                    {"plugin": name},
                )
            )
        else:
            logger.exception("%s failed handling %s", name, link)
            self._report(
                Diagnostic(
                    DiagnosticKind.HANDLER_FAILED,
                    f"{name} raised {type(exc).__name__} handling {link}",
                    link,
                    {"plugin": name, "error": repr(exc)},
                )
            )
        completion.settle()
