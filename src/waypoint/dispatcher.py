"""The deep link dispatcher.

Mutable during setup (plugins, barriers, callbacks). Frozen when it
starts running. Links are handled one at a time in arrival order::

    dispatcher = Dispatcher(DispatchConfig(whitelist_schemes={"shop"}))
    dispatcher.install(ProductPlugin(), CartPlugin())
    dispatcher.install_barrier(LoginBarrier())
    dispatcher.mandatory_barrier(ConsentBarrier(), where=lambda link: link.host != "help")

    @dispatcher.not_found
    def unknown(link: Link) -> None:
        toast(f"Cannot open {link}")

    async with dispatcher:
        dispatcher.submit("shop://app/product/42")
        await dispatcher.join()

Each dispatch cycle runs as one task: resolve the plugin, build and
check the gate, hand the payload over, and wait for completion or
timeout. Finishing a cycle removes its link from the queue and starts
the next one.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from functools import partial
from typing import Any

import anyio
from anyio.abc import TaskGroup

from waypoint._internal.invoke import invoke
from waypoint.barriers import Barrier, MandatoryBarrier, barrier_name, check_barrier, compose_barrier
from waypoint.config import DispatchConfig
from waypoint.decisions import decision_barrier, decision_payload
from waypoint.diagnostics import Diagnostic, DiagnosticKind, DiagnosticSink
from waypoint.errors import ConfigurationError, LinkParseError, NotStartedError
from waypoint.filtering import Admission, admit
from waypoint.governor import Completion, CompletionGovernor
from waypoint.links import Link, parse_link
from waypoint.plugins import Plugin, TypedPlugin, plugin_name
from waypoint.resolver import resolve

logger = logging.getLogger("waypoint.dispatch")

type LinkCallback = Callable[[Link], Any]


class Dispatcher:
    """Routes deep links to at most one plugin each, one link at a time.

    Queue state:
        ``pending`` holds every queued link in arrival order, including
        the active one until its cycle finishes. A link equal to one
        already pending is dropped, so resubmitting the active link
        does not queue it for a second pass.

    Shutdown:
        Leaving ``async with`` waits for the queue to drain, then cancels
        handler coroutines still running after their cycle finished (for
        example ones that hit their completion timeout and never return).

    Thread safety:
        A Lock guards the check-and-append in ``submit`` and the
        remove-and-advance when a cycle finishes. ``submit`` and the
        ``on_complete`` callbacks handed to plugins must run on the
        event loop thread; from other threads use
        ``anyio.from_thread.run_sync(dispatcher.submit, url)``.
    """

    __slots__ = (
        "_active",
        "_barriers",
        "_diagnostic_sinks",
        "_forbidden_handler",
        "_frozen",
        "_governor",
        "_idle_waiters",
        "_lock",
        "_mandatory",
        "_not_found_handler",
        "_pending",
        "_plugins",
        "_task_group",
        "config",
    )

    def __init__(self, config: DispatchConfig | None = None) -> None:
        self.config: DispatchConfig = config or DispatchConfig()
        self._plugins: list[Plugin] = []
        self._barriers: dict[str, Barrier] = {}
        self._mandatory: MandatoryBarrier | None = None
        self._not_found_handler: LinkCallback | None = None
        self._forbidden_handler: LinkCallback | None = None
        self._diagnostic_sinks: list[DiagnosticSink] = []
        self._frozen: bool = False

        # Runtime state, guarded by _lock
        self._lock = threading.Lock()
        self._pending: list[Link] = []
        self._active: Link | None = None
        self._idle_waiters: list[anyio.Event] = []

        # Set while running
        self._task_group: TaskGroup | None = None
        self._governor: CompletionGovernor | None = None

    # -- Setup --

    def install(self, *plugins: Plugin) -> None:
        """Register plugins. Earlier registrations are asked first."""
        self._check_not_frozen()
        for plugin in plugins:
            if not callable(getattr(plugin, "should_handle", None)) or not callable(
                getattr(plugin, "handle", None)
            ):
                msg = f"{plugin!r} is not a plugin: it needs should_handle() and handle()"
                raise ConfigurationError(msg)
            if isinstance(plugin, TypedPlugin) and not hasattr(plugin, "payload_type"):
                msg = (
                    f"{plugin_name(plugin)} has no payload type. "
                    "Subclass TypedPlugin[YourDataclass] or set payload_type."
                )
                raise ConfigurationError(msg)
            self._plugins.append(plugin)

    def install_barrier(self, *barriers: Barrier) -> None:
        """Register barriers that decisions can refer to by name."""
        self._check_not_frozen()
        for barrier in barriers:
            name = barrier_name(barrier)
            if name in self._barriers:
                logger.warning("Barrier %r registered twice; the last one wins", name)
            self._barriers[name] = barrier

    def mandatory_barrier(
        self,
        barrier: Barrier,
        *,
        where: Callable[[Link], bool] | None = None,
    ) -> None:
        """Gate every link *where* accepts (all links by default) behind *barrier*.

        Calling it again replaces the previous mandatory barrier.
        """
        self._check_not_frozen()
        if where is None:
            self._mandatory = MandatoryBarrier(barrier)
        else:
            self._mandatory = MandatoryBarrier(barrier, where)

    def not_found(self, func: LinkCallback) -> LinkCallback:
        """Register the callback for links no plugin handles (sync or async)."""
        self._check_not_frozen()
        self._not_found_handler = func
        return func

    def forbidden(self, func: LinkCallback) -> LinkCallback:
        """Register the callback for links the filter forbids.

        Runs synchronously inside ``submit``.
        """
        self._check_not_frozen()
        self._forbidden_handler = func
        return func

    def on_diagnostic(self, func: DiagnosticSink) -> DiagnosticSink:
        """Register a sink for dispatch diagnostics."""
        self._check_not_frozen()
        self._diagnostic_sinks.append(func)
        return func

    # -- Introspection --

    @property
    def plugins(self) -> tuple[Plugin, ...]:
        return tuple(self._plugins)

    @property
    def barriers(self) -> dict[str, Barrier]:
        return dict(self._barriers)

    @property
    def pending(self) -> tuple[Link, ...]:
        """Queued links in arrival order, the active link first."""
        with self._lock:
            return tuple(self._pending)

    @property
    def active(self) -> Link | None:
        """The link whose dispatch cycle is running, if any."""
        return self._active

    @property
    def running(self) -> bool:
        return self._task_group is not None

    # -- Lifecycle --

    async def __aenter__(self) -> Dispatcher:
        if self._task_group is not None:
            msg = "Dispatcher is already running"
            raise ConfigurationError(msg)
        self._frozen = True
        task_group = anyio.create_task_group()
        await task_group.__aenter__()
        self._task_group = task_group
        self._governor = CompletionGovernor(
            task_group,
            default_timeout=self.config.completion_timeout,
            report=self._report,
        )
        logger.debug(
            "Dispatcher started with %d plugins and %d barriers",
            len(self._plugins), len(self._barriers),
        )
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> bool | None:
        task_group = self._task_group
        assert task_group is not None
        if exc_type is None:
            task_group.start_soon(self._shut_down)
        try:
            return await task_group.__aexit__(exc_type, exc, tb)
        finally:
            self._task_group = None
            self._governor = None
            logger.debug("Dispatcher stopped")

    async def _shut_down(self) -> None:
        """Drain the queue, then cancel handlers that outlived their cycle."""
        await self.join()
        assert self._governor is not None
        stopped = self._governor.cancel_handlers()
        if stopped:
            logger.info("Cancelled %d handler task(s) still running after the queue drained", stopped)

    async def join(self) -> None:
        """Wait until no link is active or pending."""
        while True:
            with self._lock:
                if self._active is None and not self._pending:
                    return
                event = anyio.Event()
                self._idle_waiters.append(event)
            await event.wait()

    # -- Submission --

    def submit(self, link: Link | str) -> bool:
        """Submit a deep link for dispatch.

        Returns ``False`` only if *link* is a string without a scheme.
        Excluded, forbidden, and duplicate links are acknowledged with
        ``True`` but never reach a plugin.

        Raises ``NotStartedError`` if the dispatcher is not running.
        """
        if self._task_group is None:
            raise NotStartedError()

        if isinstance(link, str):
            raw = link
            try:
                link = parse_link(raw)
            except LinkParseError:
                logger.warning("Ignoring unparseable link %r", raw)
                return False

        admission = admit(link, self.config)
        if admission is Admission.REJECT:
            logger.debug("Excluded %s", link)
            return True
        if admission is Admission.FORBID:
            logger.info("Forbidden %s", link)
            self._call_forbidden(link)
            return True

        with self._lock:
            duplicate = link in self._pending
            if not duplicate:
                self._pending.append(link)

        if duplicate:
            logger.debug("%s is already queued", link)
        else:
            logger.debug("Queued %s", link)
            self._drain_if_idle()
        return True

    # -- Queue engine --

    def _drain_if_idle(self) -> None:
        """Start a cycle for the oldest pending link unless one is running."""
        task_group = self._task_group
        waiters: list[anyio.Event] = []
        link: Link | None = None

        with self._lock:
            if self._active is not None:
                return
            if not self._pending:
                waiters, self._idle_waiters = self._idle_waiters, []
            elif task_group is None or task_group.cancel_scope.cancel_called:
                return
            else:
                link = self._active = self._pending[0]

        if link is None:
            logger.debug("All deep links handled")
            for event in waiters:
                event.set()
            return

        assert task_group is not None
        task_group.start_soon(self._run_cycle, link)

    def _release(self, link: Link) -> None:
        """Finish the cycle of *link* and advance the queue."""
        with self._lock:
            self._pending.remove(link)
            self._active = None
        logger.debug("Finished %s", link)
        self._drain_if_idle()

    async def _run_cycle(self, link: Link) -> None:
        completion = Completion(partial(self._release, link))
        try:
            await self._dispatch(link, completion)
        except Exception as exc:
            logger.exception("Dispatching %s failed", link)
            self._report(
                Diagnostic(
                    DiagnosticKind.HANDLER_FAILED,
                    f"Dispatching {link} raised {type(exc).__name__}",
                    link,
                    {"error": repr(exc)},
                )
            )
        finally:
            completion.settle()

    async def _dispatch(self, link: Link, completion: Completion) -> None:
        resolution = resolve(link, self._plugins, report=self._report)
        if resolution is None:
            logger.info("No plugin handles %s", link)
            if self._not_found_handler is not None:
                await invoke(self._not_found_handler, link)
            return

        gate = compose_barrier(
            link,
            decision_barrier(resolution.decision),
            registry=self._barriers,
            mandatory=self._mandatory,
            report=self._report,
        )
        if gate is not None and not await check_barrier(gate, link):
            logger.info("Barrier %s rejected %s", barrier_name(gate), link)
            return

        assert self._governor is not None
        payload = decision_payload(resolution.decision)
        await self._governor.run(resolution.plugin, payload, completion, link)

    # -- Callbacks --

    def _call_forbidden(self, link: Link) -> None:
        if self._forbidden_handler is None:
            return
        try:
            self._forbidden_handler(link)
        except Exception as exc:
            logger.exception("Forbidden handler failed for %s", link)
            self._report(
                Diagnostic(
                    DiagnosticKind.HANDLER_FAILED,
                    f"Forbidden handler raised {type(exc).__name__} for {link}",
                    link,
                    {"error": repr(exc)},
                )
            )

    def _report(self, diagnostic: Diagnostic) -> None:
        logger.warning("%s", diagnostic.message)
        for sink in self._diagnostic_sinks:
            try:
                sink(diagnostic)
            except Exception:
                logger.exception("Diagnostic sink %r failed", sink)

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the dispatcher after it has started. "
                "Install plugins, barriers, and callbacks before `async with dispatcher:`."
            )
            raise ConfigurationError(msg)
