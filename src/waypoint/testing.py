"""Test doubles for waypoint dispatchers.

``RecordingPlugin`` and ``StubBarrier`` stand in for real plugins and
barriers so host applications can test their dispatcher wiring without
UI or network::

    recorder = RecordingPlugin(accepts=lambda link: link.host == "product")
    dispatcher.install(recorder)

    async with dispatcher:
        dispatcher.submit("shop://product/42?ref=mail")
        await dispatcher.join()

    assert recorder.handled_params == [{"ref": "mail"}]
"""

import json
from collections.abc import Callable
from typing import Any

import anyio

from waypoint.barriers import BarrierStatus
from waypoint.decisions import SKIP, Accept, AcceptWithBarrier, Decision
from waypoint.links import Link
from waypoint.plugins import OnComplete


class RecordingPlugin:
    """A plugin that records what it is asked and given.

    Accepts links for which *accepts* returns True (all links by
    default), optionally behind *barrier*. The payload is *payload* if
    given, else the link's query parameters as JSON.

    With ``auto_complete=False`` the plugin keeps its ``on_complete``
    callbacks in ``callbacks`` instead of calling them, to simulate a
    handler that finishes late or never.
    """

    def __init__(
        self,
        name: str = "recorder",
        *,
        accepts: Callable[[Link], bool] | None = None,
        barrier: str | None = None,
        payload: bytes | None = None,
        auto_complete: bool = True,
        completion_timeout: float | None = None,
    ) -> None:
        self.name = name
        self.accepts = accepts or (lambda _link: True)
        self.barrier = barrier
        self.payload = payload
        self.auto_complete = auto_complete
        self.completion_timeout = completion_timeout
        self.asked: list[Link] = []
        self.handled: list[bytes | None] = []
        self.callbacks: list[OnComplete] = []

    def should_handle(self, link: Link) -> Decision:
        self.asked.append(link)
        if not self.accepts(link):
            return SKIP
        payload = self.payload if self.payload is not None else link.query_payload()
        if self.barrier is not None:
            return AcceptWithBarrier(self.barrier, payload)
        return Accept(payload)

    def handle(self, payload: bytes | None, on_complete: OnComplete) -> None:
        self.handled.append(payload)
        if self.auto_complete:
            on_complete()
        else:
            self.callbacks.append(on_complete)

    @property
    def handled_params(self) -> list[dict[str, Any]]:
        """Handled payloads decoded from JSON (``{}`` for empty payloads)."""
        return [json.loads(p) if p else {} for p in self.handled]

    def complete_all(self) -> None:
        """Call every held ``on_complete`` callback."""
        callbacks, self.callbacks = self.callbacks, []
        for callback in callbacks:
            callback()


class StubBarrier:
    """A barrier with a fixed status and check result.

    Counts ``perform_check`` calls in ``checks`` and records the links
    it checked. *delay* makes the check take that many seconds.
    """

    def __init__(
        self,
        name: str,
        *,
        passed: bool = False,
        result: bool = True,
        delay: float = 0.0,
    ) -> None:
        self.name = name
        self.passed = passed
        self.result = result
        self.delay = delay
        self.checks = 0
        self.checked: list[Link] = []

    def status(self, link: Link) -> BarrierStatus:
        return BarrierStatus.PASSED if self.passed else BarrierStatus.NEEDS_CHECK

    async def perform_check(self, link: Link) -> bool:
        self.checks += 1
        self.checked.append(link)
        if self.delay:
            await anyio.sleep(self.delay)
        return self.result
