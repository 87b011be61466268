"""Barriers — asynchronous approval gates in front of a plugin.

A barrier reports a cheap synchronous ``status`` and, when that says
``NEEDS_CHECK``, runs ``perform_check`` which resolves to ``True`` to let
the link through or ``False`` to drop it::

    class LoginBarrier:
        name = "login"

        def status(self, link: Link) -> BarrierStatus:
            return BarrierStatus.PASSED if session.user else BarrierStatus.NEEDS_CHECK

        async def perform_check(self, link: Link) -> bool:
            return await show_login_sheet()

A gate is either a single barrier or a ``CompoundBarrier`` of two gates.
The dispatcher builds at most one gate per link with ``compose_barrier``:
the mandatory barrier (when its predicate holds) combined with the
barrier the winning plugin asked for.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from waypoint._internal.invoke import invoke
from waypoint.diagnostics import Diagnostic, DiagnosticKind, Reporter
from waypoint.links import Link

logger = logging.getLogger("waypoint.barriers")


class BarrierStatus(Enum):
    PASSED = "passed"
    NEEDS_CHECK = "needs_check"


class Barrier(Protocol):
    """Protocol for barriers.

    ``name`` identifies the barrier in the registry and in decisions.
    ``perform_check`` may be sync or async and returns a bool.
    """

    name: str

    def status(self, link: Link) -> BarrierStatus: ...

    def perform_check(self, link: Link) -> bool | Awaitable[bool]: ...


# A barrier given by name, instance, or class
type BarrierRef = str | Barrier | type


def barrier_name(ref: BarrierRef) -> str:
    """Return the registry name for a barrier name, instance, or class.

    Barriers without a string ``name`` attribute are named after their class.
    """
    if isinstance(ref, str):
        return ref
    name = getattr(ref, "name", None)
    if isinstance(name, str) and name:
        return name
    if isinstance(ref, type):
        return ref.__name__
    return type(ref).__name__


@dataclass(frozen=True, slots=True)
class CompoundBarrier:
    """Two gates that must both pass, checked first then second.

    ``status`` is ``PASSED`` only if both gates report ``PASSED``.
    ``perform_check`` stops at the first gate that fails.
    """

    first: Gate
    second: Gate

    @property
    def name(self) -> str:
        return f"{barrier_name(self.first)}+{barrier_name(self.second)}"

    def status(self, link: Link) -> BarrierStatus:
        if (
            self.first.status(link) is BarrierStatus.PASSED
            and self.second.status(link) is BarrierStatus.PASSED
        ):
            return BarrierStatus.PASSED
        return BarrierStatus.NEEDS_CHECK

    async def perform_check(self, link: Link) -> bool:
        if not await check_barrier(self.first, link):
            return False
        return await check_barrier(self.second, link)


type Gate = Barrier | CompoundBarrier


@dataclass(frozen=True, slots=True)
class MandatoryBarrier:
    """A barrier that gates every link its predicate accepts.

    Independent of which plugin wins the link.
    """

    barrier: Barrier
    applies: Callable[[Link], bool] = lambda _link: True

    def for_link(self, link: Link) -> Barrier | None:
        return self.barrier if self.applies(link) else None


async def check_barrier(gate: Gate, link: Link) -> bool:
    """Evaluate *gate* for *link*.

    ``PASSED`` lets the link through without a check; otherwise the
    result of ``perform_check`` decides.
    """
    if gate.status(link) is BarrierStatus.PASSED:
        return True
    passed = bool(await invoke(gate.perform_check, link))
    if not passed:
        logger.debug("Barrier %s rejected %s", barrier_name(gate), link)
    return passed


def compose_barrier(
    link: Link,
    requested: str | None,
    *,
    registry: Mapping[str, Barrier],
    mandatory: MandatoryBarrier | None,
    report: Reporter,
) -> Gate | None:
    """Build the effective gate for one dispatch of *link*.

    - no mandatory barrier applies: the requested barrier (or no gate)
    - nothing requested: the mandatory barrier
    - both, same name: the mandatory barrier alone
    - both, different names: ``CompoundBarrier(mandatory, requested)``

    A requested name missing from *registry* is reported and falls back
    to the mandatory barrier alone.
    """
    required = mandatory.for_link(link) if mandatory is not None else None

    wanted: Barrier | None = None
    if requested is not None:
        wanted = registry.get(requested)
        if wanted is None:
            report(
                Diagnostic(
                    DiagnosticKind.UNKNOWN_BARRIER,
                    f"Barrier {requested!r} is not registered; "
                    "only the mandatory barrier (if any) will be checked",
                    link,
                    {"barrier": requested},
                )
            )

    if required is None:
        return wanted
    if wanted is None:
        return required

    if barrier_name(required) == barrier_name(wanted):
        report(
            Diagnostic(
                DiagnosticKind.BARRIER_CONFLICT,
                f"Barrier {requested!r} conflicts with the mandatory barrier; "
                "the mandatory barrier will be checked once",
                link,
                {"barrier": barrier_name(wanted)},
            )
        )
        return required

    logger.debug(
        "Combining mandatory barrier %s with %s for %s",
        barrier_name(required), barrier_name(wanted), link,
    )
    return CompoundBarrier(first=required, second=wanted)
