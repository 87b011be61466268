"""Dispatch diagnostics.

Non-fatal configuration conflicts and handler failures found while
dispatching. Every diagnostic is logged on the ``waypoint.dispatch``
logger and delivered to the sinks registered with
``@dispatcher.on_diagnostic``::

    @dispatcher.on_diagnostic
    def record(diagnostic: Diagnostic) -> None:
        metrics.increment(f"deeplink.{diagnostic.kind.value}")
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from time import time
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from waypoint.links import Link


class DiagnosticKind(Enum):
    # More than one plugin accepted the link; the first registered wins
    MULTIPLE_PLUGINS = "multiple_plugins"
    # A decision named a barrier that is not registered
    UNKNOWN_BARRIER = "unknown_barrier"
    # The requested barrier is the mandatory barrier
    BARRIER_CONFLICT = "barrier_conflict"
    # A typed plugin could not decode its payload
    DECODE_FAILED = "decode_failed"
    # User code raised during a dispatch cycle
    HANDLER_FAILED = "handler_failed"


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """A structured, non-fatal dispatch problem."""

    kind: DiagnosticKind
    message: str
    link: Link | None = None
    details: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time)


type DiagnosticSink = Callable[[Diagnostic], None]
type Reporter = Callable[[Diagnostic], None]
