"""Plugin decisions.

A plugin answers ``should_handle(link)`` with one of three frozen
variants::

    SKIP                                   # not mine
    Accept(payload)                        # mine, run me
    AcceptWithBarrier("login", payload)    # mine, once the "login" gate passes

Payloads are opaque bytes. The ``with_params`` constructors encode a
mapping or a dataclass instance as JSON, which is what ``PathPlugin``
and ``TypedPlugin`` consume.
"""

from __future__ import annotations

import dataclasses
import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from waypoint.barriers import BarrierRef, barrier_name


@dataclass(frozen=True, slots=True)
class Skip:
    """The plugin does not handle the link."""


@dataclass(frozen=True, slots=True)
class Accept:
    """The plugin handles the link with *payload*."""

    payload: bytes | None = None

    @classmethod
    def with_params(cls, params: Mapping[str, Any] | Any | None) -> Accept:
        """Accept with *params* encoded as a JSON payload."""
        return cls(encode_payload(params))


@dataclass(frozen=True, slots=True)
class AcceptWithBarrier:
    """The plugin handles the link once the named barrier passes."""

    barrier: str
    payload: bytes | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.barrier, str):
            object.__setattr__(self, "barrier", barrier_name(self.barrier))

    @classmethod
    def with_params(
        cls,
        barrier: BarrierRef,
        params: Mapping[str, Any] | Any | None,
    ) -> AcceptWithBarrier:
        """Accept behind *barrier* with *params* encoded as a JSON payload.

        *barrier* may be a name, a barrier instance, or a barrier class.
        """
        return cls(barrier_name(barrier), encode_payload(params))


type Decision = Skip | Accept | AcceptWithBarrier

SKIP = Skip()


def encode_payload(params: Mapping[str, Any] | Any | None) -> bytes | None:
    """Encode a mapping or dataclass instance as JSON bytes.

    ``None`` stays ``None``.
    """
    if params is None:
        return None
    if dataclasses.is_dataclass(params) and not isinstance(params, type):
        params = dataclasses.asdict(params)
    return json.dumps(params).encode()


def decision_barrier(decision: Decision) -> str | None:
    """Return the barrier name a decision asks for, if any."""
    if isinstance(decision, AcceptWithBarrier):
        return decision.barrier
    return None


def decision_payload(decision: Decision) -> bytes | None:
    if isinstance(decision, Skip):
        return None
    return decision.payload
