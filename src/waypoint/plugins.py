"""Plugins — the handlers a dispatcher routes links to.

A plugin is any object matching the ``Plugin`` protocol. No base class
required; the dispatcher checks the shape, not the lineage::

    class ProductPlugin:
        def should_handle(self, link: Link) -> Decision:
            if link.host != "product":
                return SKIP
            return Accept.with_params({"id": link.path[0]})

        def handle(self, payload: bytes | None, on_complete: Callable[[], object]) -> None:
            open_product(json.loads(payload))
            on_complete()

Two base classes cover the common shapes:

- ``PathPlugin`` implements ``should_handle`` from a path template.
- ``TypedPlugin`` decodes the payload into a dataclass before handling.

``handle`` must call ``on_complete`` exactly once, now or later. If it
never does, the dispatcher moves on after ``completion_timeout``
seconds. ``handle`` may also be ``async def``; the coroutine then runs
as its own task and still races the timeout.
"""

from __future__ import annotations

import typing
from collections.abc import Awaitable, Callable
from functools import lru_cache
from typing import Any, ClassVar, Protocol

from waypoint.barriers import BarrierRef
from waypoint.decisions import SKIP, Accept, AcceptWithBarrier, Decision, Skip
from waypoint.extraction import decode_payload
from waypoint.links import Link
from waypoint.routing.template import PathSegment, match_template, merge_parameters, parse_template

type OnComplete = Callable[[], object]


class Plugin(Protocol):
    """Protocol for dispatcher plugins.

    ``completion_timeout`` is optional; plugins without it (or with
    ``None``) get ``DispatchConfig.completion_timeout``.
    """

    def should_handle(self, link: Link) -> Decision: ...

    def handle(self, payload: bytes | None, on_complete: OnComplete) -> None | Awaitable[None]: ...


def plugin_name(plugin: object) -> str:
    name = getattr(plugin, "name", None)
    if isinstance(name, str) and name:
        return name
    return type(plugin).__name__


@lru_cache(maxsize=256)
def _segments(template: str) -> tuple[PathSegment, ...]:
    return parse_template(template)


class PathPlugin:
    """A plugin that claims links whose path fits a template.

    Captured segments are merged with the link's query parameters
    (captures win on collision) and passed to ``handle`` as a JSON
    payload::

        class ProductPlugin(PathPlugin):
            path = "/product/{id}"
            barrier = "login"

            def handle(self, payload, on_complete):
                params = json.loads(payload)   # {"id": "42", "ref": "mail"}
                ...
                on_complete()
    """

    path: ClassVar[str] = "/"
    barrier: ClassVar[BarrierRef | None] = None
    completion_timeout: float | None = None

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        # Fail at class definition for malformed templates
        _segments(cls.path)

    def should_handle(self, link: Link) -> Decision:
        captures = match_template(_segments(self.path), link.path)
        if captures is None:
            return SKIP
        params = merge_parameters(link.query, captures)
        if self.barrier is not None:
            return AcceptWithBarrier.with_params(self.barrier, params)
        return Accept.with_params(params)

    def handle(self, payload: bytes | None, on_complete: OnComplete) -> None | Awaitable[None]:
        raise NotImplementedError


class TypedPlugin[T]:
    """A plugin whose payload is a dataclass.

    ``should_handle_typed`` returns an instance of the payload type to
    accept the link, ``None`` to skip it, or any ``Decision`` (for
    example ``AcceptWithBarrier.with_params("login", params)``). The
    dispatcher decodes the payload back into the payload type before
    calling ``handle_typed``; a payload that does not decode skips the
    link with a ``DECODE_FAILED`` diagnostic::

        @dataclass
        class Product:
            id: int
            ref: str | None = None

        class ProductPlugin(TypedPlugin[Product]):
            def should_handle_typed(self, link):
                if link.host != "product":
                    return None
                return Product(id=int(link.path[0]), ref=link.query.get("ref"))

            def handle_typed(self, product, on_complete):
                open_product(product.id)
                on_complete()

    The payload type is taken from the ``TypedPlugin[...]`` base, or set
    it explicitly with ``payload_type = Product``.
    """

    payload_type: ClassVar[type[Any]]
    completion_timeout: float | None = None

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if "payload_type" in cls.__dict__:
            return
        for base in getattr(cls, "__orig_bases__", ()):
            if typing.get_origin(base) is TypedPlugin:
                (arg,) = typing.get_args(base)
                if isinstance(arg, type):
                    cls.payload_type = arg

    def should_handle_typed(self, link: Link) -> T | Decision | None:
        raise NotImplementedError

    def handle_typed(self, params: T, on_complete: OnComplete) -> None | Awaitable[None]:
        raise NotImplementedError

    def should_handle(self, link: Link) -> Decision:
        result = self.should_handle_typed(link)
        if result is None:
            return SKIP
        if isinstance(result, (Skip, Accept, AcceptWithBarrier)):
            return result
        return Accept.with_params(result)

    def decode(self, payload: bytes | None) -> T:
        """Decode *payload* into the payload type.

        Raises ``PayloadDecodeError`` if it does not fit.
        """
        return decode_payload(self.payload_type, payload)

    def handle(self, payload: bytes | None, on_complete: OnComplete) -> None | Awaitable[None]:
        return self.handle_typed(self.decode(payload), on_complete)
