"""Waypoint — serial deep link dispatch with pluggable handlers and approval gates.

Links are filtered, queued, and handed to at most one plugin each, one
at a time, in arrival order. Barriers can hold a link until an
asynchronous approval (login, consent, onboarding) passes.

Basic usage::

    from waypoint import Dispatcher, PathPlugin

    class ProductPlugin(PathPlugin):
        path = "/product/{id}"

        def handle(self, payload, on_complete):
            show_product(json.loads(payload)["id"])
            on_complete()

    dispatcher = Dispatcher()
    dispatcher.install(ProductPlugin())

    async with dispatcher:
        dispatcher.submit("shop://app/product/42")
"""

__version__ = "0.1.0-dev"
__all__ = [
    "SKIP",
    "Accept",
    "AcceptWithBarrier",
    "Barrier",
    "BarrierStatus",
    "CompoundBarrier",
    "ConfigurationError",
    "Decision",
    "Diagnostic",
    "DiagnosticKind",
    "DispatchConfig",
    "Dispatcher",
    "Link",
    "LinkParseError",
    "NotStartedError",
    "PathPlugin",
    "PayloadDecodeError",
    "Plugin",
    "Skip",
    "TypedPlugin",
    "WaypointError",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import waypoint`` fast while providing a clean top-level API.
    """
    if name == "Dispatcher":
        from waypoint.dispatcher import Dispatcher

        return Dispatcher

    if name == "DispatchConfig":
        from waypoint.config import DispatchConfig

        return DispatchConfig

    if name == "Link":
        from waypoint.links import Link

        return Link

    if name in ("SKIP", "Accept", "AcceptWithBarrier", "Decision", "Skip"):
        from waypoint import decisions as _decisions

        return getattr(_decisions, name)

    if name in ("Plugin", "PathPlugin", "TypedPlugin"):
        from waypoint import plugins as _plugins

        return getattr(_plugins, name)

    if name in ("Barrier", "BarrierStatus", "CompoundBarrier"):
        from waypoint import barriers as _barriers

        return getattr(_barriers, name)

    if name in ("Diagnostic", "DiagnosticKind"):
        from waypoint import diagnostics as _diagnostics

        return getattr(_diagnostics, name)

    if name in (
        "ConfigurationError",
        "LinkParseError",
        "NotStartedError",
        "PayloadDecodeError",
        "WaypointError",
    ):
        from waypoint import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
