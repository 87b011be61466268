"""Waypoint exception hierarchy.

Shared across the dispatcher, plugins, and barriers so every module
raises and catches the same types.
"""


class WaypointError(Exception):
    """Base for all waypoint-specific errors."""


class ConfigurationError(WaypointError):
    """Raised when dispatcher configuration is invalid.

    Typically raised during setup or when the dispatcher freezes at start.
    """


class NotStartedError(ConfigurationError):
    """Raised when a link is submitted to a dispatcher that is not running."""

    def __init__(self, detail: str = "") -> None:
        super().__init__(
            detail
            or "Dispatcher is not running. Use `async with dispatcher:` before submitting links."
        )


class LinkParseError(WaypointError, ValueError):
    """Raised when a raw string cannot be parsed into a Link."""


class PayloadDecodeError(WaypointError):
    """Raised when a typed plugin cannot decode its payload.

    Non-fatal: the dispatcher reports it and moves on to the next link.
    """
