"""Dispatcher configuration.

DispatchConfig is a frozen dataclass — immutable after creation,
IDE-autocompletable, no string-key dict lookups.
"""

from collections.abc import Iterable
from dataclasses import dataclass, fields

from waypoint.errors import ConfigurationError

DEFAULT_COMPLETION_TIMEOUT = 0.3


@dataclass(frozen=True, slots=True)
class DispatchConfig:
    """Dispatcher configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = DispatchConfig(
            whitelist_hosts={"shop.example"},
            excluded_schemes={"http", "https"},
        )

    Set fields accept any iterable of strings and are stored as
    lowercased frozensets, matching how links are parsed.
    """

    # Filter sets (see waypoint.filtering for precedence)
    whitelist_schemes: frozenset[str] = frozenset()
    whitelist_hosts: frozenset[str] = frozenset()
    blacklist_schemes: frozenset[str] = frozenset()
    blacklist_hosts: frozenset[str] = frozenset()
    excluded_schemes: frozenset[str] = frozenset()
    excluded_hosts: frozenset[str] = frozenset()

    # Seconds a plugin gets to signal completion when it declares no timeout
    completion_timeout: float = DEFAULT_COMPLETION_TIMEOUT

    def __post_init__(self) -> None:
        for f in fields(self):
            if f.name.endswith(("_schemes", "_hosts")):
                object.__setattr__(self, f.name, _as_frozenset(f.name, getattr(self, f.name)))
        if self.completion_timeout < 0:
            msg = f"completion_timeout must be >= 0, got {self.completion_timeout!r}"
            raise ConfigurationError(msg)


def _as_frozenset(name: str, value: Iterable[str]) -> frozenset[str]:
    if isinstance(value, str):
        # A bare string would silently become a set of characters
        msg = f"{name} must be a collection of strings, not a single string {value!r}"
        raise ConfigurationError(msg)
    # Links carry lowercased hosts and schemes
    return frozenset(item.lower() for item in value)
