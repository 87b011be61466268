"""Link admission filter.

A pure function over the scheme and host sets in ``DispatchConfig``.
Rules are evaluated in strict precedence order, first match wins:

1. Excluded scheme or host       -> ``REJECT`` (dropped silently)
2. Blacklisted scheme            -> ``FORBID``
3. Blacklisted host              -> ``FORBID``
4. Scheme outside the whitelist  -> ``FORBID``
5. Host outside the whitelist    -> ``FORBID``
6. Otherwise                     -> ``ALLOW``

Empty blacklist and whitelist sets are inactive. Schemes and hosts
compare case-insensitively.
"""

from enum import Enum

from waypoint.config import DispatchConfig
from waypoint.links import Link


class Admission(Enum):
    """Outcome of running a link through the filter."""

    REJECT = "reject"
    FORBID = "forbid"
    ALLOW = "allow"


def admit(link: Link, config: DispatchConfig) -> Admission:
    """Decide whether *link* may enter the dispatch queue."""
    scheme, host = link.scheme.lower(), link.host.lower()

    if scheme in config.excluded_schemes or host in config.excluded_hosts:
        return Admission.REJECT

    if config.blacklist_schemes and scheme in config.blacklist_schemes:
        return Admission.FORBID
    if config.blacklist_hosts and host in config.blacklist_hosts:
        return Admission.FORBID

    if config.whitelist_schemes and scheme not in config.whitelist_schemes:
        return Admission.FORBID
    if config.whitelist_hosts and host not in config.whitelist_hosts:
        return Admission.FORBID

    return Admission.ALLOW
