"""Plugin resolution — pick the one plugin that handles a link.

Every plugin is asked, in registration order. The first plugin that
does not skip wins. More than one taker is a configuration smell, not
an error: it is reported as a ``MULTIPLE_PLUGINS`` diagnostic and the
first registered plugin still handles the link.
"""

from collections.abc import Sequence
from dataclasses import dataclass

from waypoint.decisions import Accept, AcceptWithBarrier, Skip
from waypoint.diagnostics import Diagnostic, DiagnosticKind, Reporter
from waypoint.links import Link
from waypoint.plugins import Plugin, plugin_name


@dataclass(frozen=True, slots=True)
class Resolution:
    """The winning plugin and its decision for one link."""

    plugin: Plugin
    decision: Accept | AcceptWithBarrier


def resolve(link: Link, plugins: Sequence[Plugin], *, report: Reporter) -> Resolution | None:
    """Return the plugin that handles *link*, or ``None`` if none does."""
    candidates: list[Resolution] = []
    for plugin in plugins:
        decision = plugin.should_handle(link)
        if isinstance(decision, Skip):
            continue
        candidates.append(Resolution(plugin, decision))

    if not candidates:
        return None

    winner = candidates[0]
    if len(candidates) > 1:
        names = [plugin_name(c.plugin) for c in candidates]
        report(
            Diagnostic(
                DiagnosticKind.MULTIPLE_PLUGINS,
                f"{len(candidates)} plugins accept {link}; only {names[0]} will handle it",
                link,
                {"plugins": names},
            )
        )
    return winner
