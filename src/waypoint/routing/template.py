"""Path templates for path-matching plugins.

A template is a ``/``-separated path where ``{name}`` segments capture
the link segment at the same position::

    "/product/{id}"   matches  shop://host/product/42  ->  {"id": "42"}

Matching is positional and exact in length: no wildcards, no optional
segments. Empty segments are ignored on both sides.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from waypoint.errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class PathSegment:
    """A parsed segment of a path template.

    Static:  ``/product``  (is_param=False)
    Param:   ``/{id}``     (is_param=True, param_name="id")
    """

    value: str
    is_param: bool = False
    param_name: str | None = None


def parse_template(template: str) -> tuple[PathSegment, ...]:
    """Parse a path template string into segments.

    Examples::

        "/product"       -> (PathSegment("product"),)
        "/product/{id}"  -> (PathSegment("product"), PathSegment("{id}", is_param=True, ...))
        "/"              -> ()

    Raises ``ConfigurationError`` for a capture without a name or with
    unbalanced braces.
    """
    segments: list[PathSegment] = []
    for part in template.split("/"):
        if not part:
            continue
        if part.startswith("{") and part.endswith("}"):
            name = part[1:-1].strip()
            if not name:
                msg = f"Empty capture name in path template {template!r}"
                raise ConfigurationError(msg)
            segments.append(PathSegment(value=part, is_param=True, param_name=name))
        elif "{" in part or "}" in part:
            msg = (
                f"Malformed segment {part!r} in path template {template!r}. "
                "A capture must fill a whole segment, e.g. /product/{id}."
            )
            raise ConfigurationError(msg)
        else:
            segments.append(PathSegment(value=part))
    return tuple(segments)


def match_template(
    segments: Sequence[PathSegment],
    path: Sequence[str],
) -> dict[str, str] | None:
    """Match link *path* segments against parsed template *segments*.

    Returns the captured parameters, or ``None`` if the path does not fit.
    """
    if len(segments) != len(path):
        return None

    captures: dict[str, str] = {}
    for segment, value in zip(segments, path, strict=True):
        if segment.is_param:
            captures[segment.param_name or ""] = value
        elif segment.value != value:
            return None
    return captures


def merge_parameters(
    query: Mapping[str, str],
    captures: Mapping[str, str],
) -> dict[str, str]:
    """Merge query parameters with path captures.

    Path captures win on key collision.
    """
    return {**query, **captures}
