"""Link value type and parsing.

A ``Link`` is the parsed form of a deep link URL: scheme, host, path
segments, and query parameters. Links are immutable and compare by
value, which is what the dispatcher uses to drop duplicate submissions.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from urllib.parse import parse_qsl, quote, unquote, urlencode, urlsplit, urlunsplit

from waypoint.errors import LinkParseError


class QueryParams(Mapping[str, str]):
    """Immutable, hashable query string parameters.

    When a key repeats in the query string the last value wins. Equality
    ignores insertion order, so ``?a=1&b=2`` equals ``?b=2&a=1``.
    """

    _data: dict[str, str]

    __slots__ = ("_data",)

    def __init__(self, items: Mapping[str, str] | Iterable[tuple[str, str]] = ()) -> None:
        object.__setattr__(self, "_data", dict(items))

    @classmethod
    def parse(cls, query_string: str) -> QueryParams:
        """Parse a raw ``a=1&b=2`` query string."""
        return cls(parse_qsl(query_string, keep_blank_values=True))

    def __getitem__(self, key: str) -> str:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, QueryParams):
            return self._data == other._data
        if isinstance(other, Mapping):
            return self._data == dict(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(frozenset(self._data.items()))

    def __setattr__(self, name: str, value: object) -> None:
        msg = "QueryParams is immutable"
        raise AttributeError(msg)

    def __repr__(self) -> str:
        items = ", ".join(f"{k!r}: {v!r}" for k, v in self._data.items())
        return f"QueryParams({{{items}}})"

    def encode(self) -> str:
        """Return the parameters as a query string (without ``?``)."""
        return urlencode(self._data)


@dataclass(frozen=True, slots=True)
class Link:
    """A parsed deep link.

    Usage::

        link = Link.parse("shop://product/42?ref=mail")
        link.scheme   # "shop"
        link.host     # "product"
        link.path     # ("42",)
        link.query    # QueryParams({'ref': 'mail'})
    """

    scheme: str
    host: str = ""
    path: tuple[str, ...] = ()
    query: QueryParams = field(default_factory=QueryParams)

    def __post_init__(self) -> None:
        if not self.scheme:
            msg = "A link needs a scheme"
            raise LinkParseError(msg)
        if not isinstance(self.path, tuple):
            object.__setattr__(self, "path", tuple(self.path))
        if not isinstance(self.query, QueryParams):
            object.__setattr__(self, "query", QueryParams(self.query))

    @classmethod
    def parse(cls, url: str) -> Link:
        """Parse a URL string into a Link.

        Raises ``LinkParseError`` if the URL has no scheme.
        """
        return parse_link(url)

    def query_payload(self) -> bytes | None:
        """Return the query parameters as JSON bytes, or ``None`` if empty."""
        if not self.query:
            return None
        return json.dumps(dict(self.query)).encode()

    def __str__(self) -> str:
        path = "/".join(quote(segment, safe="") for segment in self.path)
        if path:
            path = "/" + path
        return urlunsplit((self.scheme, self.host, path, self.query.encode(), ""))


def parse_link(url: str) -> Link:
    """Parse a URL string into a ``Link``.

    The host is lowercased. Path segments are percent-decoded and empty
    segments are dropped, so ``shop://product//42/`` has path ``("42",)``
    under host ``product``.

    Raises ``LinkParseError`` if *url* has no scheme.
    """
    try:
        parts = urlsplit(url.strip())
    except ValueError as exc:
        msg = f"Cannot parse link {url!r}: {exc}"
        raise LinkParseError(msg) from exc

    if not parts.scheme:
        msg = f"Link {url!r} has no scheme"
        raise LinkParseError(msg)

    segments = tuple(unquote(p) for p in parts.path.split("/") if p)
    return Link(
        scheme=parts.scheme,
        host=parts.hostname or "",
        path=segments,
        query=QueryParams.parse(parts.query),
    )
