"""Request keys: the stable identity used to store and look up cache entries.

A key is ``"<METHOD> <normalized url>"``. Normalization lowercases the scheme
and host, drops the scheme's default port, turns an empty path into ``/``,
drops the fragment and sorts query parameters by name. Both the read and
the write path go through :func:`request_key`, so the same logical request
always lands on the same row.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

if TYPE_CHECKING:
    from offlinekit.models.http import InterceptedRequest

_DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_url(url: str) -> str:
    parts = urlsplit(url.strip())
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    if ":" in host:
        host = f"[{host}]"  # IPv6 literal
    netloc = host
    if parts.port is not None and parts.port != _DEFAULT_PORTS.get(scheme):
        netloc = f"{host}:{parts.port}"
    path = parts.path or "/"
    # sorted() is stable, so repeated names keep their relative order
    query_pairs = sorted(parse_qsl(parts.query, keep_blank_values=True), key=lambda p: p[0])
    query = urlencode(query_pairs)
    return urlunsplit((scheme, netloc, path, query, ""))


def make_key(method: str, url: str) -> str:
    return f"{method.strip().upper()} {normalize_url(url)}"


def request_key(request: InterceptedRequest) -> str:
    return make_key(request.method, request.url)


def resolve_url(origin: str, url: str) -> str:
    """Resolve a manifest entry (``/index.html``) against the site origin."""
    return urljoin(origin.rstrip("/") + "/", url)
