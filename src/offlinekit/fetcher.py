"""Network access for intercepted requests.

Only transport problems (DNS, refused connection, timeout, ...) are failures
here; any HTTP status, including 4xx and 5xx, comes back as a ``Response``.
Deciding whether such a response may be cached is the strategies' job.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import structlog

from offlinekit.errors import ErrorCode, OfflineKitError
from offlinekit.models.http import Response

if TYPE_CHECKING:
    from offlinekit.config import FetcherSettings
    from offlinekit.models.http import InterceptedRequest

log = structlog.get_logger()

# httpx has already decoded and fully read the body, so these no longer
# describe what we store and replay.
_STRIP_HEADERS = frozenset({"content-encoding", "content-length", "transfer-encoding"})


def build_http_client(settings: FetcherSettings | None = None) -> httpx.AsyncClient:
    """Create the shared httpx client used for every network fetch."""
    if settings is None:
        from offlinekit.config import FetcherSettings

        settings = FetcherSettings()
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.timeout_seconds),
        follow_redirects=settings.follow_redirects,
        headers={"User-Agent": settings.user_agent},
    )


def _to_response(response: httpx.Response) -> Response:
    headers = {
        name.lower(): value
        for name, value in response.headers.items()
        if name.lower() not in _STRIP_HEADERS
    }
    return Response(
        url=str(response.url),
        status=response.status_code,
        headers=headers,
        body=response.content,
    )


class Fetcher:
    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def fetch(self, request: InterceptedRequest) -> Response:
        """Send ``request`` to the network.

        Raises ``OfflineKitError(NETWORK_FAILURE)`` when no response could be
        obtained at all.
        """
        try:
            response = await self._client.request(
                request.method,
                request.url,
                headers=request.headers or None,
                content=request.body,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            log.warning("network_fetch_failed", url=request.url, error=str(exc))
            raise OfflineKitError(
                ErrorCode.NETWORK_FAILURE,
                f"Network request to {request.url} failed: {exc}",
                recoverable=True,
            ) from exc
        log.debug("network_fetch", url=request.url, status=response.status_code)
        return _to_response(response)
