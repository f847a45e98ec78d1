"""Install-time precaching.

Every URL of every manifest is fetched concurrently. The install step waits
for all of them. A single failed fetch, or a non-2xx status, fails the whole
step before anything is written. On success the entries are committed in one
transaction, so a precache is either complete or absent. No admission filter
is applied, because the manifest is trusted.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from offlinekit.errors import ErrorCode, OfflineKitError
from offlinekit.keys import request_key, resolve_url
from offlinekit.models.cache import CacheEntry
from offlinekit.models.http import InterceptedRequest

if TYPE_CHECKING:
    from offlinekit.cache import CacheStorage
    from offlinekit.models.http import Response
    from offlinekit.protocols import NetworkProtocol

log = structlog.get_logger()


class PrecacheLoader:
    def __init__(self, storage: CacheStorage, network: NetworkProtocol, origin: str) -> None:
        self._storage = storage
        self._network = network
        self._origin = origin

    def requests_for(self, urls: Sequence[str]) -> dict[str, InterceptedRequest]:
        """Map request keys to requests; duplicate URLs collapse to one key."""
        requests: dict[str, InterceptedRequest] = {}
        for url in urls:
            request = InterceptedRequest(url=resolve_url(self._origin, url), method="GET")
            requests.setdefault(request_key(request), request)
        return requests

    async def install(self, manifests: Mapping[str, Sequence[str]]) -> int:
        """Fetch and store every manifest, keyed by cache name, atomically.

        Returns the number of entries written. Raises ``OfflineKitError`` with
        ``PRECACHE_FETCH_FAILED`` (or ``CACHE_WRITE_FAILED``) on failure.
        """
        planned = {name: self.requests_for(urls) for name, urls in manifests.items()}
        jobs = [
            (name, key, request)
            for name, requests in planned.items()
            for key, request in requests.items()
        ]
        log.info("precache_started", caches=list(planned), resources=len(jobs))

        # Wait for every fetch, even after one fails, so none is left running.
        results = await asyncio.gather(
            *(self._fetch(request) for _, _, request in jobs), return_exceptions=True
        )
        for result in results:
            if isinstance(result, BaseException):
                log.error("precache_failed", error=str(result))
                raise result

        stored_at = datetime.now(UTC)
        batches: dict[str, list[CacheEntry]] = {name: [] for name in planned}
        for (name, key, _), response in zip(jobs, results, strict=True):
            batches[name].append(CacheEntry.from_response(key, response, stored_at=stored_at))

        written = await self._storage.put_all(batches)
        log.info("precache_complete", caches=list(planned), entries=written)
        return written

    async def _fetch(self, request: InterceptedRequest) -> Response:
        try:
            response = await self._network.fetch(request)
        except OfflineKitError as exc:
            raise OfflineKitError(
                ErrorCode.PRECACHE_FETCH_FAILED,
                f"Precache fetch of {request.url} failed: {exc.message}",
                recoverable=True,
            ) from exc
        if not response.ok:
            raise OfflineKitError(
                ErrorCode.PRECACHE_FETCH_FAILED,
                f"Precache fetch of {request.url} returned HTTP {response.status}",
                recoverable=True,
            )
        return response
