"""Last-resort responder for navigations that could not be resolved."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from offlinekit.errors import ErrorCode, OfflineKitError
from offlinekit.keys import make_key, resolve_url

if TYPE_CHECKING:
    from offlinekit.cache import CacheStorage
    from offlinekit.models.http import InterceptedRequest, Response

log = structlog.get_logger()


class OfflineFallback:
    """Serves the precached fallback document from its own named cache."""

    def __init__(self, storage: CacheStorage, cache_name: str, url: str) -> None:
        self._storage = storage
        self.cache_name = cache_name
        self.url = url

    @property
    def key(self) -> str:
        return make_key("GET", self.url)

    def handles(self, request: InterceptedRequest, error: OfflineKitError) -> bool:
        # Only navigations fall back; asset failures surface to the host as-is.
        return request.is_navigation and error.code is ErrorCode.NETWORK_FAILURE

    async def respond(self, request: InterceptedRequest) -> Response:
        cache = await self._storage.open(self.cache_name)
        entry = await cache.match(self.key)
        if entry is None:
            log.error("no_fallback_available", url=request.url, fallback=self.url)
            raise OfflineKitError(
                ErrorCode.NO_FALLBACK_AVAILABLE,
                f"Offline and no fallback document cached for {request.url}",
            )
        log.info("serving_offline_fallback", url=request.url, fallback=self.url)
        return entry.to_response()

    @classmethod
    def for_origin(
        cls, storage: CacheStorage, cache_name: str, origin: str, url: str
    ) -> OfflineFallback:
        return cls(storage, cache_name, resolve_url(origin, url))
