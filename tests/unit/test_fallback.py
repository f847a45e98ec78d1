"""Unit tests for offlinekit.fallback."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest

from offlinekit.errors import ErrorCode, OfflineKitError
from offlinekit.fallback import OfflineFallback
from offlinekit.models.cache import CacheEntry
from offlinekit.models.http import InterceptedRequest

if TYPE_CHECKING:
    from offlinekit.cache import CacheStorage

ORIGIN = "https://app.example.com"


@pytest.fixture()
def fallback(storage: CacheStorage) -> OfflineFallback:
    return OfflineFallback.for_origin(storage, "offline-fallback", ORIGIN, "/offline.html")


class TestOfflineFallback:
    async def test_serves_cached_document(
        self, storage: CacheStorage, fallback: OfflineFallback, navigation: InterceptedRequest
    ) -> None:
        cache = await storage.open("offline-fallback")
        await cache.put(
            CacheEntry(
                key=f"GET {ORIGIN}/offline.html",
                url=f"{ORIGIN}/offline.html",
                status=200,
                body=b"<p>You are offline</p>",
                stored_at=datetime.now(UTC),
            )
        )
        response = await fallback.respond(navigation)
        assert response.body == b"<p>You are offline</p>"
        assert response.cached is True

    async def test_missing_document_raises(
        self, fallback: OfflineFallback, navigation: InterceptedRequest
    ) -> None:
        with pytest.raises(OfflineKitError) as exc_info:
            await fallback.respond(navigation)
        assert exc_info.value.code == ErrorCode.NO_FALLBACK_AVAILABLE
        assert exc_info.value.recoverable is False

    def test_handles_only_navigation_network_failures(
        self,
        fallback: OfflineFallback,
        navigation: InterceptedRequest,
        stylesheet: InterceptedRequest,
    ) -> None:
        network = OfflineKitError(ErrorCode.NETWORK_FAILURE, "offline", recoverable=True)
        other = OfflineKitError(ErrorCode.NO_FALLBACK_AVAILABLE, "nothing")
        assert fallback.handles(navigation, network) is True
        assert fallback.handles(stylesheet, network) is False
        assert fallback.handles(navigation, other) is False

    def test_key_uses_resolved_url(self, fallback: OfflineFallback) -> None:
        assert fallback.url == f"{ORIGIN}/offline.html"
        assert fallback.key == f"GET {ORIGIN}/offline.html"
