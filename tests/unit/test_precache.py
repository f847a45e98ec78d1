"""Unit tests for offlinekit.precache."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest
import respx

from offlinekit.errors import ErrorCode, OfflineKitError
from offlinekit.precache import PrecacheLoader

if TYPE_CHECKING:
    from offlinekit.cache import CacheStorage
    from offlinekit.fetcher import Fetcher

ORIGIN = "https://app.example.com"
MANIFEST = ["/", "/index.html", "/css/style.css", "/js/main.js"]


def _mock_manifest(
    respx_mock: respx.MockRouter,
    broken: str | None = None,
    outcome: httpx.Response | Exception | None = None,
) -> None:
    for path in MANIFEST:
        route = respx_mock.get(f"{ORIGIN}{path}")
        if path != broken:
            route.mock(return_value=httpx.Response(200, text=f"body of {path}"))
        elif isinstance(outcome, Exception):
            route.mock(side_effect=outcome)
        else:
            route.mock(return_value=outcome)


class TestPrecacheLoader:
    async def test_install_stores_every_resource(
        self, storage: CacheStorage, fetcher: Fetcher
    ) -> None:
        loader = PrecacheLoader(storage, fetcher, ORIGIN)
        with respx.mock() as respx_mock:
            _mock_manifest(respx_mock)
            written = await loader.install({"precache-v1": MANIFEST})

        assert written == len(MANIFEST)
        cache = await storage.open("precache-v1")
        entry = await cache.match(f"GET {ORIGIN}/css/style.css")
        assert entry is not None
        assert entry.body == b"body of /css/style.css"

    async def test_install_is_idempotent(self, storage: CacheStorage, fetcher: Fetcher) -> None:
        loader = PrecacheLoader(storage, fetcher, ORIGIN)
        with respx.mock() as respx_mock:
            _mock_manifest(respx_mock)
            await loader.install({"precache-v1": MANIFEST})
            cache = await storage.open("precache-v1")
            first = await cache.keys()
            await loader.install({"precache-v1": MANIFEST})
            second = await cache.keys()

        assert first == second
        assert len(second) == len(MANIFEST)

    async def test_duplicate_urls_collapse(self, storage: CacheStorage, fetcher: Fetcher) -> None:
        loader = PrecacheLoader(storage, fetcher, ORIGIN)
        with respx.mock() as respx_mock:
            route = respx_mock.get(f"{ORIGIN}/").mock(return_value=httpx.Response(200, text="home"))
            written = await loader.install({"precache-v1": ["/", f"{ORIGIN}/", "/#top"]})

        assert written == 1
        assert route.call_count == 1

    async def test_network_failure_fails_whole_install(
        self, storage: CacheStorage, fetcher: Fetcher
    ) -> None:
        loader = PrecacheLoader(storage, fetcher, ORIGIN)
        with respx.mock(assert_all_called=False) as respx_mock:
            _mock_manifest(respx_mock, "/js/main.js", httpx.ConnectError("offline"))
            with pytest.raises(OfflineKitError) as exc_info:
                await loader.install({"precache-v1": MANIFEST})

        assert exc_info.value.code == ErrorCode.PRECACHE_FETCH_FAILED
        assert await storage.has("precache-v1") is False

    async def test_error_status_fails_whole_install(
        self, storage: CacheStorage, fetcher: Fetcher
    ) -> None:
        loader = PrecacheLoader(storage, fetcher, ORIGIN)
        with respx.mock(assert_all_called=False) as respx_mock:
            _mock_manifest(respx_mock, "/index.html", httpx.Response(404))
            respx_mock.get(f"{ORIGIN}/offline.html").mock(return_value=httpx.Response(200))
            with pytest.raises(OfflineKitError) as exc_info:
                await loader.install(
                    {"precache-v1": MANIFEST, "offline-fallback": ["/offline.html"]}
                )

        assert exc_info.value.code == ErrorCode.PRECACHE_FETCH_FAILED
        assert await storage.names() == []

    async def test_multiple_caches_in_one_install(
        self, storage: CacheStorage, fetcher: Fetcher
    ) -> None:
        loader = PrecacheLoader(storage, fetcher, ORIGIN)
        with respx.mock() as respx_mock:
            _mock_manifest(respx_mock)
            respx_mock.get(f"{ORIGIN}/offline.html").mock(
                return_value=httpx.Response(200, text="You are offline")
            )
            written = await loader.install(
                {"precache-v1": MANIFEST, "offline-fallback": ["/offline.html"]}
            )

        assert written == len(MANIFEST) + 1
        fallback = await storage.open("offline-fallback")
        assert await fallback.keys() == [f"GET {ORIGIN}/offline.html"]

    async def test_any_success_status_accepted(
        self, storage: CacheStorage, fetcher: Fetcher
    ) -> None:
        """Any 2xx is accepted for the trusted manifest; the runtime allow-list does not apply."""
        loader = PrecacheLoader(storage, fetcher, ORIGIN)
        with respx.mock() as respx_mock:
            respx_mock.get(f"{ORIGIN}/empty").mock(return_value=httpx.Response(204))
            written = await loader.install({"precache-v1": ["/empty"]})
        assert written == 1
