"""Unit tests for offlinekit.policies."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import pytest

from offlinekit.models.cache import CacheEntry
from offlinekit.models.http import Response
from offlinekit.policies import ExpirationPolicy, admit, cacheable_status

if TYPE_CHECKING:
    from offlinekit.cache import CacheStorage

THIRTY_DAYS = 2_592_000


def _entry(url: str, age_seconds: int, now: datetime) -> CacheEntry:
    return CacheEntry(
        key=f"GET {url}",
        url=url,
        status=200,
        body=b"x",
        stored_at=now - timedelta(seconds=age_seconds),
    )


class TestCacheableStatus:
    @pytest.mark.parametrize("status", [0, 200])
    def test_admits_allowed(self, status: int) -> None:
        response = Response(status=status)
        assert cacheable_status()(response) is response

    @pytest.mark.parametrize("status", [201, 204, 301, 304, 404, 500, 503])
    def test_rejects_everything_else(self, status: int) -> None:
        assert cacheable_status()(Response(status=status)) is None

    def test_custom_statuses(self) -> None:
        only_204 = cacheable_status([204])
        assert only_204(Response(status=204)) is not None
        assert only_204(Response(status=200)) is None


class TestAdmit:
    def test_empty_chain_admits(self) -> None:
        response = Response(status=500)
        assert admit(response, []) is response

    def test_runs_filters_in_order(self) -> None:
        def tag(response: Response) -> Response:
            return response.model_copy(update={"headers": {"x-seen": "1"}})

        admitted = admit(Response(status=200), [tag, cacheable_status()])
        assert admitted is not None
        assert admitted.headers == {"x-seen": "1"}

    def test_stops_at_first_rejection(self) -> None:
        seen: list[int] = []

        def record(response: Response) -> Response:
            seen.append(response.status)
            return response

        assert admit(Response(status=404), [cacheable_status(), record]) is None
        assert seen == []


class TestExpirationPolicy:
    def test_boundary_is_exclusive(self) -> None:
        now = datetime.now(UTC)
        policy = ExpirationPolicy(THIRTY_DAYS)
        assert policy.is_expired(_entry("https://a/", THIRTY_DAYS, now), now) is False
        assert policy.is_expired(_entry("https://a/", THIRTY_DAYS + 1, now), now) is True

    def test_ten_days_is_fresh(self) -> None:
        now = datetime.now(UTC)
        entry = _entry("https://a/", 10 * 24 * 60 * 60, now)
        assert ExpirationPolicy(THIRTY_DAYS).is_expired(entry, now) is False

    def test_no_max_age_never_expires(self) -> None:
        now = datetime.now(UTC)
        entry = _entry("https://a/", 10 * THIRTY_DAYS, now)
        assert ExpirationPolicy(None).is_expired(entry, now) is False

    async def test_prune_removes_only_expired(self, storage: CacheStorage) -> None:
        now = datetime.now(UTC)
        cache = await storage.open("page-cache")
        await cache.put(_entry("https://a/old", THIRTY_DAYS + 1, now))
        await cache.put(_entry("https://a/new", 60, now))

        removed = await ExpirationPolicy(THIRTY_DAYS).prune(cache, now)

        assert removed == 1
        assert await cache.keys() == ["GET https://a/new"]

    async def test_prune_without_max_age_is_noop(self, storage: CacheStorage) -> None:
        now = datetime.now(UTC)
        cache = await storage.open("asset-cache")
        await cache.put(_entry("https://a/old", 10 * THIRTY_DAYS, now))
        assert await ExpirationPolicy(None).prune(cache, now) == 0
        assert len(await cache.keys()) == 1
