"""Read-through caching strategies.

Both strategies receive the target ``NamedCache`` on every call and share
the same read path (expired entries are deleted and count as a miss) and
write path (the admission filter chain runs before every put, then expired
entries of that cache are pruned).

Cache-first never touches the network while a fresh entry exists.
Stale-while-revalidate answers from the cache immediately and refreshes the
entry in a detached task; ``settle()`` waits for those tasks.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING, ClassVar

import structlog

from offlinekit.errors import OfflineKitError
from offlinekit.keys import request_key
from offlinekit.models.cache import CacheEntry
from offlinekit.policies import ExpirationPolicy, ResponseFilter, admit, cacheable_status

if TYPE_CHECKING:
    from offlinekit.cache import NamedCache
    from offlinekit.models.http import InterceptedRequest, Response
    from offlinekit.protocols import NetworkProtocol

log = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Strategy(ABC):
    name: ClassVar[str]

    def __init__(
        self,
        network: NetworkProtocol,
        *,
        response_filters: Sequence[ResponseFilter] | None = None,
        expiration: ExpirationPolicy | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._network = network
        self.response_filters = (
            list(response_filters) if response_filters is not None else [cacheable_status()]
        )
        self.expiration = expiration or ExpirationPolicy()
        self._clock = clock

    @abstractmethod
    async def handle(self, request: InterceptedRequest, cache: NamedCache) -> Response:
        """Produce a response for ``request`` or raise ``OfflineKitError``."""

    async def _lookup(self, cache: NamedCache, key: str) -> CacheEntry | None:
        entry = await cache.match(key)
        if entry is None:
            log.debug("cache_miss", strategy=self.name, cache=cache.name, key=key)
            return None
        if self.expiration.is_expired(entry, self._clock()):
            log.info("cache_entry_expired", cache=cache.name, key=key)
            await cache.delete(key)
            return None
        log.debug("cache_hit", strategy=self.name, cache=cache.name, key=key)
        return entry

    async def _fetch_and_store(
        self, request: InterceptedRequest, cache: NamedCache, key: str
    ) -> Response:
        response = await self._network.fetch(request)
        admitted = admit(response, self.response_filters)
        if admitted is None:
            log.info("response_rejected", cache=cache.name, key=key, status=response.status)
            return response
        now = self._clock()
        await cache.put(CacheEntry.from_response(key, admitted, stored_at=now))
        await self.expiration.prune(cache, now)
        return admitted


class CacheFirst(Strategy):
    name = "cache-first"

    async def handle(self, request: InterceptedRequest, cache: NamedCache) -> Response:
        key = request_key(request)
        entry = await self._lookup(cache, key)
        if entry is not None:
            return entry.to_response()
        return await self._fetch_and_store(request, cache, key)


class StaleWhileRevalidate(Strategy):
    name = "stale-while-revalidate"

    def __init__(
        self,
        network: NetworkProtocol,
        *,
        response_filters: Sequence[ResponseFilter] | None = None,
        expiration: ExpirationPolicy | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        super().__init__(
            network, response_filters=response_filters, expiration=expiration, clock=clock
        )
        # Strong references: the event loop only keeps weak ones to tasks.
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def handle(self, request: InterceptedRequest, cache: NamedCache) -> Response:
        key = request_key(request)
        entry = await self._lookup(cache, key)
        if entry is None:
            return await self._fetch_and_store(request, cache, key)
        self._spawn_revalidation(request, cache, key)
        return entry.to_response()

    async def settle(self) -> None:
        """Wait until every background refresh started so far has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    def _spawn_revalidation(
        self, request: InterceptedRequest, cache: NamedCache, key: str
    ) -> asyncio.Task[None]:
        task = asyncio.create_task(self._revalidate(request, cache, key), name=f"revalidate {key}")
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _revalidate(self, request: InterceptedRequest, cache: NamedCache, key: str) -> None:
        try:
            await self._fetch_and_store(request, cache, key)
        except OfflineKitError as exc:
            # The caller already has the cached copy; keep serving it.
            log.warning("revalidation_failed", cache=cache.name, key=key, code=exc.code)
