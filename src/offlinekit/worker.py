"""The offline worker: install, activate, and the request pipeline.

``handle_fetch`` is an explicit pipeline rather than an event callback:

    response = await precache.match(key)  # GET only
    route = router.match(request)
    response = await route.strategy.handle(request, cache)
    # on NETWORK_FAILURE for a navigation: await fallback.respond(request)

Each call resolves with exactly one ``Response`` or raises exactly one
``OfflineKitError``.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

import structlog

from offlinekit.errors import ErrorCode, OfflineKitError
from offlinekit.keys import request_key
from offlinekit.strategies import StaleWhileRevalidate

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from offlinekit.cache import CacheStorage
    from offlinekit.fallback import OfflineFallback
    from offlinekit.models.http import InterceptedRequest, Response
    from offlinekit.precache import PrecacheLoader
    from offlinekit.protocols import NetworkProtocol
    from offlinekit.routing import Router

log = structlog.get_logger()


class WorkerState(StrEnum):
    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATED = "activated"


class OfflineWorker:
    def __init__(
        self,
        *,
        storage: CacheStorage,
        network: NetworkProtocol,
        router: Router,
        precache: PrecacheLoader,
        manifests: Mapping[str, Sequence[str]],
        fallback: OfflineFallback,
        precache_cache_name: str,
    ) -> None:
        self._storage = storage
        self._network = network
        self.router = router
        self._precache = precache
        self._manifests = dict(manifests)
        self._fallback = fallback
        self._precache_cache_name = precache_cache_name
        self.state = WorkerState.PARSED

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def install(self) -> None:
        """Precache every manifest. Raises and stays installable on failure."""
        if self.state not in (WorkerState.PARSED, WorkerState.INSTALLED):
            raise OfflineKitError(
                ErrorCode.INVALID_STATE, f"Cannot install a worker that is {self.state}"
            )
        log.info("worker_install")
        self.state = WorkerState.INSTALLING
        try:
            await self._precache.install(self._manifests)
        except OfflineKitError:
            self.state = WorkerState.PARSED
            log.error("worker_install_failed", exc_info=True)
            raise
        self.state = WorkerState.INSTALLED

    async def activate(self) -> None:
        if self.state is not WorkerState.INSTALLED:
            raise OfflineKitError(
                ErrorCode.INVALID_STATE, f"Cannot activate a worker that is {self.state}"
            )
        log.info("worker_activate")
        self.state = WorkerState.ACTIVATED

    @property
    def controlling(self) -> bool:
        return self.state is WorkerState.ACTIVATED

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def handle_fetch(self, request: InterceptedRequest) -> Response:
        log.debug("fetch_intercepted", url=request.url, mode=request.mode)
        if not self.controlling:
            return await self._network.fetch(request)

        precached = await self._match_precache(request)
        if precached is not None:
            return precached

        route = self.router.match(request)
        try:
            if route is None:
                return await self._network.fetch(request)
            cache = await self._storage.open(route.cache_name)
            return await route.strategy.handle(request, cache)
        except OfflineKitError as exc:
            if not self._fallback.handles(request, exc):
                raise
            return await self._fallback.respond(request)

    async def settle(self) -> None:
        """Wait for background cache refreshes started by any route."""
        for route in self.router.routes:
            if isinstance(route.strategy, StaleWhileRevalidate):
                await route.strategy.settle()

    async def _match_precache(self, request: InterceptedRequest) -> Response | None:
        # Precached resources win over every route.
        if request.method != "GET":
            return None
        precache = await self._storage.open(self._precache_cache_name)
        entry = await precache.match(request_key(request))
        if entry is None:
            return None
        log.debug("precache_hit", url=request.url)
        return entry.to_response()
