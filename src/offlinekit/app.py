"""Wiring: build a ready-to-use worker and settings store from ``Settings``."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

import aiosqlite
import structlog

from offlinekit.cache import CacheStorage
from offlinekit.config import Settings
from offlinekit.entry_store import open_settings_store
from offlinekit.fallback import OfflineFallback
from offlinekit.fetcher import Fetcher, build_http_client
from offlinekit.logs import configure_logging
from offlinekit.precache import PrecacheLoader
from offlinekit.routing import Router, build_default_routes
from offlinekit.state import AppState
from offlinekit.worker import OfflineWorker

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from offlinekit.protocols import NetworkProtocol

log = structlog.get_logger()

_MEMORY_DB = ":memory:"


def _prepare_db_path(db_path: str) -> str:
    if db_path == _MEMORY_DB:
        return db_path
    path = Path(db_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return str(path)


def build_worker(
    settings: Settings, storage: CacheStorage, network: NetworkProtocol
) -> OfflineWorker:
    precache = settings.precache
    fallback = OfflineFallback.for_origin(
        storage, precache.fallback_cache_name, precache.origin, precache.fallback_url
    )
    return OfflineWorker(
        storage=storage,
        network=network,
        router=Router(build_default_routes(settings.routes, network)),
        precache=PrecacheLoader(storage, network, precache.origin),
        manifests={
            precache.cache_name: precache.manifest,
            precache.fallback_cache_name: [precache.fallback_url],
        },
        fallback=fallback,
        precache_cache_name=precache.cache_name,
    )


@asynccontextmanager
async def open_app(settings: Settings | None = None) -> AsyncIterator[AppState]:
    """Open databases and the HTTP client, yield the wired state, then close them.

    Pending background refreshes are awaited before anything is closed.
    """
    settings = settings or Settings()
    configure_logging(settings.logging)

    cache_path = _prepare_db_path(settings.cache.db_path)
    store_path = _prepare_db_path(settings.entry_store.db_path)

    async with (
        aiosqlite.connect(cache_path) as cache_db,
        aiosqlite.connect(store_path) as store_db,
        build_http_client(settings.fetcher) as client,
    ):
        storage = CacheStorage(cache_db)
        await storage.init_db()
        fetcher = Fetcher(client)
        entry_store = await open_settings_store(
            store_db, settings.entry_store.name, settings.entry_store.version
        )
        state = AppState(
            settings=settings,
            http_client=client,
            storage=storage,
            fetcher=fetcher,
            worker=build_worker(settings, storage, fetcher),
            entry_store=entry_store,
        )
        log.info("app_started", cache_db=cache_path, origin=settings.precache.origin)
        try:
            yield state
        finally:
            await state.worker.settle()
            log.info("app_stopped")
