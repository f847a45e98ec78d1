from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from offlinekit.cache import CacheStorage
    from offlinekit.config import Settings
    from offlinekit.entry_store import EntryStore
    from offlinekit.fetcher import Fetcher
    from offlinekit.worker import OfflineWorker


@dataclass
class AppState:
    """Everything a running offlinekit instance holds, built once by ``open_app``."""

    settings: Settings
    http_client: httpx.AsyncClient
    storage: CacheStorage
    fetcher: Fetcher
    worker: OfflineWorker
    entry_store: EntryStore
