"""Unit-specific fixtures (no I/O beyond in-memory SQLite; HTTP is mocked with respx)."""

from __future__ import annotations

import aiosqlite
import httpx
import pytest

from offlinekit.cache import CacheStorage
from offlinekit.fetcher import Fetcher


@pytest.fixture()
async def storage():
    """In-memory SQLite cache storage for unit tests."""
    async with aiosqlite.connect(":memory:") as db:
        s = CacheStorage(db)
        await s.init_db()
        yield s


@pytest.fixture()
async def store_db():
    """Bare in-memory connection for the entry store."""
    async with aiosqlite.connect(":memory:") as db:
        yield db


@pytest.fixture()
async def fetcher():
    async with httpx.AsyncClient() as client:
        yield Fetcher(client)
