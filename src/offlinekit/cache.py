"""SQLite-backed named caches.

Runtime cache operations catch ``aiosqlite.Error`` internally and degrade
gracefully: read failures return ``None`` (treated as a cache miss by the
strategies), write failures are logged and ignored (the fetched response is
still returned). A broken cache must never stop a request from being
answered from the network. Errors are logged with ``exc_info=True`` so they
remain observable via stderr.

The one exception is :meth:`CacheStorage.put_all`, used by the precache
install step: it runs in a single transaction and raises, because install
must fail loudly rather than activate with a partial precache.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import aiosqlite
import structlog

from offlinekit.errors import ErrorCode, OfflineKitError
from offlinekit.models.cache import CacheEntry

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

log = structlog.get_logger()

_CREATE_NAMES_TABLE = """
CREATE TABLE IF NOT EXISTS cache_names (
    name        TEXT PRIMARY KEY,
    created_at  TEXT NOT NULL
)
"""

_CREATE_ENTRIES_TABLE = """
CREATE TABLE IF NOT EXISTS cache_entries (
    cache_name   TEXT NOT NULL,
    request_key  TEXT NOT NULL,
    url          TEXT NOT NULL,
    status       INTEGER NOT NULL,
    headers      TEXT NOT NULL DEFAULT '{}',
    body         BLOB NOT NULL,
    stored_at    TEXT NOT NULL,
    PRIMARY KEY (cache_name, request_key)
)
"""

_CREATE_STORED_INDEX = (
    "CREATE INDEX IF NOT EXISTS idx_entries_stored ON cache_entries(cache_name, stored_at)"
)

_SELECT_ENTRY = (
    "SELECT request_key, url, status, headers, body, stored_at FROM cache_entries "
)

_UPSERT_ENTRY = (
    "INSERT OR REPLACE INTO cache_entries "
    "(cache_name, request_key, url, status, headers, body, stored_at) "
    "VALUES (?, ?, ?, ?, ?, ?, ?)"
)


def _timestamp(value: datetime) -> str:
    # Fixed-width UTC text so stored_at compares correctly as a string
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def _row_to_entry(row: aiosqlite.Row | tuple) -> CacheEntry:
    return CacheEntry(
        key=row[0],
        url=row[1],
        status=row[2],
        headers=json.loads(row[3]),
        body=bytes(row[4]),
        stored_at=datetime.fromisoformat(row[5]),
    )


def _entry_params(cache_name: str, entry: CacheEntry) -> tuple:
    return (
        cache_name,
        entry.key,
        entry.url,
        entry.status,
        json.dumps(entry.headers, sort_keys=True),
        entry.body,
        _timestamp(entry.stored_at),
    )


class NamedCache:
    """Handle on one named cache. Obtain it from :meth:`CacheStorage.open`."""

    def __init__(self, storage: CacheStorage, name: str) -> None:
        self._storage = storage
        self.name = name

    def __repr__(self) -> str:
        return f"NamedCache({self.name!r})"

    async def match(self, key: str) -> CacheEntry | None:
        return await self._storage._match(self.name, key)

    async def put(self, entry: CacheEntry) -> None:
        await self._storage._put(self.name, entry)

    async def delete(self, key: str) -> bool:
        return await self._storage._delete(self.name, key)

    async def keys(self) -> list[str]:
        return await self._storage._keys(self.name)

    async def delete_older_than(self, cutoff: datetime) -> int:
        return await self._storage._delete_older_than(self.name, cutoff)


class CacheStorage:
    """All named caches of one origin, persisted in a single SQLite database."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db
        self._handles: dict[str, NamedCache] = {}

    async def init_db(self) -> None:
        """Create tables and set WAL mode. Called once at startup."""
        await self._db.execute("PRAGMA journal_mode = WAL")
        await self._db.execute(_CREATE_NAMES_TABLE)
        await self._db.execute(_CREATE_ENTRIES_TABLE)
        await self._db.execute(_CREATE_STORED_INDEX)
        await self._db.commit()

    # ------------------------------------------------------------------
    # Cache names
    # ------------------------------------------------------------------

    async def open(self, name: str) -> NamedCache:
        """Return the handle for ``name``, creating the cache if absent."""
        handle = self._handles.get(name)
        if handle is not None:
            return handle
        try:
            await self._db.execute(
                "INSERT OR IGNORE INTO cache_names (name, created_at) VALUES (?, ?)",
                (name, datetime.now(UTC).isoformat()),
            )
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("cache_open_error", cache=name, exc_info=True)
        # Another coroutine may have opened it while we were suspended.
        return self._handles.setdefault(name, NamedCache(self, name))

    async def has(self, name: str) -> bool:
        try:
            cursor = await self._db.execute("SELECT 1 FROM cache_names WHERE name = ?", (name,))
            return await cursor.fetchone() is not None
        except aiosqlite.Error:
            log.warning("cache_read_error", cache=name, exc_info=True)
            return False

    async def names(self) -> list[str]:
        try:
            cursor = await self._db.execute("SELECT name FROM cache_names ORDER BY name")
            return [row[0] for row in await cursor.fetchall()]
        except aiosqlite.Error:
            log.warning("cache_read_error", exc_info=True)
            return []

    async def delete(self, name: str) -> bool:
        """Drop a named cache and all of its entries."""
        try:
            await self._db.execute("DELETE FROM cache_entries WHERE cache_name = ?", (name,))
            cursor = await self._db.execute("DELETE FROM cache_names WHERE name = ?", (name,))
            deleted = cursor.rowcount > 0
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("cache_delete_error", cache=name, exc_info=True)
            return False
        self._handles.pop(name, None)
        log.info("cache_deleted", cache=name, existed=deleted)
        return deleted

    async def put_all(self, batches: Mapping[str, Sequence[CacheEntry]]) -> int:
        """Write every entry of every cache in one transaction.

        Raises ``OfflineKitError(CACHE_WRITE_FAILED)`` and rolls back on any
        database error; either all entries are committed or none are.
        """
        now = datetime.now(UTC).isoformat()
        names = [(name, now) for name in batches]
        rows = [
            _entry_params(name, entry) for name, entries in batches.items() for entry in entries
        ]
        try:
            await self._db.executemany(
                "INSERT OR IGNORE INTO cache_names (name, created_at) VALUES (?, ?)", names
            )
            await self._db.executemany(_UPSERT_ENTRY, rows)
            await self._db.commit()
        except aiosqlite.Error as exc:
            await self._db.rollback()
            log.error("cache_batch_write_error", caches=list(batches), exc_info=True)
            raise OfflineKitError(
                ErrorCode.CACHE_WRITE_FAILED,
                f"Could not commit {len(rows)} entries: {exc}",
                recoverable=True,
            ) from exc
        for name in batches:
            self._handles.setdefault(name, NamedCache(self, name))
        return len(rows)

    # ------------------------------------------------------------------
    # Entries (reached through NamedCache)
    # ------------------------------------------------------------------

    async def _match(self, cache_name: str, key: str) -> CacheEntry | None:
        """Read an entry. Returns ``None`` on cache miss or read failure."""
        try:
            cursor = await self._db.execute(
                _SELECT_ENTRY + "WHERE cache_name = ? AND request_key = ?",
                (cache_name, key),
            )
            row = await cursor.fetchone()
        except aiosqlite.Error:
            log.warning("cache_read_error", cache=cache_name, key=key, exc_info=True)
            return None
        return None if row is None else _row_to_entry(row)

    async def _put(self, cache_name: str, entry: CacheEntry) -> None:
        """Write an entry. Non-fatal on failure."""
        try:
            await self._db.execute(_UPSERT_ENTRY, _entry_params(cache_name, entry))
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("cache_write_error", cache=cache_name, key=entry.key, exc_info=True)

    async def _delete(self, cache_name: str, key: str) -> bool:
        try:
            cursor = await self._db.execute(
                "DELETE FROM cache_entries WHERE cache_name = ? AND request_key = ?",
                (cache_name, key),
            )
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("cache_delete_error", cache=cache_name, key=key, exc_info=True)
            return False
        return cursor.rowcount > 0

    async def _keys(self, cache_name: str) -> list[str]:
        try:
            cursor = await self._db.execute(
                "SELECT request_key FROM cache_entries WHERE cache_name = ? ORDER BY request_key",
                (cache_name,),
            )
            return [row[0] for row in await cursor.fetchall()]
        except aiosqlite.Error:
            log.warning("cache_read_error", cache=cache_name, exc_info=True)
            return []

    async def _delete_older_than(self, cache_name: str, cutoff: datetime) -> int:
        """Delete entries stored before ``cutoff``. Non-fatal on failure."""
        try:
            cursor = await self._db.execute(
                "DELETE FROM cache_entries WHERE cache_name = ? AND stored_at < ?",
                (cache_name, _timestamp(cutoff)),
            )
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("cache_cleanup_error", cache=cache_name, exc_info=True)
            return 0
        return cursor.rowcount
