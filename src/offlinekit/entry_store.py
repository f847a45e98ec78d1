"""Durable, versioned key-value store for small settings such as editor content.

The model follows IndexedDB: a named database has an integer version and a
set of object stores. Object stores are only ever created inside the upgrade
callback passed to :meth:`EntryStore.open`, which runs exactly when the
stored version is lower than the requested one. Reading or writing a store
that was never created raises ``STORE_NOT_FOUND``.

Unlike the response caches, this store does not swallow database errors:
settings are user data, so callers get ``STORE_IO_ERROR`` and decide.
"""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from typing import Any

import aiosqlite
import structlog

from offlinekit.errors import ErrorCode, OfflineKitError

log = structlog.get_logger()

_CREATE_VERSIONS_TABLE = """
CREATE TABLE IF NOT EXISTS entry_store_versions (
    db_name  TEXT PRIMARY KEY,
    version  INTEGER NOT NULL
)
"""

_CREATE_OBJECT_STORES_TABLE = """
CREATE TABLE IF NOT EXISTS entry_store_object_stores (
    db_name     TEXT NOT NULL,
    store_name  TEXT NOT NULL,
    PRIMARY KEY (db_name, store_name)
)
"""

_CREATE_RECORDS_TABLE = """
CREATE TABLE IF NOT EXISTS entry_store_records (
    db_name     TEXT NOT NULL,
    store_name  TEXT NOT NULL,
    key         TEXT NOT NULL,
    kind        TEXT NOT NULL,
    value       BLOB NOT NULL,
    PRIMARY KEY (db_name, store_name, key)
)
"""

# Record kinds: raw bytes are kept as-is, everything else is stored as JSON.
_KIND_BYTES = "bytes"
_KIND_JSON = "json"

SETTINGS_DB_NAME = "editor"
SETTINGS_DB_VERSION = 1
SETTINGS_STORE = "settings"
CONTENT_KEY = "content"


class SchemaContext:
    """Handed to the upgrade callback; the only way to create object stores."""

    def __init__(
        self, db: aiosqlite.Connection, name: str, old_version: int, new_version: int
    ) -> None:
        self._db = db
        self.name = name
        self.old_version = old_version
        self.new_version = new_version

    async def create_object_store(self, store_name: str) -> None:
        await self._db.execute(
            "INSERT OR IGNORE INTO entry_store_object_stores (db_name, store_name) VALUES (?, ?)",
            (self.name, store_name),
        )

    async def object_store_names(self) -> list[str]:
        cursor = await self._db.execute(
            "SELECT store_name FROM entry_store_object_stores WHERE db_name = ? "
            "ORDER BY store_name",
            (self.name,),
        )
        return [row[0] for row in await cursor.fetchall()]


UpgradeCallback = Callable[[SchemaContext], Awaitable[None]]


class EntryStore:
    def __init__(
        self, db: aiosqlite.Connection, name: str, version: int, stores: frozenset[str]
    ) -> None:
        self._db = db
        self.name = name
        self.version = version
        self._stores = stores

    @property
    def object_store_names(self) -> frozenset[str]:
        return self._stores

    @classmethod
    async def open(
        cls,
        db: aiosqlite.Connection,
        name: str,
        version: int,
        upgrade: UpgradeCallback | None = None,
    ) -> EntryStore:
        """Open database ``name`` at ``version``, upgrading it first if needed.

        The upgrade and the version bump are committed together; if the
        upgrade raises, neither is kept. Opening at a version lower than the
        stored one raises ``STORE_VERSION_ERROR``.
        """
        if version < 1:
            raise OfflineKitError(ErrorCode.STORE_VERSION_ERROR, "version must be >= 1")
        try:
            await db.execute(_CREATE_VERSIONS_TABLE)
            await db.execute(_CREATE_OBJECT_STORES_TABLE)
            await db.execute(_CREATE_RECORDS_TABLE)
            await db.commit()

            cursor = await db.execute(
                "SELECT version FROM entry_store_versions WHERE db_name = ?", (name,)
            )
            row = await cursor.fetchone()
            current = 0 if row is None else row[0]

            if version < current:
                raise OfflineKitError(
                    ErrorCode.STORE_VERSION_ERROR,
                    f"Database {name!r} is at version {current}, cannot open at {version}",
                )

            if current < version:
                context = SchemaContext(db, name, current, version)
                try:
                    if upgrade is not None:
                        await upgrade(context)
                    await db.execute(
                        "INSERT OR REPLACE INTO entry_store_versions (db_name, version) "
                        "VALUES (?, ?)",
                        (name, version),
                    )
                    await db.commit()
                except BaseException:
                    await db.rollback()
                    raise
                log.info("entry_store_upgraded", db=name, old_version=current, version=version)

            cursor = await db.execute(
                "SELECT store_name FROM entry_store_object_stores WHERE db_name = ?", (name,)
            )
            stores = frozenset(row[0] for row in await cursor.fetchall())
        except aiosqlite.Error as exc:
            raise OfflineKitError(
                ErrorCode.STORE_IO_ERROR, f"Could not open database {name!r}: {exc}"
            ) from exc
        return cls(db, name, version, stores)

    def _require_store(self, store_name: str) -> None:
        if store_name not in self._stores:
            raise OfflineKitError(
                ErrorCode.STORE_NOT_FOUND,
                f"Object store {store_name!r} does not exist in database {self.name!r}",
            )

    async def get(self, store_name: str, key: str) -> Any | None:
        """Return the value stored under ``key``, or ``None`` if absent."""
        self._require_store(store_name)
        try:
            cursor = await self._db.execute(
                "SELECT kind, value FROM entry_store_records "
                "WHERE db_name = ? AND store_name = ? AND key = ?",
                (self.name, store_name, key),
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise OfflineKitError(
                ErrorCode.STORE_IO_ERROR, f"Could not read {store_name}/{key}: {exc}"
            ) from exc
        if row is None:
            return None
        kind, value = row
        if kind == _KIND_BYTES:
            return bytes(value)
        return json.loads(value)

    async def put(self, store_name: str, value: Any, key: str) -> None:
        """Insert or silently overwrite ``key``.

        ``bytes`` are stored verbatim. Any other value must be JSON-serialisable
        and comes back as its JSON form (tuples as lists, dict keys as strings).
        """
        self._require_store(store_name)
        if isinstance(value, (bytes, bytearray, memoryview)):
            kind, payload = _KIND_BYTES, bytes(value)
        else:
            try:
                kind, payload = _KIND_JSON, json.dumps(value)
            except (TypeError, ValueError) as exc:
                raise OfflineKitError(
                    ErrorCode.STORE_IO_ERROR, f"Cannot store {store_name}/{key}: {exc}"
                ) from exc
        try:
            await self._db.execute(
                "INSERT OR REPLACE INTO entry_store_records "
                "(db_name, store_name, key, kind, value) VALUES (?, ?, ?, ?, ?)",
                (self.name, store_name, key, kind, payload),
            )
            await self._db.commit()
        except aiosqlite.Error as exc:
            raise OfflineKitError(
                ErrorCode.STORE_IO_ERROR, f"Could not write {store_name}/{key}: {exc}"
            ) from exc


async def _create_settings_store(schema: SchemaContext) -> None:
    await schema.create_object_store(SETTINGS_STORE)


async def open_settings_store(
    db: aiosqlite.Connection,
    name: str = SETTINGS_DB_NAME,
    version: int = SETTINGS_DB_VERSION,
) -> EntryStore:
    return await EntryStore.open(db, name, version, _create_settings_store)


async def load_content(store: EntryStore) -> str | None:
    return await store.get(SETTINGS_STORE, CONTENT_KEY)


async def save_content(store: EntryStore, content: str) -> None:
    await store.put(SETTINGS_STORE, content, CONTENT_KEY)
