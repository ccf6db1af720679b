"""Shared SQLite connection handling for the journal and notification stores."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

import aiosqlite

logger = logging.getLogger(__name__)


def dumps_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def loads_json(raw: Any) -> Any:
    """Decode a JSON column. Non-string values (already decoded, NULL) pass through."""
    if isinstance(raw, str):
        return json.loads(raw)
    return raw


class Database:
    """One aiosqlite connection to one database file, shared by every store on it.

    Stores serialize their write sequences (execute + commit) on ``write_lock``,
    so concurrent coroutines never interleave inside a transaction and never
    contend with each other for the SQLite write lock.
    """

    def __init__(self, db_path: Path, busy_timeout: int = 5000) -> None:
        self._db_path = Path(db_path)
        self._busy_timeout = busy_timeout
        self._conn: aiosqlite.Connection | None = None
        self._conn_lock = asyncio.Lock()
        self.write_lock = asyncio.Lock()

    @property
    def db_path(self) -> Path:
        return self._db_path

    async def connect(self) -> aiosqlite.Connection:
        if self._conn is not None:
            return self._conn
        async with self._conn_lock:
            if self._conn is None:
                self._db_path.parent.mkdir(parents=True, exist_ok=True)
                conn = await aiosqlite.connect(str(self._db_path))
                conn.row_factory = aiosqlite.Row
                await conn.execute("PRAGMA journal_mode=WAL")
                await conn.execute("PRAGMA synchronous=NORMAL")
                await conn.execute(f"PRAGMA busy_timeout={self._busy_timeout}")
                await conn.commit()
                self._conn = conn
                logger.debug("Opened %s", self._db_path)
        return self._conn

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None


class SqliteStore:
    """Base for SQLite-backed stores; schema deployed on first use.

    Pass a ``Database`` to share one connection between stores on the same
    file; a path opens a private one, closed by ``close()``.
    """

    _schema: str = ""

    def __init__(self, db: Database | Path, busy_timeout: int = 5000) -> None:
        if isinstance(db, Database):
            self._db = db
            self._owns_db = False
        else:
            self._db = Database(db, busy_timeout=busy_timeout)
            self._owns_db = True
        self._schema_ready = False
        self._schema_lock = asyncio.Lock()

    @property
    def db_path(self) -> Path:
        return self._db.db_path

    @property
    def database(self) -> Database:
        return self._db

    @property
    def _write_lock(self) -> asyncio.Lock:
        return self._db.write_lock

    async def _ensure_conn(self) -> aiosqlite.Connection:
        conn = await self._db.connect()
        if self._schema_ready:
            return conn
        async with self._schema_lock:
            if not self._schema_ready:
                if self._schema:
                    # executescript commits any open transaction first
                    async with self._write_lock:
                        await conn.executescript(self._schema)
                        await conn.commit()
                self._schema_ready = True
                logger.debug("%s: schema ready on %s", type(self).__name__, self.db_path)
        return conn

    async def close(self) -> None:
        """Close the connection if this store opened it; shared ones are closed by their owner."""
        if self._owns_db:
            await self._db.close()
