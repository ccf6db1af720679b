"""SQLite journal: reference implementation of the event store."""

import logging
import time
import uuid
from pathlib import Path
from typing import Callable

import aiosqlite

from shopnotify.db import Database, SqliteStore, dumps_json, loads_json
from shopnotify.errors import EventNotFoundError
from shopnotify.events.models import DeadLetterEntry, Event, EventDraft

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 5

_SCHEMA = """
CREATE TABLE IF NOT EXISTS event_journal (
    id               TEXT    PRIMARY KEY,
    idempotency_key  TEXT    NOT NULL UNIQUE,
    event_type       TEXT    NOT NULL,
    tenant_id        TEXT    NOT NULL,
    entity_type      TEXT    NOT NULL,
    entity_id        TEXT    NOT NULL,
    actor_id         TEXT,
    payload          TEXT    NOT NULL,
    retry_count      INTEGER NOT NULL DEFAULT 0,
    max_retries      INTEGER NOT NULL DEFAULT 5,
    error_message    TEXT,
    created_at       REAL    NOT NULL,
    processed_at     REAL
);

CREATE INDEX IF NOT EXISTS idx_ej_pending ON event_journal(processed_at, created_at);
CREATE INDEX IF NOT EXISTS idx_ej_entity ON event_journal(entity_type, entity_id);
CREATE INDEX IF NOT EXISTS idx_ej_tenant ON event_journal(tenant_id, created_at);

CREATE TABLE IF NOT EXISTS event_dead_letter (
    id                 TEXT    PRIMARY KEY,
    original_event_id  TEXT    NOT NULL UNIQUE,
    event_type         TEXT    NOT NULL,
    tenant_id          TEXT    NOT NULL,
    entity_type        TEXT    NOT NULL,
    entity_id          TEXT    NOT NULL,
    payload            TEXT    NOT NULL,
    error_message      TEXT,
    retry_count        INTEGER NOT NULL,
    created_at         REAL    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_edl_tenant ON event_dead_letter(tenant_id, created_at);
"""

_EVENT_COLUMNS = (
    "id, idempotency_key, event_type, tenant_id, entity_type, entity_id, actor_id, "
    "payload, retry_count, max_retries, error_message, created_at, processed_at"
)


def _row_to_event(row: aiosqlite.Row) -> Event:
    return Event(
        id=row["id"],
        idempotency_key=row["idempotency_key"],
        event_type=row["event_type"],
        tenant_id=row["tenant_id"],
        entity_type=row["entity_type"],
        entity_id=row["entity_id"],
        actor_id=row["actor_id"],
        payload=loads_json(row["payload"]) or {},
        retry_count=row["retry_count"],
        max_retries=row["max_retries"],
        error_message=row["error_message"],
        created_at=row["created_at"],
        processed_at=row["processed_at"],
    )


def _row_to_dead_letter(row: aiosqlite.Row) -> DeadLetterEntry:
    return DeadLetterEntry(
        id=row["id"],
        original_event_id=row["original_event_id"],
        event_type=row["event_type"],
        tenant_id=row["tenant_id"],
        entity_type=row["entity_type"],
        entity_id=row["entity_id"],
        payload=loads_json(row["payload"]) or {},
        error_message=row["error_message"],
        retry_count=row["retry_count"],
        created_at=row["created_at"],
    )


class EventJournal(SqliteStore):
    """SQLite-backed event log. One connection per instance."""

    _schema = _SCHEMA

    def __init__(
        self,
        db: Database | Path,
        busy_timeout: int = 5000,
        max_retries: int = DEFAULT_MAX_RETRIES,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(db, busy_timeout=busy_timeout)
        self._max_retries = max_retries
        self._clock = clock

    def _derive_idempotency_key(self, draft: EventDraft) -> str:
        return f"{draft.event_type}:{draft.entity_id}:{int(self._clock() * 1000)}"

    async def publish(self, draft: EventDraft) -> Event:
        """Insert event; a duplicate idempotency key returns the stored event instead."""
        conn = await self._ensure_conn()
        key = draft.idempotency_key or self._derive_idempotency_key(draft)
        async with self._write_lock:
            cursor = await conn.execute(
                """
                INSERT INTO event_journal (id, idempotency_key, event_type, tenant_id,
                    entity_type, entity_id, actor_id, payload, max_retries, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(idempotency_key) DO NOTHING
                """,
                (
                    uuid.uuid4().hex,
                    key,
                    draft.event_type,
                    draft.tenant_id,
                    draft.entity_type,
                    draft.entity_id,
                    draft.actor_id,
                    dumps_json(draft.payload),
                    self._max_retries,
                    self._clock(),
                ),
            )
            inserted = cursor.rowcount
            await conn.commit()
        if not inserted:
            logger.debug("Duplicate publish ignored for idempotency key %s", key)
        cursor = await conn.execute(
            f"SELECT {_EVENT_COLUMNS} FROM event_journal WHERE idempotency_key = ?",
            (key,),
        )
        row = await cursor.fetchone()
        if row is None:
            raise EventNotFoundError(key)
        return _row_to_event(row)

    async def fetch_pending(self, limit: int = 50) -> list[Event]:
        """Pending set ordered by created_at, insertion order breaking ties."""
        conn = await self._ensure_conn()
        cursor = await conn.execute(
            f"""
            SELECT {_EVENT_COLUMNS}
            FROM event_journal
            WHERE processed_at IS NULL AND retry_count < max_retries
            ORDER BY created_at, rowid
            LIMIT ?
            """,
            (limit,),
        )
        rows = await cursor.fetchall()
        return [_row_to_event(row) for row in rows]

    async def mark_processed(self, event_id: str) -> None:
        """Set processed_at once. Later calls leave the original timestamp untouched."""
        conn = await self._ensure_conn()
        async with self._write_lock:
            await conn.execute(
                "UPDATE event_journal SET processed_at = ? WHERE id = ? AND processed_at IS NULL",
                (self._clock(), event_id),
            )
            await conn.commit()

    async def record_failure(self, event_id: str, error_message: str) -> int:
        """Increment retry_count and store the error in one statement. Returns the new count."""
        conn = await self._ensure_conn()
        async with self._write_lock:
            cursor = await conn.execute(
                """
                UPDATE event_journal
                SET retry_count = retry_count + 1, error_message = ?
                WHERE id = ?
                RETURNING retry_count
                """,
                (error_message, event_id),
            )
            row = await cursor.fetchone()
            await conn.commit()
        if row is None:
            raise EventNotFoundError(event_id)
        return row[0]

    async def move_to_dead_letter(self, event_id: str) -> None:
        """Copy the event into event_dead_letter and mark it processed, in one transaction."""
        conn = await self._ensure_conn()
        async with self._write_lock:
            try:
                cursor = await conn.execute(
                    f"SELECT {_EVENT_COLUMNS} FROM event_journal WHERE id = ?",
                    (event_id,),
                )
                row = await cursor.fetchone()
                if row is None:
                    raise EventNotFoundError(event_id)
                now = self._clock()
                await conn.execute(
                    """
                    INSERT INTO event_dead_letter (id, original_event_id, event_type, tenant_id,
                        entity_type, entity_id, payload, error_message, retry_count, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(original_event_id) DO NOTHING
                    """,
                    (
                        uuid.uuid4().hex,
                        row["id"],
                        row["event_type"],
                        row["tenant_id"],
                        row["entity_type"],
                        row["entity_id"],
                        row["payload"],
                        row["error_message"],
                        row["retry_count"],
                        now,
                    ),
                )
                await conn.execute(
                    "UPDATE event_journal SET processed_at = ? WHERE id = ? AND processed_at IS NULL",
                    (now, event_id),
                )
                await conn.commit()
            except Exception:
                await conn.rollback()
                raise

    async def get(self, event_id: str) -> Event | None:
        conn = await self._ensure_conn()
        cursor = await conn.execute(
            f"SELECT {_EVENT_COLUMNS} FROM event_journal WHERE id = ?", (event_id,)
        )
        row = await cursor.fetchone()
        return _row_to_event(row) if row else None

    async def find_by_entity(self, entity_type: str, entity_id: str) -> list[Event]:
        """Audit trail for one entity, newest first."""
        conn = await self._ensure_conn()
        cursor = await conn.execute(
            f"""
            SELECT {_EVENT_COLUMNS} FROM event_journal
            WHERE entity_type = ? AND entity_id = ?
            ORDER BY created_at DESC, rowid DESC
            """,
            (entity_type, entity_id),
        )
        return [_row_to_event(row) for row in await cursor.fetchall()]

    async def find_by_tenant(self, tenant_id: str, limit: int = 100) -> list[Event]:
        """Recent events for a tenant, newest first."""
        conn = await self._ensure_conn()
        cursor = await conn.execute(
            f"""
            SELECT {_EVENT_COLUMNS} FROM event_journal
            WHERE tenant_id = ?
            ORDER BY created_at DESC, rowid DESC
            LIMIT ?
            """,
            (tenant_id, limit),
        )
        return [_row_to_event(row) for row in await cursor.fetchall()]

    async def find_dead_letters(
        self, tenant_id: str | None = None, limit: int = 100
    ) -> list[DeadLetterEntry]:
        conn = await self._ensure_conn()
        if tenant_id is None:
            cursor = await conn.execute(
                "SELECT * FROM event_dead_letter ORDER BY created_at DESC, rowid DESC LIMIT ?",
                (limit,),
            )
        else:
            cursor = await conn.execute(
                """
                SELECT * FROM event_dead_letter WHERE tenant_id = ?
                ORDER BY created_at DESC, rowid DESC LIMIT ?
                """,
                (tenant_id, limit),
            )
        return [_row_to_dead_letter(row) for row in await cursor.fetchall()]
