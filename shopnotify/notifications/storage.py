"""SQLite notification sinks: platform (operators) and tenant (shop users)."""

import logging
import time
import uuid
from pathlib import Path
from typing import Callable

import aiosqlite

from shopnotify.db import Database, SqliteStore, dumps_json, loads_json
from shopnotify.errors import NotificationNotFoundError
from shopnotify.notifications.models import (
    PlatformNotification,
    PlatformNotificationDraft,
    TenantNotification,
    TenantNotificationDraft,
)

logger = logging.getLogger(__name__)

_PLATFORM_SCHEMA = """
CREATE TABLE IF NOT EXISTS platform_notifications (
    id               TEXT    PRIMARY KEY,
    recipient_id     TEXT,
    tenant_id        TEXT,
    title            TEXT    NOT NULL,
    message          TEXT    NOT NULL,
    category         TEXT    NOT NULL,
    severity         TEXT    NOT NULL,
    entity_type      TEXT,
    entity_id        TEXT,
    source_event_id  TEXT,
    dedup_key        TEXT    UNIQUE,
    is_read          INTEGER NOT NULL DEFAULT 0,
    read_at          REAL,
    created_at       REAL    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_pn_unread ON platform_notifications(is_read, recipient_id);
"""

_TENANT_SCHEMA = """
CREATE TABLE IF NOT EXISTS tenant_notifications (
    id               TEXT    PRIMARY KEY,
    tenant_id        TEXT    NOT NULL,
    user_id          TEXT,
    customer_id      TEXT,
    jobcard_id       TEXT,
    title            TEXT    NOT NULL,
    message          TEXT    NOT NULL,
    channel          TEXT    NOT NULL,
    template         TEXT,
    payload          TEXT,
    category         TEXT    NOT NULL DEFAULT 'system',
    severity         TEXT    NOT NULL DEFAULT 'info',
    entity_type      TEXT,
    entity_id        TEXT,
    source_event_id  TEXT,
    dedup_key        TEXT    UNIQUE,
    status           TEXT    NOT NULL,
    is_read          INTEGER NOT NULL DEFAULT 0,
    read_at          REAL,
    sent_at          REAL,
    created_at       REAL    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_tn_user ON tenant_notifications(tenant_id, user_id, is_read);

-- Per-user read state of tenant broadcasts (user_id NULL rows).
CREATE TABLE IF NOT EXISTS tenant_notification_reads (
    notification_id  TEXT    NOT NULL,
    user_id          TEXT    NOT NULL,
    read_at          REAL    NOT NULL,
    PRIMARY KEY (notification_id, user_id)
);
"""

# Tenant rows as one user sees them: a broadcast is read once that user has a
# receipt or it was marked read tenant-wide; direct rows use their own columns.
# Params: user_id, tenant_id, user_id.
_TENANT_USER_VIEW = """
SELECT n.id, n.tenant_id, n.user_id, n.customer_id, n.jobcard_id, n.title, n.message,
       n.channel, n.template, n.payload, n.category, n.severity, n.entity_type,
       n.entity_id, n.source_event_id, n.dedup_key, n.status, n.sent_at, n.created_at,
       CASE WHEN n.user_id IS NULL THEN (n.is_read OR r.read_at IS NOT NULL)
            ELSE n.is_read END AS is_read,
       CASE WHEN n.user_id IS NULL THEN COALESCE(r.read_at, n.read_at)
            ELSE n.read_at END AS read_at
FROM tenant_notifications n
LEFT JOIN tenant_notification_reads r ON r.notification_id = n.id AND r.user_id = ?
WHERE n.tenant_id = ? AND (n.user_id = ? OR n.user_id IS NULL)
"""


def _row_to_platform(row: aiosqlite.Row) -> PlatformNotification:
    return PlatformNotification(
        id=row["id"],
        recipient_id=row["recipient_id"],
        tenant_id=row["tenant_id"],
        title=row["title"],
        message=row["message"],
        category=row["category"],
        severity=row["severity"],
        entity_type=row["entity_type"],
        entity_id=row["entity_id"],
        source_event_id=row["source_event_id"],
        dedup_key=row["dedup_key"],
        is_read=bool(row["is_read"]),
        read_at=row["read_at"],
        created_at=row["created_at"],
    )


def _row_to_tenant(row: aiosqlite.Row) -> TenantNotification:
    return TenantNotification(
        id=row["id"],
        tenant_id=row["tenant_id"],
        user_id=row["user_id"],
        customer_id=row["customer_id"],
        jobcard_id=row["jobcard_id"],
        title=row["title"] or "",
        message=row["message"] or "",
        channel=row["channel"],
        template=row["template"],
        payload=loads_json(row["payload"]),
        category=row["category"],
        severity=row["severity"],
        entity_type=row["entity_type"],
        entity_id=row["entity_id"],
        source_event_id=row["source_event_id"],
        dedup_key=row["dedup_key"],
        status=row["status"],
        is_read=bool(row["is_read"]),
        read_at=row["read_at"],
        sent_at=row["sent_at"],
        created_at=row["created_at"],
    )


class SqlitePlatformNotificationSink(SqliteStore):
    """platform_notifications table. Broadcasts have recipient_id NULL."""

    _schema = _PLATFORM_SCHEMA

    def __init__(
        self, db: Database | Path, busy_timeout: int = 5000, clock: Callable[[], float] = time.time
    ) -> None:
        super().__init__(db, busy_timeout=busy_timeout)
        self._clock = clock

    async def create(self, draft: PlatformNotificationDraft) -> PlatformNotification:
        conn = await self._ensure_conn()
        new_id = uuid.uuid4().hex
        async with self._write_lock:
            await conn.execute(
                """
                INSERT INTO platform_notifications (id, recipient_id, tenant_id, title, message,
                    category, severity, entity_type, entity_id, source_event_id, dedup_key,
                    created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(dedup_key) DO UPDATE SET
                    recipient_id = excluded.recipient_id,
                    tenant_id = excluded.tenant_id,
                    title = excluded.title,
                    message = excluded.message,
                    category = excluded.category,
                    severity = excluded.severity,
                    entity_type = excluded.entity_type,
                    entity_id = excluded.entity_id,
                    source_event_id = excluded.source_event_id
                """,
                (
                    new_id,
                    draft.recipient_id,
                    draft.tenant_id,
                    draft.title,
                    draft.message,
                    draft.category,
                    draft.severity,
                    draft.entity_type,
                    draft.entity_id,
                    draft.source_event_id,
                    draft.dedup_key,
                    self._clock(),
                ),
            )
            await conn.commit()
        if draft.dedup_key is not None:
            cursor = await conn.execute(
                "SELECT * FROM platform_notifications WHERE dedup_key = ?", (draft.dedup_key,)
            )
        else:
            cursor = await conn.execute(
                "SELECT * FROM platform_notifications WHERE id = ?", (new_id,)
            )
        row = await cursor.fetchone()
        if row is None:
            raise NotificationNotFoundError(draft.dedup_key or new_id)
        return _row_to_platform(row)

    async def find_unread(self, recipient_id: str | None = None) -> list[PlatformNotification]:
        conn = await self._ensure_conn()
        if recipient_id is None:
            cursor = await conn.execute(
                """
                SELECT * FROM platform_notifications WHERE is_read = 0
                ORDER BY created_at DESC, rowid DESC
                """
            )
        else:
            cursor = await conn.execute(
                """
                SELECT * FROM platform_notifications
                WHERE is_read = 0 AND (recipient_id = ? OR recipient_id IS NULL)
                ORDER BY created_at DESC, rowid DESC
                """,
                (recipient_id,),
            )
        return [_row_to_platform(row) for row in await cursor.fetchall()]

    async def mark_read(self, notification_id: str) -> None:
        conn = await self._ensure_conn()
        async with self._write_lock:
            cursor = await conn.execute(
                "UPDATE platform_notifications SET is_read = 1, read_at = ? WHERE id = ?",
                (self._clock(), notification_id),
            )
            await conn.commit()
        if not cursor.rowcount:
            raise NotificationNotFoundError(notification_id)

    async def mark_all_read(self, recipient_id: str) -> None:
        """Mark the recipient's own and broadcast notifications read."""
        conn = await self._ensure_conn()
        async with self._write_lock:
            await conn.execute(
                """
                UPDATE platform_notifications SET is_read = 1, read_at = ?
                WHERE is_read = 0 AND (recipient_id = ? OR recipient_id IS NULL)
                """,
                (self._clock(), recipient_id),
            )
            await conn.commit()


class SqliteTenantNotificationSink(SqliteStore):
    """tenant_notifications table. Tenant-wide broadcasts have user_id NULL."""

    _schema = _TENANT_SCHEMA

    def __init__(
        self, db: Database | Path, busy_timeout: int = 5000, clock: Callable[[], float] = time.time
    ) -> None:
        super().__init__(db, busy_timeout=busy_timeout)
        self._clock = clock

    async def create(self, draft: TenantNotificationDraft) -> TenantNotification:
        conn = await self._ensure_conn()
        new_id = uuid.uuid4().hex
        now = self._clock()
        payload = dumps_json(draft.payload) if draft.payload is not None else None
        async with self._write_lock:
            await conn.execute(
                """
                INSERT INTO tenant_notifications (id, tenant_id, user_id, customer_id, jobcard_id,
                    title, message, channel, template, payload, category, severity,
                    entity_type, entity_id, source_event_id, dedup_key, status, sent_at,
                    created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 'sent', ?, ?)
                ON CONFLICT(dedup_key) DO UPDATE SET
                    tenant_id = excluded.tenant_id,
                    user_id = excluded.user_id,
                    customer_id = excluded.customer_id,
                    jobcard_id = excluded.jobcard_id,
                    title = excluded.title,
                    message = excluded.message,
                    channel = excluded.channel,
                    template = excluded.template,
                    payload = excluded.payload,
                    category = excluded.category,
                    severity = excluded.severity,
                    entity_type = excluded.entity_type,
                    entity_id = excluded.entity_id,
                    source_event_id = excluded.source_event_id
                """,
                (
                    new_id,
                    draft.tenant_id,
                    draft.user_id,
                    draft.customer_id,
                    draft.jobcard_id,
                    draft.title,
                    draft.message,
                    draft.channel,
                    draft.template,
                    payload,
                    draft.category,
                    draft.severity,
                    draft.entity_type,
                    draft.entity_id,
                    draft.source_event_id,
                    draft.dedup_key,
                    now,
                    now,
                ),
            )
            await conn.commit()
        if draft.dedup_key is not None:
            cursor = await conn.execute(
                "SELECT * FROM tenant_notifications WHERE dedup_key = ?", (draft.dedup_key,)
            )
        else:
            cursor = await conn.execute(
                "SELECT * FROM tenant_notifications WHERE id = ?", (new_id,)
            )
        row = await cursor.fetchone()
        if row is None:
            raise NotificationNotFoundError(draft.dedup_key or new_id)
        return _row_to_tenant(row)

    async def find_by_user(
        self, tenant_id: str, user_id: str, limit: int = 50
    ) -> list[TenantNotification]:
        """User's notifications plus tenant broadcasts, newest first."""
        conn = await self._ensure_conn()
        cursor = await conn.execute(
            _TENANT_USER_VIEW + "ORDER BY n.created_at DESC, n.rowid DESC LIMIT ?",
            (user_id, tenant_id, user_id, limit),
        )
        return [_row_to_tenant(row) for row in await cursor.fetchall()]

    async def find_unread(self, tenant_id: str, user_id: str) -> list[TenantNotification]:
        conn = await self._ensure_conn()
        cursor = await conn.execute(
            _TENANT_USER_VIEW
            + """
            AND n.is_read = 0 AND (n.user_id IS NOT NULL OR r.read_at IS NULL)
            ORDER BY n.created_at DESC, n.rowid DESC
            """,
            (user_id, tenant_id, user_id),
        )
        return [_row_to_tenant(row) for row in await cursor.fetchall()]

    async def mark_read(self, notification_id: str, user_id: str | None = None) -> None:
        """Without ``user_id`` the notification is flagged read for everyone who can see it."""
        conn = await self._ensure_conn()
        now = self._clock()
        async with self._write_lock:
            cursor = await conn.execute(
                "SELECT user_id FROM tenant_notifications WHERE id = ?", (notification_id,)
            )
            row = await cursor.fetchone()
            if row is None:
                raise NotificationNotFoundError(notification_id)
            if row["user_id"] is None and user_id is not None:
                await conn.execute(
                    """
                    INSERT INTO tenant_notification_reads (notification_id, user_id, read_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(notification_id, user_id) DO NOTHING
                    """,
                    (notification_id, user_id, now),
                )
            else:
                await conn.execute(
                    "UPDATE tenant_notifications SET is_read = 1, read_at = ? WHERE id = ?",
                    (now, notification_id),
                )
            await conn.commit()

    async def mark_all_read(self, tenant_id: str, user_id: str) -> None:
        """Own notifications are flagged read; broadcasts get a receipt for this user only."""
        conn = await self._ensure_conn()
        now = self._clock()
        async with self._write_lock:
            try:
                await conn.execute(
                    """
                    UPDATE tenant_notifications SET is_read = 1, read_at = ?
                    WHERE tenant_id = ? AND user_id = ? AND is_read = 0
                    """,
                    (now, tenant_id, user_id),
                )
                await conn.execute(
                    """
                    INSERT INTO tenant_notification_reads (notification_id, user_id, read_at)
                    SELECT id, ?, ? FROM tenant_notifications
                    WHERE tenant_id = ? AND user_id IS NULL
                    ON CONFLICT(notification_id, user_id) DO NOTHING
                    """,
                    (user_id, now, tenant_id),
                )
                await conn.commit()
            except Exception:
                await conn.rollback()
                raise
