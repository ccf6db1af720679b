"""Notification sink contracts, one per audience.

The processor only calls ``create``. The read-state operations belong to the
same contract and are consumed by UI-facing code.
"""

from typing import Protocol, runtime_checkable

from shopnotify.notifications.models import (
    PlatformNotification,
    PlatformNotificationDraft,
    TenantNotification,
    TenantNotificationDraft,
)


@runtime_checkable
class PlatformNotificationSink(Protocol):
    async def create(self, draft: PlatformNotificationDraft) -> PlatformNotification:
        """Persist a draft unread. A draft whose dedup_key is already stored
        updates that notification instead of creating a second one."""

    async def find_unread(self, recipient_id: str | None = None) -> list[PlatformNotification]:
        """Unread notifications; with a recipient, that recipient's plus broadcasts."""

    async def mark_read(self, notification_id: str) -> None: ...

    async def mark_all_read(self, recipient_id: str) -> None: ...


@runtime_checkable
class TenantNotificationSink(Protocol):
    async def create(self, draft: TenantNotificationDraft) -> TenantNotification:
        """Persist a draft unread with status 'sent'. Same dedup_key semantics
        as the platform sink."""

    async def find_by_user(
        self, tenant_id: str, user_id: str, limit: int = 50
    ) -> list[TenantNotification]:
        """The user's notifications plus tenant broadcasts, with read state as
        seen by that user."""

    async def find_unread(self, tenant_id: str, user_id: str) -> list[TenantNotification]: ...

    async def mark_read(self, notification_id: str, user_id: str | None = None) -> None:
        """Mark read. For a broadcast, ``user_id`` scopes the read to that user."""

    async def mark_all_read(self, tenant_id: str, user_id: str) -> None:
        """Mark the user's notifications and, for that user only, tenant broadcasts read."""
