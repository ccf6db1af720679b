"""Notification drafts (generator output) and persisted notifications (sink output).

Platform notifications go to platform operators; tenant notifications go to a
shop's own users. The audience is fixed by type at creation.
"""

from dataclasses import dataclass, field
from typing import Any

from shopnotify.events.types import Channel, NotificationCategory, Severity

__all__ = [
    "GeneratedNotifications",
    "PlatformNotification",
    "PlatformNotificationDraft",
    "TenantNotification",
    "TenantNotificationDraft",
]


@dataclass(frozen=True)
class PlatformNotificationDraft:
    title: str
    message: str
    category: str
    severity: str
    recipient_id: str | None = None  # None: broadcast to all operators
    tenant_id: str | None = None
    entity_type: str | None = None
    entity_id: str | None = None
    source_event_id: str | None = None
    dedup_key: str | None = None


@dataclass(frozen=True)
class TenantNotificationDraft:
    tenant_id: str
    title: str
    message: str
    channel: str = Channel.IN_APP
    category: str = NotificationCategory.SYSTEM
    severity: str = Severity.INFO
    user_id: str | None = None  # None: broadcast to the tenant's users
    customer_id: str | None = None
    jobcard_id: str | None = None
    template: str | None = None
    payload: dict[str, Any] | None = None
    entity_type: str | None = None
    entity_id: str | None = None
    source_event_id: str | None = None
    dedup_key: str | None = None


@dataclass(frozen=True)
class PlatformNotification:
    id: str
    title: str
    message: str
    category: str
    severity: str
    created_at: float
    recipient_id: str | None = None
    tenant_id: str | None = None
    entity_type: str | None = None
    entity_id: str | None = None
    source_event_id: str | None = None
    dedup_key: str | None = None
    is_read: bool = False
    read_at: float | None = None


@dataclass(frozen=True)
class TenantNotification:
    id: str
    tenant_id: str
    title: str
    message: str
    channel: str
    category: str
    severity: str
    status: str
    created_at: float
    user_id: str | None = None
    customer_id: str | None = None
    jobcard_id: str | None = None
    template: str | None = None
    payload: dict[str, Any] | None = None
    entity_type: str | None = None
    entity_id: str | None = None
    source_event_id: str | None = None
    dedup_key: str | None = None
    is_read: bool = False
    read_at: float | None = None
    sent_at: float | None = None


@dataclass(frozen=True)
class GeneratedNotifications:
    """Drafts derived from one event, split by audience."""

    platform: tuple[PlatformNotificationDraft, ...] = field(default_factory=tuple)
    tenant: tuple[TenantNotificationDraft, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not self.platform and not self.tenant
