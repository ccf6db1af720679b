"""Notifications: drafts, generator, sink contracts and SQLite sinks."""

from shopnotify.notifications.generator import (
    generate_notifications,
    handler_for,
    registered_event_types,
)
from shopnotify.notifications.models import (
    GeneratedNotifications,
    PlatformNotification,
    PlatformNotificationDraft,
    TenantNotification,
    TenantNotificationDraft,
)
from shopnotify.notifications.sinks import PlatformNotificationSink, TenantNotificationSink
from shopnotify.notifications.storage import (
    SqlitePlatformNotificationSink,
    SqliteTenantNotificationSink,
)

__all__ = [
    "GeneratedNotifications",
    "PlatformNotification",
    "PlatformNotificationDraft",
    "PlatformNotificationSink",
    "SqlitePlatformNotificationSink",
    "SqliteTenantNotificationSink",
    "TenantNotification",
    "TenantNotificationDraft",
    "TenantNotificationSink",
    "generate_notifications",
    "handler_for",
    "registered_event_types",
]
