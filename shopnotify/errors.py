"""Error types raised by the event store and notification sinks."""


class ShopNotifyError(Exception):
    """Base class for all shopnotify errors."""


class EventStoreError(ShopNotifyError):
    """Event store operation failed."""


class EventNotFoundError(EventStoreError, LookupError):
    """No event with the given id exists in the store."""

    def __init__(self, event_id: str) -> None:
        super().__init__(f"Event not found: {event_id}")
        self.event_id = event_id


class NotificationSinkError(ShopNotifyError):
    """Notification sink operation failed."""


class NotificationNotFoundError(NotificationSinkError, LookupError):
    """No notification with the given id exists in the sink."""

    def __init__(self, notification_id: str) -> None:
        super().__init__(f"Notification not found: {notification_id}")
        self.notification_id = notification_id
