"""Event publisher for application code.

Contract: publishing is fire-and-forget. ``publish`` never raises; a failed
publish is logged and returns ``None``, so the business operation that emitted
the event is never aborted by the notification subsystem. Duplicate publishes
with the same idempotency key resolve to the already stored event.
"""

import logging
from typing import Any

from shopnotify.events.models import Event, EventDraft
from shopnotify.events.store import EventStore
from shopnotify.events.types import is_known_event_type

logger = logging.getLogger(__name__)


class EventPublisher:
    """Appends events to the store on behalf of business transactions."""

    def __init__(self, store: EventStore) -> None:
        self._store = store

    async def publish(self, draft: EventDraft) -> Event | None:
        """Publish a draft. Returns the stored event, or None if publishing failed."""
        try:
            if not is_known_event_type(draft.event_type):
                logger.warning("Publishing unregistered event type %s", draft.event_type)
            return await self._store.publish(draft)
        except Exception:
            logger.exception(
                "Failed to publish %s for %s:%s",
                getattr(draft, "event_type", "?"),
                getattr(draft, "entity_type", "?"),
                getattr(draft, "entity_id", "?"),
            )
            return None

    async def publish_event(
        self,
        event_type: str,
        tenant_id: str,
        entity_type: str,
        entity_id: str,
        payload: dict[str, Any] | None = None,
        actor_id: str | None = None,
        idempotency_key: str | None = None,
    ) -> Event | None:
        return await self.publish(
            EventDraft(
                event_type=event_type,
                tenant_id=tenant_id,
                entity_type=entity_type,
                entity_id=entity_id,
                payload=dict(payload or {}),
                actor_id=actor_id,
                idempotency_key=idempotency_key,
            )
        )
