"""Event history queries for audit trails and debugging. Not used by the processing loop."""

from shopnotify.events.models import DeadLetterEntry, Event
from shopnotify.events.store import EventStore


class EventHistory:
    def __init__(self, store: EventStore) -> None:
        self._store = store

    async def by_entity(self, entity_type: str, entity_id: str) -> list[Event]:
        """All events for one entity (audit trail), newest first."""
        return await self._store.find_by_entity(entity_type, entity_id)

    async def by_tenant(self, tenant_id: str, limit: int = 100) -> list[Event]:
        return await self._store.find_by_tenant(tenant_id, limit)

    async def dead_letters(
        self, tenant_id: str | None = None, limit: int = 100
    ) -> list[DeadLetterEntry]:
        """Events that exhausted their retry budget, newest first."""
        return await self._store.find_dead_letters(tenant_id, limit)
