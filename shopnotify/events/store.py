"""Event store contract consumed by the processor, publisher and history queries."""

from typing import Protocol, runtime_checkable

from shopnotify.events.models import DeadLetterEntry, Event, EventDraft


@runtime_checkable
class EventStore(Protocol):
    """Durable, append-only event log with retry bookkeeping and a dead-letter queue."""

    async def publish(self, draft: EventDraft) -> Event:
        """Insert a new event. An existing idempotency key makes this a no-op
        that returns the already stored event."""

    async def fetch_pending(self, limit: int = 50) -> list[Event]:
        """Events with processed_at unset and retry budget remaining, oldest first."""

    async def mark_processed(self, event_id: str) -> None:
        """Set processed_at to now. Idempotent; never overwrites an earlier value."""

    async def record_failure(self, event_id: str, error_message: str) -> int:
        """Atomically increment retry_count and store the error. Returns the new count."""

    async def move_to_dead_letter(self, event_id: str) -> None:
        """Snapshot the event into the dead-letter queue and mark it processed."""

    async def get(self, event_id: str) -> Event | None: ...

    async def find_by_entity(self, entity_type: str, entity_id: str) -> list[Event]: ...

    async def find_by_tenant(self, tenant_id: str, limit: int = 100) -> list[Event]: ...

    async def find_dead_letters(
        self, tenant_id: str | None = None, limit: int = 100
    ) -> list[DeadLetterEntry]: ...
