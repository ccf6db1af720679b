"""Event log models: stored events, publish drafts, dead-letter snapshots."""

from dataclasses import dataclass, field
from typing import Any

__all__ = ["DeadLetterEntry", "Event", "EventDraft", "ProcessingResult"]


@dataclass(frozen=True)
class Event:
    """Immutable snapshot of one row of the event log."""

    id: str
    idempotency_key: str
    event_type: str
    tenant_id: str
    entity_type: str
    entity_id: str
    payload: dict[str, Any]
    created_at: float
    actor_id: str | None = None
    retry_count: int = 0
    max_retries: int = 5
    error_message: str | None = None
    processed_at: float | None = None

    @property
    def is_pending(self) -> bool:
        """True while unacknowledged and retry budget remains."""
        return self.processed_at is None and self.retry_count < self.max_retries


@dataclass(frozen=True)
class EventDraft:
    """What a publisher supplies. The store assigns id, timestamps and retry bookkeeping."""

    event_type: str
    tenant_id: str
    entity_type: str
    entity_id: str
    payload: dict[str, Any] = field(default_factory=dict)
    actor_id: str | None = None
    idempotency_key: str | None = None


@dataclass(frozen=True)
class DeadLetterEntry:
    """Snapshot of an event taken when it exhausted its retry budget."""

    id: str
    original_event_id: str
    event_type: str
    tenant_id: str
    entity_type: str
    entity_id: str
    payload: dict[str, Any]
    error_message: str | None
    retry_count: int
    created_at: float


@dataclass(frozen=True)
class ProcessingResult:
    """Outcome of processing one event. ``retriable`` is meaningful only on failure."""

    event_id: str
    success: bool
    error: str | None = None
    retriable: bool = False

    @classmethod
    def ok(cls, event_id: str) -> "ProcessingResult":
        return cls(event_id=event_id, success=True)

    @classmethod
    def retry(cls, event_id: str, error: str) -> "ProcessingResult":
        return cls(event_id=event_id, success=False, error=error, retriable=True)

    @classmethod
    def terminal(cls, event_id: str, error: str) -> "ProcessingResult":
        return cls(event_id=event_id, success=False, error=error, retriable=False)
