"""Event log: models, store contract, SQLite journal, publisher, history."""

from shopnotify.events.history import EventHistory
from shopnotify.events.journal import EventJournal
from shopnotify.events.models import DeadLetterEntry, Event, EventDraft, ProcessingResult
from shopnotify.events.publisher import EventPublisher
from shopnotify.events.store import EventStore

__all__ = [
    "DeadLetterEntry",
    "Event",
    "EventDraft",
    "EventHistory",
    "EventJournal",
    "EventPublisher",
    "EventStore",
    "ProcessingResult",
]
