"""Event processor: drains the event log and fans notifications out to both sinks.

1. Poll the store for pending events (batched).
2. Generate notification drafts per event (pure, no I/O).
3. Write drafts through the platform and tenant sinks.
4. Mark the event processed, or record the failure and retry / dead-letter it.

Runs outside any request path. Events inside a batch are processed
concurrently; the loop itself advances poll -> batch -> sleep. Polling backs
off while the log stays empty and snaps back to the base interval as soon as
work appears. Loop state is process-local and resets on restart.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Awaitable, Callable

from pydantic import BaseModel, Field, model_validator

from shopnotify.events.models import Event, ProcessingResult
from shopnotify.events.store import EventStore
from shopnotify.notifications.generator import generate_notifications
from shopnotify.notifications.models import GeneratedNotifications
from shopnotify.notifications.sinks import PlatformNotificationSink, TenantNotificationSink

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]
GeneratorFn = Callable[[Event], GeneratedNotifications]


class ProcessorConfig(BaseModel):
    """Polling and backoff knobs."""

    batch_size: int = Field(50, gt=0)
    poll_interval_ms: int = Field(5000, ge=0)
    max_idle_polls: int = Field(10, ge=0)
    idle_backoff_multiplier: float = Field(2.0, ge=1.0)
    max_backoff_ms: int = Field(60_000, ge=0)

    @model_validator(mode="after")
    def _check_backoff_ceiling(self) -> "ProcessorConfig":
        if self.max_backoff_ms < self.poll_interval_ms:
            raise ValueError("max_backoff_ms must be >= poll_interval_ms")
        return self


@dataclass(frozen=True)
class LoopState:
    running: bool
    idle_count: int
    interval_ms: float

    @classmethod
    def initial(cls, config: ProcessorConfig) -> "LoopState":
        return cls(running=False, idle_count=0, interval_ms=config.poll_interval_ms)


def advance(state: LoopState, processed_count: int, config: ProcessorConfig) -> LoopState:
    """Next loop state after a batch that processed ``processed_count`` events."""
    if processed_count > 0:
        return replace(state, idle_count=0, interval_ms=config.poll_interval_ms)
    idle_count = state.idle_count + 1
    interval = state.interval_ms
    if idle_count >= config.max_idle_polls:
        interval = min(interval * config.idle_backoff_multiplier, config.max_backoff_ms)
    return replace(state, idle_count=idle_count, interval_ms=interval)


def _error_message(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class EventProcessor:
    """Polling loop over an event store. ``start`` runs until ``stop`` is called."""

    def __init__(
        self,
        store: EventStore,
        platform_sink: PlatformNotificationSink,
        tenant_sink: TenantNotificationSink,
        config: ProcessorConfig | None = None,
        sleep: SleepFn | None = None,
        generator: GeneratorFn = generate_notifications,
    ) -> None:
        self._store = store
        self._platform_sink = platform_sink
        self._tenant_sink = tenant_sink
        self._config = config or ProcessorConfig()
        self._sleep = sleep or self._sleep_until_stopped
        self._generate = generator
        self._state = LoopState.initial(self._config)
        self._wake = asyncio.Event()
        # Set while no loop is active; a restart waits on it.
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def config(self) -> ProcessorConfig:
        return self._config

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state.running

    async def start(self) -> None:
        """Run the poll loop. No-op if already running; after ``stop`` it first
        waits for the previous loop to exit. Per-event and store failures never
        escape; only cancellation ends the loop early."""
        if self._state.running:
            logger.warning("EventProcessor already running")
            return
        if not self._idle.is_set():
            logger.info("EventProcessor: waiting for the previous loop to finish its batch")
            await self._idle.wait()
            if self._state.running:
                logger.warning("EventProcessor already running")
                return

        self._idle.clear()
        self._wake.clear()
        self._state = replace(LoopState.initial(self._config), running=True)
        logger.info(
            "EventProcessor started (batch_size=%d, poll_interval_ms=%d)",
            self._config.batch_size,
            self._config.poll_interval_ms,
        )
        try:
            while self._state.running:
                try:
                    processed = await self.process_batch()
                except Exception:
                    # Store outage: keep idle count and interval, sleep as usual.
                    logger.exception("EventProcessor: batch failed, retrying next tick")
                else:
                    self._state = advance(self._state, processed, self._config)
                if not self._state.running:
                    break
                await self._sleep(self._state.interval_ms / 1000)
        finally:
            self._idle.set()

        logger.info("EventProcessor stopped")

    def stop(self) -> None:
        """Request shutdown. Observed at the next iteration boundary; an
        in-flight batch finishes first."""
        if self._state.running:
            logger.info("EventProcessor stop requested")
        self._state = replace(self._state, running=False)
        self._wake.set()

    async def _sleep_until_stopped(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._wake.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def process_batch(self) -> int:
        """Process one batch of pending events. Returns the number fetched
        (resolved either way), 0 when the log is empty. Usable standalone for
        cron-driven runs."""
        events = await self._store.fetch_pending(self._config.batch_size)
        if not events:
            return 0

        logger.info("EventProcessor: processing batch of %d events", len(events))
        results = await asyncio.gather(
            *(self.process_event(event) for event in events), return_exceptions=True
        )

        succeeded = 0
        for event, result in zip(events, results):
            if isinstance(result, BaseException):
                logger.error(
                    "EventProcessor: unhandled error for event %s: %s", event.id, result
                )
            elif result.success:
                succeeded += 1
        failed = len(events) - succeeded
        if failed:
            logger.warning(
                "EventProcessor: batch complete, %d succeeded, %d failed", succeeded, failed
            )
        return len(events)

    async def process_event(self, event: Event) -> ProcessingResult:
        """Generate, write platform then tenant drafts, acknowledge. Drafts already
        written before a failure are kept; sinks de-duplicate on retry."""
        try:
            notifications = self._generate(event)
            for draft in notifications.platform:
                await self._platform_sink.create(draft)
            for draft in notifications.tenant:
                await self._tenant_sink.create(draft)
            await self._store.mark_processed(event.id)
            return ProcessingResult.ok(event.id)
        except Exception as e:
            return await self._handle_failure(event, e)

    async def _handle_failure(self, event: Event, error: Exception) -> ProcessingResult:
        message = _error_message(error)
        logger.error(
            "EventProcessor: failed to process event %s (%s): %s",
            event.id,
            event.event_type,
            message,
        )
        try:
            await self._store.record_failure(event.id, message)
            if event.retry_count + 1 >= event.max_retries:
                logger.warning(
                    "EventProcessor: event %s exceeded max retries (%d), moving to dead letter",
                    event.id,
                    event.max_retries,
                )
                await self._store.move_to_dead_letter(event.id)
                return ProcessingResult.terminal(
                    event.id,
                    f"Moved to dead letter queue after {event.max_retries} retries: {message}",
                )
            return ProcessingResult.retry(event.id, message)
        except Exception:
            logger.exception(
                "EventProcessor: failed to record failure for event %s", event.id
            )
            return ProcessingResult.retry(event.id, f"Error handling failed: {message}")
