"""Entry point for the event processor worker.

Runs outside any request lifecycle so event processing never blocks
transactional work. ``--once`` processes a single batch and exits, for
cron-driven deployments.
"""

import asyncio
import logging
import signal
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from shopnotify.db import Database
from shopnotify.events import EventJournal
from shopnotify.logging_config import setup_logging
from shopnotify.notifications import SqlitePlatformNotificationSink, SqliteTenantNotificationSink
from shopnotify.processor import EventProcessor, ProcessorConfig
from shopnotify.settings import get_setting, load_settings

_PROJECT_ROOT = Path(__file__).resolve().parent.parent

logger = logging.getLogger(__name__)


def build_processor_config(settings: dict[str, Any]) -> ProcessorConfig:
    return ProcessorConfig(**settings.get("event_processor", {}))


def _db_path(settings: dict[str, Any]) -> Path:
    path = Path(get_setting(settings, "event_store.db_path", "var/data/shopnotify.db"))
    return path if path.is_absolute() else _PROJECT_ROOT / path


@dataclass
class Worker:
    """Processor plus the stores it runs on; all stores share one database connection."""

    processor: EventProcessor
    database: Database
    journal: EventJournal
    platform_sink: SqlitePlatformNotificationSink
    tenant_sink: SqliteTenantNotificationSink

    async def close(self) -> None:
        await self.database.close()


def build_processor(settings: dict[str, Any]) -> Worker:
    database = Database(
        _db_path(settings),
        busy_timeout=get_setting(settings, "event_store.busy_timeout", 5000),
    )
    journal = EventJournal(
        database, max_retries=get_setting(settings, "event_store.max_retries", 5)
    )
    platform_sink = SqlitePlatformNotificationSink(database)
    tenant_sink = SqliteTenantNotificationSink(database)
    processor = EventProcessor(
        journal, platform_sink, tenant_sink, config=build_processor_config(settings)
    )
    return Worker(processor, database, journal, platform_sink, tenant_sink)


def _install_signal_handlers(processor: EventProcessor) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, processor.stop)
        except (NotImplementedError, RuntimeError, ValueError):
            pass  # not supported on Windows; KeyboardInterrupt ends the run instead


async def main_async(once: bool = False) -> int:
    """Bootstrap: settings -> logging -> stores -> processor -> run. Returns the
    number of events processed in --once mode, else 0."""
    settings = load_settings()
    setup_logging(_PROJECT_ROOT, settings)
    worker = build_processor(settings)
    processor = worker.processor
    logger.info("Configuration: %s", processor.config.model_dump())
    try:
        if once:
            count = await processor.process_batch()
            logger.info("Processed %d events", count)
            return count
        _install_signal_handlers(processor)
        await processor.start()
        return 0
    finally:
        await worker.close()


def main(argv: list[str] | None = None) -> None:
    """Synchronous entry for the worker process."""
    args = sys.argv[1:] if argv is None else argv
    load_dotenv(_PROJECT_ROOT / ".env")
    try:
        asyncio.run(main_async(once="--once" in args))
    except KeyboardInterrupt:
        pass


__all__ = ["Worker", "build_processor", "build_processor_config", "main", "main_async"]
