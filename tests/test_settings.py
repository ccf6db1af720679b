"""Tests for settings loading, env overrides, logging setup and worker wiring."""

import logging
import logging.handlers
from pathlib import Path

import pytest

from shopnotify.events import EventPublisher
from shopnotify.logging_config import build_logging_config, setup_logging
from shopnotify.processor import ProcessorConfig
from shopnotify.runner import build_processor, build_processor_config
from shopnotify.settings import (
    apply_env_overrides,
    get_default_settings,
    get_setting,
    load_settings,
    reload_settings,
)


@pytest.fixture(autouse=True)
def _fresh_settings():
    reload_settings()
    yield
    reload_settings()


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    named = {n: logging.getLogger(n).level for n in ("shopnotify", "aiosqlite", "asyncio")}
    yield root
    for h in root.handlers[:]:
        root.removeHandler(h)
        h.close()
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)
    for name, named_level in named.items():
        logging.getLogger(name).setLevel(named_level)


def test_defaults_without_config_file(tmp_path: Path) -> None:
    settings = load_settings(config_dir=tmp_path, environ={})
    assert settings == get_default_settings()
    assert get_setting(settings, "event_processor.batch_size") == 50
    assert get_setting(settings, "event_store.max_retries") == 5


def test_yaml_is_merged_over_defaults(tmp_path: Path) -> None:
    (tmp_path / "settings.yaml").write_text(
        "event_processor:\n  batch_size: 10\nlogging:\n  level: DEBUG\n", encoding="utf-8"
    )
    settings = load_settings(config_dir=tmp_path, environ={})
    assert get_setting(settings, "event_processor.batch_size") == 10
    assert get_setting(settings, "event_processor.poll_interval_ms") == 5000
    assert get_setting(settings, "logging.level") == "DEBUG"


def test_env_overrides_yaml(tmp_path: Path) -> None:
    (tmp_path / "settings.yaml").write_text(
        "event_processor:\n  batch_size: 10\n", encoding="utf-8"
    )
    settings = load_settings(
        config_dir=tmp_path,
        environ={
            "EVENT_BATCH_SIZE": "25",
            "EVENT_IDLE_BACKOFF_MULTIPLIER": "1.5",
            "EVENT_MAX_RETRIES": "7",
            "SHOPNOTIFY_DB_PATH": "/tmp/x.db",
            "EVENT_POLL_INTERVAL_MS": "",
        },
    )
    assert get_setting(settings, "event_processor.batch_size") == 25
    assert get_setting(settings, "event_processor.idle_backoff_multiplier") == 1.5
    assert get_setting(settings, "event_processor.poll_interval_ms") == 5000
    assert get_setting(settings, "event_store.max_retries") == 7
    assert get_setting(settings, "event_store.db_path") == "/tmp/x.db"


def test_invalid_env_value_raises() -> None:
    with pytest.raises(ValueError, match="EVENT_BATCH_SIZE"):
        apply_env_overrides(get_default_settings(), {"EVENT_BATCH_SIZE": "lots"})


def test_load_settings_is_cached_until_reload(tmp_path: Path) -> None:
    first = load_settings(config_dir=tmp_path, environ={})
    assert load_settings(config_dir=tmp_path, environ={"EVENT_BATCH_SIZE": "3"}) is first
    reload_settings()
    again = load_settings(config_dir=tmp_path, environ={"EVENT_BATCH_SIZE": "3"})
    assert get_setting(again, "event_processor.batch_size") == 3


def test_get_setting_missing_path_returns_default() -> None:
    settings = get_default_settings()
    assert get_setting(settings, "event_processor.nope", 42) == 42
    assert get_setting(settings, "event_processor.batch_size.deeper") is None


def test_defaults_are_independent_copies() -> None:
    a = get_default_settings()
    a["event_processor"]["batch_size"] = 1
    assert get_default_settings()["event_processor"]["batch_size"] == 50


def test_build_processor_config_from_settings() -> None:
    settings = get_default_settings()
    settings["event_processor"]["max_idle_polls"] = 4
    config = build_processor_config(settings)
    assert isinstance(config, ProcessorConfig)
    assert config.max_idle_polls == 4


@pytest.mark.asyncio
async def test_build_processor_shares_one_connection(tmp_path: Path) -> None:
    settings = get_default_settings()
    settings["event_store"]["db_path"] = str(tmp_path / "worker.db")
    worker = build_processor(settings)
    try:
        assert worker.journal.database is worker.database
        assert worker.platform_sink.database is worker.database
        assert worker.tenant_sink.database is worker.database
        assert worker.database.db_path == tmp_path / "worker.db"
        assert worker.processor.config.batch_size == 50
    finally:
        await worker.close()


@pytest.mark.asyncio
async def test_worker_batch_does_not_contend_for_database(tmp_path: Path) -> None:
    settings = get_default_settings()
    settings["event_store"]["db_path"] = str(tmp_path / "worker.db")
    worker = build_processor(settings)
    try:
        publisher = EventPublisher(worker.journal)
        for i in range(30):
            await publisher.publish_event(
                "payment.received",
                f"tenant-{i % 3}",
                "payment",
                f"pay-{i}",
                payload={"amount": i, "payment_method": "upi"},
                idempotency_key=f"pay-{i}",
            )

        assert await worker.processor.process_batch() == 30

        events = []
        for i in range(3):
            events += await worker.journal.find_by_tenant(f"tenant-{i}")
        assert len(events) == 30
        failed = [(e.id, e.error_message) for e in events if e.retry_count > 0]
        assert failed == []
        assert all(e.processed_at is not None for e in events)
        assert len(await worker.platform_sink.find_unread()) == 30
    finally:
        await worker.close()


def test_setup_logging_installs_file_handler(tmp_path: Path, restore_root_logger) -> None:
    settings = get_default_settings()
    settings["logging"].update(level="debug", log_to_console=False, file="logs/worker.log")
    log_path = setup_logging(tmp_path, settings)

    root = restore_root_logger
    assert log_path == tmp_path / "logs" / "worker.log"
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0], logging.handlers.RotatingFileHandler)

    logging.getLogger("shopnotify.test").info("hello worker")
    root.handlers[0].flush()
    assert "hello worker" in log_path.read_text(encoding="utf-8")


def test_setup_logging_adds_console_handler(tmp_path: Path, restore_root_logger) -> None:
    setup_logging(tmp_path, get_default_settings())
    kinds = {type(h) for h in restore_root_logger.handlers}
    assert kinds == {logging.handlers.RotatingFileHandler, logging.StreamHandler}


def test_package_level_and_quiet_loggers(tmp_path: Path, restore_root_logger) -> None:
    settings = get_default_settings()
    settings["logging"].update(level="WARNING", package_level="DEBUG", log_to_console=False)
    setup_logging(tmp_path, settings)

    assert restore_root_logger.level == logging.WARNING
    assert logging.getLogger("shopnotify").level == logging.DEBUG
    assert logging.getLogger("shopnotify.processor").isEnabledFor(logging.DEBUG)
    assert logging.getLogger("aiosqlite").level == logging.WARNING
    assert not logging.getLogger("aiosqlite").isEnabledFor(logging.INFO)


def test_build_logging_config_defaults(tmp_path: Path) -> None:
    config = build_logging_config(tmp_path, {})
    assert config["root"]["level"] == logging.INFO
    assert config["loggers"]["shopnotify"]["level"] == logging.INFO
    assert config["handlers"]["file"]["filename"] == str(tmp_path / "var/logs/shopnotify.log")
    assert set(config["root"]["handlers"]) == {"file", "console"}
    assert build_logging_config(tmp_path, {"logging": {"level": "nonsense"}})["root"]["level"] == logging.INFO
