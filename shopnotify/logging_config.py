"""Logging for the worker process, driven by the ``logging`` settings section.

Keys: ``file`` (relative to the project root), ``level`` for the root logger,
``package_level`` for ``shopnotify.*`` loggers (defaults to ``level``),
``log_to_console``, ``max_bytes``, ``backup_count``, and ``quiet_loggers``:
third-party loggers held at WARNING so per-statement driver chatter stays out
of the worker log.
"""

import logging
import logging.config
from pathlib import Path
from typing import Any

_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _level(value: Any, default: int) -> int:
    if value is None:
        return default
    level = logging.getLevelName(str(value).upper())
    return level if isinstance(level, int) else default


def build_logging_config(project_root: Path, settings: dict[str, Any]) -> dict[str, Any]:
    """dictConfig schema for the worker. Pure; ``setup_logging`` applies it."""
    cfg = settings.get("logging", {})
    level = _level(cfg.get("level"), logging.INFO)
    log_path = project_root / cfg.get("file", "var/logs/shopnotify.log")

    handlers: dict[str, Any] = {
        "file": {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "worker",
            "filename": str(log_path),
            "maxBytes": int(cfg.get("max_bytes", 10 * 1024 * 1024)),
            "backupCount": int(cfg.get("backup_count", 3)),
            "encoding": "utf-8",
        }
    }
    if cfg.get("log_to_console", True):
        handlers["console"] = {"class": "logging.StreamHandler", "formatter": "worker"}

    loggers: dict[str, Any] = {
        name: {"level": logging.WARNING} for name in cfg.get("quiet_loggers", ())
    }
    loggers["shopnotify"] = {"level": _level(cfg.get("package_level"), level)}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"worker": {"format": _FORMAT, "datefmt": _DATEFMT}},
        "handlers": handlers,
        "loggers": loggers,
        "root": {"level": level, "handlers": list(handlers)},
    }


def setup_logging(project_root: Path, settings: dict[str, Any]) -> Path:
    """Configure logging from settings. Returns the log file path."""
    config = build_logging_config(project_root, settings)
    log_path = Path(config["handlers"]["file"]["filename"])
    log_path.parent.mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(config)
    return log_path
