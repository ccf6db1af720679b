"""Load worker settings from config/settings.yaml, with environment overrides."""

import os
from pathlib import Path
from typing import Any, Callable, Mapping

import yaml

_DEFAULTS: dict[str, Any] = {
    "event_processor": {
        "batch_size": 50,
        "poll_interval_ms": 5000,
        "max_idle_polls": 10,
        "idle_backoff_multiplier": 2.0,
        "max_backoff_ms": 60000,
    },
    "event_store": {
        "db_path": "var/data/shopnotify.db",
        "max_retries": 5,
        "busy_timeout": 5000,
    },
    "logging": {
        "file": "var/logs/shopnotify.log",
        "level": "INFO",
        "log_to_console": True,
        "max_bytes": 10485760,  # 10 MB
        "backup_count": 3,
        "quiet_loggers": ["aiosqlite", "asyncio"],
    },
}

# env var -> (dot path, converter)
_ENV_OVERRIDES: dict[str, tuple[str, Callable[[str], Any]]] = {
    "EVENT_BATCH_SIZE": ("event_processor.batch_size", int),
    "EVENT_POLL_INTERVAL_MS": ("event_processor.poll_interval_ms", int),
    "EVENT_MAX_IDLE_POLLS": ("event_processor.max_idle_polls", int),
    "EVENT_IDLE_BACKOFF_MULTIPLIER": ("event_processor.idle_backoff_multiplier", float),
    "EVENT_MAX_BACKOFF_MS": ("event_processor.max_backoff_ms", int),
    "EVENT_MAX_RETRIES": ("event_store.max_retries", int),
    "SHOPNOTIFY_DB_PATH": ("event_store.db_path", str),
    "SHOPNOTIFY_LOG_LEVEL": ("logging.level", str),
}

_cached: dict[str, Any] | None = None


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Merge overlay into base recursively. Mutates base."""
    for key, value in overlay.items():
        if value is None:
            continue
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _deep_copy_nested(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {k: _deep_copy_nested(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_deep_copy_nested(x) for x in obj]
    return obj


def get_default_settings() -> dict[str, Any]:
    return _deep_copy_nested(_DEFAULTS)


def get_setting(settings: dict[str, Any], path: str, default: Any = None) -> Any:
    """Get a nested value by dot path (e.g. 'event_processor.batch_size')."""
    current: Any = settings
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return default
        current = current[part]
    return current


def _set_setting(settings: dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    current = settings
    for part in parts[:-1]:
        current = current.setdefault(part, {})
    current[parts[-1]] = value


def apply_env_overrides(
    settings: dict[str, Any], environ: Mapping[str, str] | None = None
) -> dict[str, Any]:
    """Apply EVENT_* / SHOPNOTIFY_* environment variables. Mutates settings.

    Raises ValueError when a variable is set but not convertible.
    """
    env = os.environ if environ is None else environ
    for name, (path, convert) in _ENV_OVERRIDES.items():
        raw = env.get(name)
        if raw is None or raw.strip() == "":
            continue
        try:
            _set_setting(settings, path, convert(raw.strip()))
        except ValueError as e:
            raise ValueError(f"Invalid value for {name}: {raw!r}") from e
    return settings


def reload_settings() -> None:
    """Clear the settings cache."""
    global _cached
    _cached = None


def load_settings(
    config_dir: Path | None = None, environ: Mapping[str, str] | None = None
) -> dict[str, Any]:
    """Defaults, merged with config/settings.yaml, then environment overrides."""
    global _cached
    if _cached is not None:
        return _cached

    if config_dir is None:
        config_dir = Path(__file__).resolve().parent.parent / "config"
    path = config_dir / "settings.yaml"

    result = get_default_settings()
    if path.exists():
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
            if isinstance(data, dict):
                _deep_merge(result, data)
        except (yaml.YAMLError, OSError):
            pass

    apply_env_overrides(result, environ)
    _cached = result
    return result
