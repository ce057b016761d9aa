"""
Configuration loader for roadsync.

Reads roadsync.env from the project directory. Relative paths resolve
against the project directory.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from roadsync.lib import envparse
from roadsync.lib.constants import (
    DEFAULT_ID_PREFIXES,
    DEFAULT_LOCK_TIMEOUT,
    DEFAULT_TIMEZONE,
    DEFAULT_WRITE_RETRIES,
    ID_PREFIX_PATTERN,
)
from roadsync.lib.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "roadsync.env"
VALID_SORT_MODES = ("RWS", "STATUS", "ALPHA", "SOURCE")
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
TRUE_VALUES = ("true", "yes", "1")
FALSE_VALUES = ("false", "no", "0")


@dataclass
class EngineConfig:
    """Engine configuration from roadsync.env"""
    project_dir: Path
    roadmap_path: Path
    store_path: Path
    lock_path: Path
    hooks_path: Path
    todo_path: Path
    todo_sort_mode: str
    todo_auto_export: bool
    id_prefixes: tuple[str, ...]
    timezone: str
    lock_timeout: int
    store_write_retries: int
    log_level: str


def _int_setting(env: dict, key: str, default: int, minimum: int = 0) -> int:
    raw = env.get(key, str(default))
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got '{raw}'") from None
    if value < minimum:
        raise ConfigError(f"{key} must be >= {minimum}, got {value}")
    return value


def _bool_setting(env: dict, key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None:
        return default
    if raw.lower() in TRUE_VALUES:
        return True
    if raw.lower() in FALSE_VALUES:
        return False
    raise ConfigError(f"{key} must be true or false, got '{raw}'")


def _prefixes_setting(env: dict) -> tuple[str, ...]:
    raw = env.get("ID_PREFIXES")
    if raw is None:
        return DEFAULT_ID_PREFIXES
    prefixes = tuple(p.strip().upper() for p in raw.split(",") if p.strip())
    bad = [p for p in prefixes if not ID_PREFIX_PATTERN.match(p)]
    if not prefixes or bad:
        raise ConfigError(f"ID_PREFIXES must list prefixes like UI,CORE; got '{raw}'")
    return prefixes


def load_config(project_dir: Path) -> EngineConfig:
    """Load roadsync.env and return EngineConfig.

    A missing file yields the defaults.
    """
    config_file = project_dir / CONFIG_FILENAME
    if config_file.exists():
        env = envparse.load_env(config_file)
    else:
        logger.debug(f"No {CONFIG_FILENAME} in {project_dir}, using defaults")
        env = {}

    def resolve(key: str, default: str) -> Path:
        path = Path(env.get(key, default))
        return path if path.is_absolute() else project_dir / path

    roadmap_path = resolve("ROADMAP_PATH", "ROADMAP_TASKS.md")

    timezone = env.get("TIMEZONE", DEFAULT_TIMEZONE)
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigError(f"Unknown TIMEZONE '{timezone}'") from None

    sort_mode = env.get("TODO_SORT_MODE", "RWS").upper()
    if sort_mode not in VALID_SORT_MODES:
        raise ConfigError(f"TODO_SORT_MODE must be one of {', '.join(VALID_SORT_MODES)}, got '{sort_mode}'")

    log_level = env.get("LOG_LEVEL", "WARNING").upper()
    if log_level not in VALID_LOG_LEVELS:
        raise ConfigError(f"LOG_LEVEL must be one of {', '.join(VALID_LOG_LEVELS)}, got '{log_level}'")

    return EngineConfig(
        project_dir=project_dir,
        roadmap_path=roadmap_path,
        store_path=resolve("STORE_PATH", ".roadsync/memory.jsonl"),
        lock_path=resolve("LOCK_PATH", f".roadsync/{roadmap_path.name}.lock"),
        hooks_path=resolve("HOOKS_PATH", "hooks.yaml"),
        todo_path=resolve("TODO_PATH", "todotasks.txt"),
        todo_sort_mode=sort_mode,
        todo_auto_export=_bool_setting(env, "TODO_AUTO_EXPORT", True),
        id_prefixes=_prefixes_setting(env),
        timezone=timezone,
        lock_timeout=_int_setting(env, "LOCK_TIMEOUT", DEFAULT_LOCK_TIMEOUT),
        store_write_retries=_int_setting(env, "STORE_WRITE_RETRIES", DEFAULT_WRITE_RETRIES),
        log_level=log_level,
    )
