"""
Configuration loading.

- Reads a .env file from the working directory if present (python-dotenv), then the environment.
- Exposes load_settings() and a frozen Settings object with the knobs used across the project.
"""

import os
from dataclasses import dataclass
from typing import Any, Callable

from dotenv import find_dotenv, load_dotenv

DEFAULT_DATABASE_URL = "sqlite:///chess_sessions.db"


def _get(name: str, default: Any, cast: Callable[[str], Any] | None = None) -> Any:
    value = os.environ.get(name)
    if value is None:
        return default
    return cast(value) if cast else value


def _as_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    # persistence
    database_url: str = DEFAULT_DATABASE_URL
    db_echo: bool = False
    history_limit: int = 50

    # pause before the opponent replies (seconds). 0 --> reply synchronously
    pacing_delay_s: float = 0.5

    log_level: str = "INFO"


def load_settings() -> Settings:
    """Build Settings from the environment (after loading .env)."""
    load_dotenv(find_dotenv(usecwd=True))
    return Settings(
        database_url=_get("CHESS_DATABASE_URL", DEFAULT_DATABASE_URL),
        db_echo=_get("CHESS_DB_ECHO", False, cast=_as_bool),
        history_limit=_get("CHESS_HISTORY_LIMIT", 50, cast=int),
        pacing_delay_s=_get("CHESS_PACING_DELAY_S", 0.5, cast=float),
        log_level=_get("CHESS_LOG_LEVEL", "INFO").upper(),
    )
