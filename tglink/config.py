"""Process settings read once from the environment."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass


class ConfigurationError(RuntimeError):
    """A required setting is missing."""


def _get_str(name: str) -> str:
    return os.getenv(name, "").strip()


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_log_level(name: str, default: str = "INFO") -> str:
    level = os.getenv(name, "").strip().upper()
    if not level:
        return default
    # getLevelName maps unknown names to a "Level X" string.
    if not isinstance(logging.getLevelName(level), int):
        return default
    return level


@dataclass(frozen=True)
class Settings:
    bot_token: str = ""
    postgres_dsn: str = ""
    jwt_secret: str = ""
    session_ttl_days: int = 30
    init_data_max_age: int | None = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        max_age = _get_int("TELEGRAM_INIT_DATA_MAX_AGE", 0)
        return cls(
            bot_token=_get_str("TELEGRAM_BOT_TOKEN"),
            postgres_dsn=_get_str("POSTGRES_DSN"),
            jwt_secret=_get_str("SUPABASE_JWT_SECRET"),
            session_ttl_days=max(1, _get_int("SESSION_TTL_DAYS", 30)),
            init_data_max_age=max_age if max_age > 0 else None,
            log_level=_get_log_level("LOG_LEVEL"),
        )

    def require(self, *names: str) -> None:
        """Raise ConfigurationError unless every named field is set."""
        missing = [name for name in names if not getattr(self, name)]
        if missing:
            raise ConfigurationError(f"Missing settings: {', '.join(missing)}")
