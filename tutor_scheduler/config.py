"""Runtime settings read from the environment.

Values may come from a local ``.env`` file during development; in deployment
they are plain environment variables.
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Tuple

from dotenv import load_dotenv

load_dotenv()

_TRUTHY = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUTHY


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


@dataclass(frozen=True)
class Settings:
    database_url: str
    log_level: str
    cors_origins: Tuple[str, ...]
    seed_demo_data: bool
    reschedule_conflict_retries: int
    max_agenda_range_days: int
    port: int


def load_settings() -> Settings:
    """Build a fresh :class:`Settings` from the current environment."""
    origins = os.environ.get("CORS_ORIGINS", "*")
    return Settings(
        database_url=os.environ.get("DATABASE_URL", "sqlite:///./tutor_scheduler.db"),
        log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
        seed_demo_data=_env_bool("SEED_DEMO_DATA", False),
        reschedule_conflict_retries=max(_env_int("RESCHEDULE_CONFLICT_RETRIES", 1), 0),
        max_agenda_range_days=_env_int("MAX_AGENDA_RANGE_DAYS", 400),
        port=_env_int("PORT", 8765),
    )


@lru_cache()
def get_settings() -> Settings:
    return load_settings()
