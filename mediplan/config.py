"""Store configuration helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional

from platformdirs import user_data_dir

APP_NAME = "MediPlan"

DEFAULT_STORAGE_PREFIX = "errami_"
DEFAULT_NOTIFICATION_TTL = 4.0
DEFAULT_ASSISTANT_DELAY = 0.8
DEFAULT_REMINDER_PACING = 0.3


@dataclass(frozen=True)
class StoreSettings:
    """Resolved configuration for a clinic store instance."""

    url: str
    storage_prefix: str = DEFAULT_STORAGE_PREFIX
    notification_ttl: float = DEFAULT_NOTIFICATION_TTL
    assistant_delay: float = DEFAULT_ASSISTANT_DELAY
    reminder_pacing: float = DEFAULT_REMINDER_PACING
    log_level: str = "INFO"
    json_logs: bool = True
    echo: bool = False

    def engine_options(self) -> Dict[str, object]:
        """Return keyword arguments for :func:`sqlalchemy.create_engine`."""

        options: Dict[str, object] = {"echo": self.echo}
        if self.is_sqlite:
            options["connect_args"] = {"check_same_thread": False}
        return options

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def is_memory(self) -> bool:
        return self.url in ("sqlite://", "sqlite:///:memory:")


def _default_sqlite_path() -> Path:
    data_dir = Path(user_data_dir(APP_NAME, APP_NAME))
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir / "mediplan.db"


def _normalise_sqlite_path(path: str | os.PathLike[str]) -> Path:
    resolved = Path(path).expanduser()
    if resolved.is_dir():
        resolved = resolved / "mediplan.db"
    resolved.parent.mkdir(parents=True, exist_ok=True)
    return resolved


def _get_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    try:
        value = float(raw)
    except ValueError as exc:  # pragma: no cover - clearly surface misconfiguration
        raise ValueError(f"Environment variable {name} must be a number; got {raw!r}") from exc
    if value < 0:
        raise ValueError(f"Environment variable {name} must not be negative; got {raw!r}")
    return value


def _get_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _resolve_url() -> str:
    url: Optional[str] = os.getenv("MEDIPLAN_DATABASE_URL") or os.getenv("DATABASE_URL")
    if url:
        return url
    path_override = os.getenv("MEDIPLAN_DB_PATH")
    if path_override:
        db_path = _normalise_sqlite_path(path_override)
    else:
        db_path = _default_sqlite_path()
    return f"sqlite:///{db_path}"


@lru_cache(maxsize=1)
def get_settings() -> StoreSettings:
    """Return the active store settings derived from the environment."""

    return StoreSettings(
        url=_resolve_url(),
        storage_prefix=os.getenv("MEDIPLAN_STORAGE_PREFIX") or DEFAULT_STORAGE_PREFIX,
        notification_ttl=_get_float_env("MEDIPLAN_NOTIFICATION_TTL", DEFAULT_NOTIFICATION_TTL),
        assistant_delay=_get_float_env("MEDIPLAN_ASSISTANT_DELAY", DEFAULT_ASSISTANT_DELAY),
        reminder_pacing=_get_float_env("MEDIPLAN_REMINDER_PACING", DEFAULT_REMINDER_PACING),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
        json_logs=_get_bool_env("MEDIPLAN_JSON_LOGS", True),
        echo=_get_bool_env("MEDIPLAN_DB_ECHO", False),
    )


__all__ = ["APP_NAME", "StoreSettings", "get_settings"]
