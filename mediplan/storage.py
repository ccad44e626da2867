"""Key-namespaced JSON persistence for the clinic store.

The store mirrors each collection to a key-value backend after every change.
Reads fall back to a caller supplied default when an entry is missing or
cannot be decoded, and write failures are logged and dropped: the backend is a
best-effort mirror of the in-memory state, not a transactional log.
"""

from __future__ import annotations

import json
import time
from typing import Any, Dict, Mapping, Optional

import sqlalchemy as sa
import structlog
from prometheus_client import Counter
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from mediplan.config import StoreSettings


logger = structlog.get_logger(__name__)


STORAGE_FAILURES = Counter(
    "mediplan_storage_failures_total",
    "Key-value reads or writes that failed and fell back",
    ("operation",),
)

# Logical collection name -> key suffix.
STORAGE_KEYS: Dict[str, str] = {
    "patients": "patients",
    "appointments": "appointments",
    "medical_records": "records",
    "invoices": "invoices",
    "users": "users",
    "cabinet": "cabinet",
    "auth": "auth",
    "initialized": "initialized",
}

INITIALIZED_MARKER = "true"


class KeyValueBackend:
    """Minimal string key-value interface the adapter writes through."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError

    def set_many(self, entries: Mapping[str, str]) -> None:
        for key, value in entries.items():
            self.set(key, value)

    def keys(self) -> list[str]:
        raise NotImplementedError


class MemoryBackend(KeyValueBackend):
    """Process-local backend; contents vanish with the object."""

    def __init__(self, initial: Optional[Mapping[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def set_many(self, entries: Mapping[str, str]) -> None:
        self._data.update(entries)

    def keys(self) -> list[str]:
        return sorted(self._data)


_METADATA = sa.MetaData()

kv_entries = sa.Table(
    "kv_entries",
    _METADATA,
    sa.Column("key", sa.String, primary_key=True),
    sa.Column("value", sa.Text, nullable=False),
    sa.Column("updated_at", sa.Float, nullable=False),
)


class SqlBackend(KeyValueBackend):
    """Backend storing entries in a single SQLAlchemy table."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        _METADATA.create_all(engine)

    @classmethod
    def from_url(cls, url: str, **options: Any) -> "SqlBackend":
        if url in ("sqlite://", "sqlite:///:memory:"):
            options.setdefault("poolclass", StaticPool)
            options.setdefault("connect_args", {"check_same_thread": False})
        return cls(sa.create_engine(url, future=True, **options))

    @classmethod
    def from_settings(cls, settings: StoreSettings) -> "SqlBackend":
        options = settings.engine_options()
        if settings.is_memory:
            options["poolclass"] = StaticPool
        return cls(sa.create_engine(settings.url, future=True, **options))

    def get(self, key: str) -> Optional[str]:
        with self.engine.connect() as conn:
            row = conn.execute(
                sa.select(kv_entries.c.value).where(kv_entries.c.key == key)
            ).first()
        return row[0] if row else None

    def _upsert(self, conn: sa.Connection, key: str, value: str, now: float) -> None:
        updated = conn.execute(
            sa.update(kv_entries)
            .where(kv_entries.c.key == key)
            .values(value=value, updated_at=now)
        )
        if not updated.rowcount:
            conn.execute(sa.insert(kv_entries).values(key=key, value=value, updated_at=now))

    def set(self, key: str, value: str) -> None:
        self.set_many({key: value})

    def set_many(self, entries: Mapping[str, str]) -> None:
        now = time.time()
        with self.engine.begin() as conn:
            for key, value in entries.items():
                self._upsert(conn, key, value, now)

    def remove(self, key: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(sa.delete(kv_entries).where(kv_entries.c.key == key))

    def keys(self) -> list[str]:
        with self.engine.connect() as conn:
            rows = conn.execute(sa.select(kv_entries.c.key).order_by(kv_entries.c.key)).all()
        return [row[0] for row in rows]

    def dispose(self) -> None:
        self.engine.dispose()


def _encode(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


class PersistenceAdapter:
    """JSON encode/decode layer over a backend with tenant key prefixing."""

    def __init__(self, backend: KeyValueBackend, prefix: str = "errami_") -> None:
        self.backend = backend
        self.prefix = prefix

    def key(self, name: str) -> str:
        return f"{self.prefix}{STORAGE_KEYS.get(name, name)}"

    def load(self, name: str, fallback: Any) -> Any:
        """Return the decoded entry for ``name`` or ``fallback``."""

        key = self.key(name)
        try:
            raw = self.backend.get(key)
        except (SQLAlchemyError, OSError):
            STORAGE_FAILURES.labels(operation="read").inc()
            logger.exception("storage_read_failed", key=key)
            return fallback
        if not raw:
            return fallback
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            STORAGE_FAILURES.labels(operation="decode").inc()
            logger.warning("storage_decode_failed", key=key)
            return fallback

    def save(self, name: str, value: Any) -> None:
        self.save_many({name: value})

    def save_many(self, values: Mapping[str, Any]) -> None:
        """Encode and write several entries; the SQL backend uses one transaction."""

        try:
            encoded = {self.key(name): _encode(value) for name, value in values.items()}
            self.backend.set_many(encoded)
        except (SQLAlchemyError, OSError, TypeError, ValueError):
            STORAGE_FAILURES.labels(operation="write").inc()
            logger.exception("storage_write_failed", keys=sorted(values))

    def remove(self, name: str) -> None:
        key = self.key(name)
        try:
            self.backend.remove(key)
        except (SQLAlchemyError, OSError):
            STORAGE_FAILURES.labels(operation="remove").inc()
            logger.exception("storage_remove_failed", key=key)

    def is_initialized(self) -> bool:
        try:
            return bool(self.backend.get(self.key("initialized")))
        except (SQLAlchemyError, OSError):
            STORAGE_FAILURES.labels(operation="read").inc()
            logger.exception("storage_read_failed", key=self.key("initialized"))
            return False

    def mark_initialized(self) -> None:
        # Stored raw so the entry reads back as the literal string "true".
        key = self.key("initialized")
        try:
            self.backend.set(key, INITIALIZED_MARKER)
        except (SQLAlchemyError, OSError):
            STORAGE_FAILURES.labels(operation="write").inc()
            logger.exception("storage_write_failed", keys=[key])


def build_adapter(settings: StoreSettings) -> PersistenceAdapter:
    """Return an adapter over the SQL backend configured by ``settings``."""

    return PersistenceAdapter(SqlBackend.from_settings(settings), prefix=settings.storage_prefix)


__all__ = [
    "STORAGE_KEYS",
    "STORAGE_FAILURES",
    "KeyValueBackend",
    "MemoryBackend",
    "SqlBackend",
    "PersistenceAdapter",
    "build_adapter",
    "kv_entries",
]
