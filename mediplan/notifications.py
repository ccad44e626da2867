"""Transient UI messages that expire after a fixed delay."""

from __future__ import annotations

import uuid
from threading import Lock
from typing import Any, Dict, List, Optional

import structlog
from prometheus_client import Counter

from mediplan.models import Notification
from mediplan.scheduler import Scheduler, TimerHandle


logger = structlog.get_logger(__name__)

NOTIFICATIONS_EMITTED = Counter(
    "mediplan_notifications_total",
    "Transient notifications emitted by the store",
    ("type",),
)

NOTIFICATION_TYPES = ("success", "error", "warning", "info")


class NotificationQueue:
    """Ephemeral, auto-expiring list of UI messages.

    Entries keep insertion order.  Each one is removed ``ttl`` seconds after
    it was added or when dismissed, whichever comes first; removal always
    filters by id, so an expiry timer firing after a dismissal does nothing.
    """

    def __init__(self, scheduler: Scheduler, *, ttl: float = 4.0) -> None:
        self._scheduler = scheduler
        self.ttl = ttl
        self._items: List[Notification] = []
        self._timers: Dict[str, TimerHandle] = {}
        self._lock = Lock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def notify(self, message: str, kind: str = "info") -> Notification:
        if kind not in NOTIFICATION_TYPES:
            logger.warning("notification_type_unknown", kind=kind)
            kind = "info"
        notification = Notification(id=uuid.uuid4().hex, message=message, type=kind)  # type: ignore[arg-type]
        with self._lock:
            self._items.append(notification)
        handle = self._scheduler.call_later(self.ttl, lambda: self._expire(notification.id))
        with self._lock:
            if any(item.id == notification.id for item in self._items):
                self._timers[notification.id] = handle
        NOTIFICATIONS_EMITTED.labels(type=kind).inc()
        logger.debug("notification_emitted", notification_id=notification.id, type=kind)
        return notification

    def dismiss(self, notification_id: str) -> bool:
        """Remove ``notification_id`` now; return ``False`` if it was already gone."""

        removed = self._remove(notification_id)
        with self._lock:
            handle = self._timers.pop(notification_id, None)
        if handle is not None:
            handle.cancel()
        return removed

    def items(self) -> List[Notification]:
        with self._lock:
            return list(self._items)

    def to_list(self) -> List[Dict[str, Any]]:
        return [item.to_dict() for item in self.items()]

    def get(self, notification_id: str) -> Optional[Notification]:
        with self._lock:
            for item in self._items:
                if item.id == notification_id:
                    return item
        return None

    def close(self) -> None:
        """Cancel every pending expiry timer and drop the queued messages."""

        with self._lock:
            handles = list(self._timers.values())
            self._timers.clear()
            self._items.clear()
        for handle in handles:
            handle.cancel()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _remove(self, notification_id: str) -> bool:
        with self._lock:
            before = len(self._items)
            self._items = [item for item in self._items if item.id != notification_id]
            return len(self._items) != before

    def _expire(self, notification_id: str) -> None:
        with self._lock:
            self._timers.pop(notification_id, None)
        self._remove(notification_id)


__all__ = ["NOTIFICATIONS_EMITTED", "NOTIFICATION_TYPES", "NotificationQueue"]
