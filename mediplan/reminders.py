"""Appointment reminders: selection, message rendering and paced bulk sending.

Delivery is simulated.  "Sending" a reminder flips the appointment's
``reminderSent`` flag through :meth:`ClinicStore.send_reminder`; no SMS,
WhatsApp or email leaves the process.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

import structlog
from prometheus_client import Counter

from mediplan import time_utils
from mediplan.catalog import INACTIVE_STATUSES
from mediplan.formatting import format_date, patient_name
from mediplan.queries import find_by_id
from mediplan.scheduler import Scheduler, TimerHandle

if TYPE_CHECKING:
    from mediplan.store import ClinicStore


logger = structlog.get_logger(__name__)

REMINDERS_SENT = Counter(
    "mediplan_reminders_sent_total",
    "Simulated reminders flagged as sent",
    ("channel",),
)

_PLACEHOLDERS = ("patient", "date", "time", "cabinet", "phone")


def format_reminder_message(template: str, **fields: Any) -> str:
    """Fill ``{patient}``, ``{date}``, ``{time}``, ``{cabinet}`` and ``{phone}``.

    Missing values render as empty strings; other braces are left alone.
    """

    message = template or ""
    for name in _PLACEHOLDERS:
        message = message.replace("{" + name + "}", str(fields.get(name) or ""))
    return message


def should_send_reminder(
    day: str, time_of_day: str, hours_before: int, *, now: Optional[datetime] = None
) -> bool:
    """Return ``True`` when the appointment is upcoming and within ``hours_before`` hours."""

    starts_at = time_utils.parse_local_datetime(day, time_of_day)
    if starts_at is None:
        return False
    current = now or datetime.now()
    return current < starts_at < current + timedelta(hours=hours_before)


def _with_patient(
    appointments: Iterable[Mapping[str, Any]], patients: Sequence[Mapping[str, Any]]
) -> List[Dict[str, Any]]:
    return [{**a, "patient": find_by_id(patients, a.get("patientId"))} for a in appointments]


def pending_reminders(
    appointments: Iterable[Mapping[str, Any]],
    patients: Sequence[Mapping[str, Any]],
    today: str,
) -> List[Dict[str, Any]]:
    """Upcoming, not yet reminded, still active appointments by date then time."""

    selected = [
        a
        for a in appointments
        if (a.get("date") or "") >= today
        and not a.get("reminderSent")
        and a.get("status") not in INACTIVE_STATUSES
    ]
    selected.sort(key=lambda a: (a.get("date") or "", a.get("time") or ""))
    return _with_patient(selected, patients)


def sent_reminders(
    appointments: Iterable[Mapping[str, Any]],
    patients: Sequence[Mapping[str, Any]],
    today: str,
) -> List[Dict[str, Any]]:
    """Upcoming appointments already reminded, latest date first."""

    selected = [a for a in appointments if (a.get("date") or "") >= today and a.get("reminderSent")]
    selected.sort(key=lambda a: a.get("date") or "", reverse=True)
    return _with_patient(selected, patients)


def reminder_channel_for(patient: Optional[Mapping[str, Any]], settings: Mapping[str, Any]) -> str:
    if patient and patient.get("preferredReminder"):
        return str(patient["preferredReminder"])
    return str(settings.get("defaultType") or "whatsapp")


def build_reminder_message(
    appointment: Mapping[str, Any],
    patient: Optional[Mapping[str, Any]],
    cabinet: Mapping[str, Any],
    channel: str,
) -> str:
    """Render the cabinet template for ``channel``.

    WhatsApp uses ``whatsappTemplate``; SMS and email share ``smsTemplate``.
    """

    settings = cabinet.get("reminderSettings") or {}
    if channel == "whatsapp":
        template = settings.get("whatsappTemplate") or ""
    else:
        template = settings.get("smsTemplate") or ""
    return format_reminder_message(
        template,
        patient=patient_name(patient),
        date=format_date(appointment.get("date")),
        time=appointment.get("time"),
        cabinet=cabinet.get("name"),
        phone=cabinet.get("phone"),
    )


class ReminderBatch:
    """Sends a list of reminders one per ``pacing`` interval.

    Appointments that are no longer pending when their turn comes are
    skipped.  When the last one has been processed a summary notification is
    emitted and ``on_done`` receives the ids that were actually sent.
    """

    def __init__(
        self,
        store: "ClinicStore",
        appointment_ids: Sequence[str],
        *,
        scheduler: Scheduler,
        pacing: float,
        on_done: Optional[Callable[[List[str]], None]] = None,
    ) -> None:
        self.store = store
        self.appointment_ids = list(appointment_ids)
        self.scheduler = scheduler
        self.pacing = pacing
        self.on_done = on_done
        self.sent: List[str] = []
        self.finished = False
        self._position = 0
        self._handle: Optional[TimerHandle] = None

    def start(self) -> "ReminderBatch":
        if not self.appointment_ids:
            self.finished = True
            return self
        logger.info("reminder_batch_started", count=len(self.appointment_ids))
        self._schedule_next()
        return self

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self.finished = True

    def _schedule_next(self) -> None:
        self._handle = self.scheduler.call_later(self.pacing, self._step)

    def _step(self) -> None:
        appointment_id = self.appointment_ids[self._position]
        self._position += 1
        self._send_one(appointment_id)
        if self._position < len(self.appointment_ids):
            self._schedule_next()
            return
        self.finished = True
        self.store.notify(f"{len(self.appointment_ids)} rappels envoyés avec succès", "success")
        logger.info("reminder_batch_finished", requested=len(self.appointment_ids), sent=len(self.sent))
        if self.on_done is not None:
            self.on_done(list(self.sent))

    def _send_one(self, appointment_id: str) -> None:
        with self.store.lock:
            pending_ids = {
                a["id"]
                for a in pending_reminders(self.store.appointments, self.store.patients, time_utils.today_iso())
            }
            if appointment_id not in pending_ids:
                logger.info("reminder_skipped", appointment_id=appointment_id)
                return
            if self.store.send_reminder(appointment_id):
                self.sent.append(appointment_id)


def send_reminders(
    store: "ClinicStore",
    appointment_ids: Sequence[str],
    *,
    scheduler: Optional[Scheduler] = None,
    pacing: Optional[float] = None,
    on_done: Optional[Callable[[List[str]], None]] = None,
) -> ReminderBatch:
    """Start a paced batch on the store's scheduler and return it."""

    batch = ReminderBatch(
        store,
        appointment_ids,
        scheduler=scheduler or store.scheduler,
        pacing=store.settings.reminder_pacing if pacing is None else pacing,
        on_done=on_done,
    )
    return batch.start()


__all__ = [
    "REMINDERS_SENT",
    "ReminderBatch",
    "build_reminder_message",
    "format_reminder_message",
    "pending_reminders",
    "reminder_channel_for",
    "send_reminders",
    "sent_reminders",
    "should_send_reminder",
]
