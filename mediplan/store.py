"""In-memory clinic store mirrored to a key-value backend.

:class:`ClinicStore` holds the patient, appointment, medical record, invoice
and user collections plus the cabinet configuration.  Every mutation is
validated first (nothing is applied when validation fails), then applied to
the in-memory lists, then mirrored to the :class:`PersistenceAdapter`.  The
mirror is disabled until :meth:`ClinicStore.load` has finished so an empty
store can never overwrite persisted data it has not read yet.

The store has exactly one logical writer.  Within a process, mutations hold
:attr:`ClinicStore.lock` (re-entrant) because reminder batches write from
scheduler threads while HTTP handlers write from the event loop.  Two
processes sharing the same backend overwrite each other's collections (last
write wins).
"""

from __future__ import annotations

import copy
import functools
import threading
import uuid
from typing import Any, Dict, Iterable, List, Mapping, Optional

import structlog
from prometheus_client import Counter

from mediplan import auth, queries, time_utils
from mediplan.catalog import PAYMENT_METHODS, REMINDER_CHANNELS, appointment_type, appointment_type_label
from mediplan.config import StoreSettings
from mediplan.demo_data import DEFAULT_CABINET_CONFIG, SeedData, demo_seed
from mediplan.errors import ProtectedUserError, RecordValidationError
from mediplan.models import (
    Appointment,
    CabinetConfig,
    Invoice,
    MedicalRecord,
    Notification,
    Patient,
    User,
    to_record,
)
from mediplan.notifications import NotificationQueue
from mediplan.reminders import REMINDERS_SENT, reminder_channel_for
from mediplan.scheduler import Scheduler, ThreadingScheduler
from mediplan.storage import PersistenceAdapter, build_adapter
from mediplan.validation import (
    appointment_errors,
    check_model,
    invoice_errors,
    patient_errors,
    raise_for,
    user_errors,
)


logger = structlog.get_logger(__name__)

STORE_MUTATIONS = Counter(
    "mediplan_store_mutations_total",
    "Mutations applied to the clinic store",
    ("collection", "operation"),
)

Record = Dict[str, Any]

COLLECTIONS = ("patients", "appointments", "medical_records", "invoices", "users")

_PATIENT_SYSTEM_FIELDS = ("id", "createdAt")
_APPOINTMENT_SYSTEM_FIELDS = ("id", "createdAt", "createdBy")
_RECORD_SYSTEM_FIELDS = ("id", "date", "createdBy")
_INVOICE_SYSTEM_FIELDS = ("id", "number", "createdAt", "createdBy")
_USER_SYSTEM_FIELDS = ("id", "createdAt", "passwordHash")


def _new_id() -> str:
    return uuid.uuid4().hex


def _money(value: float) -> float:
    return round(float(value), 2)


def _locked(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self.lock:
            return method(self, *args, **kwargs)

    return wrapper


def _merge(existing: Mapping[str, Any], changes: Mapping[str, Any], frozen: Iterable[str]) -> Record:
    """Shallow-merge ``changes`` into ``existing`` keeping ``frozen`` keys."""

    merged = {**existing, **changes}
    for key in frozen:
        if key in existing:
            merged[key] = existing[key]
        else:
            merged.pop(key, None)
    return merged


class ClinicStore:
    """Single-writer store for one cabinet."""

    def __init__(
        self,
        adapter: PersistenceAdapter,
        *,
        scheduler: Optional[Scheduler] = None,
        settings: Optional[StoreSettings] = None,
        seed: Optional[SeedData] = None,
    ) -> None:
        self.adapter = adapter
        self.settings = settings or StoreSettings(url="sqlite://")
        self.scheduler = scheduler or ThreadingScheduler()
        self.notifications = NotificationQueue(self.scheduler, ttl=self.settings.notification_ttl)
        self._seed = seed
        self.lock = threading.RLock()

        self.patients: List[Record] = []
        self.appointments: List[Record] = []
        self.medical_records: List[Record] = []
        self.invoices: List[Record] = []
        self.users: List[Record] = []
        self.cabinet: Record = copy.deepcopy(DEFAULT_CABINET_CONFIG)
        self.current_user: Optional[Record] = None
        self._loaded = False

    @classmethod
    def from_settings(
        cls,
        settings: StoreSettings,
        *,
        scheduler: Optional[Scheduler] = None,
        seed: Optional[SeedData] = None,
    ) -> "ClinicStore":
        """Build and load a store over the SQL backend described by ``settings``."""

        store = cls(build_adapter(settings), scheduler=scheduler, settings=settings, seed=seed)
        return store.load()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    @property
    def loaded(self) -> bool:
        return self._loaded

    @_locked
    def load(self) -> "ClinicStore":
        """Seed an uninitialised backend or reload the persisted collections.

        Seeding happens exactly once per backend: once the ``initialized``
        marker exists the persisted collections are always trusted, and demo
        data only stands in for entries that are missing or unreadable.
        """

        if self._loaded:
            return self

        fallback = self._seed or demo_seed()
        if not self.adapter.is_initialized():
            self.patients = copy.deepcopy(fallback.patients)
            self.appointments = copy.deepcopy(fallback.appointments)
            self.medical_records = copy.deepcopy(fallback.medical_records)
            self.invoices = copy.deepcopy(fallback.invoices)
            self.users = copy.deepcopy(fallback.users)
            self.cabinet = copy.deepcopy(fallback.cabinet)
            self.adapter.save_many(self._snapshot(*COLLECTIONS, "cabinet"))
            self.adapter.mark_initialized()
            logger.info(
                "store_seeded",
                patients=len(self.patients),
                appointments=len(self.appointments),
                users=len(self.users),
            )
        else:
            self.patients = self._load_list("patients", fallback.patients)
            self.appointments = self._load_list("appointments", fallback.appointments)
            self.medical_records = self._load_list("medical_records", fallback.medical_records)
            self.invoices = self._load_list("invoices", fallback.invoices)
            self.users = self._load_list("users", fallback.users)
            cabinet = self.adapter.load("cabinet", None)
            self.cabinet = cabinet if isinstance(cabinet, dict) else copy.deepcopy(fallback.cabinet)
            upgraded = self._upgrade_legacy_passwords()
            if upgraded:
                self.adapter.save("users", self.users)
                logger.info("legacy_passwords_upgraded", count=upgraded)
            logger.info("store_loaded", patients=len(self.patients), appointments=len(self.appointments))

        session = self.adapter.load("auth", None)
        if isinstance(session, dict) and session.get("id"):
            self.current_user = auth.public_profile(session)

        self._loaded = True
        return self

    def close(self) -> None:
        """Cancel outstanding timers; the collections stay readable."""

        self.notifications.close()
        self.scheduler.cancel_all()
        logger.debug("store_closed")

    def __enter__(self) -> "ClinicStore":
        return self.load()

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _load_list(self, name: str, fallback: List[Record]) -> List[Record]:
        value = self.adapter.load(name, None)
        if not isinstance(value, list):
            return copy.deepcopy(fallback)
        return [item for item in value if isinstance(item, dict)]

    def _upgrade_legacy_passwords(self) -> int:
        count = 0
        for index, user in enumerate(self.users):
            if "password" in user:
                self.users[index] = auth.upgrade_legacy_password(user)
                count += 1
        return count

    # ------------------------------------------------------------------
    # Persistence mirror
    # ------------------------------------------------------------------
    def _snapshot(self, *names: str) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in names}

    def _persist(self, *names: str) -> None:
        if not self._loaded:
            return
        self.adapter.save_many(self._snapshot(*names))

    def _mutated(
        self,
        collection: str,
        operation: str,
        *persist: str,
        message: Optional[str] = None,
        **context: Any,
    ) -> None:
        self._persist(*(persist or (collection,)))
        STORE_MUTATIONS.labels(collection=collection, operation=operation).inc()
        logger.info(f"{collection}_{operation}", **context)
        if message:
            self.notify(message, "success")

    def _index_of(self, records: List[Record], record_id: Optional[str]) -> int:
        for index, record in enumerate(records):
            if record.get("id") == record_id:
                return index
        return -1

    @property
    def _actor_id(self) -> Optional[str]:
        return self.current_user.get("id") if self.current_user else None

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------
    def notify(self, message: str, kind: str = "info") -> Notification:
        return self.notifications.notify(message, kind)

    def dismiss_notification(self, notification_id: str) -> bool:
        return self.notifications.dismiss(notification_id)

    def list_notifications(self) -> List[Dict[str, Any]]:
        return self.notifications.to_list()

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------
    @property
    def is_authenticated(self) -> bool:
        return self.current_user is not None

    @_locked
    def login(self, email: str, password: str) -> auth.LoginResult:
        result = auth.authenticate(self.users, email, password)
        if result.success and result.user is not None:
            self.current_user = result.user
            self.adapter.save("auth", result.user)
        return result

    @_locked
    def logout(self) -> None:
        """Clear the session; domain collections are left untouched."""

        user_id = self._actor_id
        self.current_user = None
        self.adapter.remove("auth")
        logger.info("logout", user_id=user_id)

    # ------------------------------------------------------------------
    # Patients
    # ------------------------------------------------------------------
    @_locked
    def add_patient(self, data: Mapping[str, Any]) -> Record:
        raise_for(patient_errors(data))
        record = {
            **data,
            "id": _new_id(),
            "createdAt": time_utils.today_iso(),
            "totalVisits": 0,
            "balance": 0,
        }
        record = to_record(check_model(Patient, record))
        self.patients.append(record)
        self._mutated("patients", "created", message="Patient ajouté", patient_id=record["id"])
        return copy.deepcopy(record)

    @_locked
    def update_patient(self, patient_id: str, changes: Mapping[str, Any]) -> Optional[Record]:
        index = self._index_of(self.patients, patient_id)
        if index < 0:
            logger.debug("patient_update_missing", patient_id=patient_id)
            return None
        merged = _merge(self.patients[index], changes, _PATIENT_SYSTEM_FIELDS)
        raise_for(patient_errors(merged))
        record = to_record(check_model(Patient, merged))
        self.patients[index] = record
        self._mutated("patients", "updated", message="Patient mis à jour", patient_id=patient_id)
        return copy.deepcopy(record)

    @_locked
    def delete_patient(self, patient_id: str) -> bool:
        """Delete a patient with its appointments and medical records.

        The three collections are written in one backend call, which the SQL
        backend wraps in a single transaction.
        """

        if self._index_of(self.patients, patient_id) < 0:
            return False
        before_appointments = len(self.appointments)
        before_records = len(self.medical_records)
        self.patients = [p for p in self.patients if p.get("id") != patient_id]
        self.appointments = [a for a in self.appointments if a.get("patientId") != patient_id]
        self.medical_records = [r for r in self.medical_records if r.get("patientId") != patient_id]
        self._mutated(
            "patients",
            "deleted",
            "patients",
            "appointments",
            "medical_records",
            message="Patient supprimé",
            patient_id=patient_id,
            appointments_removed=before_appointments - len(self.appointments),
            records_removed=before_records - len(self.medical_records),
        )
        return True

    def get_patient_by_id(self, patient_id: Optional[str]) -> Optional[Record]:
        record = queries.find_by_id(self.patients, patient_id)
        return copy.deepcopy(record) if record is not None else None

    # ------------------------------------------------------------------
    # Appointments
    # ------------------------------------------------------------------
    @_locked
    def add_appointment(self, data: Mapping[str, Any]) -> Record:
        raise_for(appointment_errors(data))
        record = dict(data)
        catalog_entry = appointment_type(record.get("type") or "consultation")
        if catalog_entry is not None:
            if record.get("duration") in (None, ""):
                record["duration"] = catalog_entry["duration"]
            if record.get("fee") in (None, ""):
                record["fee"] = catalog_entry["fee"]
        record.update(
            id=_new_id(),
            createdAt=time_utils.now_iso(),
            createdBy=self._actor_id,
            status="planifie",
            reminderSent=False,
        )
        record = to_record(check_model(Appointment, record))
        self.appointments.append(record)
        self._mutated(
            "appointments", "created", message="RDV créé", appointment_id=record["id"]
        )
        return copy.deepcopy(record)

    @_locked
    def update_appointment(self, appointment_id: str, changes: Mapping[str, Any]) -> Optional[Record]:
        """Merge ``changes``; any status may follow any other."""

        index = self._index_of(self.appointments, appointment_id)
        if index < 0:
            logger.debug("appointment_update_missing", appointment_id=appointment_id)
            return None
        merged = _merge(self.appointments[index], changes, _APPOINTMENT_SYSTEM_FIELDS)
        record = to_record(check_model(Appointment, merged))
        self.appointments[index] = record
        self._mutated(
            "appointments", "updated", appointment_id=appointment_id, status=record.get("status")
        )
        return copy.deepcopy(record)

    @_locked
    def delete_appointment(self, appointment_id: str) -> bool:
        if self._index_of(self.appointments, appointment_id) < 0:
            return False
        self.appointments = [a for a in self.appointments if a.get("id") != appointment_id]
        self._mutated(
            "appointments", "deleted", message="RDV supprimé", appointment_id=appointment_id
        )
        return True

    def get_appointment_by_id(self, appointment_id: Optional[str]) -> Optional[Record]:
        record = queries.find_by_id(self.appointments, appointment_id)
        return copy.deepcopy(record) if record is not None else None

    def get_appointments_by_patient(self, patient_id: str) -> List[Record]:
        return copy.deepcopy(queries.filter_by(self.appointments, "patientId", patient_id))

    def get_appointments_by_date(self, day: str) -> List[Record]:
        return copy.deepcopy(queries.filter_by(self.appointments, "date", day))

    def get_appointments_between(self, start: str, end: str) -> List[Record]:
        return copy.deepcopy(queries.appointments_between(self.appointments, start, end))

    # ------------------------------------------------------------------
    # Medical records
    # ------------------------------------------------------------------
    @_locked
    def add_medical_record(self, data: Mapping[str, Any]) -> Record:
        record = {
            **data,
            "id": _new_id(),
            "date": time_utils.today_iso(),
            "createdBy": self._actor_id,
        }
        record = to_record(check_model(MedicalRecord, record))
        self.medical_records.append(record)
        self._mutated(
            "medical_records", "created", message="Dossier ajouté", record_id=record["id"]
        )
        return copy.deepcopy(record)

    @_locked
    def update_medical_record(self, record_id: str, changes: Mapping[str, Any]) -> Optional[Record]:
        """Merge ``changes``; the creation ``date`` and author never change."""

        index = self._index_of(self.medical_records, record_id)
        if index < 0:
            return None
        merged = _merge(self.medical_records[index], changes, _RECORD_SYSTEM_FIELDS)
        record = to_record(check_model(MedicalRecord, merged))
        self.medical_records[index] = record
        self._mutated(
            "medical_records", "updated", message="Dossier mis à jour", record_id=record_id
        )
        return copy.deepcopy(record)

    @_locked
    def delete_medical_record(self, record_id: str) -> bool:
        if self._index_of(self.medical_records, record_id) < 0:
            return False
        self.medical_records = [r for r in self.medical_records if r.get("id") != record_id]
        self._mutated(
            "medical_records", "deleted", message="Dossier supprimé", record_id=record_id
        )
        return True

    def get_medical_record_by_id(self, record_id: Optional[str]) -> Optional[Record]:
        record = queries.find_by_id(self.medical_records, record_id)
        return copy.deepcopy(record) if record is not None else None

    def get_medical_records_by_patient(self, patient_id: str) -> List[Record]:
        return copy.deepcopy(queries.medical_records_for(self.medical_records, patient_id))

    # ------------------------------------------------------------------
    # Invoices
    # ------------------------------------------------------------------
    @property
    def invoice_prefix(self) -> str:
        settings = self.cabinet.get("invoiceSettings") or {}
        return settings.get("prefix") or "FAC"

    def generate_invoice_number(self) -> str:
        return queries.generate_invoice_number(
            self.invoice_prefix, self.invoices, time_utils.current_year()
        )

    def _priced(self, record: Record, *, tax: Any = None) -> Record:
        """Recompute item totals, subtotal, tax and total on ``record``."""

        items = []
        for position, item in enumerate(record.get("items") or []):
            entry = dict(item)
            quantity = entry.get("quantity")
            try:
                entry["quantity"] = int(quantity) if quantity not in (None, "") else 1
                entry["unitPrice"] = _money(entry.get("unitPrice") or 0)
            except (TypeError, ValueError) as exc:
                raise RecordValidationError(
                    {f"items.{position}": "Quantité ou prix invalide"}
                ) from exc
            entry["total"] = _money(entry["quantity"] * entry["unitPrice"])
            items.append(entry)
        subtotal = _money(sum(entry["total"] for entry in items))
        if tax in (None, ""):
            rate = float(self.cabinet.get("taxRate") or 0)
            tax = subtotal * rate / 100
        try:
            tax = _money(tax)
        except (TypeError, ValueError) as exc:
            raise RecordValidationError({"tax": "Montant de taxe invalide"}) from exc
        record.update(items=items, subtotal=subtotal, tax=tax, total=_money(subtotal + tax))
        return record

    def _build_invoice(self, data: Mapping[str, Any]) -> Record:
        raise_for(invoice_errors(data))
        record = dict(data)
        record.setdefault("date", time_utils.today_iso())
        record.setdefault("status", "pending")
        record.update(
            id=_new_id(),
            number=self.generate_invoice_number(),
            createdAt=time_utils.now_iso(),
            createdBy=self._actor_id,
        )
        self._priced(record, tax=data.get("tax"))
        return to_record(check_model(Invoice, record))

    @_locked
    def add_invoice(self, data: Mapping[str, Any]) -> Record:
        """Create an invoice; totals are always derived from the items."""

        record = self._build_invoice(data)
        self.invoices.append(record)
        self._mutated(
            "invoices", "created", message="Facture créée", invoice_id=record["id"], number=record["number"]
        )
        return copy.deepcopy(record)

    @_locked
    def update_invoice(self, invoice_id: str, changes: Mapping[str, Any]) -> Optional[Record]:
        """Merge ``changes``; totals are recomputed when items or tax change."""

        index = self._index_of(self.invoices, invoice_id)
        if index < 0:
            return None
        merged = _merge(self.invoices[index], changes, _INVOICE_SYSTEM_FIELDS)
        if "items" in changes or "tax" in changes:
            raise_for(invoice_errors(merged))
            self._priced(merged, tax=merged.get("tax"))
        record = to_record(check_model(Invoice, merged))
        self.invoices[index] = record
        self._mutated("invoices", "updated", invoice_id=invoice_id)
        return copy.deepcopy(record)

    @_locked
    def mark_invoice_paid(self, invoice_id: str, payment_method: str = "cash") -> Optional[Record]:
        _check_payment_method(payment_method)
        index = self._index_of(self.invoices, invoice_id)
        if index < 0:
            return None
        record = dict(self.invoices[index])
        record.update(status="paid", paymentMethod=payment_method, paidAt=time_utils.now_iso())
        self.invoices[index] = record
        self._mutated(
            "invoices", "paid", message="Facture payée", invoice_id=invoice_id, method=payment_method
        )
        return copy.deepcopy(record)

    @_locked
    def record_appointment_payment(
        self, appointment_id: str, payment_method: str = "cash"
    ) -> Optional[Record]:
        """Mark an appointment paid and issue the matching paid invoice.

        Returns the new invoice, or ``None`` when the appointment does not
        exist.  Both collections are written together.
        """

        _check_payment_method(payment_method)
        index = self._index_of(self.appointments, appointment_id)
        if index < 0:
            return None
        appointment = dict(self.appointments[index])
        paid_at = time_utils.now_iso()
        fee = _money(appointment.get("fee") or 0)
        invoice = self._build_invoice(
            {
                "patientId": appointment.get("patientId"),
                "appointmentId": appointment_id,
                "date": time_utils.today_iso(),
                "items": [
                    {
                        "description": appointment_type_label(appointment.get("type")),
                        "quantity": 1,
                        "unitPrice": fee,
                    }
                ],
                "tax": 0,
                "status": "paid",
                "paymentMethod": payment_method,
                "paidAt": paid_at,
            }
        )
        appointment.update(paid=True, paymentMethod=payment_method, paidAt=paid_at)
        self.appointments[index] = appointment
        self.invoices.append(invoice)
        self._mutated(
            "invoices",
            "created",
            "appointments",
            "invoices",
            message="Facture créée",
            invoice_id=invoice["id"],
            appointment_id=appointment_id,
        )
        return copy.deepcopy(invoice)

    def get_invoice_by_id(self, invoice_id: Optional[str]) -> Optional[Record]:
        record = queries.find_by_id(self.invoices, invoice_id)
        return copy.deepcopy(record) if record is not None else None

    def filter_invoices(self, status: str = "all", period: str = "all", search: str = "") -> List[Record]:
        return queries.filter_invoices(
            self.invoices,
            self.patients,
            today=time_utils.today(),
            status=status,
            period=period,
            search=search,
        )

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    @_locked
    def add_user(self, data: Mapping[str, Any]) -> Record:
        raise_for(user_errors(data, self.users))
        record = {key: value for key, value in data.items() if key not in ("password", "passwordHash")}
        record.update(
            id=_new_id(),
            isActive=True,
            createdAt=time_utils.today_iso(),
            passwordHash=auth.hash_password(str(data["password"])),
        )
        record = to_record(check_model(User, record))
        self.users.append(record)
        self._mutated("users", "created", message="Utilisateur ajouté", user_id=record["id"])
        return auth.public_profile(record)

    @_locked
    def update_user(self, user_id: str, changes: Mapping[str, Any]) -> Optional[Record]:
        """Merge ``changes``; a non-empty ``password`` is re-hashed, an empty one ignored."""

        index = self._index_of(self.users, user_id)
        if index < 0:
            return None
        password = changes.get("password")
        merged = _merge(self.users[index], changes, _USER_SYSTEM_FIELDS)
        merged.pop("password", None)
        raise_for(user_errors(merged, self.users, editing_id=user_id))
        if password:
            merged["passwordHash"] = auth.hash_password(str(password))
        record = to_record(check_model(User, merged))
        self.users[index] = record
        if self._actor_id == user_id:
            self.current_user = auth.public_profile(record)
            self.adapter.save("auth", self.current_user)
        self._mutated(
            "users",
            "updated",
            message="Utilisateur mis à jour",
            user_id=user_id,
            password_changed=bool(password),
        )
        return auth.public_profile(record)

    @_locked
    def delete_user(self, user_id: str) -> bool:
        """Delete a user; the signed-in user and administrators are protected."""

        index = self._index_of(self.users, user_id)
        if index < 0:
            return False
        target = self.users[index]
        if user_id == self._actor_id:
            raise ProtectedUserError("Vous ne pouvez pas supprimer votre propre compte")
        if target.get("role") == "admin":
            raise ProtectedUserError("Un administrateur ne peut pas être supprimé")
        self.users = [u for u in self.users if u.get("id") != user_id]
        self._mutated("users", "deleted", message="Utilisateur supprimé", user_id=user_id)
        return True

    def get_user_by_id(self, user_id: Optional[str]) -> Optional[Record]:
        record = queries.find_by_id(self.users, user_id)
        return auth.public_profile(record) if record is not None else None

    def list_users(self) -> List[Record]:
        return [auth.public_profile(user) for user in self.users]

    def get_practitioners(self) -> List[Record]:
        return [auth.public_profile(user) for user in queries.practitioners(self.users)]

    # ------------------------------------------------------------------
    # Cabinet configuration
    # ------------------------------------------------------------------
    @_locked
    def update_cabinet_config(self, changes: Mapping[str, Any]) -> Record:
        """Shallow-merge ``changes`` into the configuration; it is never replaced."""

        merged = {**self.cabinet, **changes}
        self.cabinet = to_record(check_model(CabinetConfig, merged))
        self._mutated(
            "cabinet", "updated", message="Configuration mise à jour", fields=sorted(changes)
        )
        return copy.deepcopy(self.cabinet)

    # ------------------------------------------------------------------
    # Reminders
    # ------------------------------------------------------------------
    def default_reminder_channel(self, appointment: Mapping[str, Any]) -> str:
        patient = queries.find_by_id(self.patients, appointment.get("patientId"))
        return reminder_channel_for(patient, self.cabinet.get("reminderSettings") or {})

    @_locked
    def send_reminder(self, appointment_id: str, channel: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Flag an appointment as reminded; delivery itself is simulated."""

        index = self._index_of(self.appointments, appointment_id)
        if index < 0:
            return None
        appointment = dict(self.appointments[index])
        channel = channel or self.default_reminder_channel(appointment)
        if channel not in REMINDER_CHANNELS:
            raise RecordValidationError({"reminderType": "Canal de rappel invalide"})
        appointment.update(reminderSent=True, reminderType=channel)
        self.appointments[index] = appointment
        REMINDERS_SENT.labels(channel=channel).inc()
        self._mutated(
            "appointments",
            "reminded",
            message=f"Rappel {channel.upper()} envoyé",
            appointment_id=appointment_id,
            channel=channel,
        )
        return {"success": True, "channel": channel}

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------
    def get_stats(self) -> Dict[str, Any]:
        return queries.compute_stats(
            self.patients, self.appointments, self.invoices, time_utils.today_iso()
        )

    @_locked
    def reset_to_demo(self) -> None:
        """Intentionally does nothing: persisted data is never replaced by demo data."""

        logger.info("reset_to_demo_ignored")
        self.notify("Réinitialisation désactivée sur ce cabinet", "info")


def _check_payment_method(payment_method: str) -> None:
    if payment_method not in PAYMENT_METHODS:
        raise RecordValidationError({"paymentMethod": "Mode de paiement invalide"})


__all__ = ["COLLECTIONS", "STORE_MUTATIONS", "ClinicStore"]
