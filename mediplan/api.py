"""FastAPI view layer over a :class:`ClinicStore`.

The application owns no state besides the store reference kept on
``app.state.store``.  Route handlers are ``async`` so every store call runs
on the event loop thread, which keeps the store's single-writer assumption.
"""

from __future__ import annotations

import re
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import structlog
from fastapi import Body, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from mediplan import time_utils
from mediplan.assistant import QUICK_ACTIONS, ClinicAssistant
from mediplan.catalog import (
    APPOINTMENT_STATUSES,
    APPOINTMENT_TYPES,
    MEDICAL_RECORD_TYPES,
    PAYMENT_METHODS,
    PAYMENT_STATUSES,
    REMINDER_CHANNELS,
    REMINDER_TIMINGS,
    ROLE_LABELS,
    ROLE_PERMISSIONS,
    SPECIALTIES,
    permissions_for,
)
from mediplan.config import get_settings
from mediplan.errors import ProtectedUserError, RecordValidationError
from mediplan.exports import export_filename, invoices_to_csv
from mediplan.logging_config import configure_logging
from mediplan.queries import generate_time_slots, invoice_totals
from mediplan.reminders import pending_reminders, send_reminders, sent_reminders
from mediplan.store import ClinicStore


logger = structlog.get_logger(__name__)

REQUEST_COUNTER = Counter(
    "mediplan_requests_total",
    "Total HTTP requests processed by the API",
    ("method", "endpoint", "status"),
)
REQUEST_LATENCY = Histogram(
    "mediplan_request_latency_seconds",
    "Latency of HTTP requests",
    ("method", "endpoint"),
)

_PATH_PARAM_RE = re.compile(r"/(?:[0-9]+|[0-9a-fA-F]{8,})")

START_TIME = time.time()


def _normalise_path_for_metrics(path: str) -> str:
    """Reduce high-cardinality segments in request paths for metrics labels."""

    if not path:
        return "/"
    return _PATH_PARAM_RE.sub("/:param", path)


class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LoginRequest(_Body):
    email: str
    password: str


class PaymentRequest(_Body):
    payment_method: str = "cash"


class ReminderRequest(_Body):
    channel: Optional[str] = None


class ReminderBatchRequest(_Body):
    appointment_ids: List[str] = Field(default_factory=list)


class AssistantRequest(_Body):
    query: str


def get_store(request: Request) -> ClinicStore:
    return request.app.state.store


def _not_found(kind: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{kind} introuvable")


def create_app(store: Optional[ClinicStore] = None) -> FastAPI:
    """Build the API around ``store``; without one, open the configured store."""

    if store is None:
        settings = get_settings()
        configure_logging(settings.log_level, json_logs=settings.json_logs)
        store = ClinicStore.from_settings(settings)
    else:
        store.load()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("lifespan_startup")
        try:
            yield
        finally:
            app.state.store.close()
            logger.info("lifespan_shutdown_complete", uptime=time.time() - START_TIME)

    app = FastAPI(title="MediPlan API", lifespan=lifespan)
    app.state.store = store
    app.state.assistant = ClinicAssistant(store)
    app.state.reminder_batches = []

    @app.middleware("http")
    async def track_http_metrics(request: Request, call_next):
        """Emit Prometheus counters and histograms for each request."""

        start = time.perf_counter()
        normalised = _normalise_path_for_metrics(request.url.path)
        try:
            response = await call_next(request)
        except Exception:
            REQUEST_COUNTER.labels(request.method, normalised, "500").inc()
            REQUEST_LATENCY.labels(request.method, normalised).observe(time.perf_counter() - start)
            raise
        REQUEST_COUNTER.labels(request.method, normalised, str(response.status_code)).inc()
        REQUEST_LATENCY.labels(request.method, normalised).observe(time.perf_counter() - start)
        return response

    @app.exception_handler(RecordValidationError)
    async def validation_error_handler(request: Request, exc: RecordValidationError) -> JSONResponse:
        logger.info("validation_failed", path=request.url.path, fields=sorted(exc.errors))
        return JSONResponse(status_code=422, content={"errors": exc.errors})

    @app.exception_handler(ProtectedUserError)
    async def protected_user_handler(request: Request, exc: ProtectedUserError) -> JSONResponse:
        logger.warning("protected_user_delete_refused", path=request.url.path)
        return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"detail": str(exc)})

    # ------------------------------------------------------------------
    # System
    # ------------------------------------------------------------------
    @app.get("/health", tags=["system"])
    async def health(store: ClinicStore = Depends(get_store)) -> Dict[str, Any]:
        return {
            "status": "ok",
            "uptime": time.time() - START_TIME,
            "initialized": store.loaded,
        }

    @app.get("/metrics", tags=["system"], response_model=None)
    async def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/catalog", tags=["system"])
    async def catalog() -> Dict[str, Any]:
        return {
            "appointmentTypes": APPOINTMENT_TYPES,
            "appointmentStatuses": APPOINTMENT_STATUSES,
            "paymentStatuses": PAYMENT_STATUSES,
            "paymentMethods": PAYMENT_METHODS,
            "reminderChannels": REMINDER_CHANNELS,
            "reminderTimings": REMINDER_TIMINGS,
            "medicalRecordTypes": MEDICAL_RECORD_TYPES,
            "roles": ROLE_LABELS,
            "rolePermissions": ROLE_PERMISSIONS,
            "specialties": SPECIALTIES,
            "timeSlots": generate_time_slots(),
        }

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------
    @app.post("/auth/login", tags=["auth"])
    async def login(body: LoginRequest, store: ClinicStore = Depends(get_store)) -> JSONResponse:
        result = store.login(body.email, body.password)
        code = status.HTTP_200_OK if result.success else status.HTTP_401_UNAUTHORIZED
        return JSONResponse(status_code=code, content=result.to_dict())

    @app.post("/auth/logout", tags=["auth"])
    async def logout(store: ClinicStore = Depends(get_store)) -> Dict[str, bool]:
        store.logout()
        return {"success": True}

    @app.get("/auth/me", tags=["auth"])
    async def me(store: ClinicStore = Depends(get_store)) -> Dict[str, Any]:
        if store.current_user is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Non authentifié")
        return {**store.current_user, "permissions": permissions_for(store.current_user.get("role"))}

    # ------------------------------------------------------------------
    # Patients
    # ------------------------------------------------------------------
    @app.get("/patients", tags=["patients"])
    async def list_patients(store: ClinicStore = Depends(get_store)) -> List[Dict[str, Any]]:
        return store.patients

    @app.post("/patients", tags=["patients"], status_code=status.HTTP_201_CREATED)
    async def create_patient(
        payload: Dict[str, Any] = Body(...), store: ClinicStore = Depends(get_store)
    ) -> Dict[str, Any]:
        return store.add_patient(payload)

    @app.get("/patients/{patient_id}", tags=["patients"])
    async def read_patient(patient_id: str, store: ClinicStore = Depends(get_store)) -> Dict[str, Any]:
        patient = store.get_patient_by_id(patient_id)
        if patient is None:
            raise _not_found("Patient")
        return patient

    @app.patch("/patients/{patient_id}", tags=["patients"])
    async def patch_patient(
        patient_id: str, payload: Dict[str, Any] = Body(...), store: ClinicStore = Depends(get_store)
    ) -> Dict[str, Any]:
        patient = store.update_patient(patient_id, payload)
        if patient is None:
            raise _not_found("Patient")
        return patient

    @app.delete("/patients/{patient_id}", tags=["patients"], status_code=status.HTTP_204_NO_CONTENT)
    async def remove_patient(patient_id: str, store: ClinicStore = Depends(get_store)) -> Response:
        if not store.delete_patient(patient_id):
            raise _not_found("Patient")
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.get("/patients/{patient_id}/appointments", tags=["patients"])
    async def patient_appointments(
        patient_id: str, store: ClinicStore = Depends(get_store)
    ) -> List[Dict[str, Any]]:
        return store.get_appointments_by_patient(patient_id)

    @app.get("/patients/{patient_id}/records", tags=["patients"])
    async def patient_records(patient_id: str, store: ClinicStore = Depends(get_store)) -> List[Dict[str, Any]]:
        return store.get_medical_records_by_patient(patient_id)

    # ------------------------------------------------------------------
    # Appointments
    # ------------------------------------------------------------------
    @app.get("/appointments", tags=["appointments"])
    async def list_appointments(
        date: Optional[str] = None,
        start: Optional[str] = None,
        end: Optional[str] = None,
        patient_id: Optional[str] = None,
        store: ClinicStore = Depends(get_store),
    ) -> List[Dict[str, Any]]:
        if date:
            return store.get_appointments_by_date(date)
        if start and end:
            return store.get_appointments_between(start, end)
        if patient_id:
            return store.get_appointments_by_patient(patient_id)
        return store.appointments

    @app.post("/appointments", tags=["appointments"], status_code=status.HTTP_201_CREATED)
    async def create_appointment(
        payload: Dict[str, Any] = Body(...), store: ClinicStore = Depends(get_store)
    ) -> Dict[str, Any]:
        return store.add_appointment(payload)

    @app.get("/appointments/{appointment_id}", tags=["appointments"])
    async def read_appointment(appointment_id: str, store: ClinicStore = Depends(get_store)) -> Dict[str, Any]:
        appointment = store.get_appointment_by_id(appointment_id)
        if appointment is None:
            raise _not_found("Rendez-vous")
        return appointment

    @app.patch("/appointments/{appointment_id}", tags=["appointments"])
    async def patch_appointment(
        appointment_id: str, payload: Dict[str, Any] = Body(...), store: ClinicStore = Depends(get_store)
    ) -> Dict[str, Any]:
        appointment = store.update_appointment(appointment_id, payload)
        if appointment is None:
            raise _not_found("Rendez-vous")
        return appointment

    @app.delete("/appointments/{appointment_id}", tags=["appointments"], status_code=status.HTTP_204_NO_CONTENT)
    async def remove_appointment(appointment_id: str, store: ClinicStore = Depends(get_store)) -> Response:
        if not store.delete_appointment(appointment_id):
            raise _not_found("Rendez-vous")
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.post("/appointments/{appointment_id}/payment", tags=["appointments"], status_code=status.HTTP_201_CREATED)
    async def pay_appointment(
        appointment_id: str, body: PaymentRequest, store: ClinicStore = Depends(get_store)
    ) -> Dict[str, Any]:
        invoice = store.record_appointment_payment(appointment_id, body.payment_method)
        if invoice is None:
            raise _not_found("Rendez-vous")
        return invoice

    @app.post("/appointments/{appointment_id}/reminder", tags=["reminders"])
    async def remind_appointment(
        appointment_id: str,
        body: Optional[ReminderRequest] = None,
        store: ClinicStore = Depends(get_store),
    ) -> Dict[str, Any]:
        result = store.send_reminder(appointment_id, body.channel if body else None)
        if result is None:
            raise _not_found("Rendez-vous")
        return result

    # ------------------------------------------------------------------
    # Medical records
    # ------------------------------------------------------------------
    @app.post("/records", tags=["records"], status_code=status.HTTP_201_CREATED)
    async def create_record(
        payload: Dict[str, Any] = Body(...), store: ClinicStore = Depends(get_store)
    ) -> Dict[str, Any]:
        return store.add_medical_record(payload)

    @app.get("/records/{record_id}", tags=["records"])
    async def read_record(record_id: str, store: ClinicStore = Depends(get_store)) -> Dict[str, Any]:
        record = store.get_medical_record_by_id(record_id)
        if record is None:
            raise _not_found("Dossier")
        return record

    @app.patch("/records/{record_id}", tags=["records"])
    async def patch_record(
        record_id: str, payload: Dict[str, Any] = Body(...), store: ClinicStore = Depends(get_store)
    ) -> Dict[str, Any]:
        record = store.update_medical_record(record_id, payload)
        if record is None:
            raise _not_found("Dossier")
        return record

    @app.delete("/records/{record_id}", tags=["records"], status_code=status.HTTP_204_NO_CONTENT)
    async def remove_record(record_id: str, store: ClinicStore = Depends(get_store)) -> Response:
        if not store.delete_medical_record(record_id):
            raise _not_found("Dossier")
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    # ------------------------------------------------------------------
    # Invoices
    # ------------------------------------------------------------------
    @app.get("/invoices", tags=["invoices"])
    async def list_invoices(
        status_filter: str = Query("all", alias="status"),
        period: str = "all",
        search: str = "",
        store: ClinicStore = Depends(get_store),
    ) -> Dict[str, Any]:
        invoices = store.filter_invoices(status_filter, period, search)
        return {"items": invoices, "totals": invoice_totals(invoices)}

    @app.get("/invoices/export.csv", tags=["invoices"], response_model=None)
    async def export_invoices(
        status_filter: str = Query("all", alias="status"),
        period: str = "all",
        search: str = "",
        store: ClinicStore = Depends(get_store),
    ) -> Response:
        invoices = store.filter_invoices(status_filter, period, search)
        filename = export_filename(time_utils.today_iso())
        return Response(
            content=invoices_to_csv(invoices, store.patients),
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @app.post("/invoices", tags=["invoices"], status_code=status.HTTP_201_CREATED)
    async def create_invoice(
        payload: Dict[str, Any] = Body(...), store: ClinicStore = Depends(get_store)
    ) -> Dict[str, Any]:
        return store.add_invoice(payload)

    @app.get("/invoices/{invoice_id}", tags=["invoices"])
    async def read_invoice(invoice_id: str, store: ClinicStore = Depends(get_store)) -> Dict[str, Any]:
        invoice = store.get_invoice_by_id(invoice_id)
        if invoice is None:
            raise _not_found("Facture")
        return invoice

    @app.patch("/invoices/{invoice_id}", tags=["invoices"])
    async def patch_invoice(
        invoice_id: str, payload: Dict[str, Any] = Body(...), store: ClinicStore = Depends(get_store)
    ) -> Dict[str, Any]:
        invoice = store.update_invoice(invoice_id, payload)
        if invoice is None:
            raise _not_found("Facture")
        return invoice

    @app.post("/invoices/{invoice_id}/pay", tags=["invoices"])
    async def pay_invoice(
        invoice_id: str, body: PaymentRequest, store: ClinicStore = Depends(get_store)
    ) -> Dict[str, Any]:
        invoice = store.mark_invoice_paid(invoice_id, body.payment_method)
        if invoice is None:
            raise _not_found("Facture")
        return invoice

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    @app.get("/users", tags=["users"])
    async def list_users(store: ClinicStore = Depends(get_store)) -> List[Dict[str, Any]]:
        return store.list_users()

    @app.get("/practitioners", tags=["users"])
    async def list_practitioners(store: ClinicStore = Depends(get_store)) -> List[Dict[str, Any]]:
        return store.get_practitioners()

    @app.post("/users", tags=["users"], status_code=status.HTTP_201_CREATED)
    async def create_user(
        payload: Dict[str, Any] = Body(...), store: ClinicStore = Depends(get_store)
    ) -> Dict[str, Any]:
        return store.add_user(payload)

    @app.get("/users/{user_id}", tags=["users"])
    async def read_user(user_id: str, store: ClinicStore = Depends(get_store)) -> Dict[str, Any]:
        user = store.get_user_by_id(user_id)
        if user is None:
            raise _not_found("Utilisateur")
        return user

    @app.patch("/users/{user_id}", tags=["users"])
    async def patch_user(
        user_id: str, payload: Dict[str, Any] = Body(...), store: ClinicStore = Depends(get_store)
    ) -> Dict[str, Any]:
        user = store.update_user(user_id, payload)
        if user is None:
            raise _not_found("Utilisateur")
        return user

    @app.delete("/users/{user_id}", tags=["users"], status_code=status.HTTP_204_NO_CONTENT)
    async def remove_user(user_id: str, store: ClinicStore = Depends(get_store)) -> Response:
        if not store.delete_user(user_id):
            raise _not_found("Utilisateur")
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    # ------------------------------------------------------------------
    # Cabinet
    # ------------------------------------------------------------------
    @app.get("/cabinet", tags=["cabinet"])
    async def read_cabinet(store: ClinicStore = Depends(get_store)) -> Dict[str, Any]:
        return store.cabinet

    @app.patch("/cabinet", tags=["cabinet"])
    async def patch_cabinet(
        payload: Dict[str, Any] = Body(...), store: ClinicStore = Depends(get_store)
    ) -> Dict[str, Any]:
        return store.update_cabinet_config(payload)

    @app.post("/cabinet/reset", tags=["cabinet"])
    async def reset_cabinet(store: ClinicStore = Depends(get_store)) -> Dict[str, Any]:
        store.reset_to_demo()
        return {"success": False, "notifications": store.list_notifications()}

    # ------------------------------------------------------------------
    # Reminders, statistics, assistant, notifications
    # ------------------------------------------------------------------
    @app.get("/reminders", tags=["reminders"])
    async def list_reminders(store: ClinicStore = Depends(get_store)) -> Dict[str, Any]:
        today = time_utils.today_iso()
        return {
            "pending": pending_reminders(store.appointments, store.patients, today),
            "sent": sent_reminders(store.appointments, store.patients, today),
        }

    @app.post("/reminders/send", tags=["reminders"], status_code=status.HTTP_202_ACCEPTED)
    async def send_reminder_batch(
        request: Request, body: ReminderBatchRequest, store: ClinicStore = Depends(get_store)
    ) -> Dict[str, Any]:
        batch = send_reminders(store, body.appointment_ids)
        request.app.state.reminder_batches = [
            b for b in request.app.state.reminder_batches if not b.finished
        ] + [batch]
        return {"queued": len(body.appointment_ids)}

    @app.get("/stats", tags=["statistics"])
    async def stats(store: ClinicStore = Depends(get_store)) -> Dict[str, Any]:
        return store.get_stats()

    @app.get("/assistant", tags=["assistant"])
    async def assistant_info(request: Request) -> Dict[str, Any]:
        return {"messages": request.app.state.assistant.history(), "quickActions": QUICK_ACTIONS}

    @app.post("/assistant", tags=["assistant"])
    async def ask_assistant(request: Request, body: AssistantRequest) -> Dict[str, Any]:
        assistant: ClinicAssistant = request.app.state.assistant
        return {"rule": assistant.match(body.query), "reply": assistant.answer(body.query)}

    @app.get("/notifications", tags=["notifications"])
    async def list_notifications(store: ClinicStore = Depends(get_store)) -> List[Dict[str, Any]]:
        return store.list_notifications()

    @app.delete("/notifications/{notification_id}", tags=["notifications"], status_code=status.HTTP_204_NO_CONTENT)
    async def dismiss_notification(notification_id: str, store: ClinicStore = Depends(get_store)) -> Response:
        store.dismiss_notification(notification_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app


__all__ = ["create_app", "get_store", "REQUEST_COUNTER", "REQUEST_LATENCY"]
