"""Pydantic models describing the persisted entities.

Records travel through the store as plain dictionaries keyed in camelCase,
which is also the storage and wire format.  The models below validate those
dictionaries on every create and update; unknown keys are kept so that data
written by newer versions survives a round trip.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"

AppointmentStatus = Literal[
    "planifie",
    "confirme",
    "rappel_envoye",
    "present",
    "en_cours",
    "termine",
    "absent",
    "annule",
]
AppointmentType = Literal[
    "consultation", "suivi", "urgence", "bilan", "teleconsultation", "reeducation"
]
ReminderChannel = Literal["sms", "whatsapp", "email"]
RecordType = Literal[
    "consultation_note", "prescription", "lab_result", "imaging", "report", "certificate"
]
InvoiceStatus = Literal["pending", "partial", "paid", "refunded"]
PaymentMethod = Literal["cash", "card", "transfer", "check", "online"]
Role = Literal["admin", "practitioner", "secretary"]
NotificationType = Literal["success", "error", "warning", "info"]


class _Record(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


class EmergencyContact(_Record):
    name: str = ""
    phone: str = ""
    relation: str = ""


class Patient(_Record):
    id: str
    first_name: str
    last_name: str
    email: str = ""
    phone: str = ""
    date_of_birth: Optional[str] = Field(default=None, pattern=DATE_PATTERN)
    gender: Optional[str] = None
    address: str = ""
    city: str = ""
    postal_code: str = ""
    mutuelle: str = ""
    mutuelle_number: str = ""
    blood_type: str = ""
    allergies: List[str] = Field(default_factory=list)
    chronic_conditions: List[str] = Field(default_factory=list)
    emergency_contact: EmergencyContact = Field(default_factory=EmergencyContact)
    notes: str = ""
    photo: Optional[str] = None
    created_at: str = Field(pattern=DATE_PATTERN)
    last_visit: Optional[str] = Field(default=None, pattern=DATE_PATTERN)
    total_visits: int = Field(default=0, ge=0)
    balance: float = 0
    preferred_reminder: ReminderChannel = "sms"

    @field_validator("date_of_birth", "last_visit", mode="before")
    @classmethod
    def _blank_date(cls, value: Any) -> Any:
        return None if value == "" else value

    @field_validator("allergies", "chronic_conditions")
    @classmethod
    def _unique_entries(cls, value: List[str]) -> List[str]:
        seen: List[str] = []
        for item in value:
            text = item.strip() if isinstance(item, str) else item
            if text and text not in seen:
                seen.append(text)
        return seen


class Appointment(_Record):
    id: str
    patient_id: str
    practitioner_id: str = ""
    date: str = Field(pattern=DATE_PATTERN)
    time: str = Field(pattern=TIME_PATTERN)
    duration: int = Field(default=30, gt=0)
    type: AppointmentType = "consultation"
    status: AppointmentStatus = "planifie"
    fee: float = Field(default=0, ge=0)
    paid: bool = False
    payment_method: Optional[PaymentMethod] = None
    paid_at: Optional[str] = None
    reminder_sent: bool = False
    reminder_type: Optional[ReminderChannel] = None
    notes: str = ""
    created_at: Optional[str] = None
    created_by: Optional[str] = None


class Attachment(_Record):
    name: str
    type: str = "application/octet-stream"
    data: str = ""


class MedicalRecord(_Record):
    id: str
    patient_id: str
    type: RecordType = "consultation_note"
    title: str = ""
    content: str = ""
    date: str = Field(pattern=DATE_PATTERN)
    created_by: Optional[str] = None
    attachments: List[Attachment] = Field(default_factory=list)


class InvoiceItem(_Record):
    description: str = ""
    quantity: int = Field(default=1, ge=1)
    unit_price: float = Field(default=0, ge=0)
    total: float = 0


class Invoice(_Record):
    id: str
    number: str
    patient_id: str
    appointment_id: Optional[str] = None
    date: str = Field(pattern=DATE_PATTERN)
    items: List[InvoiceItem] = Field(default_factory=list)
    subtotal: float = 0
    tax: float = Field(default=0, ge=0)
    total: float = 0
    status: InvoiceStatus = "pending"
    payment_method: Optional[PaymentMethod] = None
    paid_at: Optional[str] = None
    notes: str = ""
    created_at: Optional[str] = None
    created_by: Optional[str] = None


class User(_Record):
    id: str
    name: str
    email: str
    password_hash: Optional[str] = None
    phone: str = ""
    role: Role = "secretary"
    specialty: Optional[str] = None
    is_active: bool = True
    created_at: Optional[str] = None


class WorkingDay(_Record):
    start: str = Field(default="08:00", pattern=TIME_PATTERN)
    end: str = Field(default="18:00", pattern=TIME_PATTERN)
    enabled: bool = True


class ReminderSettings(_Record):
    enabled: bool = True
    default_type: ReminderChannel = "whatsapp"
    default_timing: Literal["1h", "24h", "48h"] = "24h"
    sms_template: str = "Rappel: RDV le {date} à {time}. {cabinet}"
    whatsapp_template: str = "👋 Bonjour {patient}!\n📅 RDV: {date} à {time}\n📍 {cabinet}"


class InvoiceSettings(_Record):
    prefix: str = "FAC"
    footer: str = ""
    bank_details: str = ""


class CabinetConfig(_Record):
    name: str = ""
    subtitle: str = ""
    logo: Optional[str] = None
    address: str = ""
    city: str = ""
    postal_code: str = ""
    country: str = ""
    phone: str = ""
    email: str = ""
    website: str = ""
    specialty: str = ""
    currency: str = "DH"
    tax_rate: float = Field(default=0, ge=0, le=100)
    appointment_duration: int = Field(default=30, gt=0)
    working_hours: Dict[str, WorkingDay] = Field(default_factory=dict)
    reminder_settings: ReminderSettings = Field(default_factory=ReminderSettings)
    invoice_settings: InvoiceSettings = Field(default_factory=InvoiceSettings)
    stripe_enabled: bool = False
    stripe_public_key: str = ""
    google_calendar_enabled: bool = False
    google_calendar_id: str = ""


@dataclass
class Notification:
    """Transient UI message; never persisted."""

    id: str
    message: str
    type: NotificationType = "info"

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "message": self.message, "type": self.type}


def to_record(model: BaseModel) -> Dict[str, Any]:
    """Dump ``model`` to its camelCase storage dictionary."""

    return model.model_dump(by_alias=True, mode="json")


__all__ = [
    "Patient",
    "EmergencyContact",
    "Appointment",
    "Attachment",
    "MedicalRecord",
    "InvoiceItem",
    "Invoice",
    "User",
    "WorkingDay",
    "ReminderSettings",
    "InvoiceSettings",
    "CabinetConfig",
    "Notification",
    "to_record",
    "DATE_PATTERN",
    "TIME_PATTERN",
]
