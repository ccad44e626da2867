"""Demo dataset applied the first time a store is opened.

Once a backend carries the ``initialized`` marker the store never applies this
data again, so it cannot overwrite real records.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List

from mediplan.auth import hash_password


_DEMO_USERS: List[Dict[str, Any]] = [
    {"id": "u1", "email": "admin@mediplan.ma", "password": "admin123", "name": "Dr. Fatima Alaoui", "role": "admin", "phone": "0661234567", "specialty": "Orthophonie", "isActive": True},
    {"id": "u2", "email": "dr.sarah@mediplan.ma", "password": "sarah123", "name": "Dr. Sarah Bennani", "role": "practitioner", "phone": "0662345678", "specialty": "Orthophonie", "isActive": True},
    {"id": "u3", "email": "secretaire@mediplan.ma", "password": "sec123", "name": "Amal Tazi", "role": "secretary", "phone": "0663456789", "specialty": None, "isActive": True},
]

DEMO_PATIENTS: List[Dict[str, Any]] = [
    {
        "id": "p1", "firstName": "Ahmed", "lastName": "El Mansouri", "email": "ahmed.elmansouri@email.com", "phone": "0677889900",
        "dateOfBirth": "1988-03-15", "gender": "Homme", "address": "12 Rue Mohammed V", "city": "Rabat", "postalCode": "10000",
        "mutuelle": "CNOPS", "mutuelleNumber": "CNOPS-123456", "bloodType": "A+", "allergies": ["Pénicilline"],
        "chronicConditions": ["Hypertension légère"],
        "emergencyContact": {"name": "Fatima El Mansouri", "phone": "0677889901", "relation": "Épouse"},
        "notes": "Patient régulier", "photo": None, "createdAt": "2024-01-10", "lastVisit": "2025-01-10",
        "totalVisits": 12, "balance": 150, "preferredReminder": "whatsapp",
    },
    {
        "id": "p2", "firstName": "Khadija", "lastName": "Ouazzani", "email": "khadija.ouazzani@email.com", "phone": "0655443322",
        "dateOfBirth": "1976-08-22", "gender": "Femme", "address": "45 Avenue Hassan II", "city": "Casablanca", "postalCode": "20000",
        "mutuelle": "CNSS", "mutuelleNumber": "CNSS-789012", "bloodType": "O+", "allergies": [], "chronicConditions": [],
        "emergencyContact": {"name": "Omar Ouazzani", "phone": "0655443323", "relation": "Époux"},
        "notes": "", "photo": None, "createdAt": "2024-03-20", "lastVisit": "2025-01-08",
        "totalVisits": 24, "balance": 0, "preferredReminder": "sms",
    },
    {
        "id": "p3", "firstName": "Youssef", "lastName": "Tazi", "email": "parent.tazi@email.com", "phone": "0699887766",
        "dateOfBirth": "2018-11-30", "gender": "Homme", "address": "8 Rue Ibn Sina", "city": "Marrakech", "postalCode": "40000",
        "mutuelle": "Assurance privée", "mutuelleNumber": "PRV-345678", "bloodType": "B+", "allergies": ["Arachides"],
        "chronicConditions": [],
        "emergencyContact": {"name": "Mohammed Tazi", "phone": "0699887767", "relation": "Père"},
        "notes": "Enfant - Suivi orthophonique", "photo": None, "createdAt": "2024-06-15", "lastVisit": "2025-01-10",
        "totalVisits": 18, "balance": 200, "preferredReminder": "whatsapp",
    },
    {
        "id": "p4", "firstName": "Salma", "lastName": "Chraibi", "email": "salma.chraibi@email.com", "phone": "0611223344",
        "dateOfBirth": "1995-05-12", "gender": "Femme", "address": "23 Boulevard Zerktouni", "city": "Casablanca", "postalCode": "20100",
        "mutuelle": "CNOPS", "mutuelleNumber": "CNOPS-567890", "bloodType": "AB+", "allergies": [],
        "chronicConditions": ["Asthme léger"],
        "emergencyContact": {"name": "Rachid Chraibi", "phone": "0611223345", "relation": "Frère"},
        "notes": "", "photo": None, "createdAt": "2024-09-01", "lastVisit": "2025-01-05",
        "totalVisits": 6, "balance": 0, "preferredReminder": "email",
    },
]

DEMO_APPOINTMENTS: List[Dict[str, Any]] = [
    {"id": "a1", "patientId": "p1", "practitionerId": "u2", "date": "2025-01-13", "time": "09:00", "duration": 30, "type": "suivi", "status": "confirme", "notes": "Séance de rééducation vocale", "fee": 300, "paid": False, "reminderSent": True, "reminderType": "whatsapp"},
    {"id": "a2", "patientId": "p2", "practitionerId": "u2", "date": "2025-01-13", "time": "10:00", "duration": 30, "type": "consultation", "status": "planifie", "notes": "", "fee": 400, "paid": False, "reminderSent": False, "reminderType": "sms"},
    {"id": "a3", "patientId": "p3", "practitionerId": "u1", "date": "2025-01-13", "time": "11:00", "duration": 45, "type": "reeducation", "status": "confirme", "notes": "Séance orthophonique", "fee": 450, "paid": False, "reminderSent": True, "reminderType": "whatsapp"},
    {"id": "a4", "patientId": "p4", "practitionerId": "u2", "date": "2025-01-14", "time": "14:00", "duration": 60, "type": "bilan", "status": "planifie", "notes": "Bilan initial", "fee": 600, "paid": False, "reminderSent": False, "reminderType": "email"},
    {"id": "a5", "patientId": "p1", "practitionerId": "u2", "date": "2025-01-10", "time": "09:30", "duration": 30, "type": "suivi", "status": "termine", "notes": "Bonne progression", "fee": 300, "paid": True, "paymentMethod": "card", "paidAt": "2025-01-10T10:05:00", "reminderSent": True},
    {"id": "a6", "patientId": "p2", "practitionerId": "u1", "date": "2025-01-09", "time": "14:00", "duration": 30, "type": "consultation", "status": "termine", "notes": "", "fee": 400, "paid": True, "paymentMethod": "cash", "paidAt": "2025-01-09T14:35:00", "reminderSent": True},
]

DEMO_MEDICAL_RECORDS: List[Dict[str, Any]] = [
    {"id": "mr1", "patientId": "p1", "type": "consultation_note", "title": "Consultation initiale", "content": "Patient présentant une dysphonie fonctionnelle. Voix rauque depuis 3 mois.", "date": "2024-01-10", "createdBy": "u2", "attachments": []},
    {"id": "mr2", "patientId": "p1", "type": "report", "title": "Bilan orthophonique", "content": "Score VHI: 45/120. Diagnostic: dysphonie fonctionnelle modérée.", "date": "2024-01-15", "createdBy": "u2", "attachments": []},
    {"id": "mr3", "patientId": "p3", "type": "consultation_note", "title": "Première consultation", "content": "Enfant de 6 ans présentant un retard de langage.", "date": "2024-06-15", "createdBy": "u1", "attachments": []},
]

DEMO_INVOICES: List[Dict[str, Any]] = [
    {"id": "inv1", "number": "FAC-2025-001", "patientId": "p1", "appointmentId": "a5", "date": "2025-01-10", "items": [{"description": "Séance de suivi", "quantity": 1, "unitPrice": 300, "total": 300}], "subtotal": 300, "tax": 0, "total": 300, "status": "paid", "paymentMethod": "card", "paidAt": "2025-01-10T10:05:00"},
    {"id": "inv2", "number": "FAC-2025-002", "patientId": "p2", "appointmentId": "a6", "date": "2025-01-09", "items": [{"description": "Consultation", "quantity": 1, "unitPrice": 400, "total": 400}], "subtotal": 400, "tax": 0, "total": 400, "status": "paid", "paymentMethod": "cash", "paidAt": "2025-01-09T14:35:00"},
]

_WEEKDAY_HOURS = {"start": "08:00", "end": "18:00", "enabled": True}

DEFAULT_CABINET_CONFIG: Dict[str, Any] = {
    "name": "Cabinet MediPlan", "subtitle": "Excellence en soins de santé", "logo": None,
    "address": "123 Avenue Mohammed V", "city": "Rabat", "postalCode": "10000", "country": "Maroc",
    "phone": "0537000000", "email": "contact@mediplan.ma", "website": "www.mediplan.ma",
    "specialty": "Orthophonie", "currency": "DH", "taxRate": 0, "appointmentDuration": 30,
    "workingHours": {
        "monday": dict(_WEEKDAY_HOURS),
        "tuesday": dict(_WEEKDAY_HOURS),
        "wednesday": dict(_WEEKDAY_HOURS),
        "thursday": dict(_WEEKDAY_HOURS),
        "friday": dict(_WEEKDAY_HOURS),
        "saturday": {"start": "09:00", "end": "13:00", "enabled": True},
        "sunday": {"start": "00:00", "end": "00:00", "enabled": False},
    },
    "reminderSettings": {
        "enabled": True, "defaultType": "whatsapp", "defaultTiming": "24h",
        "smsTemplate": "Rappel: RDV le {date} à {time}. {cabinet}",
        "whatsappTemplate": "👋 Bonjour {patient}!\n📅 RDV: {date} à {time}\n📍 {cabinet}",
    },
    "invoiceSettings": {"prefix": "FAC", "footer": "Merci de votre confiance.", "bankDetails": "IBAN: MA00 0000 0000"},
    "stripeEnabled": False, "stripePublicKey": "",
    "googleCalendarEnabled": False, "googleCalendarId": "",
}


@dataclass
class SeedData:
    """Collections written to a backend that has never been initialised."""

    patients: List[Dict[str, Any]] = field(default_factory=list)
    appointments: List[Dict[str, Any]] = field(default_factory=list)
    medical_records: List[Dict[str, Any]] = field(default_factory=list)
    invoices: List[Dict[str, Any]] = field(default_factory=list)
    users: List[Dict[str, Any]] = field(default_factory=list)
    cabinet: Dict[str, Any] = field(default_factory=lambda: copy.deepcopy(DEFAULT_CABINET_CONFIG))


def demo_users() -> List[Dict[str, Any]]:
    """Return the demo accounts with hashed passwords."""

    users = []
    for user in _DEMO_USERS:
        record = {key: value for key, value in user.items() if key != "password"}
        record["passwordHash"] = hash_password(user["password"])
        users.append(record)
    return users


def demo_seed() -> SeedData:
    return SeedData(
        patients=copy.deepcopy(DEMO_PATIENTS),
        appointments=copy.deepcopy(DEMO_APPOINTMENTS),
        medical_records=copy.deepcopy(DEMO_MEDICAL_RECORDS),
        invoices=copy.deepcopy(DEMO_INVOICES),
        users=demo_users(),
    )


def empty_seed() -> SeedData:
    return SeedData()


__all__ = [
    "DEFAULT_CABINET_CONFIG",
    "DEMO_APPOINTMENTS",
    "DEMO_INVOICES",
    "DEMO_MEDICAL_RECORDS",
    "DEMO_PATIENTS",
    "SeedData",
    "demo_seed",
    "demo_users",
    "empty_seed",
]
