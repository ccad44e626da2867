"""Fixed catalogs shared by the store, the assistant and the HTTP layer."""

from __future__ import annotations

from typing import Dict, List, Optional

ROLE_PERMISSIONS: Dict[str, List[str]] = {
    "admin": ["all"],
    "practitioner": ["patients", "appointments", "invoices", "medical_records", "statistics"],
    "secretary": ["patients", "appointments", "invoices", "reminders"],
}

ROLE_LABELS = {
    "admin": "Administrateur",
    "practitioner": "Praticien",
    "secretary": "Secrétaire",
}

PRACTITIONER_ROLES = ("practitioner", "admin")

# Every permission a role can be granted; "all" expands to this list.
PERMISSIONS = ("patients", "appointments", "invoices", "medical_records", "statistics", "reminders", "users", "settings")

APPOINTMENT_TYPES: List[Dict[str, object]] = [
    {"id": "consultation", "label": "Consultation", "duration": 30, "fee": 400},
    {"id": "suivi", "label": "Suivi", "duration": 20, "fee": 300},
    {"id": "urgence", "label": "Urgence", "duration": 15, "fee": 500},
    {"id": "bilan", "label": "Bilan initial", "duration": 60, "fee": 600},
    {"id": "teleconsultation", "label": "Téléconsultation", "duration": 20, "fee": 350},
    {"id": "reeducation", "label": "Rééducation", "duration": 45, "fee": 450},
]

APPOINTMENT_STATUSES: Dict[str, str] = {
    "planifie": "Planifié",
    "confirme": "Confirmé",
    "rappel_envoye": "Rappel envoyé",
    "present": "Présent",
    "en_cours": "En cours",
    "termine": "Terminé",
    "absent": "Absent",
    "annule": "Annulé",
}

# Statuses excluded from "upcoming" counts and from pending reminders.
INACTIVE_STATUSES = frozenset({"annule", "termine", "absent"})

PAYMENT_STATUSES: Dict[str, str] = {
    "pending": "En attente",
    "partial": "Partiel",
    "paid": "Payé",
    "refunded": "Remboursé",
}

PAYMENT_METHODS: Dict[str, str] = {
    "cash": "Espèces",
    "card": "Carte bancaire",
    "transfer": "Virement",
    "check": "Chèque",
    "online": "Paiement en ligne",
}

REMINDER_CHANNELS: Dict[str, str] = {
    "sms": "SMS",
    "whatsapp": "WhatsApp",
    "email": "Email",
}

REMINDER_TIMINGS: Dict[str, int] = {"1h": 1, "24h": 24, "48h": 48}

MEDICAL_RECORD_TYPES: Dict[str, str] = {
    "consultation_note": "Note de consultation",
    "prescription": "Ordonnance",
    "lab_result": "Analyse",
    "imaging": "Imagerie",
    "report": "Compte-rendu",
    "certificate": "Certificat",
}

SPECIALTIES = [
    "Médecine générale",
    "Orthophonie",
    "Kinésithérapie",
    "Psychologie",
    "Psychiatrie",
    "Dermatologie",
    "Cardiologie",
    "Pédiatrie",
    "Ophtalmologie",
    "ORL",
    "Gynécologie",
    "Neurologie",
]

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def appointment_type(type_id: Optional[str]) -> Optional[Dict[str, object]]:
    """Return the catalog entry for ``type_id`` if it exists."""

    for entry in APPOINTMENT_TYPES:
        if entry["id"] == type_id:
            return entry
    return None


def appointment_type_label(type_id: Optional[str]) -> str:
    entry = appointment_type(type_id)
    return str(entry["label"]) if entry else (type_id or "")


def has_permission(role: Optional[str], permission: str) -> bool:
    """Return ``True`` when ``role`` grants ``permission``."""

    perms = ROLE_PERMISSIONS.get(role or "", [])
    return "all" in perms or permission in perms


def permissions_for(role: Optional[str]) -> List[str]:
    return [permission for permission in PERMISSIONS if has_permission(role, permission)]


__all__ = [
    "ROLE_PERMISSIONS",
    "ROLE_LABELS",
    "PRACTITIONER_ROLES",
    "PERMISSIONS",
    "APPOINTMENT_TYPES",
    "APPOINTMENT_STATUSES",
    "INACTIVE_STATUSES",
    "PAYMENT_STATUSES",
    "PAYMENT_METHODS",
    "REMINDER_CHANNELS",
    "REMINDER_TIMINGS",
    "MEDICAL_RECORD_TYPES",
    "SPECIALTIES",
    "WEEKDAYS",
    "appointment_type",
    "appointment_type_label",
    "has_permission",
    "permissions_for",
]
