"""Field-level validation producing ``field -> message`` maps."""

from __future__ import annotations

import re
from typing import Any, Dict, Iterable, Mapping, Optional, Type

from pydantic import BaseModel, ValidationError

from mediplan.errors import RecordValidationError

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^(0|\+212)[5-7][0-9]{8}$")


def validate_email(email: Optional[str]) -> bool:
    return bool(email) and bool(EMAIL_RE.match(email))


def validate_phone(phone: Optional[str]) -> bool:
    cleaned = re.sub(r"\s", "", phone or "")
    return bool(PHONE_RE.match(cleaned))


def _text(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    return value.strip() if isinstance(value, str) else ""


def patient_errors(data: Mapping[str, Any]) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    if not _text(data, "firstName"):
        errors["firstName"] = "Prénom requis"
    if not _text(data, "lastName"):
        errors["lastName"] = "Nom requis"
    if data.get("email") and not validate_email(data.get("email")):
        errors["email"] = "Email invalide"
    if data.get("phone") and not validate_phone(data.get("phone")):
        errors["phone"] = "Téléphone invalide"
    return errors


def user_errors(
    data: Mapping[str, Any],
    users: Iterable[Mapping[str, Any]],
    *,
    editing_id: Optional[str] = None,
) -> Dict[str, str]:
    """Validate a user payload; ``editing_id`` is set for updates."""

    errors: Dict[str, str] = {}
    email = _text(data, "email")
    if not _text(data, "name"):
        errors["name"] = "Nom requis"
    if not email:
        errors["email"] = "Email requis"
    elif not validate_email(email):
        errors["email"] = "Email invalide"
    if editing_id is None and not data.get("password"):
        errors["password"] = "Mot de passe requis"
    if data.get("phone") and not validate_phone(data.get("phone")):
        errors["phone"] = "Téléphone invalide"
    if email and any(u.get("email") == email and u.get("id") != editing_id for u in users):
        errors["email"] = "Cet email est déjà utilisé"
    return errors


def _item_ok(item: Any) -> bool:
    if not isinstance(item, Mapping):
        return False
    try:
        quantity = item.get("quantity")
        quantity = 1 if quantity in (None, "") else float(quantity)
        price = float(item.get("unitPrice"))
    except (TypeError, ValueError):
        return False
    return quantity >= 1 and price >= 0


def invoice_errors(data: Mapping[str, Any]) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    if not data.get("patientId"):
        errors["patientId"] = "Veuillez sélectionner un patient"
    items = data.get("items") or []
    if not items:
        errors["items"] = "Au moins un article est requis"
    for index, item in enumerate(items):
        if not _item_ok(item):
            errors[f"items.{index}"] = "Quantité et prix valides requis"
    return errors


def appointment_errors(data: Mapping[str, Any]) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    for key, message in (
        ("patientId", "Patient requis"),
        ("date", "Date requise"),
        ("time", "Heure requise"),
    ):
        if not data.get(key):
            errors[key] = message
    return errors


def pydantic_errors(exc: ValidationError) -> Dict[str, str]:
    """Fold pydantic error entries into a ``field -> message`` map."""

    errors: Dict[str, str] = {}
    for entry in exc.errors():
        field = ".".join(str(part) for part in entry.get("loc", ())) or "__root__"
        errors.setdefault(field, entry.get("msg", "Valeur invalide"))
    return errors


def check_model(model: Type[BaseModel], data: Mapping[str, Any]) -> BaseModel:
    """Validate ``data`` against ``model`` or raise :class:`RecordValidationError`."""

    try:
        return model.model_validate(dict(data))
    except ValidationError as exc:
        raise RecordValidationError(pydantic_errors(exc)) from exc


def raise_for(errors: Mapping[str, str]) -> None:
    if errors:
        raise RecordValidationError(errors)


__all__ = [
    "validate_email",
    "validate_phone",
    "patient_errors",
    "user_errors",
    "invoice_errors",
    "appointment_errors",
    "pydantic_errors",
    "check_model",
    "raise_for",
]
