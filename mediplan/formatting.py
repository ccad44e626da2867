"""French display helpers used by the assistant, reminders and exports."""

from __future__ import annotations

from datetime import date
from typing import Optional, Union

from mediplan import time_utils

_MONTHS_SHORT = (
    "janv.", "févr.", "mars", "avr.", "mai", "juin",
    "juil.", "août", "sept.", "oct.", "nov.", "déc.",
)

# Narrow no-break space, as produced by the fr-MA number format.
_GROUP_SEPARATOR = "\u202f"


def format_amount(amount: Union[int, float, None]) -> str:
    value = float(amount or 0)
    if value.is_integer():
        text = f"{int(value):,}"
    else:
        text = f"{value:,.2f}".rstrip("0").rstrip(".")
    text = text.replace(",", _GROUP_SEPARATOR).replace(".", ",")
    return text


def format_currency(amount: Union[int, float, None], currency: str = "DH") -> str:
    """Return ``amount`` grouped the French way followed by ``currency``."""

    return f"{format_amount(amount)} {currency}"


def format_date(value: Optional[str]) -> str:
    """Return ``dd MMM yyyy`` with French month abbreviations."""

    parsed = time_utils.parse_iso_date(value)
    if parsed is None:
        return ""
    return f"{parsed.day:02d} {_MONTHS_SHORT[parsed.month - 1]} {parsed.year}"


def calculate_age(date_of_birth: Optional[str], *, on: Optional[date] = None) -> Optional[int]:
    """Return the age in whole years for an ISO date of birth."""

    dob = time_utils.parse_iso_date(date_of_birth)
    if dob is None:
        return None
    ref = on or time_utils.today()
    years = ref.year - dob.year - ((ref.month, ref.day) < (dob.month, dob.day))
    return max(years, 0)


def format_phone(phone: Optional[str]) -> str:
    digits = "".join(ch for ch in (phone or "") if ch.isdigit())
    if len(digits) == 10:
        return " ".join(digits[i:i + 2] for i in range(0, 10, 2))
    return phone or ""


def patient_name(patient: Optional[dict]) -> str:
    if not patient:
        return ""
    return f"{patient.get('firstName') or ''} {patient.get('lastName') or ''}".strip()


__all__ = [
    "calculate_age",
    "format_amount",
    "format_currency",
    "format_date",
    "format_phone",
    "patient_name",
]
