"""Derived views computed from the store's collections.

Every function here is pure: it takes the current lists and returns a fresh
result, so nothing is cached and nothing needs invalidating after a mutation.
Dates are ISO strings throughout, which makes string comparison chronological.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from mediplan.catalog import INACTIVE_STATUSES, PRACTITIONER_ROLES, WEEKDAYS

Record = Dict[str, Any]

INVOICE_PERIODS = ("all", "today", "week", "month", "quarter", "year")


def find_by_id(records: Iterable[Mapping[str, Any]], record_id: Optional[str]) -> Optional[Record]:
    for record in records:
        if record.get("id") == record_id:
            return record  # type: ignore[return-value]
    return None


def filter_by(records: Iterable[Mapping[str, Any]], field: str, value: Any) -> List[Record]:
    return [record for record in records if record.get(field) == value]  # type: ignore[misc]


def appointments_between(
    appointments: Iterable[Mapping[str, Any]], start: str, end: str
) -> List[Record]:
    """Return appointments dated within ``[start, end]`` ordered by date and time."""

    selected = [a for a in appointments if start <= (a.get("date") or "") <= end]
    return sorted(selected, key=lambda a: (a.get("date") or "", a.get("time") or ""))  # type: ignore[return-value]


def medical_records_for(records: Iterable[Mapping[str, Any]], patient_id: str) -> List[Record]:
    """Return a patient's records, most recent date first."""

    selected = filter_by(records, "patientId", patient_id)
    return sorted(selected, key=lambda r: r.get("date") or "", reverse=True)


def practitioners(users: Iterable[Mapping[str, Any]]) -> List[Record]:
    return [u for u in users if u.get("role") in PRACTITIONER_ROLES]  # type: ignore[misc]


def generate_invoice_number(prefix: str, invoices: Iterable[Mapping[str, Any]], year: int) -> str:
    """Return ``{prefix}-{year}-{seq:03d}``.

    ``seq`` is one more than the number of invoices whose number contains
    ``{prefix}-{year}``.  Two writers computing this concurrently can collide;
    the store has a single writer.
    """

    marker = f"{prefix}-{year}"
    count = sum(1 for inv in invoices if marker in (inv.get("number") or ""))
    return f"{prefix}-{year}-{count + 1:03d}"


def _amount(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _number(value: float) -> float | int:
    return int(value) if float(value).is_integer() else round(value, 2)


def compute_stats(
    patients: Sequence[Mapping[str, Any]],
    appointments: Sequence[Mapping[str, Any]],
    invoices: Sequence[Mapping[str, Any]],
    today: str,
) -> Dict[str, Any]:
    """Aggregate dashboard figures as of ``today``."""

    month = today[:7]
    paid = [inv for inv in invoices if inv.get("status") == "paid"]
    # "present" counts as attended for the absence rate only.
    attended = [a for a in appointments if a.get("status") in ("termine", "present")]
    absent = [a for a in appointments if a.get("status") == "absent"]
    denominator = len(attended) + len(absent)
    absence_rate = round(len(absent) / denominator * 100, 1) if denominator else 0

    return {
        "totalPatients": len(patients),
        "todayAppointments": sum(1 for a in appointments if a.get("date") == today),
        "upcomingAppointments": sum(
            1
            for a in appointments
            if (a.get("date") or "") >= today and a.get("status") not in INACTIVE_STATUSES
        ),
        "totalRevenue": _number(sum(_amount(inv.get("total")) for inv in paid)),
        "monthlyRevenue": _number(
            sum(_amount(inv.get("total")) for inv in paid if (inv.get("date") or "").startswith(month))
        ),
        # Only finished visits count here; unpaid "present" visits do not.
        "pendingPayments": _number(
            sum(
                _amount(a.get("fee"))
                for a in appointments
                if not a.get("paid") and a.get("status") == "termine"
            )
        ),
        "totalInvoices": len(invoices),
        "paidInvoices": len(paid),
        "absenceRate": absence_rate,
        "remindersSent": sum(1 for a in appointments if a.get("reminderSent")),
    }


def period_range(period: str, today: date) -> Optional[Tuple[str, str]]:
    """Return the inclusive ISO date range for ``period`` ending ``today``."""

    if period == "today":
        start = today
    elif period == "week":
        start = today - timedelta(days=today.weekday())
    elif period == "month":
        start = today.replace(day=1)
    elif period == "quarter":
        start = today.replace(month=(today.month - 1) // 3 * 3 + 1, day=1)
    elif period == "year":
        start = today.replace(month=1, day=1)
    else:
        return None
    return start.isoformat(), today.isoformat()


def filter_invoices(
    invoices: Iterable[Mapping[str, Any]],
    patients: Iterable[Mapping[str, Any]],
    *,
    today: date,
    status: str = "all",
    period: str = "all",
    search: str = "",
) -> List[Record]:
    """Filter invoices by status, period and number/patient-name search.

    ``status="pending"`` matches every invoice that is not paid.  Results are
    ordered by date, most recent first.
    """

    by_id = {p.get("id"): p for p in patients}
    needle = search.strip().lower()
    window = period_range(period, today)
    selected: List[Record] = []
    for inv in invoices:
        if status == "paid" and inv.get("status") != "paid":
            continue
        if status == "pending" and inv.get("status") == "paid":
            continue
        if window is not None and not (window[0] <= (inv.get("date") or "") <= window[1]):
            continue
        if needle:
            patient = by_id.get(inv.get("patientId")) or {}
            name = f"{patient.get('firstName', '')} {patient.get('lastName', '')}".lower()
            if needle not in (inv.get("number") or "").lower() and needle not in name:
                continue
        selected.append(dict(inv))
    return sorted(selected, key=lambda inv: inv.get("date") or "", reverse=True)


def invoice_totals(invoices: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    invoices = list(invoices)
    paid = [inv for inv in invoices if inv.get("status") == "paid"]
    pending = [inv for inv in invoices if inv.get("status") != "paid"]
    return {
        "total": _number(sum(_amount(inv.get("total")) for inv in invoices)),
        "paid": _number(sum(_amount(inv.get("total")) for inv in paid)),
        "pending": _number(sum(_amount(inv.get("total")) for inv in pending)),
        "count": len(invoices),
    }


def generate_time_slots(start: int = 8, end: int = 19, interval: int = 30) -> List[str]:
    """Return zero-padded ``HH:MM`` slots from ``start`` (inclusive) to ``end``."""

    return [
        f"{hour:02d}:{minute:02d}"
        for hour in range(start, end)
        for minute in range(0, 60, interval)
    ]


def is_within_working_hours(config: Mapping[str, Any], day: str, time_of_day: str) -> bool:
    """Return ``True`` when ``time_of_day`` falls in the cabinet's hours for ``day``."""

    try:
        weekday = WEEKDAYS[date.fromisoformat(day).weekday()]
    except ValueError:
        return False
    hours = (config.get("workingHours") or {}).get(weekday) or {}
    if not hours.get("enabled"):
        return False
    return hours.get("start", "00:00") <= time_of_day < hours.get("end", "00:00")


__all__ = [
    "INVOICE_PERIODS",
    "appointments_between",
    "compute_stats",
    "filter_by",
    "filter_invoices",
    "find_by_id",
    "generate_invoice_number",
    "generate_time_slots",
    "invoice_totals",
    "is_within_working_hours",
    "medical_records_for",
    "period_range",
    "practitioners",
]
