"""Read-only CSV export of invoices."""

from __future__ import annotations

import csv
import io
from typing import Any, Iterable, List, Mapping, Optional

from mediplan.formatting import format_date
from mediplan.queries import find_by_id

INVOICE_CSV_HEADERS = ["N° Facture", "Date", "Patient", "Téléphone", "Montant", "Statut"]

# Spreadsheet applications need the byte order mark to detect UTF-8.
BOM = "\ufeff"


def _amount(value: Any) -> str:
    number = float(value or 0)
    return str(int(number)) if number.is_integer() else str(round(number, 2))


def invoice_rows(
    invoices: Iterable[Mapping[str, Any]], patients: Iterable[Mapping[str, Any]]
) -> List[List[str]]:
    patients = list(patients)
    rows: List[List[str]] = []
    for invoice in invoices:
        patient = find_by_id(patients, invoice.get("patientId")) or {}
        rows.append(
            [
                invoice.get("number") or "",
                format_date(invoice.get("date")),
                f"{patient.get('firstName') or ''} {patient.get('lastName') or ''}",
                patient.get("phone") or "",
                _amount(invoice.get("total")),
                "Payée" if invoice.get("status") == "paid" else "En attente",
            ]
        )
    return rows


def invoices_to_csv(
    invoices: Iterable[Mapping[str, Any]],
    patients: Iterable[Mapping[str, Any]],
    *,
    bom: bool = True,
) -> str:
    """Render ``invoices`` as ``;``-separated CSV text.

    The output never touches the store; pass it the already filtered list.
    """

    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=";", lineterminator="\n")
    writer.writerow(INVOICE_CSV_HEADERS)
    writer.writerows(invoice_rows(invoices, patients))
    text = buffer.getvalue().rstrip("\n")
    return f"{BOM}{text}" if bom else text


def export_filename(day: Optional[str]) -> str:
    return f"factures-{day}.csv"


__all__ = ["BOM", "INVOICE_CSV_HEADERS", "export_filename", "invoice_rows", "invoices_to_csv"]
