"""Exceptions raised by the clinic store."""

from __future__ import annotations

from typing import Dict, Mapping


class StoreError(Exception):
    """Base error for clinic store failures."""


class RecordValidationError(StoreError):
    """Raised when a create or update payload fails validation.

    ``errors`` maps field names to user-facing messages.  The store applies
    nothing when this is raised.
    """

    def __init__(self, errors: Mapping[str, str]) -> None:
        self.errors: Dict[str, str] = dict(errors)
        fields = ", ".join(sorted(self.errors)) or "record"
        super().__init__(f"Invalid fields: {fields}")


class ProtectedUserError(StoreError):
    """Raised when deleting the signed-in user or an administrator."""


__all__ = ["StoreError", "RecordValidationError", "ProtectedUserError"]
