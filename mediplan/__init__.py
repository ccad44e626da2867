"""MediPlan: single-cabinet clinic store with derived views and a JSON API."""

from mediplan.errors import ProtectedUserError, RecordValidationError, StoreError
from mediplan.store import ClinicStore

__version__ = "1.0.0"

__all__ = ["ClinicStore", "ProtectedUserError", "RecordValidationError", "StoreError", "__version__"]
