import os
import sys
from datetime import date, datetime, timezone

import pytest
from fastapi.testclient import TestClient

# Ensure the repository root is on sys.path so tests can import the mediplan package
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from mediplan import time_utils  # noqa: E402
from mediplan.api import create_app  # noqa: E402
from mediplan.config import StoreSettings  # noqa: E402
from mediplan.demo_data import demo_seed, empty_seed  # noqa: E402
from mediplan.scheduler import ManualScheduler  # noqa: E402
from mediplan.storage import MemoryBackend, PersistenceAdapter  # noqa: E402
from mediplan.store import ClinicStore  # noqa: E402

# The demo dataset is dated around this Monday.
FROZEN_TODAY = date(2025, 1, 13)
FROZEN_NOW = datetime(2025, 1, 13, 8, 30, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def frozen_clock(monkeypatch):
    """Pin "today" so date-dependent views are deterministic."""

    monkeypatch.setattr(time_utils, 'today', lambda: FROZEN_TODAY)
    monkeypatch.setattr(time_utils, 'utc_now', lambda: FROZEN_NOW)
    return FROZEN_TODAY


@pytest.fixture()
def settings():
    return StoreSettings(url='sqlite://')


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def backend():
    return MemoryBackend()


@pytest.fixture()
def adapter(backend):
    return PersistenceAdapter(backend, prefix='errami_')


@pytest.fixture()
def store(adapter, scheduler, settings):
    """Store seeded with the demo dataset over an in-memory backend."""

    clinic = ClinicStore(adapter, scheduler=scheduler, settings=settings, seed=demo_seed())
    clinic.load()
    yield clinic
    clinic.close()


@pytest.fixture()
def empty_store(adapter, scheduler, settings):
    clinic = ClinicStore(adapter, scheduler=scheduler, settings=settings, seed=empty_seed())
    clinic.load()
    yield clinic
    clinic.close()


@pytest.fixture()
def reopen(adapter, settings):
    """Return a factory opening a fresh store over the same backend."""

    opened = []

    def _open():
        clinic = ClinicStore(adapter, scheduler=ManualScheduler(), settings=settings, seed=empty_seed())
        clinic.load()
        opened.append(clinic)
        return clinic

    yield _open
    for clinic in opened:
        clinic.close()


@pytest.fixture()
def api_client(store):
    """Return a FastAPI test client bound to the demo store."""

    app = create_app(store)
    with TestClient(app) as client:
        yield client


@pytest.fixture()
def patient_payload():
    return {
        'firstName': 'Nadia',
        'lastName': 'Benjelloun',
        'email': 'nadia.benjelloun@email.com',
        'phone': '06 12 34 56 78',
        'dateOfBirth': '1990-04-02',
        'gender': 'Femme',
        'city': 'Fès',
        'allergies': ['Latex'],
        'preferredReminder': 'sms',
    }
