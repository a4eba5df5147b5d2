import io
from pathlib import Path
import sys

import pandas as pd
import pytest

# Make the project root importable regardless of where pytest is launched.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from portal.auth import get_sessions
from portal.config import get_settings
from portal.records import SAMPLE_DIESEL, SAMPLE_DISPATCH, SAMPLE_MATERIAL
from portal.store import get_store


@pytest.fixture(autouse=True)
def reset_singletons(monkeypatch):
    """Fresh settings, record store and sessions for every test."""
    for key in ["PORTAL_ADMIN_USER", "PORTAL_ADMIN_PASSWORD", "PORTAL_SEED_DEMO_DATA", "PORTAL_MAX_UPLOAD_MB", "PORTAL_SESSION_TTL_MINUTES"]:
        monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    get_store.cache_clear()
    get_sessions.cache_clear()
    yield
    get_settings.cache_clear()
    get_store.cache_clear()
    get_sessions.cache_clear()


@pytest.fixture
def dispatch_records():
    return list(SAMPLE_DISPATCH)


@pytest.fixture
def records_by_kind():
    return {
        "dispatch": list(SAMPLE_DISPATCH),
        "material": list(SAMPLE_MATERIAL),
        "diesel": list(SAMPLE_DIESEL),
    }


def make_xlsx(rows, columns=None) -> bytes:
    buffer = io.BytesIO()
    pd.DataFrame(rows, columns=columns).to_excel(buffer, index=False, engine="openpyxl")
    return buffer.getvalue()


@pytest.fixture
def xlsx_bytes():
    return make_xlsx


@pytest.fixture
def dispatch_upload_rows():
    return [
        {
            "Sl.No": 1,
            "In Date": "2025-01-20",
            "Out Date": "2025-01-20",
            "Ref. No": "R-1",
            "Vehicle No": "OD-05-2222",
            "Gross": 40.0,
            "Tare": 14.0,
            "Net": 26.0,
            "Challan No": "C-1",
            "Unloading Point": "Puri",
            "OWNER NAME": "demo",
        },
        {
            "Sl.No": 2,
            "In Date": "2025-01-05",
            "Out Date": "2025-01-05",
            "Ref. No": "R-2",
            "Vehicle No": "OD-05-3333",
            "Gross": 38.5,
            "Tare": 14.0,
            "Net": 24.5,
            "Challan No": "C-2",
            "Unloading Point": "Jajpur",
            "OWNER NAME": "acme",
        },
    ]


@pytest.fixture
def diesel_upload_rows():
    return [
        {
            "Date": "2025-01-20",
            "Vehicle Number": "OD-05-2222",
            "Volume": 120,
            "Item": "Diesel",
            "Fuel Station": "HP Puri",
            "Status": "Used",
            "OWNER NAME": "demo",
        },
    ]
