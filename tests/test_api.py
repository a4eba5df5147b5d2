import io
from datetime import time

import pandas as pd
import pytest
from fastapi.testclient import TestClient

from api.main import app
from portal.config import get_settings
from portal.export import XLSX_MEDIA_TYPE

JAN_FIRST_HALF = {"year": 2025, "month": 1, "date_range": "1-15"}
JAN_ALL = {"year": 2025, "month": 1, "date_range": "all"}


@pytest.fixture
def client():
    return TestClient(app)


def _login(client, partner_id, password):
    resp = client.post("/auth/login", json={"partner_id": partner_id, "password": password})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['token']}"}


@pytest.fixture
def partner_headers(client):
    return _login(client, "demo", "demo123")


@pytest.fixture
def admin_headers(client):
    return _login(client, "admin", "admin123")


def test_login_redirects_by_role(client):
    admin = client.post("/auth/login", json={"partner_id": "admin", "password": "admin123"}).json()
    partner = client.post("/auth/login", json={"partner_id": "demo", "password": "demo123"}).json()
    assert admin["redirect"] == "/admin"
    assert admin["session"]["is_admin"] is True
    assert partner["redirect"] == "/dashboard"
    assert partner["session"]["display_name"] == "Partner DEMO"


def test_login_failure(client):
    resp = client.post("/auth/login", json={"partner_id": "", "password": ""})
    assert resp.status_code == 401
    assert resp.json() == {"error": "Invalid Partner ID or Password", "type": "AuthError"}


def test_me_and_logout(client, partner_headers):
    assert client.get("/auth/me", headers=partner_headers).json()["user_id"] == "demo"
    assert client.post("/auth/logout", headers=partner_headers).json() == {"logged_out": True}
    assert client.get("/auth/me", headers=partner_headers).status_code == 401


def test_dashboard_requires_session(client):
    assert client.post("/dashboard", json=JAN_FIRST_HALF).status_code == 401
    bad = {"Authorization": "Token abc"}
    assert client.post("/dashboard", json=JAN_FIRST_HALF, headers=bad).status_code == 401


def test_meta_periods(client):
    body = client.get("/meta/periods").json()
    assert len(body["months"]) == 12
    assert body["months"][0] == {"value": "1", "label": "January"}
    assert 2025 in body["years"]
    assert [r["value"] for r in body["date_ranges"]] == ["1-15", "16-31", "all"]


def test_dashboard_first_half(client, partner_headers):
    body = client.post("/dashboard", json=JAN_FIRST_HALF, headers=partner_headers).json()
    assert body["counts"] == {"dispatch": 4, "material": 4, "diesel": 4}
    assert body["totals"]["total_unload"] == pytest.approx(107.2)
    assert body["totals"]["total_unload_display"] == "107.2 Tons"
    assert body["totals"]["total_diesel_display"] == "625 Ltr"
    assert [r["date"] for r in body["records"]["dispatch"]] == ["15/01/2025", "14/01/2025", "13/01/2025", "12/01/2025"]
    assert body["user"]["user_id"] == "demo"


def test_dashboard_normalizes_bad_selector(client, partner_headers):
    resp = client.post("/dashboard", json={"year": 2025, "month": 1, "date_range": "weekly"}, headers=partner_headers)
    assert resp.status_code == 200
    assert resp.json()["filters"]["date_range"] == "1-15"


def test_records_endpoint(client, partner_headers):
    body = client.post("/records/diesel", json={"year": 2025, "month": 1, "date_range": "16-31"}, headers=partner_headers).json()
    assert [r["dieselIssued"] for r in body["records"]] == [180, 165]
    assert body["total_display"] == "345 Ltr"


def test_records_unknown_kind(client, partner_headers):
    assert client.post("/records/coal", json=JAN_ALL, headers=partner_headers).status_code == 422


def test_export_download(client, partner_headers):
    resp = client.post("/export", json=JAN_FIRST_HALF, headers=partner_headers)
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith(XLSX_MEDIA_TYPE)
    assert "archana_2025_01_1-15.xlsx" in resp.headers["content-disposition"]
    sheets = pd.read_excel(io.BytesIO(resp.content), sheet_name=None)
    assert len(sheets["Dispatch"]) == 4


def test_partner_cannot_upload(client, partner_headers, xlsx_bytes, dispatch_upload_rows):
    files = {"file": ("dispatch.xlsx", xlsx_bytes(dispatch_upload_rows), XLSX_MEDIA_TYPE)}
    resp = client.post("/admin/upload/dispatch", files=files, headers=partner_headers)
    assert resp.status_code == 403


def test_upload_rejects_empty_sheet(client, admin_headers, xlsx_bytes):
    files = {"file": ("diesel.xlsx", xlsx_bytes([], columns=["Date", "Volume"]), XLSX_MEDIA_TYPE)}
    resp = client.post("/admin/upload/diesel", files=files, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["type"] == "UploadError"


def test_upload_save_and_partner_scoping(client, admin_headers, xlsx_bytes, dispatch_upload_rows):
    files = {"file": ("dispatch.xlsx", xlsx_bytes(dispatch_upload_rows), XLSX_MEDIA_TYPE)}
    preview = client.post("/admin/upload/dispatch", files=files, headers=admin_headers).json()
    assert preview["row_count"] == 2
    assert preview["remaining_rows"] == 0
    assert preview["preview_rows"][0]["Vehicle No"] == "OD-05-2222"

    saved = client.post(
        "/admin/save/dispatch",
        json={"headers": preview["headers"], "rows": preview["rows"]},
        headers=admin_headers,
    ).json()
    assert saved == {"kind": "dispatch", "saved": 2, "rejected": [], "owners": ["demo", "acme"]}

    demo = _login(client, "demo", "demo123")
    demo_body = client.post("/dashboard", json=JAN_ALL, headers=demo).json()
    assert demo_body["counts"]["dispatch"] == 7
    assert demo_body["records"]["dispatch"][-1]["owner"] == "demo"

    other = _login(client, "someone", "pw")
    assert client.post("/dashboard", json=JAN_ALL, headers=other).json()["counts"]["dispatch"] == 6

    admin_body = client.post("/dashboard", json=JAN_ALL, headers=admin_headers).json()
    assert admin_body["counts"]["dispatch"] == 8


def test_save_reports_missing_columns(client, admin_headers):
    resp = client.post(
        "/admin/save/diesel",
        json={"headers": ["Date"], "rows": [{"Date": "2025-01-01"}]},
        headers=admin_headers,
    )
    assert resp.status_code == 400
    assert "Missing required column" in resp.json()["error"]


def test_uploaded_time_cells_are_saved_as_hh_mm(client, admin_headers, xlsx_bytes):
    rows = [
        {
            "In Date": "2025-01-20",
            "In Time": time(8, 30),
            "Out Time": time(17, 45),
            "Vehicle No": "OD-05-4444",
            "Net": 26.0,
            "Unloading Point": "Puri",
            "OWNER NAME": "demo",
        }
    ]
    files = {"file": ("dispatch.xlsx", xlsx_bytes(rows), XLSX_MEDIA_TYPE)}
    preview = client.post("/admin/upload/dispatch", files=files, headers=admin_headers).json()
    saved = client.post(
        "/admin/save/dispatch",
        json={"headers": preview["headers"], "rows": preview["rows"], "row_numbers": preview["row_numbers"]},
        headers=admin_headers,
    ).json()
    assert saved["saved"] == 1

    body = client.post("/records/dispatch", json={"year": 2025, "month": 1, "date_range": "16-31"}, headers=admin_headers).json()
    uploaded = [r for r in body["records"] if r["vehicleNo"] == "OD-05-4444"]
    assert [(r["inTime"], r["outTime"]) for r in uploaded] == [("08:30", "17:45")]


def test_save_reports_sheet_row_numbers(client, admin_headers, xlsx_bytes, diesel_upload_rows):
    rows = diesel_upload_rows + [{k: None for k in diesel_upload_rows[0]}, dict(diesel_upload_rows[0], Date="soon")]
    files = {"file": ("diesel.xlsx", xlsx_bytes(rows), XLSX_MEDIA_TYPE)}
    preview = client.post("/admin/upload/diesel", files=files, headers=admin_headers).json()
    assert preview["row_numbers"] == [2, 4]

    saved = client.post(
        "/admin/save/diesel",
        json={"headers": preview["headers"], "rows": preview["rows"], "row_numbers": preview["row_numbers"]},
        headers=admin_headers,
    ).json()
    assert saved["saved"] == 1
    assert [r["row"] for r in saved["rejected"]] == [4]


def test_oversized_upload_is_rejected(client, admin_headers, xlsx_bytes, dispatch_upload_rows, monkeypatch):
    monkeypatch.setenv("PORTAL_MAX_UPLOAD_MB", "0.0001")
    get_settings.cache_clear()
    files = {"file": ("dispatch.xlsx", xlsx_bytes(dispatch_upload_rows), XLSX_MEDIA_TYPE)}
    resp = client.post("/admin/upload/dispatch", files=files, headers=admin_headers)
    assert resp.status_code == 413
    assert "upload limit" in resp.json()["error"]
