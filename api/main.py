from __future__ import annotations

import calendar
import logging
import math
from dataclasses import asdict
from typing import Literal, Optional

import numpy as np
import pandas as pd
from fastapi import FastAPI, File, Header, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import (
    LoginRequest,
    LoginResponse,
    OptionModel,
    PeriodsResponse,
    SaveRequest,
    SaveResponse,
    SelectorModel,
    SessionModel,
)
from portal.auth import AuthError, Session, get_sessions
from portal.config import configure_logging, get_settings
from portal.export import XLSX_MEDIA_TYPE, export_filename, export_workbook
from portal.filters import DateRangeSelector, apply_selector, normalize_selector
from portal.metrics import available_years, compute_dashboard, format_litres, format_tonnage, total_quantity
from portal.records import QUANTITY_FIELDS, record_to_dict
from portal.store import get_store
from portal.upload import UploadError, parse_spreadsheet, rows_to_records


configure_logging()
app = FastAPI(title="Archana Transport Portal API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

RecordKindParam = Literal["dispatch", "diesel", "material"]

DATE_RANGE_LABELS = {"1-15": "1st to 15th", "16-31": "16th to 30/31", "all": "Full Month"}


class Forbidden(Exception):
    pass


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        ),
    )


def _error(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _session(authorization: Optional[str], *, require_admin: bool = False) -> Session:
    session = get_sessions().require(_bearer_token(authorization))
    if require_admin and not session.is_admin:
        raise Forbidden("Admin access required")
    return session


def _session_model(session: Session) -> SessionModel:
    return SessionModel(
        user_id=session.user_id,
        role=session.role,
        display_name=session.display_name,
        is_admin=session.is_admin,
        is_partner=session.is_partner,
    )


def _selector(model: SelectorModel) -> DateRangeSelector:
    return normalize_selector(model.model_dump())


@app.post("/auth/login")
def login(body: LoginRequest):
    try:
        session = get_sessions().login(body.partner_id, body.password)
        redirect = "/admin" if session.is_admin else "/dashboard"
        return _json(LoginResponse(token=session.token, session=_session_model(session), redirect=redirect).model_dump())
    except AuthError as exc:
        return _error(401, exc)
    except Exception as exc:
        logger.exception("login failed")
        return _error(500, exc)


@app.post("/auth/logout")
def logout(authorization: Optional[str] = Header(default=None)):
    try:
        revoked = get_sessions().revoke(_bearer_token(authorization))
        return _json({"logged_out": revoked})
    except Exception as exc:
        logger.exception("logout failed")
        return _error(500, exc)


@app.get("/auth/me")
def me(authorization: Optional[str] = Header(default=None)):
    try:
        return _json(_session_model(_session(authorization)).model_dump())
    except AuthError as exc:
        return _error(401, exc)
    except Exception as exc:
        logger.exception("me failed")
        return _error(500, exc)


@app.get("/meta/periods")
def meta_periods():
    try:
        defaults = normalize_selector({})
        payload = PeriodsResponse(
            months=[OptionModel(value=str(m), label=calendar.month_name[m]) for m in range(1, 13)],
            years=available_years(get_store().all_kinds()),
            date_ranges=[OptionModel(value=k, label=v) for k, v in DATE_RANGE_LABELS.items()],
            defaults=SelectorModel(**asdict(defaults)),
        )
        return _json(payload.model_dump())
    except Exception as exc:
        logger.exception("meta_periods failed")
        return _error(500, exc)


@app.post("/dashboard")
def dashboard(selector: SelectorModel, authorization: Optional[str] = Header(default=None)):
    try:
        session = _session(authorization)
        records_by_kind = get_store().all_kinds(owner=session.owner)
        payload = compute_dashboard(_selector(selector), records_by_kind)
        payload["user"] = _session_model(session).model_dump()
        return _json(payload)
    except AuthError as exc:
        return _error(401, exc)
    except Exception as exc:
        logger.exception("dashboard failed")
        return _error(500, exc)


@app.post("/records/{kind}")
def records(kind: RecordKindParam, selector: SelectorModel, authorization: Optional[str] = Header(default=None)):
    try:
        session = _session(authorization)
        sel = _selector(selector)
        rows = apply_selector(get_store().records(kind, owner=session.owner), sel)
        total = total_quantity(rows, QUANTITY_FIELDS[kind])
        return _json(
            {
                "kind": kind,
                "filters": asdict(sel),
                "records": [record_to_dict(r) for r in rows],
                "total": total,
                "total_display": format_litres(total) if kind == "diesel" else format_tonnage(total),
            }
        )
    except AuthError as exc:
        return _error(401, exc)
    except Exception as exc:
        logger.exception("records failed")
        return _error(500, exc)


@app.post("/export")
def export(selector: SelectorModel, authorization: Optional[str] = Header(default=None)):
    try:
        session = _session(authorization)
        sel = _selector(selector)
        content = export_workbook(sel, get_store().all_kinds(owner=session.owner))
        return Response(
            content=content,
            media_type=XLSX_MEDIA_TYPE,
            headers={"Content-Disposition": f"attachment; filename={export_filename(sel)}"},
        )
    except AuthError as exc:
        return _error(401, exc)
    except Exception as exc:
        logger.exception("export failed")
        return _error(500, exc)


@app.post("/admin/upload/{kind}")
def admin_upload(kind: RecordKindParam, file: UploadFile = File(...), authorization: Optional[str] = Header(default=None)):
    try:
        _session(authorization, require_admin=True)
        max_bytes = get_settings().max_upload_bytes
        content = file.file.read(max_bytes + 1)
        if len(content) > max_bytes:
            return _error(413, UploadError(f"File exceeds the {max_bytes} byte upload limit"))
        preview = parse_spreadsheet(content, file.filename or "")
        return _json(
            {
                "kind": kind,
                "filename": file.filename,
                "headers": preview.headers,
                "rows": preview.rows,
                "row_numbers": preview.row_numbers,
                "row_count": len(preview.rows),
                "preview_rows": preview.head(),
                "remaining_rows": preview.remaining_rows,
                "partner_id": preview.partner_id,
            }
        )
    except AuthError as exc:
        return _error(401, exc)
    except Forbidden as exc:
        return _error(403, exc)
    except UploadError as exc:
        return _error(400, exc)
    except Exception as exc:
        logger.exception("admin_upload failed")
        return _error(500, exc)


@app.post("/admin/save/{kind}")
def admin_save(kind: RecordKindParam, body: SaveRequest, authorization: Optional[str] = Header(default=None)):
    try:
        _session(authorization, require_admin=True)
        result = rows_to_records(kind, body.rows, headers=body.headers or None, row_numbers=body.row_numbers or None)
        saved = get_store().add(kind, result.records)
        return _json(SaveResponse(kind=kind, saved=saved, rejected=result.rejected, owners=result.owners).model_dump())
    except AuthError as exc:
        return _error(401, exc)
    except Forbidden as exc:
        return _error(403, exc)
    except UploadError as exc:
        return _error(400, exc)
    except Exception as exc:
        logger.exception("admin_save failed")
        return _error(500, exc)
