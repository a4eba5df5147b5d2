from __future__ import annotations

import io
from typing import Any, Mapping, Sequence

import pandas as pd

from portal.filters import DateRangeSelector
from portal.metrics import filter_by_kind
from portal.records import record_to_dict

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

SHEET_COLUMNS = {
    "dispatch": ("Dispatch", ["date", "vehicleNo", "inTime", "outTime", "quantity", "location"]),
    "material": ("Material", ["date", "vehicleNo", "materialType", "quantity", "unit"]),
    "diesel": ("Diesel", ["date", "vehicleNo", "dieselIssued"]),
}

HEADER_LABELS = {
    "date": "Date",
    "vehicleNo": "Vehicle No",
    "inTime": "In Time",
    "outTime": "Out Time",
    "quantity": "Quantity",
    "location": "Location",
    "materialType": "Material Type",
    "unit": "Unit",
    "dieselIssued": "Diesel Issued (L)",
}


def export_filename(selector: DateRangeSelector) -> str:
    return f"archana_{selector.year}_{selector.month:02d}_{selector.date_range}.xlsx"


def records_frame(kind: str, records: Sequence[Any]) -> pd.DataFrame:
    _, cols = SHEET_COLUMNS[kind]
    df = pd.DataFrame([record_to_dict(r) for r in records], columns=cols)
    return df.rename(columns=HEADER_LABELS)


def export_workbook(selector: DateRangeSelector, records_by_kind: Mapping[str, Sequence[Any]]) -> bytes:
    filtered = filter_by_kind(selector, records_by_kind)
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        for kind, (sheet_name, _) in SHEET_COLUMNS.items():
            records_frame(kind, filtered[kind]).to_excel(writer, sheet_name=sheet_name, index=False)
    return buffer.getvalue()
