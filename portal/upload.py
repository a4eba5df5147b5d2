from __future__ import annotations

import io
import logging
import math
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import PurePath
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from portal.filters import format_record_date
from portal.records import DatedRecord, DieselRecord, DispatchRecord, MaterialRecord

logger = logging.getLogger(__name__)

# Extension -> pandas read_excel engine.
EXCEL_ENGINES = {".xlsx": "openpyxl", ".xls": "xlrd"}
SUPPORTED_EXTENSIONS = set(EXCEL_ENGINES)
PREVIEW_ROWS = 5
AUTO_DETECTED_PARTNER = "AUTO_DETECTED"

# Record field -> accepted spreadsheet headers (first match wins).
DISPATCH_COLUMNS = {
    "date": ["In Date", "Date"],
    "out_date": ["Out Date"],
    "in_time": ["In Time"],
    "out_time": ["Out Time"],
    "vehicle_no": ["Vehicle No", "Vehicle Number"],
    "quantity": ["Net", "Quantity"],
    "location": ["Unloading Point", "Location"],
    "owner": ["OWNER NAME", "Owner Name"],
}

DIESEL_COLUMNS = {
    "date": ["Date"],
    "vehicle_no": ["Vehicle Number", "Vehicle No"],
    "diesel_issued": ["Volume", "Diesel Issued"],
    "owner": ["OWNER NAME", "Owner Name"],
}

MATERIAL_COLUMNS = {
    "date": ["Date", "In Date"],
    "vehicle_no": ["Vehicle No", "Vehicle Number"],
    "material_type": ["Material Type", "Material"],
    "quantity": ["Quantity", "Net"],
    "unit": ["Unit"],
    "owner": ["OWNER NAME", "Owner Name"],
}

COLUMN_SPECS = {
    "dispatch": DISPATCH_COLUMNS,
    "diesel": DIESEL_COLUMNS,
    "material": MATERIAL_COLUMNS,
}

REQUIRED_FIELDS = {
    "dispatch": ["date", "vehicle_no", "quantity", "owner"],
    "diesel": ["date", "vehicle_no", "diesel_issued", "owner"],
    "material": ["date", "vehicle_no", "material_type", "quantity", "owner"],
}

DATE_FORMATS = [
    "%Y-%m-%d",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M",
    "%Y-%m-%dT%H:%M:%S",
    "%d/%m/%Y",
    "%d/%m/%Y %H:%M",
    "%d-%m-%Y",
]

TIME_FORMATS = ["%H:%M", "%H:%M:%S", "%I:%M %p", "%I:%M:%S %p"]


class UploadError(Exception):
    """Raised when an uploaded spreadsheet cannot be turned into a preview or records."""


@dataclass
class PreviewData:
    headers: List[str]
    rows: List[Dict[str, Any]]
    partner_id: Optional[str] = None
    # 1-based sheet row of each entry in ``rows``.
    row_numbers: List[int] = field(default_factory=list)

    def head(self, n: int = PREVIEW_ROWS) -> List[Dict[str, Any]]:
        return self.rows[:n]

    @property
    def remaining_rows(self) -> int:
        return max(0, len(self.rows) - PREVIEW_ROWS)


@dataclass
class ImportResult:
    kind: str
    records: List[DatedRecord] = field(default_factory=list)
    rejected: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def owners(self) -> List[str]:
        return list(group_by_owner(self.records).keys())


def _is_blank(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _header_name(value: object, idx: int) -> str:
    if _is_blank(value):
        return f"Column {idx + 1}"
    return str(value).strip()


def read_first_sheet(content: bytes, engine: str = "openpyxl") -> pd.DataFrame:
    return pd.read_excel(io.BytesIO(content), sheet_name=0, header=None, engine=engine)


def parse_spreadsheet(content: bytes, filename: str = "upload.xlsx") -> PreviewData:
    suffix = PurePath(filename or "").suffix.lower()
    if suffix not in SUPPORTED_EXTENSIONS:
        raise UploadError(f"Unsupported file type {suffix or '(none)'}; upload an .xlsx or .xls file")
    if not content:
        raise UploadError("Uploaded file is empty")

    try:
        raw = read_first_sheet(content, EXCEL_ENGINES[suffix])
    except Exception as exc:
        raise UploadError(f"Failed to parse Excel file: {exc}") from exc

    # Blank rows are dropped but the index keeps the 0-based sheet position.
    raw = raw.dropna(how="all")
    if len(raw) < 2:
        raise UploadError("File must contain at least headers and one row of data")

    headers = [_header_name(v, i) for i, v in enumerate(raw.iloc[0].tolist())]
    body = raw.iloc[1:]
    rows: List[Dict[str, Any]] = []
    for values in body.itertuples(index=False, name=None):
        rows.append({h: ("" if _is_blank(v) else v) for h, v in zip(headers, values)})
    row_numbers = [int(i) + 1 for i in body.index]

    first = rows[0]
    partner_id = first.get("Partner ID") or first.get(headers[0]) or AUTO_DETECTED_PARTNER
    logger.info("Parsed %s: %d row(s), %d column(s)", filename, len(rows), len(headers))
    return PreviewData(headers=headers, rows=rows, partner_id=str(partner_id), row_numbers=row_numbers)


def _resolve_columns(kind: str, headers: Iterable[str]) -> Dict[str, str]:
    lookup = {str(h).strip().lower(): h for h in headers}
    resolved: Dict[str, str] = {}
    for field_name, candidates in COLUMN_SPECS[kind].items():
        for candidate in candidates:
            if candidate.lower() in lookup:
                resolved[field_name] = lookup[candidate.lower()]
                break
    missing = [COLUMN_SPECS[kind][f][0] for f in REQUIRED_FIELDS[kind] if f not in resolved]
    if missing:
        raise UploadError(f"Missing required column(s) for {kind} data: {', '.join(missing)}")
    return resolved


def parse_cell_datetime(value: object) -> Optional[datetime]:
    if _is_blank(value):
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = str(value).strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def _time_part(value: Optional[datetime]) -> str:
    if value is None or (value.hour == 0 and value.minute == 0):
        return ""
    return value.strftime("%H:%M")


def _time_text(value: object) -> str:
    """Render a time cell as ``HH:MM``; unrecognised text is kept as entered."""
    if _is_blank(value) or isinstance(value, bool):
        return ""
    if hasattr(value, "strftime"):
        return value.strftime("%H:%M")
    if isinstance(value, (int, float)) and 0 <= value < 1:
        # Excel stores a bare time as a fraction of a day.
        minutes = int(round(value * 24 * 60)) % (24 * 60)
        return f"{minutes // 60:02d}:{minutes % 60:02d}"
    text = str(value).strip()
    for fmt in TIME_FORMATS:
        try:
            return datetime.strptime(text, fmt).strftime("%H:%M")
        except ValueError:
            continue
    when = parse_cell_datetime(text)
    if when is not None:
        return when.strftime("%H:%M")
    return text


def _as_float(value: object) -> Optional[float]:
    if _is_blank(value) or isinstance(value, bool):
        return None
    try:
        out = float(str(value).replace(",", "").strip())
    except (TypeError, ValueError):
        return None
    if math.isnan(out) or math.isinf(out):
        return None
    return out


def _as_volume(value: object) -> Optional[float]:
    out = _as_float(value)
    if out is not None and out.is_integer():
        return int(out)
    return out


def _text(value: object) -> str:
    return "" if _is_blank(value) else str(value).strip()


def _convert_row(kind: str, row: Mapping[str, Any], cols: Dict[str, str]) -> Tuple[Optional[DatedRecord], Optional[str]]:
    def cell(name: str) -> Any:
        return row.get(cols[name], "") if name in cols else ""

    when = parse_cell_datetime(cell("date"))
    if when is None:
        return None, f"invalid date {cell('date')!r}"
    owner = _text(cell("owner"))
    if not owner:
        return None, "missing owner name"
    vehicle_no = _text(cell("vehicle_no"))
    record_date = format_record_date(when.date())

    if kind == "dispatch":
        quantity = _as_float(cell("quantity"))
        if quantity is None:
            return None, f"invalid quantity {cell('quantity')!r}"
        out_when = parse_cell_datetime(cell("out_date"))
        return (
            DispatchRecord(
                date=record_date,
                vehicle_no=vehicle_no,
                in_time=_time_text(cell("in_time")) or _time_part(when),
                out_time=_time_text(cell("out_time")) or _time_part(out_when),
                quantity=quantity,
                location=_text(cell("location")),
                owner=owner,
            ),
            None,
        )
    if kind == "diesel":
        volume = _as_volume(cell("diesel_issued"))
        if volume is None:
            return None, f"invalid volume {cell('diesel_issued')!r}"
        return DieselRecord(date=record_date, vehicle_no=vehicle_no, diesel_issued=volume, owner=owner), None

    quantity = _as_float(cell("quantity"))
    if quantity is None:
        return None, f"invalid quantity {cell('quantity')!r}"
    return (
        MaterialRecord(
            date=record_date,
            vehicle_no=vehicle_no,
            material_type=_text(cell("material_type")),
            quantity=quantity,
            unit=_text(cell("unit")) or "Tons",
            owner=owner,
        ),
        None,
    )


def rows_to_records(
    kind: str,
    rows: List[Mapping[str, Any]],
    headers: Optional[List[str]] = None,
    row_numbers: Optional[List[int]] = None,
) -> ImportResult:
    """Convert preview rows into records.

    ``row_numbers`` are the sheet rows reported for rejected entries; without
    them rows are assumed to follow the header row without gaps.
    """
    if kind not in COLUMN_SPECS:
        raise UploadError(f"Unknown upload type: {kind!r}")
    if not rows:
        raise UploadError("No rows to import")
    if row_numbers and len(row_numbers) != len(rows):
        raise UploadError(f"Got {len(row_numbers)} row number(s) for {len(rows)} row(s)")
    cols = _resolve_columns(kind, headers or list(rows[0].keys()))
    numbers = row_numbers or range(2, len(rows) + 2)

    result = ImportResult(kind=kind)
    for idx, row in zip(numbers, rows):
        record, reason = _convert_row(kind, row, cols)
        if record is None:
            result.rejected.append({"row": idx, "reason": reason})
            continue
        result.records.append(record)
    if result.rejected:
        logger.warning("Rejected %d of %d %s row(s)", len(result.rejected), len(rows), kind)
    return result


def group_by_owner(records: Iterable[DatedRecord]) -> "OrderedDict[str, List[DatedRecord]]":
    groups: "OrderedDict[str, List[DatedRecord]]" = OrderedDict()
    for record in records:
        groups.setdefault(record.owner or AUTO_DETECTED_PARTNER, []).append(record)
    return groups
