from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, List, Mapping, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DATE_RANGES = ("1-15", "16-31", "all")
DEFAULT_DATE_RANGE = "1-15"

# Inclusive day bounds per sub-range. "16-31" is not clamped per month.
DAY_BOUNDS = {
    "1-15": (1, 15),
    "16-31": (16, 31),
    "all": (1, 31),
}


@dataclass(frozen=True)
class DateRangeSelector:
    year: int
    month: int
    date_range: str = DEFAULT_DATE_RANGE

    def validate(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"month must be in 1..12, got {self.month}")
        if self.date_range not in DAY_BOUNDS:
            raise ValueError(f"date_range must be one of {DATE_RANGES}, got {self.date_range!r}")


def _as_int(value: object) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def normalize_selector(raw: Mapping[str, Any], *, today: Optional[date] = None) -> DateRangeSelector:
    """Build a selector from untrusted UI/query state, falling back to the current month."""
    today = today or date.today()

    year = _as_int(raw.get("year", raw.get("selected_year")))
    if year is None or year < 1:
        year = today.year

    month = _as_int(raw.get("month", raw.get("selected_month")))
    if month is None:
        month = today.month
    month = max(1, min(12, month))

    date_range = str(raw.get("date_range", raw.get("date_filter")) or "").strip().lower()
    if date_range not in DAY_BOUNDS:
        date_range = DEFAULT_DATE_RANGE

    return DateRangeSelector(year=year, month=month, date_range=date_range)


def parse_record_date(value: object) -> Optional[date]:
    """Parse a DD/MM/YYYY string. Returns None for anything that is not a real calendar date."""
    if not isinstance(value, str):
        return None
    parts = value.strip().split("/")
    if len(parts) != 3:
        return None
    day, month, year = (_as_int(p) for p in parts)
    if day is None or month is None or year is None:
        return None
    try:
        return date(year, month, day)
    except ValueError:
        return None


def format_record_date(value: date) -> str:
    return value.strftime("%d/%m/%Y")


def _record_date_text(record: Any) -> object:
    if isinstance(record, Mapping):
        return record.get("date")
    return getattr(record, "date", None)


def _in_range(parsed: date, selector: DateRangeSelector) -> bool:
    if parsed.year != selector.year or parsed.month != selector.month:
        return False
    low, high = DAY_BOUNDS[selector.date_range]
    return low <= parsed.day <= high


def filter_records(
    records: Iterable[T],
    year: int,
    month: int,
    date_range: str = DEFAULT_DATE_RANGE,
) -> List[T]:
    """Return the records dated within ``month``/``year`` and the day sub-range, in input order.

    Records whose date does not parse as DD/MM/YYYY never match.
    """
    selector = DateRangeSelector(year=year, month=month, date_range=date_range)
    return apply_selector(records, selector)


def apply_selector(records: Iterable[T], selector: DateRangeSelector) -> List[T]:
    selector.validate()
    out: List[T] = []
    skipped = 0
    for record in records:
        parsed = parse_record_date(_record_date_text(record))
        if parsed is None:
            skipped += 1
            continue
        if _in_range(parsed, selector):
            out.append(record)
    if skipped:
        logger.debug("Skipped %d record(s) with unparseable dates", skipped)
    return out


def record_years(records: Sequence[Any]) -> List[int]:
    years = set()
    for record in records:
        parsed = parse_record_date(_record_date_text(record))
        if parsed is not None:
            years.add(parsed.year)
    return sorted(years)

