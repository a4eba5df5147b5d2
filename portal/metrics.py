from __future__ import annotations

import calendar
from dataclasses import asdict
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from portal.charts import unload_chart_spec
from portal.filters import DateRangeSelector, apply_selector, record_years
from portal.records import QUANTITY_FIELDS, RECORD_KINDS, record_to_dict


def _field_value(record: Any, field_name: str) -> float:
    if isinstance(record, Mapping):
        value = record.get(field_name)
    else:
        value = getattr(record, field_name, None)
    if value is None or value == "":
        return 0
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0


def total_quantity(records: Iterable[Any], field_name: str = "quantity") -> float:
    total = 0
    for record in records:
        total += _field_value(record, field_name)
    return total


def _plain_number(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_tonnage(value: float) -> str:
    return f"{float(value):.1f} Tons"


def format_litres(value: float) -> str:
    return f"{_plain_number(value)} Ltr"


def period_label(selector: DateRangeSelector) -> str:
    label = f"{calendar.month_name[selector.month]} {selector.year}"
    if selector.date_range != "all":
        label += f" ({selector.date_range})"
    return label


def available_years(records_by_kind: Mapping[str, Sequence[Any]], *, today: Optional[date] = None) -> List[int]:
    today = today or date.today()
    years = {today.year}
    for records in records_by_kind.values():
        years.update(record_years(records))
    return sorted(years, reverse=True)


def filter_by_kind(selector: DateRangeSelector, records_by_kind: Mapping[str, Sequence[Any]]) -> Dict[str, List[Any]]:
    return {kind: apply_selector(records_by_kind.get(kind, []), selector) for kind in RECORD_KINDS}


def compute_dashboard(selector: DateRangeSelector, records_by_kind: Mapping[str, Sequence[Any]]) -> Dict[str, Any]:
    filtered = filter_by_kind(selector, records_by_kind)

    total_unload = total_quantity(filtered["dispatch"], QUANTITY_FIELDS["dispatch"])
    total_diesel = total_quantity(filtered["diesel"], QUANTITY_FIELDS["diesel"])

    return {
        "filters": asdict(selector),
        "period": period_label(selector),
        "totals": {
            "total_unload": total_unload,
            "total_unload_display": format_tonnage(total_unload),
            "total_diesel": total_diesel,
            "total_diesel_display": format_litres(total_diesel),
        },
        "counts": {kind: len(rows) for kind, rows in filtered.items()},
        "records": {kind: [record_to_dict(r) for r in rows] for kind, rows in filtered.items()},
        "unload_chart": unload_chart_spec(filtered["dispatch"]),
    }
