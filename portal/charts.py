from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

import altair as alt
import pandas as pd

from portal.filters import parse_record_date
from portal.records import record_to_dict

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def daily_unload_frame(records: Iterable[Any]) -> pd.DataFrame:
    rows = []
    for record in records:
        data = record_to_dict(record)
        parsed = parse_record_date(data.get("date"))
        if parsed is None:
            continue
        rows.append({"day": parsed.isoformat(), "quantity": float(data.get("quantity") or 0)})
    if not rows:
        return pd.DataFrame(columns=["day", "quantity"])
    return pd.DataFrame(rows).groupby("day", as_index=False)["quantity"].sum().sort_values("day")


def unload_chart(records: Iterable[Any]) -> Optional[alt.Chart]:
    daily = daily_unload_frame(records)
    if daily.empty:
        return None
    return (
        alt.Chart(daily)
        .mark_bar()
        .encode(
            x=alt.X("day:T", title="Date"),
            y=alt.Y("quantity:Q", title="Unload (Tons)"),
            tooltip=[alt.Tooltip("day:T", title="Date"), alt.Tooltip("quantity:Q", format=",.1f", title="Tons")],
        )
        .properties(height=240)
    )


def unload_chart_spec(records: Iterable[Any]) -> Optional[Dict[str, Any]]:
    chart = unload_chart(records)
    return to_vega_spec(chart) if chart is not None else None
