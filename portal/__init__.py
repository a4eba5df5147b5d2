"""Core (UI-agnostic) partner portal logic.

This package contains:
- record types and the demo data set
- selector normalization and date-range filtering
- dashboard totals and payloads (JSON-serializable)
- spreadsheet import (XLSX -> pandas -> records)
- in-memory record store, auth sessions, Excel export
- chart helpers (Altair -> Vega-Lite spec dict)
"""
