import calendar
from contextlib import contextmanager
from typing import Any, List, Optional

import altair as alt
import pandas as pd
import streamlit as st

from portal.auth import AuthError, Session, get_sessions
from portal.charts import unload_chart
from portal.config import configure_logging
from portal.export import XLSX_MEDIA_TYPE, export_filename, export_workbook, records_frame
from portal.filters import DATE_RANGES, normalize_selector
from portal.metrics import available_years, compute_dashboard, filter_by_kind
from portal.store import get_store
from portal.upload import PREVIEW_ROWS, UploadError, parse_spreadsheet, rows_to_records

alt.data_transformers.disable_max_rows()
configure_logging()

DATE_RANGE_LABELS = {"1-15": "1st to 15th", "16-31": "16th to 30/31", "all": "Full Month"}
EMPTY_MESSAGES = {
    "dispatch": "No dispatch data available for the selected period.",
    "material": "No material data available for the selected period.",
    "diesel": "No diesel data available for the selected period.",
}


# ---------- UI / layout helpers ----------
def inject_base_styles():
    # Needed on every script run, reruns start from an empty page.
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #e5e7eb;margin-bottom: 10px;}
        .app-top-bar .breadcrumb {color: #6b7280;font-size: 0.9rem;margin-bottom: 2px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 700;color: #111827;}
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;margin-bottom: 8px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        </style>
        """,
        unsafe_allow_html=True,
    )


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(f"<div class='card'><div class='card-title'>{title}</div>", unsafe_allow_html=True)
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def render_page_header(title: str, breadcrumb: str, session: Session):
    c1, c2, c3 = st.columns([6, 2, 2])
    with c1:
        st.markdown(
            f"<div class='app-top-bar'><div class='breadcrumb'>{breadcrumb}</div><div class='page-title'>{title}</div></div>",
            unsafe_allow_html=True,
        )
    with c2:
        if session.is_admin:
            target = "Dashboard" if st.session_state.get("page") == "Admin" else "Admin"
            if st.button(f"View {target}"):
                st.session_state["page"] = target
                st.rerun()
    with c3:
        if st.button("Logout"):
            get_sessions().revoke(session.token)
            st.session_state.pop("session", None)
            st.session_state.pop("page", None)
            st.rerun()


def current_session() -> Optional[Session]:
    session = st.session_state.get("session")
    if session is None:
        return None
    # Drop stale sessions (e.g. after a server restart).
    if get_sessions().get(session.token) is None:
        st.session_state.pop("session", None)
        return None
    return session


# ---------- Pages ----------
def render_login_page():
    st.title("Archana Transport")
    st.caption("Partner Login Portal")
    with card("Welcome Back"):
        with st.form("login"):
            partner_id = st.text_input("Partner ID", placeholder="Enter your Partner ID")
            password = st.text_input("Password", type="password", placeholder="Enter your password")
            submitted = st.form_submit_button("Sign In", use_container_width=True)
        if submitted:
            try:
                session = get_sessions().login(partner_id, password)
            except AuthError as exc:
                st.error(str(exc))
            else:
                st.session_state["session"] = session
                st.session_state["page"] = "Admin" if session.is_admin else "Dashboard"
                st.rerun()
        st.caption("Demo Credentials: Partner ID `demo` / `demo123` · Admin `admin` / `admin123`")


def render_records_table(kind: str, rows: List[Any]):
    if not rows:
        st.info(f"**No Records Found.** {EMPTY_MESSAGES[kind]}")
        return
    st.dataframe(records_frame(kind, rows), hide_index=True, use_container_width=True)


def render_dashboard_page(session: Session):
    render_page_header("Transportation Dashboard", "Home / Dashboard", session)
    st.markdown(f"#### Welcome back, {session.display_name}")
    st.caption("Here's your transportation dashboard overview")

    store = get_store()
    records_by_kind = store.all_kinds(owner=session.owner)
    defaults = normalize_selector({})
    years = available_years(records_by_kind)

    filter_cols = st.columns([2, 2, 2, 2])
    month = filter_cols[0].selectbox(
        "Month",
        options=list(range(1, 13)),
        index=defaults.month - 1,
        format_func=lambda m: calendar.month_name[m],
    )
    year = filter_cols[1].selectbox("Year", options=years, index=years.index(defaults.year) if defaults.year in years else 0)
    date_range = filter_cols[2].selectbox(
        "Date range",
        options=list(DATE_RANGES),
        index=0,
        format_func=lambda r: DATE_RANGE_LABELS[r],
    )
    selector = normalize_selector({"year": year, "month": month, "date_range": date_range})

    payload = compute_dashboard(selector, records_by_kind)
    filtered = filter_by_kind(selector, records_by_kind)
    with filter_cols[3]:
        st.download_button(
            "Download Excel",
            data=export_workbook(selector, records_by_kind),
            file_name=export_filename(selector),
            mime=XLSX_MEDIA_TYPE,
        )

    totals = payload["totals"]
    tile_cols = st.columns(2)
    tile_cols[0].metric("Total Unload", totals["total_unload_display"], help=payload["period"])
    tile_cols[1].metric("Total Diesel", totals["total_diesel_display"], help=payload["period"])
    st.markdown(f"<span class='chip'>{payload['period']}</span>", unsafe_allow_html=True)

    with card("Transportation Data"):
        tabs = st.tabs(["Dispatch Data", "Material", "Diesel Data"])
        for tab, kind in zip(tabs, ["dispatch", "material", "diesel"]):
            with tab:
                render_records_table(kind, filtered[kind])

    chart = unload_chart(filtered["dispatch"])
    if chart is not None:
        with card("Daily Unload"):
            st.altair_chart(chart, use_container_width=True)


def render_upload_card(kind: str, title: str):
    with card(f"Upload {title} Data"):
        uploaded = st.file_uploader("Select Excel File", type=["xlsx", "xls"], key=f"{kind}-upload")
        preview_key = f"{kind}_preview"
        if uploaded is not None and st.session_state.get(f"{kind}_file") != uploaded.name:
            try:
                with st.spinner("Processing..."):
                    st.session_state[preview_key] = parse_spreadsheet(uploaded.getvalue(), uploaded.name)
                st.session_state[f"{kind}_file"] = uploaded.name
                st.toast(f"{title} data preview is ready. Review and save when ready.")
            except UploadError as exc:
                st.session_state.pop(preview_key, None)
                st.error(f"Upload Failed: {exc}")

        preview = st.session_state.get(preview_key)
        if preview is None:
            return
        st.success(f"File parsed successfully! Found {len(preview.rows)} records. Partner: {preview.partner_id}")
        st.dataframe(pd.DataFrame(preview.head(PREVIEW_ROWS), columns=preview.headers), hide_index=True, use_container_width=True)
        if preview.remaining_rows:
            st.caption(f"... and {preview.remaining_rows} more rows")

        if st.button("Save to Database", key=f"{kind}-save"):
            try:
                result = rows_to_records(kind, preview.rows, headers=preview.headers, row_numbers=preview.row_numbers)
            except UploadError as exc:
                st.error(f"Save Failed: {exc}")
                return
            saved = get_store().add(kind, result.records)
            st.success(f"{saved} {kind} records have been saved to the database.")
            if result.rejected:
                st.warning(f"{len(result.rejected)} row(s) were skipped.")
                st.dataframe(pd.DataFrame(result.rejected), hide_index=True)
            st.session_state.pop(preview_key, None)


def render_admin_page(session: Session):
    render_page_header("Admin Dashboard", "Home / Admin", session)
    st.caption("Upload and manage dispatch and diesel data for all partners")

    cols = st.columns(2)
    with cols[0]:
        render_upload_card("dispatch", "Dispatch")
    with cols[1]:
        render_upload_card("diesel", "Diesel")

    with st.expander("Admin Upload Instructions", expanded=False):
        st.markdown(
            "**Dispatch:** Sl.No, In Date (YYYY-MM-DD), Out Date (YYYY-MM-DD), Ref. No, Vehicle No, "
            "Gross, Tare, Net (tons), Challan No, Unloading Point, OWNER NAME"
        )
        st.markdown("**Diesel:** Date (YYYY-MM-DD), Vehicle Number, Volume (litres), Item, Fuel Station, Status, OWNER NAME")
        st.caption("Rows are grouped by OWNER NAME; each partner only sees their own records on login.")
        partners = get_store().owners()
        if partners:
            st.markdown("**Partners with uploaded data:** " + ", ".join(partners))


# ---------- UI setup ----------
st.set_page_config(page_title="Archana Transport Partner Portal", layout="wide")
inject_base_styles()

active = current_session()
if active is None:
    render_login_page()
elif active.is_admin and st.session_state.get("page") == "Admin":
    render_admin_page(active)
else:
    render_dashboard_page(active)
