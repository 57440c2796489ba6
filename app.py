from contextlib import contextmanager
from dataclasses import replace
from typing import Dict, List, Optional

import pandas as pd
import streamlit as st

from subscriber_core.charts import revenue_by_area_chart
from subscriber_core.config import get_settings
from subscriber_core.data import TEMPLATE_CSV, coerce_fee, export_csv, format_currency, format_currency_columns, table_frame
from subscriber_core.errors import MissingFieldsError
from subscriber_core.filters import FEE_RANGES, SubscriberFilters
from subscriber_core.logging_config import setup_logging
from subscriber_core.metrics import area_options, compute_stats, filter_subscribers, revenue_by_area, status_counts
from subscriber_core.models import STATUSES, Subscriber
from subscriber_core.service import SubscriberService
from subscriber_core.store import create_store

settings = get_settings()
setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)

FEE_RANGE_LABELS = {
    "all": "All Fees",
    "low": "Below 600",
    "medium": "600 - 899",
    "high": "900 and above",
}

EMPTY_FORM = {
    "subscriber_code": "",
    "name": "",
    "phone": "",
    "area": "",
    "address": "",
    "service_provider": "",
    "monthly_fee": "",
    "connection_date": None,
    "status": "active",
}


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;margin-bottom: 8px;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(f"<div class='card'><div class='card-title'>{title}</div>", unsafe_allow_html=True)
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def format_filter_summary(filters: SubscriberFilters) -> str:
    chips = [
        f"Search: {filters.search_term}" if filters.search_term else "Search: -",
        "Area: All" if filters.area == "all" else f"Area: {filters.area}",
        f"Fee: {FEE_RANGE_LABELS[filters.fee_range]}",
    ]
    return "".join([f"<span class='chip'>{txt}</span>" for txt in chips])


def flash(kind: str, message: str):
    st.session_state["_flash"] = (kind, message)


def show_flash():
    pending = st.session_state.pop("_flash", None)
    if not pending:
        return
    kind, message = pending
    getattr(st, kind)(message)


@st.cache_resource
def get_service() -> SubscriberService:
    return SubscriberService(create_store(settings), settings)


def subscriber_label(sub: Subscriber) -> str:
    return f"{sub.subscriber_code or '-'} | {sub.name} | {sub.phone}"


# ---------- Sections ----------
def render_stats(records: List[Subscriber]):
    stats = compute_stats(records)
    counts = status_counts(records)
    cols = st.columns(3)
    cols[0].metric("Total Subscribers", f"{stats.total:,}")
    cols[1].metric(
        "Active Subscribers",
        f"{stats.active:,}",
        help=f"Inactive: {counts.get('inactive', 0)} | Suspended: {counts.get('suspended', 0)}",
    )
    cols[2].metric(
        "Monthly Revenue",
        f"{settings.CURRENCY_SYMBOL}{stats.total_revenue_display}",
        help="Sum of monthly fees over active subscribers.",
    )


def render_form(service: SubscriberService, records: List[Subscriber]):
    editing_id: Optional[str] = st.session_state.get("editing_id")
    editing = next((r for r in records if r.id == editing_id), None) if editing_id else None
    values: Dict[str, object] = editing.form_values() if editing else dict(EMPTY_FORM)

    providers = [""] + list(settings.SERVICE_PROVIDERS)
    provider_index = providers.index(values["service_provider"]) if values["service_provider"] in providers else 0
    status_index = STATUSES.index(values["status"]) if values["status"] in STATUSES else 0
    initial_date = pd.to_datetime(values["connection_date"], errors="coerce") if values["connection_date"] else None

    with card("Edit Subscriber" if editing else "Add Subscriber"):
        with st.form("subscriber_form", clear_on_submit=False):
            c1, c2 = st.columns(2)
            name = c1.text_input("Name", value=str(values["name"] or ""))
            phone = c2.text_input("Phone", value=str(values["phone"] or ""), max_chars=10)
            area = c1.text_input("Area", value=str(values["area"] or ""))
            address = c2.text_input("Address", value=str(values["address"] or ""))
            fee_text = "" if values["monthly_fee"] in ("", None) else f"{coerce_fee(values['monthly_fee']) or 0:g}"
            monthly_fee = c1.text_input("Monthly Fee", value=fee_text)
            connection_date = c2.date_input(
                "Connection Date",
                value=initial_date.date() if initial_date is not None and not pd.isna(initial_date) else None,
            )
            service_provider = c1.selectbox(
                "Service Provider",
                providers,
                index=provider_index,
                format_func=lambda p: p or "Select Provider",
            )
            status = c2.selectbox("Status", list(STATUSES), index=status_index)
            subscriber_code = c1.text_input(
                "Subscriber Code",
                value=str(values["subscriber_code"] or ""),
                help="Leave blank to generate SUB-YYYYMMDD-NNN automatically.",
            )
            submitted = st.form_submit_button("Update" if editing else "Add")

        if st.button("Cancel", key="cancel_form"):
            st.session_state.pop("editing_id", None)
            st.session_state["show_form"] = False
            st.rerun()

    if not submitted:
        return

    form = {
        "subscriber_code": subscriber_code,
        "name": name,
        "phone": phone,
        "area": area,
        "address": address,
        "service_provider": service_provider,
        "monthly_fee": monthly_fee,
        "connection_date": connection_date,
        "status": status,
    }
    result = service.save(form, editing_id=editing.id if editing else None)
    if not result.ok:
        if isinstance(result.error, MissingFieldsError):
            st.error("Please fill all required fields: " + ", ".join(f.replace("_", " ") for f in result.error.fields))
        else:
            st.error(result.error.message)
        return
    flash("success", "Subscriber updated successfully" if editing else "Subscriber added successfully")
    st.session_state.pop("editing_id", None)
    st.session_state["show_form"] = False
    st.rerun()


def render_import(service: SubscriberService):
    with st.expander("Bulk import from Excel", expanded=False):
        st.caption("Rows missing name, mobile, area or provider are skipped. Invalid statuses default to active.")
        upload = st.file_uploader("Excel or CSV file", type=[ext.lstrip(".") for ext in settings.ALLOWED_IMPORT_EXTENSIONS])
        providers = [""] + list(settings.SERVICE_PROVIDERS)
        default_idx = providers.index(settings.IMPORT_DEFAULT_PROVIDER) if settings.IMPORT_DEFAULT_PROVIDER in providers else 0
        default_provider = st.selectbox(
            "Provider for rows without one",
            providers,
            index=default_idx,
            format_func=lambda p: p or "None (skip those rows)",
        )
        btn_cols = st.columns(2)
        btn_cols[1].download_button(
            "Download template",
            data=TEMPLATE_CSV.encode("utf-8"),
            file_name="subscriber_template.csv",
            mime="text/csv",
        )
        if btn_cols[0].button("Import", disabled=upload is None):
            with st.spinner("Importing..."):
                result = service.import_file(upload.getvalue(), upload.name, default_provider=default_provider or None)
            if not result.ok:
                st.error(result.error.message)
                return
            summary = result.value
            message = f"Imported {summary.imported} subscriber(s)."
            if summary.skipped:
                message += f" Skipped {len(summary.skipped)} invalid row(s)."
            flash("success", message)
            st.rerun()


def render_table(filtered: List[Subscriber], filters: SubscriberFilters):
    with card(f"Subscribers ({len(filtered)})"):
        st.markdown(f"<div class='chip-row'>{format_filter_summary(filters)}</div>", unsafe_allow_html=True)
        if not filtered:
            st.info("No subscribers match the selected filters.")
            return
        display = format_currency_columns(table_frame(filtered), ["Fee"], symbol=settings.CURRENCY_SYMBOL)
        st.dataframe(display, use_container_width=True, hide_index=True)
        st.download_button(
            "Export CSV",
            data=export_csv(filtered),
            file_name="subscribers.csv",
            mime="text/csv",
        )


def render_actions(service: SubscriberService, filtered: List[Subscriber]):
    if not filtered:
        return
    with st.expander("Edit or delete a subscriber", expanded=False):
        by_id = {r.id: r for r in filtered}
        selected_id = st.selectbox("Subscriber", list(by_id), format_func=lambda i: subscriber_label(by_id[i]))
        cols = st.columns(3)
        if cols[0].button("Edit"):
            st.session_state["editing_id"] = selected_id
            st.session_state["show_form"] = True
            st.rerun()
        confirmed = cols[1].checkbox("Yes, delete this subscriber", key=f"confirm_delete_{selected_id}")
        if cols[2].button("Delete", type="primary", disabled=not confirmed):
            result = service.delete(selected_id, confirmed=confirmed)
            if not result.ok:
                st.error(f"Error deleting subscriber: {result.error.message}")
                return
            flash("success", "Subscriber deleted")
            st.rerun()


def render_revenue_chart(records: List[Subscriber]):
    by_area = revenue_by_area(records)
    chart = revenue_by_area_chart(by_area, settings.CURRENCY_SYMBOL)
    if chart is None:
        return
    with st.expander("Revenue by area", expanded=False):
        st.altair_chart(chart, use_container_width=True)
        display = by_area.rename(columns={"area": "Area", "subscribers": "Active", "revenue": "Revenue"})
        display["Revenue"] = display["Revenue"].apply(lambda v: format_currency(v, settings.CURRENCY_SYMBOL))
        st.dataframe(display, hide_index=True, use_container_width=True)


# ---------- UI setup ----------
st.set_page_config(page_title=settings.APP_TITLE, layout="wide")
inject_base_styles()
st.title(settings.APP_TITLE)

service = get_service()
loaded = service.refresh()
if not loaded.ok:
    st.error(f"Error loading subscribers: {loaded.error.message}")
records: List[Subscriber] = loaded.value or []

# ----- Sidebar: filters -----
with st.sidebar:
    st.markdown("### Filters")
    filters = SubscriberFilters()
    search_term = st.text_input("Search name, phone, address, area or code", "")
    areas = area_options(records)
    area = st.selectbox("Area", areas, format_func=lambda a: "All Areas" if a == "all" else a)
    fee_range = st.radio("Monthly fee", list(FEE_RANGES), format_func=lambda k: FEE_RANGE_LABELS[k])
    filters = replace(filters, search_term=search_term.strip(), area=area, fee_range=fee_range)
    st.markdown("---")
    if st.button("Refresh"):
        st.rerun()

show_flash()
render_stats(records)

if st.button("Add Subscriber"):
    st.session_state.pop("editing_id", None)
    st.session_state["show_form"] = not st.session_state.get("show_form", False)

if st.session_state.get("show_form"):
    render_form(service, records)

render_import(service)
filtered = filter_subscribers(records, filters)
render_table(filtered, filters)
render_actions(service, filtered)
render_revenue_chart(records)
