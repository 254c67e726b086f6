"""Streamlit entrypoint for the FNOL observability console."""

from __future__ import annotations

import atexit
import concurrent.futures
import logging
from datetime import date, datetime, time, timezone

import streamlit as st
from dotenv import load_dotenv

from fnol_console.api_client import TransportError
from fnol_console.charts import (
    cost_trend_chart,
    error_codes_chart,
    failure_by_stage_chart,
    failure_trend_chart,
    model_distribution_pie,
    model_usage_chart,
    status_breakdown_chart,
)
from fnol_console.config import (
    DASHBOARD_POLL_SECONDS,
    DASHBOARD_SUBSCRIPTION_LEASE_SECONDS,
    TRACE_STATUS_OPTIONS,
    get_api_base_url,
    get_log_level,
)
from fnol_console.detail import build_detail_view
from fnol_console.fetchers import (
    dashboard_stats_spec,
    failure_analytics_spec,
    fnol_detail_spec,
    llm_metrics_spec,
)
from fnol_console.formatting import (
    format_cost,
    format_count,
    format_timestamp,
    humanize_stage_name,
)
from fnol_console.ingest import IngestValidationError, build_ingest_payload
from fnol_console.list_controller import FNOLListController
from fnol_console.metrics import (
    build_metrics_overview,
    summarize_dashboard_stats,
    top_failing_stage,
    total_failures,
)
from fnol_console.runtime import ConsoleRuntime
from fnol_console.transformers import (
    build_cost_trend_df,
    build_error_codes_df,
    build_failure_by_stage_df,
    build_failure_trend_df,
    build_list_df,
    build_llm_metrics_df,
    build_model_distribution_df,
    build_model_distribution_display_df,
    build_timeline_df,
)
from fnol_console.ui import (
    apply_app_styles,
    navigate_to,
    render_dashboard_kpis,
    render_header,
    render_query_state,
    render_sidebar,
    render_status_badge,
)

logger = logging.getLogger(__name__)


@st.cache_resource(show_spinner=False)
def get_runtime(api_base_url: str) -> ConsoleRuntime:
    """One runtime (loop thread, cache, client) per backend URL per process."""
    runtime = ConsoleRuntime(api_base_url)
    atexit.register(runtime.close)
    return runtime


def _open_detail(fnol_id: str) -> None:
    st.session_state["selected_fnol_id"] = fnol_id
    navigate_to("FNOL Detail")


def _sync_dashboard_subscription(runtime: ConsoleRuntime, *, active: bool) -> None:
    """Poll dashboard stats only while this session is on the dashboard.

    The subscription is leased; a session that disappears without navigating
    away stops renewing it and the cache drops it.
    """
    subscription = st.session_state.get("dashboard_subscription")
    if subscription is not None and (subscription.cache is not runtime.cache or not runtime.renew(subscription)):
        subscription = None
        del st.session_state["dashboard_subscription"]

    if active and subscription is None:
        st.session_state["dashboard_subscription"] = runtime.subscribe(
            dashboard_stats_spec(runtime.client),
            DASHBOARD_POLL_SECONDS,
            lease=DASHBOARD_SUBSCRIPTION_LEASE_SECONDS,
        )
    elif not active and subscription is not None:
        runtime.unsubscribe(subscription)
        del st.session_state["dashboard_subscription"]


@st.fragment(run_every=DASHBOARD_POLL_SECONDS)
def render_dashboard_panel(runtime: ConsoleRuntime) -> None:
    _sync_dashboard_subscription(runtime, active=True)
    result = runtime.query(dashboard_stats_spec(runtime.client))
    if not render_query_state(result, what="dashboard stats"):
        return

    summary = summarize_dashboard_stats(result.data)
    if summary.is_empty:
        st.info("No metrics available. Metrics will appear here once the system is processing data.")
        return

    render_dashboard_kpis(summary)
    col1, col2 = st.columns(2)
    col1.plotly_chart(status_breakdown_chart(summary), width="stretch")

    analytics_result = runtime.query(failure_analytics_spec(runtime.client))
    with col2:
        if render_query_state(analytics_result, what="failure analytics"):
            analytics = analytics_result.data
            st.metric("Failures (trend window)", f"{total_failures(analytics):,}")
            stage = top_failing_stage(analytics)
            st.metric("Most Failing Stage", humanize_stage_name(stage))

    if result.updated_at is not None:
        st.caption(f"Auto-refreshing every {DASHBOARD_POLL_SECONDS:.0f}s.")


def render_dashboard_page(runtime: ConsoleRuntime) -> None:
    st.subheader("Dashboard")
    render_dashboard_panel(runtime)


def render_fnol_log_page(runtime: ConsoleRuntime) -> None:
    st.subheader("FNOL Processing Log")
    st.caption("Track and investigate all FNOL processing attempts.")

    controller: FNOLListController = st.session_state.setdefault("list_controller", FNOLListController())

    fcol1, fcol2, fcol3 = st.columns([3, 1, 2])
    search = fcol1.text_input("Search", value=controller.search, placeholder="Search by FNOL ID...")
    status_options = ["All Status", *TRACE_STATUS_OPTIONS]
    current_status = controller.status_filter or "All Status"
    status_choice = fcol2.selectbox("Status", options=status_options, index=status_options.index(current_status))
    date_window = fcol3.date_input("Created between", value=(), help="Leave empty for all dates.")

    controller.set_search(search)
    controller.set_status_filter(None if status_choice == "All Status" else status_choice)
    if isinstance(date_window, tuple) and len(date_window) == 2:
        date_from, date_to = date_window
    else:
        date_from, date_to = None, None
    try:
        controller.set_date_range(date_from, date_to)
    except ValueError as exc:
        st.error(str(exc))
        return

    result = runtime.load_list(controller)
    if not render_query_state(result, what="FNOLs"):
        return

    page = controller.current_page(result)
    if page is None or page.is_empty:
        st.info("No FNOLs found matching your criteria")
        return

    st.dataframe(build_list_df(page.items), width="stretch", hide_index=True)

    dcol1, dcol2 = st.columns([3, 1])
    selected = dcol1.selectbox(
        "Open FNOL",
        options=[item.fnol_id for item in page.items],
        label_visibility="collapsed",
    )
    dcol2.button("View Details", on_click=_open_detail, args=(selected,), disabled=not selected)

    pcol1, pcol2, pcol3, pcol4 = st.columns([4, 1, 2, 1])
    pcol1.caption(page.range_label)
    pcol2.button("Prev", on_click=controller.previous_page, disabled=not page.has_previous)
    pcol3.markdown(f"<div style='text-align:center'>{page.page_label}</div>", unsafe_allow_html=True)
    pcol4.button("Next", on_click=controller.next_page, disabled=not page.has_next)


def render_detail_page(runtime: ConsoleRuntime) -> None:
    st.subheader("FNOL Detail")
    st.button("Back to FNOL Log", on_click=navigate_to, args=("FNOL Log",))

    fnol_id = st.text_input("FNOL ID", value=st.session_state.get("selected_fnol_id", "")).strip()
    if not fnol_id:
        st.info("Select an FNOL from the processing log or enter an FNOL ID.")
        return
    st.session_state["selected_fnol_id"] = fnol_id

    result = runtime.query(fnol_detail_spec(runtime.client, fnol_id))
    if not render_query_state(result, what="FNOL details"):
        return

    view = build_detail_view(result.data)
    trace = view.trace

    render_status_badge(trace.status)
    k1, k2, k3 = st.columns(3)
    k1.metric("Total Duration", view.total_duration)
    k2.metric("LLM Cost", view.rollup.total_cost_display)
    k3.metric("Total Tokens", format_count(view.total_tokens))

    left, right = st.columns(2)
    with left:
        st.markdown("#### Processing Timeline")
        if not view.timeline:
            st.info("No stage executions recorded.")
        for entry in view.timeline:
            st.markdown(
                f"**{entry.label}** · {entry.duration} · "
                f"{format_timestamp(entry.stage.start_time, fmt='%H:%M:%S')}"
            )
            render_status_badge(entry.stage.status)
            if entry.has_error:
                st.error(f"{entry.error_title}\n\n{entry.stage.error_message}")
        with st.expander("Timeline table", expanded=False):
            st.dataframe(build_timeline_df(view.timeline), width="stretch", hide_index=True)

    with right:
        st.markdown("#### Trace Information")
        st.markdown(f"**FNOL ID:** {trace.fnol_id}")
        st.markdown(f"**Start Time:** {format_timestamp(trace.start_time)}")
        if trace.end_time:
            st.markdown(f"**End Time:** {format_timestamp(trace.end_time)}")

        if view.show_metrics_panel:
            st.markdown("#### LLM Metrics")
            st.dataframe(build_llm_metrics_df(view.llm_metrics), width="stretch", hide_index=True)


def render_llm_metrics_page(runtime: ConsoleRuntime) -> None:
    st.subheader("LLM Metrics")
    st.caption("Monitor token usage, costs, and model performance.")

    result = runtime.query(llm_metrics_spec(runtime.client))
    if not render_query_state(result, what="LLM metrics"):
        return

    overview = build_metrics_overview(result.data)
    k1, k2, k3 = st.columns(3)
    k1.metric("Total Tokens Today", format_count(overview.total_tokens_today))
    k2.metric("Total Cost Today", format_cost(overview.total_cost_today, places=2))
    k3.metric("Avg Cost per FNOL", format_cost(overview.avg_cost_per_fnol))

    model_df = build_model_distribution_df(overview.model_distribution)
    col1, col2 = st.columns(2)
    col1.plotly_chart(cost_trend_chart(build_cost_trend_df(overview.cost_trend)), width="stretch")
    col2.plotly_chart(model_distribution_pie(model_df), width="stretch")
    st.plotly_chart(model_usage_chart(model_df), width="stretch")

    if overview.has_model_distribution:
        st.dataframe(build_model_distribution_display_df(model_df), width="stretch", hide_index=True)


def render_failure_analytics_page(runtime: ConsoleRuntime) -> None:
    st.subheader("Failure Analytics")

    result = runtime.query(failure_analytics_spec(runtime.client))
    if not render_query_state(result, what="failure analytics"):
        return

    analytics = result.data
    col1, col2 = st.columns(2)
    col1.plotly_chart(failure_by_stage_chart(build_failure_by_stage_df(analytics)), width="stretch")
    col2.plotly_chart(error_codes_chart(build_error_codes_df(analytics)), width="stretch")
    st.plotly_chart(failure_trend_chart(build_failure_trend_df(analytics)), width="stretch")


def render_ingest_page(runtime: ConsoleRuntime) -> None:
    st.subheader("Submit Parsed Email Data")

    with st.form("fnol_ingest"):
        subject = st.text_input("Subject")
        body = st.text_area("Body", height=140)
        attachments = st.text_input("Attachments (comma separated)")
        sender = st.text_input("Sender")
        dcol, tcol = st.columns(2)
        received_date = dcol.date_input("Received date", value=date.today())
        received_time = tcol.time_input("Received time", value=time(0, 0))
        submitted = st.form_submit_button("Submit", type="primary")

    if not submitted:
        return

    try:
        payload = build_ingest_payload(
            subject=subject,
            body=body,
            sender=sender,
            attachments=attachments,
            received_at=datetime.combine(received_date, received_time, tzinfo=timezone.utc),
        )
    except IngestValidationError as exc:
        st.error(str(exc))
        return

    with st.spinner("Submitting..."):
        try:
            acknowledgement = runtime.submit_ingest(payload)
        except TransportError as exc:
            st.error(f"Error submitting data: {exc}")
            return

    st.success("Submitted.")
    st.json(acknowledgement)


PAGE_RENDERERS = {
    "Dashboard": render_dashboard_page,
    "FNOL Log": render_fnol_log_page,
    "FNOL Detail": render_detail_page,
    "LLM Metrics": render_llm_metrics_page,
    "Failure Analytics": render_failure_analytics_page,
    "Submit FNOL": render_ingest_page,
}


def main() -> None:
    load_dotenv()
    logging.basicConfig(
        level=get_log_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    st.set_page_config(page_title="FNOL Observability Console", layout="wide")
    apply_app_styles()
    render_header()

    sidebar = render_sidebar(get_api_base_url())
    runtime = get_runtime(sidebar.api_base_url)

    if sidebar.refresh_clicked:
        runtime.invalidate()
    runtime.prune()

    _sync_dashboard_subscription(runtime, active=sidebar.page == "Dashboard")

    try:
        PAGE_RENDERERS[sidebar.page](runtime)
    except concurrent.futures.TimeoutError:
        logger.warning("Backend call timed out while rendering %s", sidebar.page)
        st.error("The backend did not respond in time. Try `Refresh Data`.")


if __name__ == "__main__":
    main()
