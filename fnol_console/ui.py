"""UI helpers for Streamlit layout and controls."""

from __future__ import annotations

from dataclasses import dataclass

import streamlit as st

from fnol_console.config import STATUS_COLORS
from fnol_console.metrics import DashboardSummary
from fnol_console.query_cache import QueryResult
from fnol_console.transformers import status_label

PAGES = [
    "Dashboard",
    "FNOL Log",
    "FNOL Detail",
    "LLM Metrics",
    "Failure Analytics",
    "Submit FNOL",
]
NAV_STATE_KEY = "nav_page"


@dataclass(frozen=True)
class ConsoleSidebar:
    page: str
    api_base_url: str
    refresh_clicked: bool


def apply_app_styles() -> None:
    st.markdown(
        """
        <style>
            .block-container {
                padding-top: 1rem;
                padding-bottom: 2rem;
                max-width: 1250px;
            }
            [data-testid="stSidebar"] {
                border-right: 1px solid #e5e7eb;
            }
            [data-testid="metric-container"] {
                border: 1px solid #e5e7eb;
                border-radius: 8px;
                padding: 10px 12px;
                background: #f8fafc;
            }
            .status-badge {
                display: inline-block;
                padding: 2px 10px;
                border-radius: 9999px;
                font-size: 0.8rem;
                font-weight: 600;
                color: #ffffff;
            }
        </style>
        """,
        unsafe_allow_html=True,
    )


def render_header() -> None:
    st.title("FNOL Observability Console")
    st.caption(
        "Processing traces, stage outcomes and LLM cost/latency for the First Notice of Loss "
        "intake pipeline."
    )


def navigate_to(page: str) -> None:
    """Switch pages from a widget callback (before the sidebar is drawn)."""
    st.session_state[NAV_STATE_KEY] = page


def render_sidebar(default_api_base_url: str) -> ConsoleSidebar:
    st.sidebar.header("Navigation")

    page = st.sidebar.radio(
        "Page",
        options=PAGES,
        key=NAV_STATE_KEY,
        label_visibility="collapsed",
    )

    with st.sidebar.expander("Connection", expanded=False):
        api_base_url = st.text_input(
            "Backend Base URL",
            value=default_api_base_url,
            help="Read from FNOL_API_URL when set.",
        )

    refresh_clicked = st.sidebar.button("Refresh Data", type="primary")

    return ConsoleSidebar(
        page=page,
        api_base_url=api_base_url.strip() or default_api_base_url,
        refresh_clicked=refresh_clicked,
    )


def status_badge(status: object) -> str:
    key = str(getattr(status, "value", status))
    color = STATUS_COLORS.get(key, "#6b7280")
    return f'<span class="status-badge" style="background:{color}">{status_label(status)}</span>'


def render_status_badge(status: object) -> None:
    st.markdown(status_badge(status), unsafe_allow_html=True)


def render_query_state(result: QueryResult, *, what: str) -> bool:
    """Render loading/error placeholders; return True when data is available."""
    if result.is_success:
        if result.error is not None:
            st.caption(f"Showing last loaded {what}; refresh failed: {result.error_message}")
        return True
    if result.is_error:
        st.error(f"Failed to load {what}: {result.error_message}")
        return False
    st.info(f"Loading {what}...")
    return False


def render_dashboard_kpis(summary: DashboardSummary) -> None:
    stats = summary.stats
    c1, c2, c3, c4, c5, c6 = st.columns(6)
    c1.metric("FNOLs Today", f"{stats.total_fnols_today:,}")
    c2.metric("Success", f"{stats.success_count:,}", _pct(summary.success_pct), delta_color="off")
    c3.metric("Failed", f"{stats.failure_count:,}", _pct(summary.failure_pct), delta_color="off")
    c4.metric("Partial", f"{stats.partial_count:,}", _pct(summary.partial_pct), delta_color="off")
    c5.metric("Avg Processing", summary.avg_processing_time)
    c6.metric("Manual Review", f"{stats.manual_review_percentage:.1f}%")


def _pct(value: float | None) -> str | None:
    return None if value is None else f"{value:.1f}%"
