"""
Shared theme, CSS injection, color palette, and UI helper functions
for the Lab Report Insights Streamlit frontend.
"""

from __future__ import annotations

import html

import streamlit as st

# ---------------------------------------------------------------------------
# Color palettes (light + dark)
# ---------------------------------------------------------------------------
COLORS_LIGHT: dict[str, str] = {
    "primary": "#0D9488",       # teal-600
    "primary_light": "#5EEAD4", # teal-300
    "accent": "#F97316",        # orange-500
    "danger": "#EF4444",        # red-500
    "danger_light": "#FEE2E2",  # red-100
    "warning": "#F59E0B",       # amber-500
    "warning_light": "#FEF3C7", # amber-100
    "success": "#10B981",       # emerald-500
    "success_light": "#D1FAE5", # emerald-100
    "info": "#3B82F6",          # blue-500
    "info_light": "#DBEAFE",    # blue-100
    "text": "#1E293B",          # slate-800
    "text_secondary": "#475569", # slate-600
    "text_muted": "#475569",    # slate-600
    "bg_card": "#FFFFFF",
    "bg_page": "#F8FAFC",       # slate-50
    "border": "#E2E8F0",        # slate-200
}

COLORS_DARK: dict[str, str] = {
    "primary": "#14B8A6",       # teal-400
    "primary_light": "#5EEAD4", # teal-300
    "accent": "#FB923C",        # orange-400
    "danger": "#F87171",        # red-400
    "danger_light": "#450A0A",  # red-950
    "warning": "#FBBF24",       # amber-400
    "warning_light": "#451A03", # amber-950
    "success": "#34D399",       # emerald-400
    "success_light": "#022C22", # emerald-950
    "info": "#60A5FA",          # blue-400
    "info_light": "#172554",    # blue-950
    "text": "#F1F5F9",          # slate-100
    "text_secondary": "#CBD5E1", # slate-300
    "text_muted": "#94A3B8",    # slate-400
    "bg_card": "#1E293B",       # slate-800
    "bg_page": "#0F172A",       # slate-900
    "border": "#334155",        # slate-700
}


def get_colors() -> dict[str, str]:
    """Return the active palette based on ``st.session_state.dark_mode``."""
    if st.session_state.get("dark_mode", False):
        return COLORS_DARK
    return COLORS_LIGHT


# ---------------------------------------------------------------------------
# Plotly helpers (palette-aware)
# ---------------------------------------------------------------------------
def _plotly_template() -> str:
    if st.session_state.get("dark_mode", False):
        return "plotly_dark"
    return "plotly_white"


def plotly_layout_defaults(title: str = "", height: int = 400) -> dict:
    """Return a dict of common Plotly layout kwargs for consistent styling."""
    c = get_colors()
    return dict(
        title=dict(text=title, font=dict(size=15, color=c["text"])),
        template=_plotly_template(),
        height=height,
        margin=dict(l=30, r=30, t=60, b=20),
        font=dict(family="Inter, system-ui, sans-serif", size=13, color=c["text"]),
        paper_bgcolor="rgba(0,0,0,0)",
    )


# ---------------------------------------------------------------------------
# CSS injection (built dynamically for active palette)
# ---------------------------------------------------------------------------
_CSS_TEMPLATE = """
<style>
/* ---------- Page background & base text ---------- */
[data-testid="stAppViewContainer"] {
    background-color: %(bg_page)s;
}
[data-testid="stAppViewContainer"] > section[data-testid="stMain"] p,
[data-testid="stAppViewContainer"] > section[data-testid="stMain"] span,
[data-testid="stAppViewContainer"] > section[data-testid="stMain"] td,
[data-testid="stAppViewContainer"] > section[data-testid="stMain"] li {
    color: %(text)s;
}
[data-testid="stMain"] [data-testid="stExpander"] summary span {
    color: %(text)s !important;
}

/* ---------- Card container ---------- */
.card {
    background: %(bg_card)s;
    border: 1px solid %(border)s;
    border-radius: 12px;
    padding: 24px;
    margin-bottom: 16px;
    box-shadow: 0 1px 3px rgba(0,0,0,0.06);
}

/* ---------- Range badges ---------- */
.range-badge {
    display: inline-block;
    padding: 2px 10px;
    border-radius: 9999px;
    font-size: 0.75rem;
    font-weight: 600;
    letter-spacing: 0.03em;
}
.range-high    { background: %(danger_light)s;  color: %(danger)s; }
.range-low     { background: %(info_light)s;    color: %(info)s; }
.range-normal  { background: %(success_light)s; color: %(success)s; }
.range-unknown { background: %(bg_page)s;       color: %(text_muted)s; }

/* ---------- Pill tags ---------- */
.pill {
    display: inline-block;
    padding: 3px 12px;
    border-radius: 9999px;
    font-size: 0.78rem;
    font-weight: 500;
    margin: 2px 4px 2px 0;
    border: 1px solid %(border)s;
    background: %(bg_card)s;
    color: %(text_muted)s;
}

/* ---------- Status banner ---------- */
.status-banner {
    border-radius: 8px;
    padding: 12px 18px;
    margin-bottom: 16px;
    font-weight: 600;
}
.status-pending    { background: %(bg_card)s;       color: %(text_muted)s; border: 1px solid %(border)s; }
.status-processing { background: %(info_light)s;    color: %(info)s; }
.status-partial    { background: %(warning_light)s; color: %(warning)s; }
.status-completed  { background: %(success_light)s; color: %(success)s; }
.status-failed     { background: %(danger_light)s;  color: %(danger)s; }

/* ---------- KPI tile ---------- */
.kpi-tile {
    background: %(bg_card)s;
    border: 1px solid %(border)s;
    border-radius: 12px;
    padding: 20px;
    text-align: center;
    box-shadow: 0 1px 3px rgba(0,0,0,0.06);
}
.kpi-value {
    font-size: 2rem;
    font-weight: 800;
    line-height: 1.1;
}
.kpi-label {
    font-size: 0.82rem;
    color: %(text_muted)s;
    text-transform: uppercase;
    letter-spacing: 0.04em;
    margin-top: 6px;
}

/* ---------- Info card ---------- */
.info-card {
    background: %(bg_card)s;
    border: 1px solid %(border)s;
    border-left: 4px solid %(primary)s;
    border-radius: 8px;
    padding: 16px 20px;
    margin-bottom: 12px;
    color: %(text)s;
    font-size: 0.92rem;
    line-height: 1.5;
}
.info-label { color: %(text_secondary)s; font-size: 0.78rem; text-transform: uppercase; letter-spacing: 0.04em; }
.info-value { color: %(text)s; font-size: 1rem; font-weight: 600; }

/* ---------- Section title ---------- */
.section-title {
    font-size: 1.15rem;
    font-weight: 700;
    color: %(text)s;
    margin: 24px 0 12px 0;
    padding-bottom: 8px;
    border-bottom: 2px solid %(primary)s;
    display: inline-block;
}

/* ---------- Sidebar ---------- */
[data-testid="stSidebar"] {
    background-color: %(bg_card)s !important;
}
[data-testid="stSidebar"] * {
    color: %(text)s !important;
}
[data-testid="stSidebarNav"] a[aria-current="page"] span {
    color: %(primary)s !important;
    font-weight: 700;
}

/* ---------- Tables ---------- */
[data-testid="stMain"] table td { color: %(text)s; }
[data-testid="stMain"] table th { color: %(text_secondary)s !important; }

/* ---------- Text inputs ---------- */
[data-testid="stTextInput"] input,
[data-testid="stSelectbox"] div[data-baseweb="select"],
[data-baseweb="input"] input,
textarea {
    color: %(text)s !important;
    background-color: %(bg_card)s !important;
    border-color: %(border)s !important;
}
input::placeholder,
textarea::placeholder {
    color: %(text_muted)s !important;
    opacity: 0.7 !important;
}
</style>
"""


def apply_theme() -> None:
    """Inject global CSS into the page. Call once at the top of every page."""
    if "dark_mode" not in st.session_state:
        st.session_state.dark_mode = False
    colors = get_colors()
    st.markdown(_CSS_TEMPLATE % colors, unsafe_allow_html=True)


# ---------------------------------------------------------------------------
# Identity guard
# ---------------------------------------------------------------------------
def user_guard() -> None:
    """Stop page execution with a friendly message if no user is selected."""
    if not st.session_state.get("user_id"):
        st.warning("Please enter your user ID on the **Home** page to continue.")
        st.stop()


# ---------------------------------------------------------------------------
# Sidebar profile / sign-out / dark-mode toggle
# ---------------------------------------------------------------------------
def render_sidebar_profile() -> None:
    """Render the current user, a sign-out button, and the dark-mode toggle."""
    user_id = st.session_state.get("user_id")
    if not user_id:
        return
    c = get_colors()

    with st.sidebar:
        st.markdown(
            f"""
            <div style="text-align:center; padding: 16px 0 8px 0;">
                <div style="width:56px;height:56px;border-radius:50%;background:{c['primary']};
                    color:white;font-size:1.3rem;font-weight:700;display:inline-flex;
                    align-items:center;justify-content:center;margin-bottom:6px;">
                    {html.escape(user_id[:1].upper())}
                </div>
                <div style="font-weight:600;color:{c['text']};font-size:0.95rem;">{html.escape(user_id)}</div>
            </div>
            """,
            unsafe_allow_html=True,
        )
        st.divider()

        dark = st.toggle(
            "🌙 Dark mode",
            value=st.session_state.get("dark_mode", False),
            key="dark_mode_toggle",
        )
        if dark != st.session_state.get("dark_mode", False):
            st.session_state.dark_mode = dark
            st.rerun()

        if st.button("Switch user", use_container_width=True, type="secondary"):
            st.session_state.user_id = None
            st.session_state.chat_history = {}
            st.rerun()
        st.divider()


# ---------------------------------------------------------------------------
# Reusable HTML helpers
# ---------------------------------------------------------------------------
STATUS_MESSAGES = {
    "pending": "⏳ Waiting to be processed.",
    "processing": "🔄 Analysing your report. This can take a minute.",
    "partial": "🧩 Some sections are ready, the rest is still in progress.",
    "completed": "✅ Analysis complete.",
    "failed": "⚠️ Part of the analysis failed. You can retry below.",
}


def range_badge(range_status: str | None) -> str:
    """Return an HTML span for a result's position against its reference range."""
    if not range_status:
        return '<span class="range-badge range-unknown">N/A</span>'
    return f'<span class="range-badge range-{range_status}">{range_status.upper()}</span>'


def status_banner(overall_status: str) -> str:
    """Return HTML for the report-level processing banner."""
    message = STATUS_MESSAGES.get(overall_status, overall_status)
    return f'<div class="status-banner status-{overall_status}">{message}</div>'


def kpi_tile(label: str, value: str | int | float, color: str) -> str:
    """Return HTML for a single KPI tile."""
    return (
        f'<div class="kpi-tile">'
        f'  <div class="kpi-value" style="color:{color};">{value}</div>'
        f'  <div class="kpi-label">{label}</div>'
        f'</div>'
    )


def section_title(text: str) -> None:
    """Render a styled section heading."""
    st.markdown(f'<div class="section-title">{text}</div>', unsafe_allow_html=True)


def pill_tag(text: str) -> str:
    """Return HTML for a small pill tag."""
    return f'<span class="pill">{html.escape(text)}</span>'


def display_value(value) -> str:
    """Metadata values the extractor could not find render as a dash."""
    if value is None or str(value).strip().lower() in {"", "not found"}:
        return "—"
    return str(value)


def info_field(label: str, value) -> str:
    """Return HTML for one label/value cell. Values come from extraction and are escaped."""
    return (
        f'<div style="padding:8px 0;">'
        f'  <div class="info-label">{html.escape(label)}</div>'
        f'  <div class="info-value">{html.escape(display_value(value))}</div>'
        f'</div>'
    )
