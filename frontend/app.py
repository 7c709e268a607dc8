import html
import sys
from pathlib import Path

APP_DIR = Path(__file__).resolve().parent
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

import streamlit as st
from utils.api_client import cached_reports
from utils.theme import (
    apply_theme,
    get_colors,
    kpi_tile,
    render_sidebar_profile,
    section_title,
)

st.set_page_config(
    page_title="Lab Report Insights",
    page_icon="🧬",
    layout="wide",
    initial_sidebar_state="expanded",
)
apply_theme()
COLORS = get_colors()

# ── Session defaults ──────────────────────────────────────────────────────
if "user_id" not in st.session_state:
    st.session_state.user_id = None
if "chat_history" not in st.session_state:
    st.session_state.chat_history = {}

# ── Signed-in view ────────────────────────────────────────────────────────
if st.session_state.user_id:
    render_sidebar_profile()
    user_id = st.session_state.user_id

    st.markdown(
        f"""
        <div style="margin-bottom:8px;">
            <span style="font-size:1.8rem;font-weight:800;color:{COLORS['text']};">
                Welcome back, {user_id}
            </span>
            <span style="font-size:1.8rem;">👋</span>
        </div>
        <p style="color:{COLORS['text_muted']};margin-top:0;">
            Upload a lab report, then open it to see your results explained.
        </p>
        """,
        unsafe_allow_html=True,
    )

    ok, reports = cached_reports(user_id)
    if not ok:
        st.error("Could not load your reports.")
        st.stop()

    by_status: dict[str, int] = {}
    for r in reports:
        by_status[r["overallStatus"]] = by_status.get(r["overallStatus"], 0) + 1

    cols = st.columns(4)
    tiles = [
        ("Reports", len(reports), COLORS["primary"]),
        ("Completed", by_status.get("completed", 0), COLORS["success"]),
        ("In Progress", sum(by_status.get(s, 0) for s in ("pending", "processing", "partial")), COLORS["info"]),
        ("Failed", by_status.get("failed", 0), COLORS["danger"] if by_status.get("failed") else COLORS["success"]),
    ]
    for col, (label, value, color) in zip(cols, tiles):
        col.markdown(kpi_tile(label, value, color), unsafe_allow_html=True)

    section_title("Your Reports")
    if not reports:
        st.info("No reports uploaded yet. Use the **Upload** page to add your first one.")
    for r in reports:
        created = r["createdAt"][:10]
        st.markdown(
            f"""
            <div class="info-card" style="display:flex;justify-content:space-between;align-items:center;">
                <div>
                    <div class="info-value">{html.escape(r['title'])}</div>
                    <div class="info-label">{created} &middot; {r['overallStatus']}</div>
                </div>
                <div style="color:{COLORS['text_muted']};font-size:0.82rem;">{r['id'][:8]}…</div>
            </div>
            """,
            unsafe_allow_html=True,
        )

# ── Identity view ─────────────────────────────────────────────────────────
else:
    _spacer_l, center, _spacer_r = st.columns([1, 2, 1])
    with center:
        st.markdown(
            f"""
            <div style="text-align:center;margin-top:40px;margin-bottom:8px;">
                <span style="font-size:3rem;">🧬</span>
            </div>
            <h1 style="text-align:center;color:{COLORS['text']};margin-bottom:4px;">
                Lab Report Insights
            </h1>
            <p style="text-align:center;color:{COLORS['text_muted']};margin-bottom:32px;">
                Upload your blood test reports and get plain-language explanations.
            </p>
            """,
            unsafe_allow_html=True,
        )

        with st.form("identity_form"):
            user_id = st.text_input("User ID", placeholder="Your account identifier")
            submitted = st.form_submit_button("Continue", use_container_width=True, type="primary")
        if submitted:
            if not user_id.strip():
                st.error("Please enter your user ID.")
            else:
                st.session_state.user_id = user_id.strip()
                st.rerun()
