import sys
from pathlib import Path

APP_DIR = Path(__file__).resolve().parent.parent
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

import io

import pandas as pd
import plotly.graph_objects as go
import requests
import streamlit as st

from utils.api_client import ApiClient, cached_reports, error_message
from utils.theme import (
    apply_theme,
    get_colors,
    info_field,
    kpi_tile,
    plotly_layout_defaults,
    range_badge,
    render_sidebar_profile,
    section_title,
    status_banner,
    user_guard,
)

st.set_page_config(page_title="Report Detail", page_icon="📋", layout="wide")
apply_theme()
user_guard()
render_sidebar_profile()
COLORS = get_colors()

user_id = st.session_state.user_id
client = ApiClient(user_id=user_id)

RANGE_COLORS = {"high": COLORS["danger"], "low": COLORS["info"], "normal": COLORS["success"]}

# ── Header ────────────────────────────────────────────────────────────────
st.markdown(
    f"""
    <div style="margin-bottom:4px;">
        <span style="font-size:1.6rem;font-weight:800;color:{COLORS['text']};">📋 Report Explorer</span>
    </div>
    <p style="color:{COLORS['text_muted']};margin-top:0;">
        Your results, what they mean, and answers to your questions.
    </p>
    """,
    unsafe_allow_html=True,
)

# ── Report selector ───────────────────────────────────────────────────────
r_ok, reports = cached_reports(user_id)
if not r_ok:
    st.error("Failed to load reports.")
    st.stop()
if not reports:
    st.info("No reports available. Upload a report first.")
    st.stop()

options = {f"{r['title']} · {r['createdAt'][:10]} · {r['overallStatus']}": r["id"] for r in reports}
ids = list(options.values())
selected = st.session_state.get("selected_report")
index = ids.index(selected) if selected in ids else 0
choice = st.selectbox("Select report", options=list(options.keys()), index=index)
report_id = options[choice]
st.session_state.selected_report = report_id

res = client.report(report_id)
if not res.ok:
    st.error(f"Failed to load report: {error_message(res)}")
    st.stop()
report = res.json()["data"]

# ── Processing status ─────────────────────────────────────────────────────
st.markdown(status_banner(report["overallStatus"]), unsafe_allow_html=True)
for phase in ("metadata", "tests"):
    if report[f"{phase}Status"] == "failed" and report.get(f"{phase}Error"):
        st.caption(f"{phase.title()} extraction failed: {report[f'{phase}Error']}")

if report["overallStatus"] in ("pending", "failed", "partial"):
    label = "Retry analysis" if report["overallStatus"] == "failed" else "Analyse now"
    if st.button(label, type="primary"):
        with st.spinner("Extracting report details..."):
            processed = client.process_report(report_id)
        if not processed.ok:
            st.error(error_message(processed))
        cached_reports.clear()
        st.rerun()

# ── Patient & report information ──────────────────────────────────────────
section_title("Patient & Report Information")

info_items = [
    ("Patient Name", report.get("patientName")),
    ("Age", report.get("patientAge")),
    ("Sex", report.get("patientSex")),
    ("Lab Name", report.get("labName")),
    ("Referring Doctor", report.get("referringDoctor")),
    ("Sample Date", report.get("sampleDate")),
    ("Report Date", report.get("reportDate")),
    ("Lab Director", report.get("labDirector")),
    ("Lab Contact", report.get("labContact")),
]
info_html_items = "".join(info_field(label, value) for label, value in info_items)
st.markdown(
    f"""
    <div class="card" style="border-left:4px solid {COLORS['primary']};">
        <div style="display:grid;grid-template-columns:repeat(3,1fr);gap:8px 32px;">
            {info_html_items}
        </div>
    </div>
    """,
    unsafe_allow_html=True,
)

tests_data = report.get("testsData") or {"gauge": [], "table": []}
all_tests = list(tests_data["gauge"]) + [t for g in tests_data["table"] for t in g["tests"]]

if all_tests:
    flagged = sum(1 for t in all_tests if t.get("rangeStatus") in ("high", "low"))
    c1, c2, c3 = st.columns(3)
    c1.markdown(kpi_tile("Total Tests", len(all_tests), COLORS["primary"]), unsafe_allow_html=True)
    c2.markdown(kpi_tile("In Range", sum(1 for t in all_tests if t.get("rangeStatus") == "normal"), COLORS["success"]), unsafe_allow_html=True)
    c3.markdown(kpi_tile("Out of Range", flagged, COLORS["danger"] if flagged else COLORS["success"]), unsafe_allow_html=True)


def _range_text(test: dict) -> str:
    ref = test.get("referenceRange") or {}
    if ref.get("min") is not None and ref.get("max") is not None:
        return f"{ref['min']} – {ref['max']}"
    if ref.get("text"):
        return ref["text"]
    if ref.get("min") is not None:
        return f"≥ {ref['min']}"
    if ref.get("max") is not None:
        return f"≤ {ref['max']}"
    return "—"


def _render_education(info: dict) -> None:
    st.markdown(f"#### {info['testName']}")
    st.markdown(f"**What it is.** {info['whatItIs']['definition']} {info['whatItIs']['purpose']}")
    st.markdown(f"**Understanding your result.** {info['understandingResults']['normalRangeExplanation']}")
    abnormal = info["abnormalResults"]
    for direction in ("low", "high"):
        if abnormal.get(direction):
            block = abnormal[direction]
            st.markdown(f"**{block['title']}.** {block['potentialCauses']} {block['potentialImplications']}")
    st.caption(abnormal["generalDisclaimer"])
    st.markdown(f"**When to seek help.** {info['symptomsAndActions']['whenToSeekHelp']}")
    st.markdown(f"**{info['lifestyleTips']['title']}.** {info['lifestyleTips']['generalTips']}")
    for entry in info["additionalResources"].get("faq") or []:
        st.markdown(f"*{entry['question']}* {entry['answer']}")
    st.info(info["additionalResources"]["finalDisclaimer"])


def _learn_more(test: dict) -> None:
    key = f"edu_{report_id}_{test['id']}"
    info = test.get("educationalInfo") or st.session_state.get(key)
    if info:
        _render_education(info)
        return
    if st.button("Learn more", key=f"btn_{key}"):
        patient = {"name": report.get("patientName"), "age": report.get("patientAge"), "gender": report.get("patientSex")}
        with st.spinner("Preparing an explanation..."):
            edu = client.educational_info(report_id, test["id"], patient)
        if edu.ok:
            st.session_state[key] = edu.json()["data"]
            _render_education(st.session_state[key])
        else:
            st.error(error_message(edu))


# ── CSV export ────────────────────────────────────────────────────────────
if all_tests:
    export_rows = []
    for group_name, group_tests in [("Key Results", tests_data["gauge"])] + [
        (g["group"], g["tests"]) for g in tests_data["table"]
    ]:
        for t in group_tests:
            export_rows.append({
                "Group": group_name,
                "Test": t["test"],
                "Result": t["result"],
                "Unit": t.get("unit") or "",
                "Reference Range": _range_text(t),
                "Status": t.get("rangeStatus") or "",
            })
    csv_buf = io.StringIO()
    pd.DataFrame(export_rows).to_csv(csv_buf, index=False)
    st.download_button(
        "⬇️ Download Results CSV",
        data=csv_buf.getvalue(),
        file_name=f"report_{report_id[:8]}.csv",
        mime="text/csv",
    )

# ── Key results (gauges) ──────────────────────────────────────────────────
if tests_data["gauge"]:
    section_title("Key Results")
    cols = st.columns(min(3, len(tests_data["gauge"])))
    for i, test in enumerate(tests_data["gauge"]):
        with cols[i % len(cols)]:
            bounds = test.get("gaugeBounds")
            value = test["result"]
            if bounds and isinstance(value, (int, float)):
                ref = test.get("referenceRange") or {}
                steps = []
                if ref.get("min") is not None and ref.get("max") is not None:
                    steps.append({"range": [ref["min"], ref["max"]], "color": COLORS["success_light"]})
                fig = go.Figure(
                    go.Indicator(
                        mode="gauge+number",
                        value=value,
                        number={"suffix": f" {test.get('unit') or ''}"},
                        gauge={
                            "axis": {"range": bounds},
                            "bar": {"color": RANGE_COLORS.get(test.get("rangeStatus"), COLORS["primary"])},
                            "steps": steps,
                        },
                    )
                )
                fig.update_layout(**plotly_layout_defaults(test["test"], height=260))
                st.plotly_chart(fig, use_container_width=True)
            else:
                st.markdown(f"**{test['test']}**: {value} {test.get('unit') or ''}")
            st.markdown(range_badge(test.get("rangeStatus")), unsafe_allow_html=True)
            with st.expander("Learn more"):
                _learn_more(test)

# ── Grouped results ───────────────────────────────────────────────────────
if tests_data["table"]:
    section_title("All Results")
    for group in tests_data["table"]:
        out_of_range = sum(1 for t in group["tests"] if t.get("rangeStatus") in ("high", "low"))
        with st.expander(f"**{group['group']}** ({len(group['tests'])} tests)", expanded=out_of_range > 0):
            for test in group["tests"]:
                c_name, c_value, c_range, c_status = st.columns([3, 2, 2, 1])
                c_name.markdown(f"**{test['test']}**")
                c_value.markdown(f"{test['result']} {test.get('unit') or ''}")
                c_range.markdown(_range_text(test))
                c_status.markdown(range_badge(test.get("rangeStatus")), unsafe_allow_html=True)
                with st.popover("Learn more"):
                    _learn_more(test)
elif report["testsStatus"] == "completed":
    st.info("No test results were found in this report.")

# ── Chat ──────────────────────────────────────────────────────────────────
section_title("Ask About This Report")
history: list[dict] = st.session_state.setdefault("chat_history", {}).setdefault(report_id, [])
for message in history:
    with st.chat_message(message["role"]):
        st.markdown(message["content"])

question = st.chat_input("Ask a question about your results")
if question:
    history.append({"role": "user", "content": question})
    with st.chat_message("user"):
        st.markdown(question)
    context = {
        "metadata": {
            "patientName": report.get("patientName"),
            "patientAge": report.get("patientAge"),
            "patientSex": report.get("patientSex"),
            "referringDoctor": report.get("referringDoctor"),
            "labName": report.get("labName"),
            "sampleDate": report.get("sampleDate"),
            "reportDate": report.get("reportDate"),
        },
        "testsData": report.get("testsData"),
    }
    with st.chat_message("assistant"):
        try:
            answer = st.write_stream(client.chat_stream(history, context))
        except requests.RequestException as exc:
            answer = "The assistant is unavailable right now. Please try again later."
            st.error(f"{answer} ({exc})")
    history.append({"role": "assistant", "content": answer})

# ── Danger zone ───────────────────────────────────────────────────────────
st.divider()
if st.button("🗑️ Delete this report", type="secondary"):
    deleted = client.delete_report(report_id)
    if deleted.ok:
        cached_reports.clear()
        st.session_state.chat_history.pop(report_id, None)
        st.session_state.selected_report = None
        st.success("Report deleted.")
        st.rerun()
    else:
        st.error(error_message(deleted))
