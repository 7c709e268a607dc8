import sys
from pathlib import Path

APP_DIR = Path(__file__).resolve().parent.parent
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

import mimetypes

import streamlit as st

from utils.api_client import ApiClient, cached_reports, error_message
from utils.theme import (
    apply_theme,
    get_colors,
    pill_tag,
    render_sidebar_profile,
    user_guard,
)

st.set_page_config(page_title="Upload Report", page_icon="📤", layout="wide")
apply_theme()
user_guard()
render_sidebar_profile()
COLORS = get_colors()

client = ApiClient(user_id=st.session_state.user_id)

# ── Header ────────────────────────────────────────────────────────────────
st.markdown(
    f"""
    <div style="margin-bottom:4px;">
        <span style="font-size:1.6rem;font-weight:800;color:{COLORS['text']};">📤 Upload Lab Report</span>
    </div>
    <p style="color:{COLORS['text_muted']};margin-top:0;">
        Add one report as a PDF or a set of photos. PDFs can be up to 10MB, images up to 5MB each.
    </p>
    """,
    unsafe_allow_html=True,
)

# ── Upload area ───────────────────────────────────────────────────────────
st.markdown('<div class="card">', unsafe_allow_html=True)
files = st.file_uploader(
    "Drag and drop your report files here",
    type=["pdf", "png", "jpg", "jpeg", "webp", "heic"],
    accept_multiple_files=True,
    help="All files are treated as pages of the same report.",
)

if files:
    st.markdown(" ".join(pill_tag(f"{f.name} · {f.size / 1024:.1f} KB") for f in files), unsafe_allow_html=True)

submit = st.button("Upload and Analyse", disabled=not files, use_container_width=True, type="primary")
st.markdown("</div>", unsafe_allow_html=True)

if submit and files:
    progress = st.progress(0, text="Requesting upload slots...")
    uploaded: list[dict] = []
    failed = False
    for i, f in enumerate(files):
        file_type = f.type or mimetypes.guess_type(f.name)[0] or "application/octet-stream"
        data = f.getvalue()

        res = client.signed_upload_url(f.name, file_type, len(data))
        if not res.ok:
            st.error(f"{f.name}: {error_message(res)}")
            failed = True
            break
        ticket = res.json()["data"]

        put = client.put_file(ticket["url"], data, file_type)
        if not put.ok:
            st.error(f"{f.name}: upload to storage failed ({put.status_code}).")
            failed = True
            break
        uploaded.append(
            {"filePath": ticket["filePath"], "fileName": f.name, "fileType": file_type, "fileSize": len(data)}
        )
        progress.progress(int((i + 1) / len(files) * 70), text=f"Uploaded {f.name}")

    if not failed:
        progress.progress(80, text="Creating report...")
        res = client.create_record(uploaded)
        if res.ok:
            report_id = res.json()["data"]["reportId"]
            progress.progress(90, text="Extracting report details...")
            processed = client.process_report(report_id)
            progress.progress(100, text="Done!")
            cached_reports.clear()
            st.session_state.selected_report = report_id
            if processed.ok and processed.json()["data"]["overallStatus"] == "completed":
                st.success("Report analysed. Open **Report Detail** to explore it.")
            else:
                st.warning("Report saved, but the analysis is not finished. Open **Report Detail** to check or retry.")
        else:
            progress.empty()
            st.error(f"Could not create the report: {error_message(res)}")
