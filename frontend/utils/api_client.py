import os

import requests
import streamlit as st

BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000")


class ApiClient:
    def __init__(self, user_id: str | None = None):
        self.user_id = user_id

    @property
    def headers(self):
        h = {}
        if self.user_id:
            h["X-User-Id"] = self.user_id
        return h

    def signed_upload_url(self, file_name: str, file_type: str, file_size: int):
        return requests.post(
            f"{BASE_URL}/api/report-upload/signed-url",
            json={"fileName": file_name, "fileType": file_type, "fileSize": file_size},
            headers=self.headers,
            timeout=30,
        )

    def put_file(self, url: str, data: bytes, file_type: str):
        return requests.put(url, data=data, headers={"Content-Type": file_type}, timeout=300)

    def create_record(self, uploaded_files: list[dict]):
        return requests.post(
            f"{BASE_URL}/api/report-upload/create-record",
            json={"uploadedFiles": uploaded_files},
            headers=self.headers,
            timeout=30,
        )

    def reports(self):
        return requests.get(f"{BASE_URL}/api/reports", headers=self.headers, timeout=120)

    def report(self, report_id: str):
        return requests.get(f"{BASE_URL}/api/reports/{report_id}", headers=self.headers, timeout=120)

    def process_report(self, report_id: str, phase: str | None = None):
        params = {"phase": phase} if phase else None
        return requests.post(
            f"{BASE_URL}/api/reports/{report_id}/process", params=params, headers=self.headers, timeout=600
        )

    def educational_info(self, report_id: str, test_id: str, patient: dict | None = None):
        return requests.post(
            f"{BASE_URL}/api/reports/{report_id}/tests/{test_id}/education",
            json={"patient": patient} if patient else None,
            headers=self.headers,
            timeout=180,
        )

    def delete_report(self, report_id: str):
        return requests.delete(f"{BASE_URL}/api/reports/{report_id}", headers=self.headers, timeout=60)

    def chat_stream(self, messages: list[dict], report_context: dict | None = None):
        """Yield reply text as the backend streams it."""
        with requests.post(
            f"{BASE_URL}/api/chat",
            json={"messages": messages, "reportContext": report_context},
            headers=self.headers,
            stream=True,
            timeout=60,
        ) as res:
            res.raise_for_status()
            res.encoding = "utf-8"
            for chunk in res.iter_content(chunk_size=None, decode_unicode=True):
                if chunk:
                    yield chunk


# ---------------------------------------------------------------------------
# Cached data fetchers — return parsed JSON, cached for 60 seconds.
# These are standalone functions so @st.cache_data can hash the arguments.
# ---------------------------------------------------------------------------

@st.cache_data(ttl=60, show_spinner=False)
def cached_reports(user_id: str) -> tuple[bool, list]:
    res = requests.get(f"{BASE_URL}/api/reports", headers={"X-User-Id": user_id}, timeout=120)
    return res.ok, res.json()["data"]["reports"] if res.ok else []


def error_message(res) -> str:
    try:
        return res.json().get("message", res.text)
    except ValueError:
        return res.text
