import asyncio
from uuid import uuid4

from conftest import PDF_FILE, USER_A, USER_B, auth

from backend.errors import ExtractionError
from backend.routers import reports
from backend.schemas.report import ReportMetadata


def test_requests_without_user_are_rejected(client):
    response = client.get("/api/reports")

    assert response.status_code == 401
    assert response.json() == {
        "statusCode": 401,
        "message": "User not authenticated",
        "error": "Unauthorized",
    }


def test_list_only_returns_own_reports(client, make_report):
    mine = make_report(USER_A)
    make_report(USER_B, files=[dict(PDF_FILE, filePath="user_b/reports/x.pdf")])

    response = client.get("/api/reports", headers=auth(USER_A))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total"] == 1
    assert data["reports"][0]["id"] == mine.id
    assert data["reports"][0]["overallStatus"] == "pending"
    assert data["reports"][0]["title"] == "Untitled Report"


def test_get_report_is_a_pure_read(client, extraction, make_report):
    report = make_report()

    response = client.get(f"/api/reports/{report.id}", headers=auth(USER_A))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["overallStatus"] == "pending"
    assert data["metadataStatus"] == "pending"
    assert data["testsData"] is None
    assert data["files"][0]["fileName"] == "blood.pdf"
    assert extraction.calls == []


def test_other_users_report_is_not_found(client, make_report):
    report = make_report(USER_A)

    response = client.get(f"/api/reports/{report.id}", headers=auth(USER_B))

    assert response.status_code == 404
    assert response.json()["error"] == "NotFound"


def test_invalid_report_id_is_bad_request(client):
    response = client.get("/api/reports/not-a-uuid", headers=auth(USER_A))

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid report ID format"


def test_process_endpoint_runs_both_phases(client, make_report):
    report = make_report()

    response = client.post(f"/api/reports/{report.id}/process", headers=auth(USER_A))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["overallStatus"] == "completed"
    assert data["patientName"] == "Jordan Smith"
    glucose = data["testsData"]["gauge"][0]
    assert glucose["test"] == "Fasting Glucose"
    assert glucose["rangeStatus"] == "high"
    assert glucose["gaugeBounds"] == [40.0, 200.0]
    hiv = data["testsData"]["table"][0]["tests"][1]
    assert hiv["rangeStatus"] is None


def test_process_endpoint_single_phase(client, make_report):
    report = make_report()

    response = client.post(f"/api/reports/{report.id}/process?phase=tests", headers=auth(USER_A))

    data = response.json()["data"]
    assert data["testsStatus"] == "completed"
    assert data["metadataStatus"] == "pending"
    assert data["overallStatus"] == "partial"


def test_process_endpoint_rejects_unknown_phase(client, make_report):
    report = make_report()

    response = client.post(f"/api/reports/{report.id}/process?phase=images", headers=auth(USER_A))

    assert response.status_code == 422


def test_metadata_endpoint_processes_on_first_read(client, extraction, make_report):
    report = make_report()

    first = client.get(f"/api/reports/{report.id}/metadata", headers=auth(USER_A))
    second = client.get(f"/api/reports/{report.id}/metadata", headers=auth(USER_A))

    assert first.json()["data"]["metadataStatus"] == "completed"
    assert second.json()["data"]["patientName"] == "Jordan Smith"
    assert len(extraction.calls) == 1


def test_tests_endpoint_reports_failure(client, storage, make_report):
    storage.objects.clear()
    report = make_report()

    response = client.get(f"/api/reports/{report.id}/tests", headers=auth(USER_A))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["testsStatus"] == "failed"
    assert data["overallStatus"] == "failed"
    assert data["testsError"] == "No files could be successfully fetched."
    assert data["testsData"] is None


def test_owner_can_delete_report(client, store, make_report):
    report = make_report(USER_A)

    response = client.delete(f"/api/reports/{report.id}", headers=auth(USER_A))

    assert response.status_code == 200
    assert response.json()["message"] == "Report deleted successfully."
    assert store.get(report.id) is None


def test_non_owner_cannot_delete_report(client, store, make_report):
    report = make_report(USER_A)

    response = client.delete(f"/api/reports/{report.id}", headers=auth(USER_B))

    assert response.status_code == 404
    assert response.json()["message"] == "Report not found or user does not have permission."
    assert store.get(report.id) is not None


def test_deleting_missing_report_is_not_found(client):
    response = client.delete(f"/api/reports/{uuid4()}", headers=auth(USER_A))

    assert response.status_code == 404


def test_list_orders_newest_first(client, store, make_report):
    older = make_report()
    newer = make_report()
    store.update(older.id, created_at=newer.created_at.replace(year=newer.created_at.year - 1))

    response = client.get("/api/reports", headers=auth(USER_A))

    ids = [r["id"] for r in response.json()["data"]["reports"]]
    assert ids == [newer.id, older.id]


def test_report_detail_includes_phase_errors(client, processor, extraction, make_report):
    report = make_report()
    extraction.results[ReportMetadata] = ExtractionError("quota exceeded")
    asyncio.run(processor.process_metadata(report.id))

    response = client.get(f"/api/reports/{report.id}", headers=auth(USER_A))

    data = response.json()["data"]
    assert data["overallStatus"] == "failed"
    assert data["metadataError"] == "quota exceeded"


def test_async_routes_check_ownership_off_the_event_loop(client, make_report, monkeypatch):
    report = make_report()
    calls = []
    real = reports._owned_or_404

    def recording(*args):
        try:
            asyncio.get_running_loop()
            calls.append("loop")
        except RuntimeError:
            calls.append("worker")
        return real(*args)

    monkeypatch.setattr(reports, "_owned_or_404", recording)

    response = client.post(f"/api/reports/{report.id}/process", headers=auth(USER_A))

    assert response.status_code == 200
    assert calls == ["worker"]
