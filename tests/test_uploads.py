from conftest import IMAGE_FILE, PDF_FILE, USER_A, USER_B, auth

MB = 1024 * 1024


def _signed_url(client, file_name="blood.pdf", file_type="application/pdf", file_size=2048, user_id=USER_A):
    return client.post(
        "/api/report-upload/signed-url",
        json={"fileName": file_name, "fileType": file_type, "fileSize": file_size},
        headers=auth(user_id),
    )


def test_signed_url_is_scoped_to_user(client, storage):
    response = _signed_url(client, file_name="my blood (1).pdf")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["method"] == "PUT"
    assert data["filePath"].startswith(f"{USER_A}/reports/")
    assert data["filePath"].endswith("-my_blood__1_.pdf")

    operation, params = storage._client.presign_calls[-1]
    assert operation == "put_object"
    assert params["Bucket"] == "test-bucket"
    assert params["ContentType"] == "application/pdf"
    assert params["ContentLength"] == 2048
    assert params["Metadata"]["user-id"] == USER_A


def test_oversized_pdf_is_rejected_before_signing(client, storage):
    response = _signed_url(client, file_size=10 * MB + 1)

    assert response.status_code == 413
    assert response.json()["error"] == "PayloadTooLarge"
    assert storage._client.presign_calls == []


def test_pdf_at_limit_is_accepted(client):
    response = _signed_url(client, file_size=10 * MB)

    assert response.status_code == 200


def test_image_limit_is_smaller_than_pdf_limit(client, storage):
    response = _signed_url(client, file_name="scan.jpg", file_type="image/jpeg", file_size=6 * MB)

    assert response.status_code == 413
    assert "5.0MB" in response.json()["message"]
    assert storage._client.presign_calls == []


def test_unsupported_file_type_is_rejected(client, storage):
    response = _signed_url(client, file_name="notes.txt", file_type="text/plain", file_size=100)

    assert response.status_code == 415
    assert storage._client.presign_calls == []


def test_signed_url_requires_user(client):
    response = client.post(
        "/api/report-upload/signed-url",
        json={"fileName": "blood.pdf", "fileType": "application/pdf", "fileSize": 10},
    )

    assert response.status_code == 401


def test_signed_url_rejects_missing_fields(client):
    response = client.post(
        "/api/report-upload/signed-url",
        json={"fileName": "blood.pdf"},
        headers=auth(USER_A),
    )

    assert response.status_code == 422
    assert response.json()["error"] == "ValidationError"


def test_create_record_starts_pending(client, store):
    response = client.post(
        "/api/report-upload/create-record",
        json={"uploadedFiles": [PDF_FILE, IMAGE_FILE]},
        headers=auth(USER_A),
    )

    assert response.status_code == 200
    report_id = response.json()["data"]["reportId"]
    report = store.get(report_id)
    assert report.user_id == USER_A
    assert report.overall_status == "pending"
    assert report.metadata_status == "pending"
    assert report.tests_status == "pending"
    assert [f["fileName"] for f in report.files] == ["blood.pdf", "page2.png"]


def test_create_record_requires_files(client):
    response = client.post(
        "/api/report-upload/create-record",
        json={"uploadedFiles": []},
        headers=auth(USER_A),
    )

    assert response.status_code == 422


def test_create_record_rejects_foreign_paths(client, store):
    response = client.post(
        "/api/report-upload/create-record",
        json={"uploadedFiles": [PDF_FILE]},
        headers=auth(USER_B),
    )

    assert response.status_code == 403
    assert store.list_for_user(USER_B) == []
