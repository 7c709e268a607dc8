import asyncio

import httpx
import pytest
from conftest import FakeS3, make_settings

from backend.errors import ConfigurationError, FileTooLargeError, UnsupportedFileTypeError
from backend.schemas.report import ReportFile
from backend.services.storage import SignedFile, StorageGateway, max_size_for, sanitize_file_name, validate_upload


def _signed(name: str, file_type: str = "application/pdf") -> SignedFile:
    file = ReportFile(file_path=f"user_a/reports/{name}", file_name=name, file_type=file_type, file_size=10)
    return SignedFile(file=file, url=f"https://bucket.test/{name}")


def test_sanitize_file_name_keeps_safe_characters():
    assert sanitize_file_name("Lab Report #3 (final).PDF") == "Lab_Report__3__final_.PDF"
    assert sanitize_file_name("cbc_2025-01.v2.pdf") == "cbc_2025-01.v2.pdf"


def test_size_limits_follow_file_type():
    settings = make_settings()

    assert max_size_for("application/pdf", settings) == 10 * 1024 * 1024
    assert max_size_for("image/heic", settings) == 5 * 1024 * 1024
    with pytest.raises(UnsupportedFileTypeError):
        max_size_for("application/zip", settings)


def test_validate_upload_uses_configured_limits():
    settings = make_settings(max_image_size_mb=1)

    with pytest.raises(FileTooLargeError) as exc_info:
        validate_upload("image/png", 1024 * 1024 + 1, settings)

    assert exc_info.value.max_bytes == 1024 * 1024


def test_missing_credentials_is_configuration_error():
    gateway = StorageGateway(make_settings(aws_access_key_id=None))

    with pytest.raises(ConfigurationError):
        gateway.create_download_url("user_a/reports/x.pdf")


def test_download_url_uses_configured_expiry():
    gateway = StorageGateway(make_settings(download_url_expires_seconds=120))
    gateway._client = FakeS3()

    url = gateway.create_download_url("user_a/reports/x.pdf")

    assert url.endswith("op=get_object&expires=120")
    assert gateway._client.presign_calls == [("get_object", {"Bucket": "test-bucket", "Key": "user_a/reports/x.pdf"})]


def test_fetch_all_reports_each_failure_separately():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/missing.pdf":
            return httpx.Response(403, text="AccessDenied")
        if request.url.path == "/empty.png":
            return httpx.Response(200, content=b"")
        return httpx.Response(200, content=b"%PDF-1.4 data")

    gateway = StorageGateway(make_settings(), transport=httpx.MockTransport(handler))
    signed = [_signed("blood.pdf"), _signed("missing.pdf"), _signed("empty.png", "image/png")]

    fetched = asyncio.run(gateway.fetch_all(signed))

    assert [f.file_name for f in fetched] == ["blood.pdf", "missing.pdf", "empty.png"]
    assert fetched[0].ok
    assert fetched[0].data == b"%PDF-1.4 data"
    assert not fetched[1].ok
    assert "missing.pdf" in fetched[1].error
    assert not fetched[2].ok
