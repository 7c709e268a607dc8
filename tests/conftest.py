from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backend.config import Settings
from backend.database import Base, get_db
from backend.errors import ExtractionError, StorageError
from backend.main import app
from backend.routers.deps import get_extraction_client, get_storage
from backend.schemas.report import ExtractedTestsData, ReportMetadata
from backend.services.extraction import ExtractionClient
from backend.services.processor import ReportProcessor
from backend.services.report_store import ReportStore
from backend.services.storage import FetchedFile, StorageGateway

USER_A = "user_a"
USER_B = "user_b"

PDF_FILE = {
    "filePath": f"{USER_A}/reports/1111-blood.pdf",
    "fileName": "blood.pdf",
    "fileType": "application/pdf",
    "fileSize": 2048,
}
IMAGE_FILE = {
    "filePath": f"{USER_A}/reports/2222-page2.png",
    "fileName": "page2.png",
    "fileType": "image/png",
    "fileSize": 1024,
}


def make_settings(**overrides) -> Settings:
    values = {
        "aws_region": "us-east-1",
        "aws_access_key_id": "test-key",
        "aws_secret_access_key": "test-secret",
        "aws_bucket_name": "test-bucket",
        "openai_api_key": "sk-test",
        "llama_cloud_api_key": "llx-test",
    }
    values.update(overrides)
    return Settings(**values)


class FakeS3:
    def __init__(self):
        self.presign_calls: list[tuple[str, dict]] = []

    def generate_presigned_url(self, operation, Params, ExpiresIn):
        self.presign_calls.append((operation, Params))
        return f"https://test-bucket.s3.test/{Params['Key']}?op={operation}&expires={ExpiresIn}"


class FakeStorage(StorageGateway):
    """Serves objects from a dict instead of S3."""

    def __init__(self):
        super().__init__(make_settings())
        self._client = FakeS3()
        self.objects: dict[str, bytes] = {
            PDF_FILE["filePath"]: b"%PDF-1.4 mock",
            IMAGE_FILE["filePath"]: b"\x89PNG mock",
        }
        self.fail_signing = False
        self.fetch_calls = 0

    def create_download_url(self, file_path: str) -> str:
        if self.fail_signing:
            raise StorageError("S3 is unreachable")
        return super().create_download_url(file_path)

    async def fetch_all(self, signed_files):
        self.fetch_calls += 1
        fetched = []
        for signed in signed_files:
            data = self.objects.get(signed.file.file_path)
            if data is None:
                fetched.append(
                    FetchedFile(
                        file_name=signed.file.file_name,
                        file_type=signed.file.file_type,
                        data=b"",
                        error=f"Failed to fetch {signed.file.file_name}: Not Found",
                    )
                )
            else:
                fetched.append(FetchedFile(file_name=signed.file.file_name, file_type=signed.file.file_type, data=data))
        return fetched


class FakeExtraction(ExtractionClient):
    """Returns canned objects per output schema and records every call."""

    def __init__(self):
        super().__init__(make_settings())
        self.results: dict[type, object] = {}
        self.calls: list[tuple[type, list]] = []
        self.chat_chunks = ["Your glucose ", "is above the reference range."]
        self.last_system_prompt: str | None = None

    async def generate_object(self, parts, output_cls):
        self.calls.append((output_cls, parts))
        result = self.results.get(output_cls)
        if isinstance(result, Exception):
            raise result
        if result is None:
            raise ExtractionError(f"No canned response for {output_cls.__name__}")
        return result

    async def ensure_chat_ready(self) -> None:
        return None

    async def stream_chat(self, system_prompt, turns):
        self.last_system_prompt = system_prompt
        for chunk in self.chat_chunks:
            yield chunk


def sample_metadata() -> ReportMetadata:
    return ReportMetadata(
        title="Complete Blood Count and Glucose",
        patient_name="Jordan Smith",
        patient_sex="Female",
        patient_age="42 years",
        lab_name="Central Diagnostics",
        referring_doctor="Dr. Patel",
        sample_date="03/02/2025",
        report_date="04/02/2025",
    )


def sample_tests() -> ExtractedTestsData:
    return ExtractedTestsData.model_validate(
        {
            "gauge": [
                {
                    "test": "Fasting Glucose",
                    "result": 120,
                    "unit": "mg/dL",
                    "referenceRange": {"min": 70, "max": 99},
                    "interpretation": "High",
                    "gaugeMin": 40,
                    "gaugeMax": 200,
                }
            ],
            "table": [
                {
                    "group": "CBC",
                    "tests": [
                        {
                            "test": "Hemoglobin (Hb)",
                            "result": 13.5,
                            "unit": "g/dL",
                            "referenceRange": {"min": 12, "max": 15.5},
                        },
                        {
                            "test": "HIV Antibody",
                            "result": "Not Detected",
                            "referenceRange": {"text": "Not Detected"},
                        },
                    ],
                }
            ],
        }
    )


@pytest.fixture()
def db_session() -> Generator:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture()
def extraction() -> FakeExtraction:
    fake = FakeExtraction()
    fake.results[ReportMetadata] = sample_metadata()
    fake.results[ExtractedTestsData] = sample_tests()
    return fake


@pytest.fixture()
def store(db_session) -> ReportStore:
    return ReportStore(db_session)


@pytest.fixture()
def processor(store, storage, extraction) -> ReportProcessor:
    return ReportProcessor(store, storage, extraction)


@pytest.fixture()
def make_report(store):
    def _make(user_id: str = USER_A, files: list[dict] | None = None):
        return store.create(user_id, files or [dict(PDF_FILE)])

    return _make


@pytest.fixture()
def client(db_session, storage, extraction) -> Generator[TestClient, None, None]:
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_extraction_client] = lambda: extraction

    # Tests use an in-memory DB via dependency override; skip app startup side effects.
    original_startup = list(app.router.on_startup)
    app.router.on_startup.clear()
    with TestClient(app) as test_client:
        yield test_client
    app.router.on_startup[:] = original_startup
    app.dependency_overrides.clear()


def auth(user_id: str = USER_A) -> dict[str, str]:
    return {"X-User-Id": user_id}
