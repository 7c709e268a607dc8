import asyncio
import logging
import re
import threading
from dataclasses import dataclass
from uuid import uuid4

import boto3
import httpx
from botocore.exceptions import BotoCoreError, ClientError

from backend.config import Settings
from backend.errors import ConfigurationError, FileTooLargeError, StorageError, UnsupportedFileTypeError
from backend.schemas.report import ReportFile

logger = logging.getLogger(__name__)

DOCUMENT_TYPES = {"application/pdf"}


@dataclass
class UploadTicket:
    url: str
    file_path: str
    method: str = "PUT"


@dataclass
class SignedFile:
    file: ReportFile
    url: str


@dataclass
class FetchedFile:
    file_name: str
    file_type: str
    data: bytes
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and len(self.data) > 0


def sanitize_file_name(file_name: str) -> str:
    return re.sub(r"[^a-zA-Z0-9_.-]", "_", file_name)


def max_size_for(file_type: str, settings: Settings) -> int:
    if file_type in DOCUMENT_TYPES:
        return settings.max_document_size_mb * 1024 * 1024
    if file_type.startswith("image/"):
        return settings.max_image_size_mb * 1024 * 1024
    raise UnsupportedFileTypeError(f"Unsupported file type: {file_type}. Upload a PDF or an image.")


def validate_upload(file_type: str, file_size: int, settings: Settings) -> None:
    max_bytes = max_size_for(file_type, settings)
    if file_size > max_bytes:
        raise FileTooLargeError(file_type, max_bytes)


class StorageGateway:
    """Presigned S3 URLs plus server-side fetch of uploaded report files."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        self.transport = transport
        self._client = None
        self._lock = threading.Lock()

    def _s3(self):
        if self._client is None:
            with self._lock:
                if self._client is None:
                    s = self.settings
                    if not s.aws_region or not s.aws_access_key_id or not s.aws_secret_access_key:
                        raise ConfigurationError("Missing required AWS environment variables for S3 client.")
                    self._client = boto3.client(
                        "s3",
                        region_name=s.aws_region,
                        aws_access_key_id=s.aws_access_key_id,
                        aws_secret_access_key=s.aws_secret_access_key,
                    )
                    logger.info("S3 client initialized for region %s", s.aws_region)
        return self._client

    @property
    def bucket(self) -> str:
        if not self.settings.aws_bucket_name:
            raise ConfigurationError("AWS_BUCKET_NAME is not set.")
        return self.settings.aws_bucket_name

    def create_upload_url(self, user_id: str, file_name: str, file_type: str, file_size: int) -> UploadTicket:
        validate_upload(file_type, file_size, self.settings)

        key = f"{user_id}/reports/{uuid4()}-{sanitize_file_name(file_name)}"
        try:
            url = self._s3().generate_presigned_url(
                "put_object",
                Params={
                    "Bucket": self.bucket,
                    "Key": key,
                    "ContentType": file_type,
                    "ContentLength": file_size,
                    "Metadata": {"user-id": user_id, "original-filename": file_name},
                },
                ExpiresIn=self.settings.upload_url_expires_seconds,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Could not create upload URL: {exc}") from exc
        return UploadTicket(url=url, file_path=key)

    def create_download_url(self, file_path: str) -> str:
        try:
            return self._s3().generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": file_path},
                ExpiresIn=self.settings.download_url_expires_seconds,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Could not create download URL for {file_path}: {exc}") from exc

    def signed_urls_for(self, files: list[ReportFile]) -> list[SignedFile]:
        return [SignedFile(file=f, url=self.create_download_url(f.file_path)) for f in files]

    async def _fetch_one(self, client: httpx.AsyncClient, signed: SignedFile) -> FetchedFile:
        try:
            response = await client.get(signed.url)
            response.raise_for_status()
            return FetchedFile(file_name=signed.file.file_name, file_type=signed.file.file_type, data=response.content)
        except httpx.HTTPError as exc:
            logger.warning("Error fetching file %s: %s", signed.file.file_name, exc)
            return FetchedFile(
                file_name=signed.file.file_name,
                file_type=signed.file.file_type,
                data=b"",
                error=f"Failed to fetch {signed.file.file_name}: {exc}",
            )

    async def fetch_all(self, signed_files: list[SignedFile]) -> list[FetchedFile]:
        timeout = httpx.Timeout(self.settings.file_fetch_timeout_seconds, connect=10.0)
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True, transport=self.transport) as client:
            return list(await asyncio.gather(*(self._fetch_one(client, s) for s in signed_files)))
