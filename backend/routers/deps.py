from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from backend.database import get_db
from backend.services.extraction import ExtractionClient
from backend.services.processor import ReportProcessor
from backend.services.report_store import ReportStore
from backend.services.storage import StorageGateway


def get_user_id(x_user_id: str | None = Header(default=None)) -> str:
    # Authentication happens at the identity provider; the gateway forwards the subject.
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="User not authenticated")
    return x_user_id.strip()


def get_storage(request: Request) -> StorageGateway:
    return request.app.state.storage


def get_extraction_client(request: Request) -> ExtractionClient:
    return request.app.state.extraction


def get_report_store(db: Session = Depends(get_db)) -> ReportStore:
    return ReportStore(db)


def get_processor(
    store: ReportStore = Depends(get_report_store),
    storage: StorageGateway = Depends(get_storage),
    extraction: ExtractionClient = Depends(get_extraction_client),
) -> ReportProcessor:
    return ReportProcessor(store, storage, extraction)


def valid_report_id(report_id: str) -> str:
    try:
        UUID(report_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid report ID format") from None
    return report_id
