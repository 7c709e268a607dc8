import logging

from fastapi import APIRouter, Depends, HTTPException

from backend.errors import ConfigurationError, FileTooLargeError, StorageError, UnsupportedFileTypeError
from backend.routers.deps import get_report_store, get_storage, get_user_id
from backend.schemas.report import CreateRecordRequest, SignedUrlRequest
from backend.services.report_store import ReportStore
from backend.services.storage import StorageGateway

router = APIRouter(prefix="/api/report-upload", tags=["report-upload"])
logger = logging.getLogger(__name__)


@router.post("/signed-url")
def create_signed_url(
    payload: SignedUrlRequest,
    storage: StorageGateway = Depends(get_storage),
    user_id: str = Depends(get_user_id),
):
    try:
        ticket = storage.create_upload_url(user_id, payload.file_name, payload.file_type, payload.file_size)
    except FileTooLargeError as exc:
        raise HTTPException(status_code=413, detail=str(exc)) from exc
    except UnsupportedFileTypeError as exc:
        raise HTTPException(status_code=415, detail=str(exc)) from exc
    except (ConfigurationError, StorageError) as exc:
        logger.error("Error generating signed URL: %s", exc)
        raise HTTPException(status_code=500, detail="Internal server error generating upload URL") from exc

    return {
        "statusCode": 200,
        "message": "Signed URL generated successfully",
        "data": {"url": ticket.url, "filePath": ticket.file_path, "method": ticket.method},
    }


@router.post("/create-record")
def create_record(
    payload: CreateRecordRequest,
    store: ReportStore = Depends(get_report_store),
    user_id: str = Depends(get_user_id),
):
    prefix = f"{user_id}/"
    for file in payload.uploaded_files:
        if not file.file_path.startswith(prefix):
            raise HTTPException(status_code=403, detail=f"File {file.file_name} does not belong to the current user")

    report = store.create(user_id, [f.model_dump(by_alias=True) for f in payload.uploaded_files])
    logger.info("Created report %s with %s files", report.id, len(payload.uploaded_files))
    return {
        "statusCode": 200,
        "message": f"Report record created successfully with ID: {report.id}.",
        "data": {"reportId": report.id},
    }
