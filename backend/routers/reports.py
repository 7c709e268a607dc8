import asyncio
import logging
from typing import Literal

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from backend.errors import (
    ConfigurationError,
    ExtractionError,
    MissingTestDataError,
    ReportNotFoundError,
    TestResultNotFoundError,
)
from backend.models.report import ReportRecord
from backend.routers.deps import get_processor, get_report_store, get_user_id, valid_report_id
from backend.schemas.report import EducationRequest, TestsData
from backend.services.interpretation import classify_result, gauge_bounds
from backend.services.processor import ReportProcessor
from backend.services.report_store import ReportStore
from backend.services.status import PHASES

router = APIRouter(prefix="/api/reports", tags=["reports"])
logger = logging.getLogger(__name__)


def _tests_payload(tests_data: dict | None) -> dict | None:
    if not tests_data:
        return None
    data = TestsData.model_validate(tests_data)
    payload = data.model_dump(by_alias=True)
    for model, raw in zip(data.gauge, payload["gauge"]):
        raw["rangeStatus"] = classify_result(model.result, model.reference_range)
        bounds = gauge_bounds(model)
        raw["gaugeBounds"] = list(bounds) if bounds else None
    for group, raw_group in zip(data.table, payload["table"]):
        for model, raw in zip(group.tests, raw_group["tests"]):
            raw["rangeStatus"] = classify_result(model.result, model.reference_range)
    return payload


def _status_payload(report: ReportRecord) -> dict:
    return {
        "overallStatus": report.overall_status,
        "metadataStatus": report.metadata_status,
        "testsStatus": report.tests_status,
        "educationStatus": report.education_status,
        "metadataError": report.metadata_error,
        "testsError": report.tests_error,
        "educationError": report.education_error,
    }


def _metadata_payload(report: ReportRecord) -> dict:
    return {
        "title": report.title,
        "patientName": report.patient_name,
        "patientSex": report.patient_sex,
        "patientAge": report.patient_age,
        "labName": report.lab_name,
        "referringDoctor": report.referring_doctor,
        "sampleDate": report.sample_date,
        "reportDate": report.report_date,
        "labDirector": report.lab_director,
        "labContact": report.lab_contact,
    }


def serialize_report(report: ReportRecord) -> dict:
    return {
        "id": report.id,
        "userId": report.user_id,
        "files": report.files,
        **_metadata_payload(report),
        "testsData": _tests_payload(report.tests_data),
        **_status_payload(report),
        "createdAt": report.created_at.isoformat(),
        "updatedAt": report.updated_at.isoformat(),
    }


def _owned_or_404(store: ReportStore, report_id: str, user_id: str) -> ReportRecord:
    report = store.get_owned(report_id, user_id)
    if not report:
        raise HTTPException(status_code=404, detail="Report not found")
    return report


@router.get("")
def list_reports(store: ReportStore = Depends(get_report_store), user_id: str = Depends(get_user_id)):
    reports = [
        {
            "id": report.id,
            "title": report.title or f"Report {report.id}",
            "overallStatus": report.overall_status,
            "createdAt": report.created_at.isoformat(),
        }
        for report in store.list_for_user(user_id)
    ]
    return {"statusCode": 200, "message": "Success", "data": {"reports": reports, "total": len(reports)}}


@router.get("/{report_id}")
def get_report(
    report_id: str = Depends(valid_report_id),
    store: ReportStore = Depends(get_report_store),
    user_id: str = Depends(get_user_id),
):
    report = _owned_or_404(store, report_id, user_id)
    return {"statusCode": 200, "message": "Success", "data": serialize_report(report)}


@router.post("/{report_id}/process")
async def process_report(
    report_id: str = Depends(valid_report_id),
    phase: Literal["metadata", "tests"] | None = Query(default=None),
    store: ReportStore = Depends(get_report_store),
    processor: ReportProcessor = Depends(get_processor),
    user_id: str = Depends(get_user_id),
):
    await asyncio.to_thread(_owned_or_404, store, report_id, user_id)
    phases = (phase,) if phase else PHASES
    report = await processor.ensure_processed(report_id, phases)
    return {"statusCode": 200, "message": "Processing finished", "data": serialize_report(report)}


@router.get("/{report_id}/metadata")
async def get_report_metadata(
    report_id: str = Depends(valid_report_id),
    store: ReportStore = Depends(get_report_store),
    processor: ReportProcessor = Depends(get_processor),
    user_id: str = Depends(get_user_id),
):
    await asyncio.to_thread(_owned_or_404, store, report_id, user_id)
    report = await processor.process_metadata(report_id)
    return {
        "statusCode": 200,
        "message": "Success",
        "data": {**_metadata_payload(report), **_status_payload(report)},
    }


@router.get("/{report_id}/tests")
async def get_report_tests(
    report_id: str = Depends(valid_report_id),
    store: ReportStore = Depends(get_report_store),
    processor: ReportProcessor = Depends(get_processor),
    user_id: str = Depends(get_user_id),
):
    await asyncio.to_thread(_owned_or_404, store, report_id, user_id)
    report = await processor.process_tests(report_id)
    return {
        "statusCode": 200,
        "message": "Success",
        "data": {"testsData": _tests_payload(report.tests_data), **_status_payload(report)},
    }


@router.post("/{report_id}/tests/{test_id}/education")
async def get_test_education(
    test_id: str,
    report_id: str = Depends(valid_report_id),
    payload: EducationRequest | None = Body(default=None),
    store: ReportStore = Depends(get_report_store),
    processor: ReportProcessor = Depends(get_processor),
    user_id: str = Depends(get_user_id),
):
    await asyncio.to_thread(_owned_or_404, store, report_id, user_id)
    try:
        info = await processor.get_educational_info(report_id, test_id, payload.patient if payload else None)
    except (ReportNotFoundError, TestResultNotFoundError) as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except MissingTestDataError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ConfigurationError as exc:
        logger.error("Educational info unavailable: %s", exc)
        raise HTTPException(status_code=500, detail="Server configuration error") from exc
    except ExtractionError as exc:
        raise HTTPException(status_code=502, detail=f"Operation failed: {exc}") from exc
    return {"statusCode": 200, "message": "Success", "data": info.model_dump(by_alias=True)}


@router.delete("/{report_id}")
def delete_report(
    report_id: str = Depends(valid_report_id),
    store: ReportStore = Depends(get_report_store),
    user_id: str = Depends(get_user_id),
):
    if not store.delete_owned(report_id, user_id):
        raise HTTPException(status_code=404, detail="Report not found or user does not have permission.")
    logger.info("Report %s deleted by its owner", report_id)
    return {
        "statusCode": 200,
        "message": "Report deleted successfully.",
        "data": None,
    }
