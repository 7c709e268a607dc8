import asyncio
import json
import logging
from typing import Iterable
from uuid import uuid4

from backend.errors import (
    ConfigurationError,
    ExtractionError,
    MissingTestDataError,
    StorageError,
    TestResultNotFoundError,
)
from backend.models.report import ReportRecord
from backend.schemas.report import (
    EducationalInfo,
    ExtractedTestsData,
    PatientContext,
    ReportFile,
    ReportMetadata,
    TestsData,
)
from backend.services.extraction import ExtractionClient, FilePart, TextPart
from backend.services.report_store import ReportStore
from backend.services.status import PHASES, RETRYABLE, PhaseStatus
from backend.services.storage import StorageGateway

logger = logging.getLogger(__name__)

METADATA_FIELDS = (
    "title",
    "patient_name",
    "patient_sex",
    "patient_age",
    "lab_name",
    "referring_doctor",
    "sample_date",
    "report_date",
    "lab_director",
    "lab_contact",
)

METADATA_INSTRUCTIONS = """
Analyze the following medical report file(s) according to the provided schema.
Extract the report title, patient details (name, sex, age), lab information (name, director, contact),
referring doctor, report date and sample date.
- Generate a short descriptive title from the report content.
- Return dates exactly as written in the report, as strings; source formats vary.
- For any field that cannot be found in the documents return the string 'not found'.
- Consolidate information if multiple documents are provided for the same patient.
- Do not extract individual blood test results.
"""

TESTS_INSTRUCTIONS = """
Analyze the provided medical report file(s) and/or image(s) and extract blood test results.

For EACH test result (both in 'gauge' and within 'table' groups), extract:
- 'test': name of the blood test (e.g. Hemoglobin (Hb), RBC Count)
- 'result': the measured value, as a number where possible, otherwise text like 'Not Detected'
- 'unit': unit of measurement (e.g. g/dL, %, 10^12/L)
- 'referenceRange': numeric 'min'/'max' where possible; if the range is text or an inequality (e.g. '< 5'), use 'text'
- 'interpretation': the interpretation label if the report states one (High, Low, Normal)
- 'gaugeMin' and 'gaugeMax': sensible absolute minimum and maximum values for a dial visualization

Categorize the tests:
1. 'gauge': key headline biomarkers monitored closely (hemoglobin, glucose, lipid panel components).
2. 'table': group the remaining tests into panels (CBC, Liver Function, ...). Tests that do not fit a
   known panel go under the report's own section header or an 'Other' group.

Consolidate results across multiple files for the same patient. Never invent values.
"""

EDUCATION_INSTRUCTIONS = """
Generate patient-facing educational information about this blood test result: {test}
Patient details for context (use age/gender if relevant): {patient}

Follow these guidelines precisely:
- Populate 'testName' with the correct test name from the input.
- Explain what the test is, its purpose and the related body system in 'whatItIs'.
- Explain the concept of the reference range in 'understandingResults'.
- If the result is outside the normal range, populate 'abnormalResults.low' or 'abnormalResults.high'
  with potential causes and implications in cautious, non-diagnostic language. Always include 'generalDisclaimer'.
- Add potential symptoms (optional, with caveats) and clear guidance to see a doctor in 'symptomsAndActions'.
- Include general lifestyle tips and their disclaimer in 'lifestyleTips'.
- Include the mandatory 'additionalResources.finalDisclaimer' stating this is educational information only.
  Optionally add 1-2 glossary terms or FAQs.
- Use simple, clear language and avoid jargon.
"""


def assign_test_ids(extracted: ExtractedTestsData) -> TestsData:
    payload = extracted.model_dump(by_alias=True)
    for test in payload["gauge"]:
        test.setdefault("id", str(uuid4()))
    for group in payload["table"]:
        for test in group["tests"]:
            test.setdefault("id", str(uuid4()))
    return TestsData.model_validate(payload)


def merge_metadata(extracted: ReportMetadata) -> dict[str, str]:
    """Only fields the extraction actually populated overwrite stored values."""
    fields = {}
    for name in METADATA_FIELDS:
        value = getattr(extracted, name)
        if isinstance(value, str) and value.strip():
            fields[name] = value.strip()
    return fields


class ReportProcessor:
    def __init__(self, store: ReportStore, storage: StorageGateway, extraction: ExtractionClient):
        self.store = store
        self.storage = storage
        self.extraction = extraction

    async def _fetch_file_parts(self, report: ReportRecord) -> list[FilePart]:
        files = [ReportFile.model_validate(f) for f in report.files or []]
        if not files:
            raise StorageError("Report has no associated files.")

        signed = await asyncio.to_thread(self.storage.signed_urls_for, files)
        logger.info("Generated %s signed URLs for report %s", len(signed), report.id)

        fetched = await self.storage.fetch_all(signed)
        failures = [f for f in fetched if not f.ok]
        if failures:
            logger.warning(
                "Failed to fetch %s of %s files for report %s: %s",
                len(failures),
                len(fetched),
                report.id,
                "; ".join(f.error or f"{f.file_name}: empty file" for f in failures),
            )
        parts = [FilePart(data=f.data, mime_type=f.file_type, file_name=f.file_name) for f in fetched if f.ok]
        if not parts:
            raise StorageError("No files could be successfully fetched.")
        return parts

    async def _run_phase(self, report_id: str, phase: str) -> ReportRecord:
        report = await asyncio.to_thread(self.store.require, report_id)
        status = getattr(report, f"{phase}_status")
        if status not in RETRYABLE:
            logger.info("Report %s %s phase is %s, skipping", report_id, phase, status)
            return report
        if not await asyncio.to_thread(self.store.claim_phase, report_id, phase):
            logger.info("Report %s %s phase was claimed by another request", report_id, phase)
            return await asyncio.to_thread(self.store.require, report_id)

        logger.info("Starting %s processing for report %s", phase, report_id)
        try:
            parts = await self._fetch_file_parts(report)
            if phase == "metadata":
                extracted = await self.extraction.generate_object(
                    [TextPart(METADATA_INSTRUCTIONS), *parts], ReportMetadata
                )
                await asyncio.to_thread(self.store.complete_phase, report_id, phase, **merge_metadata(extracted))
            else:
                extracted = await self.extraction.generate_object(
                    [TextPart(TESTS_INSTRUCTIONS), *parts], ExtractedTestsData
                )
                tests_data = assign_test_ids(extracted)
                logger.info(
                    "Extracted %s gauge tests and %s table groups for report %s",
                    len(tests_data.gauge),
                    len(tests_data.table),
                    report_id,
                )
                await asyncio.to_thread(
                    self.store.complete_phase, report_id, phase, tests_data=tests_data.model_dump(by_alias=True)
                )
        except (StorageError, ExtractionError, ConfigurationError) as exc:
            logger.error("Report %s %s phase failed: %s", report_id, phase, exc)
            await asyncio.to_thread(self.store.fail_phase, report_id, phase, str(exc))
        except Exception as exc:
            logger.exception("Critical error processing %s for report %s", phase, report_id)
            error = str(exc) or f"Unknown critical error during {phase} processing"
            await asyncio.to_thread(self.store.fail_phase, report_id, phase, error)

        report = await asyncio.to_thread(self.store.require, report_id)
        logger.info(
            "Finished %s processing for report %s: %s (overall %s)",
            phase,
            report_id,
            getattr(report, f"{phase}_status"),
            report.overall_status,
        )
        return report

    async def process_metadata(self, report_id: str) -> ReportRecord:
        return await self._run_phase(report_id, "metadata")

    async def process_tests(self, report_id: str) -> ReportRecord:
        return await self._run_phase(report_id, "tests")

    async def ensure_processed(self, report_id: str, phases: Iterable[str] = PHASES) -> ReportRecord:
        report = await asyncio.to_thread(self.store.require, report_id)
        for phase in phases:
            if phase not in PHASES:
                raise ValueError(f"Unknown processing phase: {phase}")
            report = await self._run_phase(report_id, phase)
        return report

    async def get_educational_info(
        self, report_id: str, test_id: str, patient: PatientContext | None = None
    ) -> EducationalInfo:
        report = await asyncio.to_thread(self.store.require, report_id)
        if not report.tests_data:
            raise MissingTestDataError("Report has no test data.")

        tests_data = TestsData.model_validate(report.tests_data)
        test = tests_data.find_test(test_id)
        if test is None:
            raise TestResultNotFoundError(f"Test with ID '{test_id}' not found in this report.")
        if test.educational_info is not None:
            logger.info("Found existing educational info for test %s in report %s", test_id, report_id)
            return test.educational_info

        logger.info("Generating educational info for test %s in report %s", test_id, report_id)
        prompt = EDUCATION_INSTRUCTIONS.format(
            test=json.dumps(test.model_dump(by_alias=True, exclude={"educational_info"})),
            patient=json.dumps(patient.model_dump(exclude_none=True) if patient else {}),
        )
        try:
            info = await self.extraction.generate_object([TextPart(prompt)], EducationalInfo)
        except ExtractionError as exc:
            await asyncio.to_thread(
                self.store.update, report_id, education_status=PhaseStatus.FAILED.value, education_error=str(exc)
            )
            raise

        saved = await asyncio.to_thread(
            self.store.save_educational_info, report_id, test_id, info.model_dump(by_alias=True)
        )
        if not saved:
            raise TestResultNotFoundError(f"Test with ID '{test_id}' not found in this report.")
        logger.info("Saved educational info for test %s in report %s", test_id, report_id)
        return info
