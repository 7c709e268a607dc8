import logging
from typing import Any, Iterable

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from backend.errors import ReportNotFoundError
from backend.models.report import ReportRecord
from backend.services.status import PHASES, RETRYABLE, PhaseStatus, aggregate_status

logger = logging.getLogger(__name__)

_MAX_TRANSITION_ATTEMPTS = 3


def _status_column(phase: str):
    if phase not in PHASES:
        raise ValueError(f"Unknown processing phase: {phase}")
    return getattr(ReportRecord, f"{phase}_status")


def _other_phase(phase: str) -> str:
    return "tests" if phase == "metadata" else "metadata"


class ReportStore:
    """Persistence for report rows.

    Every status change is a single UPDATE that also writes the recomputed
    overall status, guarded on the other phase's status so the two can
    never be stored out of step.
    """

    def __init__(self, session: Session):
        self.session = session

    def create(self, user_id: str, files: list[dict[str, Any]]) -> ReportRecord:
        if not files:
            raise ValueError("At least one file must be provided")
        report = ReportRecord(
            user_id=user_id,
            files=files,
            title="Untitled Report",
            tests_data=None,
            overall_status=PhaseStatus.PENDING.value,
            metadata_status=PhaseStatus.PENDING.value,
            tests_status=PhaseStatus.PENDING.value,
            education_status=PhaseStatus.PENDING.value,
        )
        self.session.add(report)
        self.session.commit()
        self.session.refresh(report)
        return report

    def get(self, report_id: str) -> ReportRecord | None:
        return self.session.get(ReportRecord, report_id, populate_existing=True)

    def require(self, report_id: str) -> ReportRecord:
        report = self.get(report_id)
        if report is None:
            raise ReportNotFoundError(f"Report {report_id} not found")
        return report

    def get_owned(self, report_id: str, user_id: str) -> ReportRecord | None:
        report = self.get(report_id)
        if report is None or report.user_id != user_id:
            return None
        return report

    def list_for_user(self, user_id: str) -> list[ReportRecord]:
        return list(
            self.session.scalars(
                select(ReportRecord)
                .where(ReportRecord.user_id == user_id)
                .order_by(ReportRecord.created_at.desc())
            )
        )

    def update(self, report_id: str, **fields: Any) -> None:
        self.session.execute(update(ReportRecord).where(ReportRecord.id == report_id).values(**fields))
        self.session.commit()

    def _phase_statuses(self, report_id: str) -> tuple[str, str]:
        row = self.session.execute(
            select(ReportRecord.metadata_status, ReportRecord.tests_status).where(ReportRecord.id == report_id)
        ).one_or_none()
        if row is None:
            raise ReportNotFoundError(f"Report {report_id} not found")
        return row.metadata_status, row.tests_status

    def _transition(
        self,
        report_id: str,
        phase: str,
        new_status: PhaseStatus,
        fields: dict[str, Any] | None = None,
        expected: Iterable[str] | None = None,
    ) -> bool:
        column = _status_column(phase)
        other = _other_phase(phase)
        other_column = _status_column(other)
        expected = tuple(expected) if expected is not None else None

        for _ in range(_MAX_TRANSITION_ATTEMPTS):
            metadata_status, tests_status = self._phase_statuses(report_id)
            current = {"metadata": metadata_status, "tests": tests_status}
            if expected is not None and current[phase] not in expected:
                return False

            current[phase] = new_status.value
            overall = aggregate_status(current["metadata"], current["tests"])
            stmt = update(ReportRecord).where(ReportRecord.id == report_id, other_column == current[other])
            if expected is not None:
                stmt = stmt.where(column.in_(expected))
            values = {f"{phase}_status": new_status.value, "overall_status": overall.value}
            values.update(fields or {})
            result = self.session.execute(stmt.values(**values))
            self.session.commit()
            if result.rowcount == 1:
                return True
            logger.debug("Status transition for report %s raced, retrying", report_id)

        if expected is not None:
            logger.warning("Gave up on %s -> %s claim for report %s", phase, new_status.value, report_id)
            return False

        # A finished phase must never be left in processing.
        logger.warning(
            "Status transition for report %s kept racing, writing %s=%s unguarded",
            report_id,
            phase,
            new_status.value,
        )
        values = {f"{phase}_status": new_status.value}
        values.update(fields or {})
        self.update(report_id, **values)
        self._sync_overall_status(report_id)
        return True

    def _sync_overall_status(self, report_id: str) -> None:
        report = self.require(report_id)
        overall = aggregate_status(report.metadata_status, report.tests_status)
        self.update(report_id, overall_status=overall.value)

    def claim_phase(self, report_id: str, phase: str) -> bool:
        """Move a pending/failed phase to processing. Only the caller that wins the swap may run it."""
        return self._transition(report_id, phase, PhaseStatus.PROCESSING, expected=RETRYABLE)

    def complete_phase(self, report_id: str, phase: str, **fields: Any) -> bool:
        fields[f"{phase}_error"] = None
        return self._transition(report_id, phase, PhaseStatus.COMPLETED, fields)

    def fail_phase(self, report_id: str, phase: str, error: str) -> bool:
        return self._transition(report_id, phase, PhaseStatus.FAILED, {f"{phase}_error": error})

    def save_educational_info(self, report_id: str, test_id: str, info: dict[str, Any]) -> bool:
        """Attach generated info to one test, re-reading the latest tests_data first."""
        report = self.require(report_id)
        tests_data = report.tests_data or {}
        target = None
        for test in tests_data.get("gauge") or []:
            if test.get("id") == test_id:
                target = test
                break
        if target is None:
            for group in tests_data.get("table") or []:
                for test in group.get("tests") or []:
                    if test.get("id") == test_id:
                        target = test
                        break
                if target is not None:
                    break
        if target is None:
            return False

        target["educationalInfo"] = info
        self.update(
            report_id,
            tests_data=tests_data,
            education_status=PhaseStatus.COMPLETED.value,
            education_error=None,
        )
        return True

    def delete_owned(self, report_id: str, user_id: str) -> bool:
        result = self.session.execute(
            delete(ReportRecord).where(ReportRecord.id == report_id, ReportRecord.user_id == user_id)
        )
        self.session.commit()
        return result.rowcount == 1
