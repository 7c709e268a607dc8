from enum import Enum


class PhaseStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class OverallStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PARTIAL = "partial"
    COMPLETED = "completed"
    FAILED = "failed"


PHASES = ("metadata", "tests")
RETRYABLE = (PhaseStatus.PENDING.value, PhaseStatus.FAILED.value)


def aggregate_status(metadata_status: str, tests_status: str) -> OverallStatus:
    """Derive the overall report status from the two extraction phases.

    failed wins over everything, completed needs both phases, and a mix of
    completed with pending/processing is partial.
    """
    statuses = {PhaseStatus(metadata_status), PhaseStatus(tests_status)}
    if PhaseStatus.FAILED in statuses:
        return OverallStatus.FAILED
    if statuses == {PhaseStatus.COMPLETED}:
        return OverallStatus.COMPLETED
    if statuses == {PhaseStatus.PENDING}:
        return OverallStatus.PENDING
    if PhaseStatus.COMPLETED in statuses:
        return OverallStatus.PARTIAL
    return OverallStatus.PROCESSING
