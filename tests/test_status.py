import pytest

from backend.services.status import OverallStatus, aggregate_status


@pytest.mark.parametrize(
    ("metadata", "tests", "expected"),
    [
        ("pending", "pending", OverallStatus.PENDING),
        ("processing", "pending", OverallStatus.PROCESSING),
        ("processing", "processing", OverallStatus.PROCESSING),
        ("completed", "pending", OverallStatus.PARTIAL),
        ("pending", "completed", OverallStatus.PARTIAL),
        ("completed", "processing", OverallStatus.PARTIAL),
        ("completed", "completed", OverallStatus.COMPLETED),
        ("failed", "completed", OverallStatus.FAILED),
        ("completed", "failed", OverallStatus.FAILED),
        ("failed", "pending", OverallStatus.FAILED),
        ("processing", "failed", OverallStatus.FAILED),
    ],
)
def test_aggregate_status(metadata, tests, expected):
    assert aggregate_status(metadata, tests) == expected


def test_aggregate_status_rejects_unknown_values():
    with pytest.raises(ValueError):
        aggregate_status("done", "pending")
