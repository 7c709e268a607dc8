from backend.models.report import ReportRecord

__all__ = [
    "ReportRecord",
]
