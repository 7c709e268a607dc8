from datetime import datetime
from uuid import uuid4

from sqlalchemy import JSON, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from backend.database import Base


class ReportRecord(Base):
    __tablename__ = "reports"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True, default="Untitled Report")
    files: Mapped[list] = mapped_column(JSON, nullable=False)

    patient_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    patient_sex: Mapped[str | None] = mapped_column(String(50), nullable=True)
    patient_age: Mapped[str | None] = mapped_column(String(50), nullable=True)
    lab_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    referring_doctor: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sample_date: Mapped[str | None] = mapped_column(String(100), nullable=True)
    report_date: Mapped[str | None] = mapped_column(String(100), nullable=True)
    lab_director: Mapped[str | None] = mapped_column(String(255), nullable=True)
    lab_contact: Mapped[str | None] = mapped_column(String(255), nullable=True)

    tests_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    overall_status: Mapped[str] = mapped_column(String(20), index=True, nullable=False, default="pending")
    metadata_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    tests_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    education_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    metadata_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    tests_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    education_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )
