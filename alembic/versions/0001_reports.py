"""reports table

Revision ID: 0001_reports
Revises:
Create Date: 2026-10-18
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "0001_reports"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "reports",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=True),
        sa.Column("files", sa.JSON(), nullable=False),
        sa.Column("patient_name", sa.String(length=255), nullable=True),
        sa.Column("patient_sex", sa.String(length=50), nullable=True),
        sa.Column("patient_age", sa.String(length=50), nullable=True),
        sa.Column("lab_name", sa.String(length=255), nullable=True),
        sa.Column("referring_doctor", sa.String(length=255), nullable=True),
        sa.Column("sample_date", sa.String(length=100), nullable=True),
        sa.Column("report_date", sa.String(length=100), nullable=True),
        sa.Column("lab_director", sa.String(length=255), nullable=True),
        sa.Column("lab_contact", sa.String(length=255), nullable=True),
        sa.Column("tests_data", sa.JSON(), nullable=True),
        sa.Column("overall_status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("metadata_status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("tests_status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("education_status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("metadata_error", sa.Text(), nullable=True),
        sa.Column("tests_error", sa.Text(), nullable=True),
        sa.Column("education_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_reports_user_id", "reports", ["user_id"], unique=False)
    op.create_index("ix_reports_overall_status", "reports", ["overall_status"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_reports_overall_status", table_name="reports")
    op.drop_index("ix_reports_user_id", table_name="reports")
    op.drop_table("reports")
