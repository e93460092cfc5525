"""Production ledger schema: cases, manifests, import jobs, productivity, users

Revision ID: 001_production_ledger
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import ENUM as PgENUM
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_production_ledger"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("CREATE TYPE import_job_status AS ENUM ('started', 'completed', 'timeout', 'failed')")
    op.execute("CREATE TYPE productivity_entry_type AS ENUM ('sorting', 'packing')")

    op.create_table(
        "shipments",
        sa.Column("id", sa.String(200), primary_key=True),
        sa.Column("production_uploaded", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
    )

    # No FK to shipments: case rows may be imported before the shipment row exists
    op.create_table(
        "production_cases",
        sa.Column("shipment_id", sa.String(200), primary_key=True),
        sa.Column("case_number", sa.String(200), primary_key=True),
        sa.Column("critical_parts", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_lines", sa.Integer, nullable=False, server_default="0"),
        sa.Column("domestic_lines", sa.Integer, nullable=False, server_default="0"),
        sa.Column("bulk_lines", sa.Integer, nullable=False, server_default="0"),
        sa.Column("consumed_lines", sa.Integer, nullable=False, server_default="0"),
        sa.Column("fully_sorted", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("uploaded_by", sa.String(200), nullable=True),
        sa.Column("source_row", sa.Integer, nullable=True),
        sa.Column("last_allocated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_allocated_by", sa.String(200), nullable=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
    )

    op.create_table(
        "import_manifests",
        sa.Column("shipment_id", sa.String(200), primary_key=True),
        sa.Column("manifest_key", sa.String(50), primary_key=True),
        sa.Column("case_numbers", sa.JSON, nullable=False),
        sa.Column("count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("uploaded_by", sa.String(200), nullable=True),
        sa.Column("file_name", sa.String(512), nullable=True),
        sa.Column("file_url", sa.Text, nullable=True),
        sa.Column("storage_path", sa.String(1024), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
    )

    op.create_table(
        "import_jobs",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "status",
            PgENUM("started", "completed", "timeout", "failed", name="import_job_status", create_type=False),
            nullable=False,
            server_default="started",
        ),
        sa.Column("user_id", sa.String(200), nullable=True),
        sa.Column("meta", sa.JSON, nullable=True),
        sa.Column("shipment_ids", sa.JSON, nullable=True),
        sa.Column("processed_count", sa.Integer, nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_ms", sa.Integer, nullable=True),
        sa.Column("error", sa.Text, nullable=True),
    )

    op.create_table(
        "productivity_entries",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", sa.String(200), nullable=False),
        sa.Column("entry_date", sa.Date, nullable=False),
        sa.Column(
            "entry_type",
            PgENUM("sorting", "packing", name="productivity_entry_type", create_type=False),
            nullable=False,
        ),
        sa.Column("shipment_id", sa.String(200), nullable=True),
        sa.Column("case_number", sa.String(200), nullable=True),
        sa.Column("lines", sa.Integer, nullable=False, server_default="0"),
        sa.Column("domestic_lines", sa.Integer, nullable=False, server_default="0"),
        sa.Column("bulk_lines", sa.Integer, nullable=False, server_default="0"),
        sa.Column("location_no", sa.String(200), nullable=True),
        sa.Column("new_case_no", sa.String(200), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
    )
    op.create_index("ix_productivity_entries_user_id", "productivity_entries", ["user_id"])
    op.create_index(
        "ix_productivity_entries_case",
        "productivity_entries",
        ["shipment_id", "case_number"],
    )

    op.create_table(
        "daily_productivity",
        sa.Column("user_id", sa.String(200), primary_key=True),
        sa.Column("summary_date", sa.Date, primary_key=True),
        sa.Column("sorter_lines", sa.Integer, nullable=False, server_default="0"),
        sa.Column("sorter_cases", sa.Integer, nullable=False, server_default="0"),
        sa.Column("sorter_domestic_lines", sa.Integer, nullable=False, server_default="0"),
        sa.Column("sorter_bulk_lines", sa.Integer, nullable=False, server_default="0"),
        sa.Column("packer_lines", sa.Integer, nullable=False, server_default="0"),
        sa.Column("packer_cases", sa.Integer, nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "roles",
        sa.Column("name", sa.String(100), primary_key=True),
        sa.Column("permissions", sa.JSON, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.String(200), primary_key=True),
        sa.Column("name", sa.String(200), nullable=True),
        sa.Column("role", sa.String(100), nullable=True),
        sa.Column("permissions", sa.JSON, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("users")
    op.drop_table("roles")
    op.drop_table("daily_productivity")
    op.drop_index("ix_productivity_entries_case", table_name="productivity_entries")
    op.drop_index("ix_productivity_entries_user_id", table_name="productivity_entries")
    op.drop_table("productivity_entries")
    op.drop_table("import_jobs")
    op.drop_table("import_manifests")
    op.drop_table("production_cases")
    op.drop_table("shipments")
    op.execute("DROP TYPE IF EXISTS productivity_entry_type")
    op.execute("DROP TYPE IF EXISTS import_job_status")
