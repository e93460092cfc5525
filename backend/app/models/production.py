"""ORM models for production case records and the per-shipment import manifest."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, JSON, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base

MANIFEST_KEY = "last"


class ProductionCase(Base):
    __tablename__ = "production_cases"

    shipment_id: Mapped[str] = mapped_column(String(200), primary_key=True)
    case_number: Mapped[str] = mapped_column(String(200), primary_key=True)
    critical_parts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_lines: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    domestic_lines: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bulk_lines: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    consumed_lines: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    fully_sorted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    uploaded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    uploaded_by: Mapped[str | None] = mapped_column(String(200), nullable=True)
    source_row: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_allocated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_allocated_by: Mapped[str | None] = mapped_column(String(200), nullable=True)
    # Bumped on every UPDATE; concurrent consumption commits fail with StaleDataError
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    @property
    def remaining_lines(self) -> int:
        return max(0, (self.total_lines or 0) - (self.consumed_lines or 0))


class ImportManifest(Base):
    __tablename__ = "import_manifests"

    shipment_id: Mapped[str] = mapped_column(String(200), primary_key=True)
    manifest_key: Mapped[str] = mapped_column(String(50), primary_key=True, default=MANIFEST_KEY)
    case_numbers: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    uploaded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    uploaded_by: Mapped[str | None] = mapped_column(String(200), nullable=True)
    file_name: Mapped[str | None] = mapped_column(String(512), nullable=True)
    file_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    storage_path: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=True
    )
