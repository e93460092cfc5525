"""ORM models for operator productivity: recorded entries and daily counters."""

import enum
import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, Enum as SAEnum, Index, Integer, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


class ProductivityEntryType(str, enum.Enum):
    SORTING = "sorting"
    PACKING = "packing"


class ProductivityEntry(Base):
    __tablename__ = "productivity_entries"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    entry_type: Mapped[ProductivityEntryType] = mapped_column(
        SAEnum(
            ProductivityEntryType,
            name="productivity_entry_type",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    # Sorting
    shipment_id: Mapped[str | None] = mapped_column(String(200), nullable=True)
    case_number: Mapped[str | None] = mapped_column(String(200), nullable=True)
    lines: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    domestic_lines: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bulk_lines: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Packing
    location_no: Mapped[str | None] = mapped_column(String(200), nullable=True)
    new_case_no: Mapped[str | None] = mapped_column(String(200), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (Index("ix_productivity_entries_case", "shipment_id", "case_number"),)


class DailyProductivitySummary(Base):
    __tablename__ = "daily_productivity"

    user_id: Mapped[str] = mapped_column(String(200), primary_key=True)
    summary_date: Mapped[date] = mapped_column(Date, primary_key=True)
    sorter_lines: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sorter_cases: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sorter_domestic_lines: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sorter_bulk_lines: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    packer_lines: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    packer_cases: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
