"""ORM model for bulk-import job status documents."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum as SAEnum, Integer, JSON, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


class ImportJobStatus(str, enum.Enum):
    STARTED = "started"
    COMPLETED = "completed"
    TIMEOUT = "timeout"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset(
    {ImportJobStatus.COMPLETED, ImportJobStatus.TIMEOUT, ImportJobStatus.FAILED}
)


class ImportJob(Base):
    __tablename__ = "import_jobs"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    status: Mapped[ImportJobStatus] = mapped_column(
        SAEnum(ImportJobStatus, name="import_job_status", values_callable=lambda e: [m.value for m in e]),
        default=ImportJobStatus.STARTED,
        nullable=False,
    )
    user_id: Mapped[str | None] = mapped_column(String(200), nullable=True)
    meta: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    shipment_ids: Mapped[list | None] = mapped_column(JSON, nullable=True)
    processed_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
