"""ImportJobLedger: status documents for bulk-import invocations.

A job is created ``started`` and moves exactly once to ``completed``,
``timeout`` or ``failed``. The transition is a conditional UPDATE on the
current status, so a finished job can never be reopened or finished twice.
"""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.errors import NotFoundError
from app.models.import_job import TERMINAL_STATUSES, ImportJob, ImportJobStatus

logger = logging.getLogger(__name__)


class JobAlreadyFinishedError(Exception):
    pass


def can_transition(current: ImportJobStatus, target: ImportJobStatus) -> bool:
    return current == ImportJobStatus.STARTED and target in TERMINAL_STATUSES


class ImportJobLedger:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def start(
        self,
        *,
        user_id: str | None,
        meta: dict | None,
        shipment_ids: list[str],
    ) -> ImportJob:
        job = ImportJob(
            id=uuid.uuid4(),
            status=ImportJobStatus.STARTED,
            user_id=user_id,
            meta=meta or {},
            shipment_ids=shipment_ids,
            started_at=datetime.now(timezone.utc),
        )
        async with self._session_factory() as session:
            async with session.begin():
                session.add(job)
        logger.info("Import job %s started (user=%s, shipments=%d)", job.id, user_id, len(shipment_ids))
        return job

    async def finish(
        self,
        job: ImportJob,
        status: ImportJobStatus,
        *,
        processed_count: int,
        error: str | None = None,
    ) -> ImportJob:
        if status not in TERMINAL_STATUSES:
            raise ValueError(f"{status.value} is not a terminal job status")
        if not can_transition(job.status, status):
            raise JobAlreadyFinishedError(f"Import job {job.id} already finished as {job.status.value}")

        finished_at = datetime.now(timezone.utc)
        started_at = job.started_at
        if started_at.tzinfo is None:
            # SQLite hands back naive datetimes
            started_at = started_at.replace(tzinfo=timezone.utc)
        duration_ms = int((finished_at - started_at).total_seconds() * 1000)

        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(ImportJob)
                    .where(ImportJob.id == job.id, ImportJob.status == ImportJobStatus.STARTED)
                    .values(
                        status=status,
                        finished_at=finished_at,
                        duration_ms=duration_ms,
                        processed_count=processed_count,
                        error=error,
                    )
                )
                if result.rowcount == 0:
                    raise JobAlreadyFinishedError(f"Import job {job.id} is not in progress")

        job.status = status
        job.finished_at = finished_at
        job.duration_ms = duration_ms
        job.processed_count = processed_count
        job.error = error
        logger.info(
            "Import job %s finished: status=%s processed=%d duration_ms=%d",
            job.id, status.value, processed_count, duration_ms,
        )
        return job

    async def get(self, job_id: uuid.UUID) -> ImportJob:
        async with self._session_factory() as session:
            job = (await session.execute(
                select(ImportJob).where(ImportJob.id == job_id)
            )).scalar_one_or_none()
        if job is None:
            raise NotFoundError(f"Import job {job_id} not found")
        return job
