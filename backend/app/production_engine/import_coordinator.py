"""BulkImportCoordinator: validates and upserts case rows for many shipments.

Flow per request:
1. Open an ImportJob (status ``started``)
2. Pick a WriteCoordinator once for the whole job
3. For each shipment, in payload order:
   a. Validate rows (bad rows are dropped and reported, never fatal)
   b. Write rows, then wait at the flush barrier
   c. Upsert the manifest and set the shipment's production lock
   d. Check the wall-clock budget; stop if exceeded and shipments remain
4. Close the writer and finish the job as ``completed`` or ``timeout``

Any uncaught error marks the job ``failed`` (best effort) and is re-raised as
a SERVER_ERROR. Timed-out shipments are not resumed; callers resubmit the
``pending_shipment_ids`` they get back.
"""

import logging
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import Settings
from app.errors import InvalidPayloadError, LedgerError, ServerError
from app.models.import_job import ImportJob, ImportJobStatus
from app.production_engine.job_ledger import ImportJobLedger
from app.production_engine.manifest import save_manifest, set_production_lock
from app.production_engine.validation import (
    MAX_KEY_LENGTH,
    CaseRowValues,
    dedupe_rows,
    parse_case_row,
)
from app.production_engine.writers import WriteCoordinator, select_write_coordinator

logger = logging.getLogger(__name__)

WriterFactory = Callable[[async_sessionmaker[AsyncSession], Settings], Awaitable[WriteCoordinator]]


@dataclass
class RowRejection:
    shipment_id: str
    index: int
    reason: str
    source_row: Any = None


@dataclass
class ImportResult:
    job_id: uuid.UUID
    status: ImportJobStatus
    total_items: int
    processed_shipment_ids: list[str] = field(default_factory=list)
    pending_shipment_ids: list[str] = field(default_factory=list)
    rejected_rows: list[RowRejection] = field(default_factory=list)


def case_record_mapping(
    shipment_id: str,
    row: CaseRowValues,
    uploaded_by: str | None,
    uploaded_at: datetime,
) -> dict:
    """Full column mapping for an overwrite: consumption state starts from zero."""
    return {
        "shipment_id": shipment_id,
        "case_number": row.case_number.value,
        "critical_parts": row.critical_parts,
        "total_lines": row.total_lines,
        "domestic_lines": row.domestic_lines,
        "bulk_lines": row.bulk_lines,
        "consumed_lines": 0,
        "fully_sorted": False,
        "uploaded_at": uploaded_at,
        "uploaded_by": uploaded_by,
        "source_row": row.source_row,
        "last_allocated_at": None,
        "last_allocated_by": None,
    }


class BulkImportCoordinator:
    """Time-boxed bulk import of production case records."""

    def __init__(
        self,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        writer_factory: WriterFactory = select_write_coordinator,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings
        self.time_budget = settings.import_time_budget_seconds
        self._session_factory = session_factory
        self._writer_factory = writer_factory
        self._clock = clock
        self.jobs = ImportJobLedger(session_factory)

    async def import_cases(
        self,
        shipments: Any,
        *,
        meta: dict | None = None,
        user_id: str | None = None,
    ) -> ImportResult:
        if not isinstance(shipments, dict) or not shipments:
            raise InvalidPayloadError("shipments must be a non-empty mapping of shipment id to rows")
        meta = meta if isinstance(meta, dict) else {}

        job = await self.jobs.start(
            user_id=user_id,
            meta=meta,
            shipment_ids=[str(k) for k in shipments],
        )
        started = self._clock()
        result = ImportResult(job_id=job.id, status=ImportJobStatus.STARTED, total_items=0)
        writer: WriteCoordinator | None = None

        try:
            writer = await self._writer_factory(self._session_factory, self.settings)
            items = list(shipments.items())
            for index, (raw_shipment_id, raw_rows) in enumerate(items):
                shipment_id = str(raw_shipment_id).strip() if raw_shipment_id is not None else ""
                if not shipment_id or len(shipment_id) > MAX_KEY_LENGTH or not isinstance(raw_rows, list):
                    logger.warning("Skipping malformed shipment entry %r in job %s", raw_shipment_id, job.id)
                    continue

                written = await self._import_shipment(
                    writer, shipment_id, raw_rows, meta, user_id, result.rejected_rows
                )
                result.total_items += written
                result.processed_shipment_ids.append(shipment_id)

                remaining = [str(k) for k, _ in items[index + 1:]]
                elapsed = self._clock() - started
                if remaining and elapsed > self.time_budget:
                    logger.warning(
                        "Import job %s exceeded %.1fs budget after %d shipment(s); %d left unprocessed",
                        job.id, self.time_budget, len(result.processed_shipment_ids), len(remaining),
                    )
                    result.pending_shipment_ids = remaining
                    break

            await writer.close()
        except Exception as e:
            logger.exception("Import job %s failed", job.id)
            if writer is not None:
                await writer.abort()
            await self._record_failure(job, result.total_items + getattr(e, "written", 0), e)
            if isinstance(e, LedgerError):
                raise
            raise ServerError(str(e) or e.__class__.__name__) from e

        result.status = (
            ImportJobStatus.TIMEOUT if result.pending_shipment_ids else ImportJobStatus.COMPLETED
        )
        await self.jobs.finish(job, result.status, processed_count=result.total_items)
        return result

    async def _import_shipment(
        self,
        writer: WriteCoordinator,
        shipment_id: str,
        raw_rows: list,
        meta: dict,
        user_id: str | None,
        rejections: list[RowRejection],
    ) -> int:
        uploaded_at = datetime.now(timezone.utc)

        valid: list[CaseRowValues] = []
        for index, raw in enumerate(raw_rows):
            values, reason = parse_case_row(raw)
            if values is None:
                source_row = raw.get("row") if isinstance(raw, dict) else None
                rejections.append(RowRejection(shipment_id, index, reason or "invalid", source_row))
                continue
            valid.append(values)

        rows = dedupe_rows(valid)
        records = [case_record_mapping(shipment_id, row, user_id, uploaded_at) for row in rows]
        if records:
            await writer.write(shipment_id, records)
        written = await writer.flush()

        # Manifest only after every row of this shipment is acknowledged
        async with self._session_factory() as session:
            async with session.begin():
                await save_manifest(
                    session,
                    shipment_id,
                    case_numbers=[row.case_number.value for row in rows],
                    uploaded_by=user_id,
                    uploaded_at=uploaded_at,
                    meta=meta,
                )
                await set_production_lock(session, shipment_id, True, uploaded_at)

        logger.info(
            "Imported %d case(s) for shipment %s (%d row(s) rejected)",
            written, shipment_id, len(raw_rows) - len(valid),
        )
        return written

    async def _record_failure(self, job: ImportJob, processed_count: int, error: Exception) -> None:
        try:
            await self.jobs.finish(
                job,
                ImportJobStatus.FAILED,
                processed_count=processed_count,
                error=str(error) or error.__class__.__name__,
            )
        except Exception as ledger_error:
            logger.warning("Could not record failure for import job %s: %s", job.id, ledger_error)
