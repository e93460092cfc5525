"""Production case endpoints: bulk import and delete, lookups, source upload, job polling."""

import time
import uuid

from fastapi import APIRouter, Depends, Form, Query, UploadFile

from app.config import settings
from app.dependencies import (
    get_blob_store,
    get_case_lookup,
    get_deletion_coordinator,
    get_import_coordinator,
    get_job_ledger,
    require_permission,
)
from app.errors import FileTooLargeError, ValidationFailedError
from app.models.import_job import ImportJob
from app.production_engine.deletion_coordinator import BulkDeletionCoordinator
from app.production_engine.import_coordinator import BulkImportCoordinator
from app.production_engine.job_ledger import ImportJobLedger
from app.production_engine.lookup import CaseLookupService
from app.schemas.production import (
    CaseBalanceResponse,
    CaseDetail,
    CaseDetailResponse,
    CaseListResponse,
    DeleteRequest,
    DeleteResponse,
    ImportJobResponse,
    ImportRequest,
    ImportResponse,
    RowRejectionResponse,
    UploadResponse,
)
from app.services.blob_store import BlobStore, production_upload_path

router = APIRouter()


@router.post("/import", response_model=ImportResponse)
async def import_cases(
    request: ImportRequest,
    user_id: str = Depends(require_permission("production", "add")),
    coordinator: BulkImportCoordinator = Depends(get_import_coordinator),
) -> ImportResponse:
    """Upsert case rows for one or more shipments within the request time budget."""
    result = await coordinator.import_cases(request.shipments, meta=request.meta, user_id=user_id)
    return ImportResponse(
        total_items=result.total_items,
        status=result.status.value,
        job_id=result.job_id,
        pending_shipment_ids=result.pending_shipment_ids,
        rejected_rows=[
            RowRejectionResponse(
                shipment_id=r.shipment_id, index=r.index, reason=r.reason, source_row=r.source_row,
            )
            for r in result.rejected_rows
        ],
    )


@router.delete("/import", response_model=DeleteResponse)
async def delete_cases(
    request: DeleteRequest,
    user_id: str = Depends(require_permission("production", "delete")),
    coordinator: BulkDeletionCoordinator = Depends(get_deletion_coordinator),
) -> DeleteResponse:
    """Delete explicit case numbers, or ``["*"]`` for everything from the last import."""
    result = await coordinator.delete_cases(request.shipments)
    return DeleteResponse(
        total_deletes=result.total_deletes,
        status="ok",
        shipments=result.deleted_by_shipment,
        storage_cleanup_failed=result.storage_cleanup_failed,
    )


@router.get("/import/jobs/{job_id}", response_model=ImportJobResponse)
async def get_import_job(
    job_id: uuid.UUID,
    jobs: ImportJobLedger = Depends(get_job_ledger),
) -> ImportJobResponse:
    return _job_to_response(await jobs.get(job_id))


@router.get("/cases", response_model=CaseListResponse)
async def list_cases(
    shipment_id: str = Query("", alias="shipmentId"),
    include_exhausted: bool = Query(False, alias="includeExhausted"),
    lookup: CaseLookupService = Depends(get_case_lookup),
) -> CaseListResponse:
    """Case numbers with remaining balances for a shipment."""
    balances = await lookup.list_cases(shipment_id, include_exhausted=include_exhausted)
    return CaseListResponse(
        case_numbers=[b.case_number for b in balances],
        balances=[
            CaseBalanceResponse(case_number=b.case_number, remaining_lines=b.remaining_lines)
            for b in balances
        ],
    )


@router.get("/case", response_model=CaseDetailResponse)
async def get_case(
    shipment_id: str = Query("", alias="shipmentId"),
    case_number: str = Query("", alias="caseNumber"),
    lookup: CaseLookupService = Depends(get_case_lookup),
) -> CaseDetailResponse:
    """Single case with its remaining balance."""
    record = await lookup.get_case(shipment_id, case_number)
    return CaseDetailResponse(
        shipment_id=record.shipment_id,
        case_number=record.case_number,
        data=CaseDetail.model_validate(record),
    )


@router.post("/upload", response_model=UploadResponse, status_code=201)
async def upload_production_file(
    file: UploadFile,
    shipment_id: str = Form(..., alias="shipmentId"),
    user_id: str = Depends(require_permission("production", "add")),
    blob_store: BlobStore = Depends(get_blob_store),
) -> UploadResponse:
    """Store the source spreadsheet so a later wildcard delete can remove it."""
    shipment_id = shipment_id.strip()
    if not shipment_id:
        raise ValidationFailedError("shipmentId is required")

    content = await file.read()
    if len(content) > settings.max_upload_size_mb * 1024 * 1024:
        raise FileTooLargeError(f"File too large. Maximum size: {settings.max_upload_size_mb}MB")

    original_name = file.filename or "upload.xlsx"
    storage_path = production_upload_path(shipment_id, original_name, int(time.time() * 1000))
    await blob_store.save_object(
        storage_path, content, file.content_type or "application/octet-stream"
    )

    return UploadResponse(
        storage_path=storage_path,
        download_url=blob_store.public_url(storage_path),
        file_name=original_name,
    )


def _job_to_response(job: ImportJob) -> ImportJobResponse:
    return ImportJobResponse(
        id=job.id,
        status=job.status.value if hasattr(job.status, "value") else job.status,
        user_id=job.user_id,
        meta=job.meta,
        shipment_ids=job.shipment_ids,
        processed_count=job.processed_count,
        started_at=job.started_at,
        finished_at=job.finished_at,
        duration_ms=job.duration_ms,
        error=job.error,
    )
