"""Pydantic schemas for production case import, deletion and lookup."""

import uuid
from datetime import datetime
from typing import Any

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.schemas.common import CamelModel


class ImportRequest(CamelModel):
    # Validated by the coordinator so a malformed mapping maps to INVALID_PAYLOAD
    shipments: Any = None
    meta: dict[str, Any] | None = None


class RowRejectionResponse(CamelModel):
    shipment_id: str
    index: int
    reason: str
    source_row: Any = None


class ImportResponse(CamelModel):
    total_items: int
    status: str
    job_id: uuid.UUID
    pending_shipment_ids: list[str] = Field(default_factory=list)
    rejected_rows: list[RowRejectionResponse] = Field(default_factory=list)


class DeleteRequest(CamelModel):
    shipments: Any = None


class DeleteResponse(CamelModel):
    total_deletes: int
    status: str = "ok"
    shipments: dict[str, int] = Field(default_factory=dict)
    storage_cleanup_failed: list[str] = Field(default_factory=list)


class CaseBalanceResponse(CamelModel):
    case_number: str
    remaining_lines: int


class CaseListResponse(CamelModel):
    case_numbers: list[str]
    balances: list[CaseBalanceResponse]


class CaseDetail(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    case_number: str
    critical_parts: int
    total_lines: int
    domestic_lines: int
    bulk_lines: int
    consumed_lines: int
    remaining_lines: int
    fully_sorted: bool = False
    uploaded_at: datetime | None = None
    uploaded_by: str | None = None
    source_row: int | None = None
    last_allocated_at: datetime | None = None
    last_allocated_by: str | None = None


class CaseDetailResponse(CamelModel):
    shipment_id: str
    case_number: str
    data: CaseDetail


class UploadResponse(CamelModel):
    storage_path: str
    download_url: str
    file_name: str


class ImportJobResponse(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: uuid.UUID
    status: str
    user_id: str | None = None
    meta: dict | None = None
    shipment_ids: list[str] | None = None
    processed_count: int | None = None
    started_at: datetime
    finished_at: datetime | None = None
    duration_ms: int | None = None
    error: str | None = None
