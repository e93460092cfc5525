from app.schemas.common import CamelModel, ErrorResponse
from app.schemas.health import HealthResponse
from app.schemas.production import (
    CaseDetailResponse,
    CaseListResponse,
    DeleteRequest,
    DeleteResponse,
    ImportJobResponse,
    ImportRequest,
    ImportResponse,
    UploadResponse,
)
from app.schemas.productivity import (
    MonthlySummaryResponse,
    ProductivityRequest,
    ProductivityResponse,
)

__all__ = [
    "CamelModel",
    "ErrorResponse",
    "HealthResponse",
    "CaseDetailResponse",
    "CaseListResponse",
    "DeleteRequest",
    "DeleteResponse",
    "ImportJobResponse",
    "ImportRequest",
    "ImportResponse",
    "UploadResponse",
    "MonthlySummaryResponse",
    "ProductivityRequest",
    "ProductivityResponse",
]
