from app.models.base import Base, TimestampMixin
from app.models.import_job import ImportJob, ImportJobStatus
from app.models.production import MANIFEST_KEY, ImportManifest, ProductionCase
from app.models.productivity import (
    DailyProductivitySummary,
    ProductivityEntry,
    ProductivityEntryType,
)
from app.models.shipment import Shipment
from app.models.user import Role, User

__all__ = [
    "Base",
    "TimestampMixin",
    "ImportJob",
    "ImportJobStatus",
    "MANIFEST_KEY",
    "ImportManifest",
    "ProductionCase",
    "DailyProductivitySummary",
    "ProductivityEntry",
    "ProductivityEntryType",
    "Shipment",
    "Role",
    "User",
]
