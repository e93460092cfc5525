from app.production_engine.deletion_coordinator import BulkDeletionCoordinator, DeletionResult
from app.production_engine.import_coordinator import BulkImportCoordinator, ImportResult
from app.production_engine.lookup import CaseLookupService

__all__ = [
    "BulkDeletionCoordinator",
    "BulkImportCoordinator",
    "CaseLookupService",
    "DeletionResult",
    "ImportResult",
]
