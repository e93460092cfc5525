"""BulkDeletionCoordinator: removes imported case records per shipment.

A shipment's target is either an explicit list of case numbers or the
wildcard ``["*"]``, which resolves through the import manifest instead of
scanning the case table. After the deletes, the shipment's lock flag is
cleared and its manifest removed. Wildcard deletions also try to remove the
originally uploaded spreadsheet; that cleanup never fails the request.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import Settings
from app.errors import ErrorCode, InvalidPayloadError
from app.models.production import ProductionCase
from app.production_engine.manifest import clear_manifest, load_manifest, set_production_lock
from app.production_engine.validation import chunked, parse_case_number
from app.services.blob_store import BlobStore

logger = logging.getLogger(__name__)

WILDCARD = "*"


@dataclass
class DeletionResult:
    total_deletes: int = 0
    deleted_by_shipment: dict[str, int] = field(default_factory=dict)
    storage_cleanup_failed: list[str] = field(default_factory=list)


def is_wildcard(targets: list) -> bool:
    return len(targets) == 1 and str(targets[0]).strip() == WILDCARD


def sanitize_targets(targets: list) -> list[str]:
    """Sanitize and dedupe explicit case numbers, dropping unusable ones."""
    seen: dict[str, None] = {}
    for raw in targets:
        case_number, _ = parse_case_number(raw)
        if case_number is not None:
            seen.setdefault(case_number.value, None)
    return list(seen)


class BulkDeletionCoordinator:
    def __init__(
        self,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        blob_store: BlobStore,
    ):
        self.batch_size = max(1, settings.store_batch_ceiling)
        self._session_factory = session_factory
        self._blob_store = blob_store

    async def delete_cases(self, shipments: Any) -> DeletionResult:
        if not isinstance(shipments, dict) or not shipments:
            raise InvalidPayloadError("shipments must be a non-empty mapping of shipment id to case numbers")

        result = DeletionResult()
        for raw_shipment_id, targets in shipments.items():
            shipment_id = str(raw_shipment_id).strip() if raw_shipment_id is not None else ""
            if not shipment_id or not isinstance(targets, list):
                logger.warning("Skipping malformed deletion entry %r", raw_shipment_id)
                continue

            deleted = await self._delete_shipment(shipment_id, targets, result)
            result.deleted_by_shipment[shipment_id] = deleted
            result.total_deletes += deleted

        return result

    async def _delete_shipment(self, shipment_id: str, targets: list, result: DeletionResult) -> int:
        wildcard = is_wildcard(targets)
        storage_path: str | None = None

        if wildcard:
            async with self._session_factory() as session:
                manifest = await load_manifest(session, shipment_id)
            if manifest is None:
                case_numbers = []
            else:
                case_numbers = sanitize_targets(manifest.case_numbers or [])
                storage_path = manifest.storage_path
        else:
            case_numbers = sanitize_targets(targets)

        deleted = 0
        for chunk in chunked(case_numbers, self.batch_size):
            async with self._session_factory() as session:
                async with session.begin():
                    outcome = await session.execute(
                        delete(ProductionCase).where(
                            ProductionCase.shipment_id == shipment_id,
                            ProductionCase.case_number.in_(chunk),
                        )
                    )
                    deleted += outcome.rowcount or 0

        # Lock flag and manifest are cleared even when nothing matched
        async with self._session_factory() as session:
            async with session.begin():
                await set_production_lock(session, shipment_id, False, datetime.now(timezone.utc))
                await clear_manifest(session, shipment_id)

        if wildcard and storage_path:
            try:
                await self._blob_store.delete_object(storage_path)
            except Exception as e:
                logger.warning(
                    "%s: could not delete %s for shipment %s: %s",
                    ErrorCode.STORAGE_CLEANUP_FAILED.value, storage_path, shipment_id, e,
                )
                result.storage_cleanup_failed.append(shipment_id)

        logger.info(
            "Deleted %d case(s) for shipment %s (wildcard=%s)", deleted, shipment_id, wildcard
        )
        return deleted
