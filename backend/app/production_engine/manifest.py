"""Helpers for the per-shipment import manifest and the shipment lock flag.

The manifest is the denormalized list of case numbers written by the last
import, so a wildcard delete never has to scan ``production_cases``.
"""

from datetime import datetime

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.production import MANIFEST_KEY, ImportManifest
from app.models.shipment import Shipment

# request meta key -> manifest attribute
PROVENANCE_FIELDS = {
    "fileName": "file_name",
    "fileUrl": "file_url",
    "storagePath": "storage_path",
}


async def load_manifest(session: AsyncSession, shipment_id: str) -> ImportManifest | None:
    return await session.get(ImportManifest, (shipment_id, MANIFEST_KEY))


async def save_manifest(
    session: AsyncSession,
    shipment_id: str,
    *,
    case_numbers: list[str],
    uploaded_by: str | None,
    uploaded_at: datetime,
    meta: dict | None = None,
) -> ImportManifest:
    """Upsert the manifest, merging with prior state.

    The case list and upload stamp are always overwritten; file provenance is
    only overwritten when the new import supplies it.
    """
    manifest = await load_manifest(session, shipment_id)
    if manifest is None:
        manifest = ImportManifest(shipment_id=shipment_id, manifest_key=MANIFEST_KEY)
        session.add(manifest)

    manifest.case_numbers = list(case_numbers)
    manifest.count = len(case_numbers)
    manifest.uploaded_at = uploaded_at
    manifest.uploaded_by = uploaded_by
    manifest.updated_at = uploaded_at
    for meta_key, attr in PROVENANCE_FIELDS.items():
        value = (meta or {}).get(meta_key)
        if value:
            setattr(manifest, attr, str(value))
    return manifest


async def clear_manifest(session: AsyncSession, shipment_id: str) -> None:
    await session.execute(
        delete(ImportManifest).where(
            ImportManifest.shipment_id == shipment_id,
            ImportManifest.manifest_key == MANIFEST_KEY,
        )
    )


async def set_production_lock(
    session: AsyncSession, shipment_id: str, uploaded: bool, now: datetime
) -> Shipment | None:
    shipment = await session.get(Shipment, shipment_id)
    if shipment is None:
        # Clearing the flag on an unknown shipment leaves nothing behind
        if not uploaded:
            return None
        shipment = Shipment(id=shipment_id)
        session.add(shipment)
    shipment.production_uploaded = uploaded
    shipment.updated_at = now
    return shipment
