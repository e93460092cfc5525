import json

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.consumption_ledger.service import ConsumptionLedger
from app.database import get_db, get_session_factory
from app.errors import ForbiddenError, UnauthenticatedError
from app.production_engine.deletion_coordinator import BulkDeletionCoordinator
from app.production_engine.import_coordinator import BulkImportCoordinator
from app.production_engine.job_ledger import ImportJobLedger
from app.production_engine.lookup import CaseLookupService
from app.services.authorization import AuthorizationService, UserRoleAuthorizationService
from app.services.blob_store import BlobStore, LocalBlobStore

# Re-export get_db for use in Depends()
get_db = get_db

SESSION_COOKIE = "session"
USER_ID_HEADER = "X-User-Id"


def get_blob_store() -> BlobStore:
    return LocalBlobStore.from_settings(settings)


def get_authorization_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> AuthorizationService:
    return UserRoleAuthorizationService(session_factory)


def get_import_coordinator(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> BulkImportCoordinator:
    return BulkImportCoordinator(settings, session_factory)


def get_deletion_coordinator(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    blob_store: BlobStore = Depends(get_blob_store),
) -> BulkDeletionCoordinator:
    return BulkDeletionCoordinator(settings, session_factory, blob_store)


def get_case_lookup(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> CaseLookupService:
    return CaseLookupService(session_factory)


def get_job_ledger(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> ImportJobLedger:
    return ImportJobLedger(session_factory)


def get_consumption_ledger(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> ConsumptionLedger:
    return ConsumptionLedger(settings, session_factory)


def parse_session_cookie(raw: str | None) -> str | None:
    """The session cookie holds either ``{"id": ...}`` JSON or a bare user id."""
    if not raw:
        return None
    try:
        parsed = json.loads(raw)
    except ValueError:
        return raw
    if isinstance(parsed, dict):
        user_id = parsed.get("id")
        return user_id if isinstance(user_id, str) and user_id else None
    return raw


def get_current_user_id(request: Request) -> str:
    user_id = parse_session_cookie(request.cookies.get(SESSION_COOKIE)) or request.headers.get(USER_ID_HEADER)
    if not user_id:
        raise UnauthenticatedError("No caller identity")
    request.state.user_id = user_id
    return user_id


def require_permission(resource: str, action: str):
    """Dependency factory: resolves the caller and checks ``resource:action``."""

    async def dependency(
        user_id: str = Depends(get_current_user_id),
        authorizer: AuthorizationService = Depends(get_authorization_service),
    ) -> str:
        if not await authorizer.is_authorized(user_id, resource, action):
            raise ForbiddenError(f"{resource}:{action} not permitted")
        return user_id

    return dependency
