"""Permission resolution for mutating endpoints.

A user is authorized for ``resource:action`` when they have the admin role,
or when their effective permissions list the action. Effective permissions
are the user's own ``permissions`` map when set, otherwise the permissions of
the role named on the user.
"""

import logging
from abc import ABC, abstractmethod

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.user import Role, User

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"


def normalize_role_permissions(entries: list | None) -> dict[str, list[str]]:
    """Turn ``["production:add", ...]`` into ``{"production": ["add"]}``."""
    normalized: dict[str, list[str]] = {}
    for item in entries or []:
        if not isinstance(item, str):
            continue
        resource, _, action = item.partition(":")
        if not resource or not action:
            continue
        normalized.setdefault(resource, []).append(action)
    return normalized


def has_permission(permissions: dict | None, resource: str, action: str) -> bool:
    actions = (permissions or {}).get(resource)
    return isinstance(actions, list) and action in actions


class AuthorizationService(ABC):
    @abstractmethod
    async def is_authorized(self, user_id: str, resource: str, action: str) -> bool:
        ...


class UserRoleAuthorizationService(AuthorizationService):
    """Resolves permissions from the ``users`` and ``roles`` tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def is_authorized(self, user_id: str, resource: str, action: str) -> bool:
        async with self._session_factory() as session:
            user = await session.get(User, user_id)
            if user is None:
                logger.info("Authorization denied: unknown user %s", user_id)
                return False

            if (user.role or "").lower() == ADMIN_ROLE:
                return True

            permissions = user.permissions if isinstance(user.permissions, dict) else None
            if permissions is None and user.role:
                role = await session.get(Role, user.role)
                if role is not None:
                    permissions = normalize_role_permissions(role.permissions)

        allowed = has_permission(permissions, resource, action)
        if not allowed:
            logger.info("Authorization denied: user=%s %s:%s", user_id, resource, action)
        return allowed
