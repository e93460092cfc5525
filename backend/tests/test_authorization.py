"""Tests for permission resolution from users and roles."""

import pytest

from app.dependencies import parse_session_cookie
from app.models.user import User
from app.services.authorization import (
    UserRoleAuthorizationService,
    has_permission,
    normalize_role_permissions,
)


class TestPermissionHelpers:
    def test_normalize_role_permissions(self):
        assert normalize_role_permissions(
            ["production:add", "production:delete", "productivity:add", "bogus", 7, ":x"]
        ) == {"production": ["add", "delete"], "productivity": ["add"]}

    def test_normalize_none(self):
        assert normalize_role_permissions(None) == {}

    def test_has_permission(self):
        permissions = {"production": ["add"]}
        assert has_permission(permissions, "production", "add") is True
        assert has_permission(permissions, "production", "delete") is False
        assert has_permission({"production": "add"}, "production", "add") is False
        assert has_permission(None, "production", "add") is False


class TestUserRoleAuthorizationService:
    @pytest.fixture
    def authorizer(self, session_factory, seeded_users):
        return UserRoleAuthorizationService(session_factory)

    async def test_admin_bypasses_checks(self, authorizer):
        assert await authorizer.is_authorized("admin-1", "production", "delete") is True

    async def test_role_permissions(self, authorizer):
        assert await authorizer.is_authorized("sorter-1", "productivity", "add") is True
        assert await authorizer.is_authorized("sorter-1", "production", "add") is False
        assert await authorizer.is_authorized("planner-1", "production", "delete") is True

    async def test_unknown_role_or_user(self, authorizer):
        assert await authorizer.is_authorized("viewer-1", "productivity", "add") is False
        assert await authorizer.is_authorized("ghost", "productivity", "add") is False

    async def test_user_permissions_override_role(self, authorizer, session_factory):
        async with session_factory() as session:
            async with session.begin():
                session.add(User(id="lead-1", role="sorter", permissions={"production": ["add"]}))

        assert await authorizer.is_authorized("lead-1", "production", "add") is True
        assert await authorizer.is_authorized("lead-1", "productivity", "add") is False


class TestSessionCookie:
    @pytest.mark.parametrize("raw, expected", [
        ('{"id": "admin-1"}', "admin-1"),
        ("sorter-1", "sorter-1"),
        ('{"name": "no id"}', None),
        ('{"id": ""}', None),
        ("", None),
        (None, None),
    ])
    def test_parse_session_cookie(self, raw, expected):
        assert parse_session_cookie(raw) == expected
