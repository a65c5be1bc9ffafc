"""Tests for the access guard."""

import pytest

from app.core.exceptions import ForbiddenError, UnauthorizedError
from app.features.permissions.guard import (
    OPERATIONS,
    AccessRequirement,
    authorize,
    check_access,
    register_operation,
)
from app.features.permissions.operations import CREATE_ROLE, LIST_ENTERPRISE_USERS
from app.features.permissions.types import AccessProfile, FeatureAccess, PermissionLevel
from app.features.users.auth import create_access_token, decode_token


def claims_for(features: dict[str, FeatureAccess]):
    return decode_token(create_access_token("user-1", None, [], AccessProfile(features)))


@pytest.fixture
def scratch_operation():
    yield "tests.scratch"
    OPERATIONS.pop("tests.scratch", None)


class TestAuthorize:
    def test_any_listed_feature_suffices(self):
        claims = claims_for({"user-management": FeatureAccess(read=True)})

        authorize(claims, OPERATIONS[LIST_ENTERPRISE_USERS])

    def test_presence_only_by_default(self):
        """Read-only access satisfies an operation registered without a level."""
        claims = claims_for({"role-management": FeatureAccess(read=True)})

        authorize(claims, OPERATIONS[CREATE_ROLE])

    def test_missing_feature_is_forbidden_with_generic_message(self):
        claims = claims_for({"venue-booking": FeatureAccess(read=True, write=True, admin=True)})

        with pytest.raises(ForbiddenError) as exc_info:
            authorize(claims, OPERATIONS[CREATE_ROLE])

        assert "role-management" not in exc_info.value.detail
        assert exc_info.value.detail == ForbiddenError.default_detail

    def test_level_requirement(self):
        requirement = AccessRequirement(features=("vendor-management",), level=PermissionLevel.ADMIN)

        with pytest.raises(ForbiddenError):
            authorize(claims_for({"vendor-management": FeatureAccess(read=True, write=True)}), requirement)
        authorize(claims_for({"vendor-management": FeatureAccess(admin=True)}), requirement)


class TestCheckAccess:
    def test_missing_token_is_unauthorized(self):
        with pytest.raises(UnauthorizedError):
            check_access(None, CREATE_ROLE)

    def test_returns_claims(self):
        token = create_access_token(
            "user-1", None, [], AccessProfile({"role-management": FeatureAccess(write=True)})
        )

        assert check_access(token, CREATE_ROLE).user_id == "user-1"

    def test_unknown_operation(self):
        with pytest.raises(KeyError):
            check_access("token", "no.such.operation")


class TestRegistry:
    def test_register(self, scratch_operation):
        requirement = register_operation(scratch_operation, "a", "b", level=PermissionLevel.WRITE)

        assert OPERATIONS[scratch_operation] == requirement
        assert requirement.features == ("a", "b")

    def test_requires_a_feature(self, scratch_operation):
        with pytest.raises(ValueError):
            register_operation(scratch_operation)

    def test_duplicate_registration(self, scratch_operation):
        register_operation(scratch_operation, "a")

        with pytest.raises(ValueError):
            register_operation(scratch_operation, "b")
