"""Tests for the role and grant store."""

import pytest
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import ConflictError, InvalidReferenceError, NotFoundError
from app.features.enterprises.service import UserSeed, create_enterprise, set_enterprise_active
from app.features.permissions.grants import (
    assign_role,
    create_role,
    delete_role,
    filter_grants,
    get_or_create_member_role,
    get_role,
    get_role_grants,
    get_user_role_ids,
    list_roles,
    remove_feature_from_role,
    replace_role_grants,
    revoke_role,
    update_role,
)
from app.features.permissions.models import PermissionGrant, Role
from app.features.permissions.types import GrantSpec

from conftest import make_user


class TestFilterGrants:
    def test_drops_all_false(self):
        kept = filter_grants([GrantSpec("a", read=True), GrantSpec("b")])

        assert [grant.feature_id for grant in kept] == ["a"]

    def test_merges_duplicates_in_first_appearance_order(self):
        kept = filter_grants([
            GrantSpec("b", read=True),
            GrantSpec("a", write=True),
            GrantSpec("b", admin=True),
        ])

        assert kept == [GrantSpec("b", read=True, admin=True), GrantSpec("a", write=True)]


class TestCreateRole:
    async def test_all_false_grants_never_stored(self, db, features):
        role = await create_role(db, "EDITOR", [
            GrantSpec(features["articles"].id, read=True, write=True),
            GrantSpec(features["publishing"].id),
        ])

        rows = await get_role_grants(db, role.id)
        assert [row.feature_id for row in rows] == [features["articles"].id]
        assert role.feature_ids == [features["articles"].id]

    async def test_duplicate_name_is_conflict(self, db, features):
        await create_role(db, "EDITOR", [])

        with pytest.raises(ConflictError):
            await create_role(db, "EDITOR", [])

    async def test_unknown_feature_is_invalid_reference(self, db, features):
        with pytest.raises(InvalidReferenceError):
            await create_role(db, "EDITOR", [GrantSpec("01HZZZZZZZZZZZZZZZZZZZZZZZ", read=True)])

        assert await db.scalar(select(func.count()).select_from(Role)) == 0

    async def test_unknown_feature_on_empty_grant_still_rejected(self, db, features):
        with pytest.raises(InvalidReferenceError):
            await create_role(db, "EDITOR", [GrantSpec("missing")])


class TestReplaceGrants:
    async def test_full_replace_removes_stale_grants(self, db, features):
        role = await create_role(db, "EDITOR", [
            GrantSpec(features["articles"].id, read=True),
            GrantSpec(features["publishing"].id, read=True),
        ])

        role = await replace_role_grants(db, role.id, [GrantSpec(features["venue-booking"].id, write=True)])

        rows = await get_role_grants(db, role.id)
        assert [(row.feature_id, row.write) for row in rows] == [(features["venue-booking"].id, True)]
        assert role.feature_ids == [features["venue-booking"].id]

    async def test_invalid_reference_leaves_grants_untouched(self, db, features):
        articles_id = features["articles"].id
        role = await create_role(db, "EDITOR", [GrantSpec(articles_id, read=True)])
        role_id = role.id

        with pytest.raises(InvalidReferenceError):
            await replace_role_grants(db, role_id, [GrantSpec("missing", read=True)])

        rows = await get_role_grants(db, role_id)
        assert [row.feature_id for row in rows] == [articles_id]

    async def test_unknown_role(self, db, features):
        with pytest.raises(NotFoundError):
            await replace_role_grants(db, "missing", [])

    async def test_remove_single_feature(self, db, features):
        role = await create_role(db, "EDITOR", [
            GrantSpec(features["articles"].id, read=True),
            GrantSpec(features["publishing"].id, admin=True),
        ])

        role = await remove_feature_from_role(db, role.id, features["articles"].id)

        assert role.feature_ids == [features["publishing"].id]
        with pytest.raises(NotFoundError):
            await remove_feature_from_role(db, role.id, features["articles"].id)


class TestRoleLifecycle:
    async def test_rename_conflict(self, db):
        await create_role(db, "EDITOR", [])
        role = await create_role(db, "WRITER", [])

        with pytest.raises(ConflictError):
            await update_role(db, role.id, name="EDITOR")

    async def test_list_filters_by_name(self, db):
        await create_role(db, "EDITOR", [])
        await create_role(db, "PUBLISHER", [])

        roles, total = await list_roles(db, name="edit")

        assert total == 1
        assert roles[0].name == "EDITOR"

    async def test_delete_blocked_by_active_holder(self, db, features):
        role = await create_role(db, "EDITOR", [GrantSpec(features["articles"].id, read=True)])
        await make_user(db, "ed@example.com", (role.id,))

        with pytest.raises(ConflictError):
            await delete_role(db, role.id)

    async def test_delete_allowed_when_holders_inactive(self, db, features):
        role = await create_role(db, "EDITOR", [GrantSpec(features["articles"].id, read=True)])
        user = await make_user(db, "ed@example.com", (role.id,), is_active=False)

        await delete_role(db, role.id)

        with pytest.raises(NotFoundError):
            await get_role(db, role.id)
        assert await get_user_role_ids(db, user.id) == []
        assert await db.scalar(select(func.count()).select_from(PermissionGrant)) == 0

    async def test_delete_refuses_enterprise_admin_role(self, db, features, notifier):
        enterprise = await create_enterprise(db, "Acme", UserSeed(email="owner@acme.test"), notifier)
        admin_role_id = enterprise.admin_role_id
        await set_enterprise_active(db, enterprise.id, False)

        with pytest.raises(ConflictError):
            await delete_role(db, admin_role_id)

        assert (await get_role(db, admin_role_id)).id == admin_role_id

    async def test_database_keeps_admin_role_referenced(self, db, features, notifier):
        enterprise = await create_enterprise(db, "Acme", UserSeed(email="owner@acme.test"), notifier)
        admin_role_id = enterprise.admin_role_id

        with pytest.raises(IntegrityError):
            await db.execute(delete(Role).where(Role.id == admin_role_id))
        await db.rollback()

        assert (await get_role(db, admin_role_id)).id == admin_role_id


class TestMemberships:
    async def test_member_role_created_lazily_once(self, db):
        first = await get_or_create_member_role(db)
        second = await get_or_create_member_role(db)

        assert first.id == second.id
        assert first.name == "MEMBER"
        assert first.feature_ids == []

    async def test_assign_is_idempotent(self, db):
        role = await create_role(db, "EDITOR", [])
        user = await make_user(db, "ed@example.com")

        await assign_role(db, user.id, role.id)
        await assign_role(db, user.id, role.id)

        assert await get_user_role_ids(db, user.id) == [role.id]

    async def test_assign_unknown_role(self, db):
        user = await make_user(db, "ed@example.com")

        with pytest.raises(NotFoundError):
            await assign_role(db, user.id, "missing")

    async def test_revoke(self, db):
        role = await create_role(db, "EDITOR", [])
        user = await make_user(db, "ed@example.com", (role.id,))

        await revoke_role(db, user.id, role.id)

        assert await get_user_role_ids(db, user.id) == []
        with pytest.raises(NotFoundError):
            await revoke_role(db, user.id, role.id)
