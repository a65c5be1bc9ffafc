"""End-to-end tests through the HTTP API."""

import pytest

from app.core.exceptions import ForbiddenError

from conftest import PASSWORD, bearer


async def login(client, email: str, password: str = PASSWORD) -> dict[str, str]:
    response = await client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


class TestPublic:
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.json() == {"status": "healthy"}

    async def test_validation_errors_are_flattened(self, client):
        response = await client.post("/auth/login", json={"email": "not-an-email"})

        assert response.status_code == 400
        assert set(response.json()) == {"email", "password"}


class TestAuthFlow:
    async def test_signup_login_me(self, client, features):
        response = await client.post(
            "/auth/signup", json={"email": "ann@example.com", "password": PASSWORD, "name": "Ann"}
        )
        assert response.status_code == 201
        assert response.json()["is_active"] is True

        headers = await login(client, "ann@example.com")
        me = await client.get("/auth/me", headers=headers)

        assert me.status_code == 200
        assert me.json()["email"] == "ann@example.com"

    async def test_bad_credentials(self, client):
        response = await client.post("/auth/login", json={"email": "x@example.com", "password": "nope"})

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json() == {"detail": "Invalid email or password"}

    async def test_missing_token(self, client):
        response = await client.get("/roles")

        assert response.status_code == 401

    async def test_member_is_forbidden_with_generic_message(self, client, features):
        await client.post("/auth/signup", json={"email": "ann@example.com", "password": PASSWORD})
        headers = await login(client, "ann@example.com")

        response = await client.get("/roles", headers=headers)

        assert response.status_code == 403
        assert response.json() == {"detail": ForbiddenError.default_detail}

    async def test_change_password(self, client, features):
        await client.post("/auth/signup", json={"email": "ann@example.com", "password": PASSWORD})
        headers = await login(client, "ann@example.com")

        mismatch = await client.put(
            "/users/change-password",
            headers=headers,
            json={"current_password": PASSWORD, "new_password": "Changed123!", "confirm_password": "Other123!"},
        )
        assert mismatch.status_code == 400

        wrong = await client.put(
            "/users/change-password",
            headers=headers,
            json={"current_password": "nope", "new_password": "Changed123!", "confirm_password": "Changed123!"},
        )
        assert wrong.status_code == 400
        assert wrong.json() == {"detail": "Current password is incorrect"}

        changed = await client.put(
            "/users/change-password",
            headers=headers,
            json={"current_password": PASSWORD, "new_password": "Changed123!", "confirm_password": "Changed123!"},
        )
        assert changed.status_code == 200
        await login(client, "ann@example.com", "Changed123!")

    async def test_change_password_requires_token(self, client):
        response = await client.put(
            "/users/change-password",
            json={"current_password": PASSWORD, "new_password": "Changed123!", "confirm_password": "Changed123!"},
        )

        assert response.status_code == 401

    async def test_forgot_password_never_reveals_accounts(self, client, notifier):
        response = await client.post("/auth/forgot-password", json={"email": "ghost@example.com"})

        assert response.status_code == 200
        assert notifier.sent == []


class TestRoleManagement:
    async def test_role_lifecycle(self, client, db, features, super_admin):
        headers = await bearer(db, super_admin)

        created = await client.post(
            "/roles",
            headers=headers,
            json={
                "name": "EDITOR",
                "grants": [
                    {"feature_id": features["articles"].id, "read": True, "write": True},
                    {"feature_id": features["publishing"].id},
                ],
            },
        )
        assert created.status_code == 201, created.text
        role = created.json()
        assert role["feature_ids"] == [features["articles"].id]

        replaced = await client.put(
            f"/roles/{role['id']}/grants",
            headers=headers,
            json={"grants": [{"feature_id": features["publishing"].id, "admin": True}]},
        )
        assert replaced.status_code == 200
        assert [grant["feature_id"] for grant in replaced.json()["grants"]] == [features["publishing"].id]

        listed = await client.get("/roles", headers=headers, params={"name": "edit"})
        assert listed.json()["total"] == 1

        deleted = await client.delete(f"/roles/{role['id']}", headers=headers)
        assert deleted.status_code == 204

    async def test_unknown_feature_is_422(self, client, db, features, super_admin):
        headers = await bearer(db, super_admin)

        response = await client.post(
            "/roles", headers=headers, json={"name": "EDITOR", "grants": [{"feature_id": "missing", "read": True}]}
        )

        assert response.status_code == 422

    async def test_duplicate_role_is_409(self, client, db, features, super_admin):
        headers = await bearer(db, super_admin)
        await client.post("/roles", headers=headers, json={"name": "EDITOR"})

        response = await client.post("/roles", headers=headers, json={"name": "EDITOR"})

        assert response.status_code == 409

    async def test_profile_me(self, client, db, features, super_admin):
        headers = await bearer(db, super_admin)

        response = await client.get("/roles/profile/me", headers=headers)

        body = response.json()
        assert body["user_id"] == super_admin.id
        assert {item["feature"] for item in body["profile"]} == set(features)

    async def test_feature_catalog(self, client, db, features, super_admin):
        headers = await bearer(db, super_admin)

        created = await client.post("/features", headers=headers, json={"name": "Event Management"})
        assert created.status_code == 201
        assert created.json()["catalog_key"] == "event_management"

        duplicate = await client.post("/features", headers=headers, json={"name": "event management"})
        assert duplicate.status_code == 409

        referenced = await client.delete(f"/features/{features['articles'].id}", headers=headers)
        assert referenced.status_code == 409


class TestEnterpriseFlow:
    async def test_self_service_to_sub_user(self, client, features, notifier):
        created = await client.post(
            "/enterprises", json={"name": "Acme", "email": "owner@acme.test", "admin_name": "Owner"}
        )
        assert created.status_code == 201, created.text
        enterprise = created.json()

        reset = await client.post(
            "/auth/reset-password",
            json={"token": notifier.last_token("owner@acme.test"), "password": PASSWORD},
        )
        assert reset.status_code == 200
        assert reset.json()["is_active"] is True

        headers = await login(client, "owner@acme.test")

        delegable = await client.get("/enterprises/features", headers=headers)
        assert [item["feature"] for item in delegable.json()["profile"]] == ["enterprise-user-management"]

        added = await client.post(
            "/enterprises/users",
            headers=headers,
            json={
                "email": "staff@acme.test",
                "grants": [{"feature_id": features["enterprise-user-management"].id, "read": True}],
            },
        )
        assert added.status_code == 201, added.text
        assert added.json()["is_active"] is False

        escalated = await client.post(
            "/enterprises/users",
            headers=headers,
            json={"email": "boss@acme.test", "grants": [{"feature_id": features["role-management"].id, "read": True}]},
        )
        assert escalated.status_code == 403

        users = await client.get("/enterprises/users", headers=headers)
        assert users.json()["total"] == 2

        # Deactivating the admin takes the enterprise down; the admin's token stops working for /auth/me
        deactivated = await client.patch(
            f"/enterprises/users/{enterprise_admin_id(users.json())}/status",
            headers=headers,
            json={"is_active": False},
        )
        assert deactivated.status_code == 200
        assert (await client.get("/auth/me", headers=headers)).status_code == 401

    async def test_anonymous_caller_cannot_choose_grants(self, client, features):
        response = await client.post(
            "/enterprises",
            json={
                "name": "Acme",
                "email": "owner@acme.test",
                "grants": [{"feature_id": features["role-management"].id, "admin": True}],
            },
        )

        assert response.status_code == 401

    async def test_platform_admin_manages_enterprises(self, client, db, features, super_admin):
        headers = await bearer(db, super_admin)

        created = await client.post(
            "/enterprises",
            headers=headers,
            json={
                "name": "Acme",
                "email": "owner@acme.test",
                "grants": [{"feature_id": features["venue-booking"].id, "read": True}],
            },
        )
        assert created.status_code == 201
        enterprise_id = created.json()["id"]

        renamed = await client.patch(f"/enterprises/{enterprise_id}", headers=headers, json={"name": "Acme Events"})
        assert renamed.json()["name"] == "Acme Events"

        status = await client.patch(
            f"/enterprises/{enterprise_id}/status", headers=headers, json={"is_active": False}
        )
        assert status.json()["is_active"] is False

        listed = await client.get("/enterprises", headers=headers, params={"search": "acme"})
        assert listed.json()["total"] == 1

        users = await client.get("/enterprises/users", headers=headers, params={"enterprise_id": enterprise_id})
        assert [user["is_active"] for user in users.json()["items"]] == [False]

    @pytest.mark.parametrize("blocked", [True, False])
    async def test_block_user(self, client, db, features, super_admin, blocked):
        headers = await bearer(db, super_admin)
        signed_up = await client.post("/auth/signup", json={"email": "ann@example.com", "password": PASSWORD})

        response = await client.patch(
            f"/users/{signed_up.json()['id']}/block", headers=headers, json={"blocked": blocked}
        )

        assert response.json()["is_blocked"] is blocked
        login_response = await client.post("/auth/login", json={"email": "ann@example.com", "password": PASSWORD})
        assert login_response.status_code == (401 if blocked else 200)


def enterprise_admin_id(users_page: dict) -> str:
    [admin] = [user for user in users_page["items"] if user["is_tenant_admin"]]
    return admin["id"]
