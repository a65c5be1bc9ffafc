"""
Pytest configuration and shared fixtures.

Each test gets its own SQLite file so sessions opened by the app and by the
test see each other's commits without sharing a connection.
"""
import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["RATE_LIMIT_ENABLED"] = "0"
os.environ["JWT_SECRET_KEY"] = "test-secret"

from collections.abc import AsyncIterator
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.database.engine import enable_sqlite_foreign_keys, get_db, init_db
from app.features.catalog.models import Feature
from app.features.catalog.service import ensure_feature
from app.features.notifications.notifier import NotificationKind, get_notifier
from app.features.permissions.grants import assign_role, create_role
from app.features.permissions.operations import PLATFORM_FEATURES
from app.features.permissions.types import GrantSpec
from app.features.users.models import User
from app.features.users.password import hash_password
from app.features.users.service import issue_token
from app.main import app


PASSWORD = "Secret123!"
DOMAIN_FEATURES = ["vendor-management", "venue-booking", "articles", "publishing"]


class RecordingNotifier:
    """Keeps every notification instead of delivering it."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, NotificationKind, dict[str, Any]]] = []

    async def notify(self, email: str, kind: NotificationKind, payload: dict[str, Any]) -> None:
        self.sent.append((email, kind, payload))

    def last_token(self, email: str) -> str:
        for sent_to, _kind, payload in reversed(self.sent):
            if sent_to == email:
                return payload["reset_url"].split("token=", 1)[1]
        raise AssertionError(f"No notification sent to {email}")


class FailingNotifier:
    async def notify(self, email: str, kind: NotificationKind, payload: dict[str, Any]) -> None:
        raise RuntimeError("mail transport unavailable")


@pytest.fixture
async def session_factory(tmp_path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    enable_sqlite_foreign_keys(engine)
    await init_db(engine)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    await engine.dispose()


@pytest.fixture
async def db(session_factory) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
async def features(db) -> dict[str, Feature]:
    """Platform and domain features keyed by name."""
    catalog = {}
    for name in [*PLATFORM_FEATURES, *DOMAIN_FEATURES]:
        catalog[name] = await ensure_feature(db, name)
    return catalog


def full(feature: Feature) -> GrantSpec:
    return GrantSpec(feature_id=feature.id, read=True, write=True, admin=True)


async def make_user(
    db: AsyncSession,
    email: str,
    role_ids: tuple[str, ...] = (),
    **fields: Any,
) -> User:
    fields.setdefault("password_hash", hash_password(PASSWORD))
    user = User(email=email, **fields)
    db.add(user)
    await db.flush()
    for role_id in role_ids:
        await assign_role(db, user.id, role_id, commit=False)
    await db.commit()
    await db.refresh(user)
    return user


@pytest.fixture
async def super_admin(db, features) -> User:
    role = await create_role(db, "SUPER_ADMIN", [full(feature) for feature in features.values()])
    return await make_user(db, "root@example.com", (role.id,), name="Root")


async def bearer(db: AsyncSession, user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {await issue_token(db, user)}"}


@pytest.fixture
async def client(session_factory, notifier) -> AsyncIterator[AsyncClient]:
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client
    app.dependency_overrides.clear()
