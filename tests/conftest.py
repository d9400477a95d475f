"""Test config and shared fixtures."""
import pytest
from typing import AsyncGenerator, List
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from main import app
import apps.models  # noqa: F401
from portal.dependencies import get_db, get_notification_queue
from portal.security import CurrentUser, get_current_user, get_password_hash
from apps.identity.models import User, UserRole


# In-memory SQLite for tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_PASSWORD = "secret-pass-123"


class FakeNotificationQueue:
    """Records enqueued notification IDs instead of talking to Redis."""

    def __init__(self):
        self.enqueued: List[int] = []

    async def enqueue(self, notification_id: int, template: str) -> bool:
        self.enqueued.append(notification_id)
        return True

    async def enqueue_many(self, notifications) -> int:
        for notification in notifications:
            await self.enqueue(notification.id, notification.template)
        return len(notifications)


def current_user_for(user: User) -> CurrentUser:
    return CurrentUser(
        id=user.id,
        email=user.email,
        role=UserRole(user.role).value,
        first_name=user.first_name,
        last_name=user.last_name,
    )


@pytest.fixture(scope="function")
async def async_session() -> AsyncGenerator[AsyncSession, None]:
    """Create async test database session."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    async_session_maker = sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def notification_queue() -> FakeNotificationQueue:
    return FakeNotificationQueue()


@pytest.fixture
async def client(
    async_session: AsyncSession,
    notification_queue: FakeNotificationQueue,
) -> AsyncGenerator[AsyncClient, None]:
    """Create test client (no user logged in until as_user is called)."""
    async def _get_db():
        yield async_session

    async def _get_notification_queue():
        return notification_queue

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_notification_queue] = _get_notification_queue

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def as_user():
    """Switch the logged-in user for subsequent requests: as_user(patient)."""
    def _login(user: User):
        current = current_user_for(user)
        app.dependency_overrides[get_current_user] = lambda: current
        return current
    return _login


async def _make_user(session: AsyncSession, **fields) -> User:
    user = User(hashed_password=get_password_hash(TEST_PASSWORD), is_email_verified=True, **fields)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


@pytest.fixture
async def patient(async_session: AsyncSession) -> User:
    return await _make_user(
        async_session, email="patient@example.com", role=UserRole.PATIENT, first_name="Pat", last_name="Ient"
    )


@pytest.fixture
async def other_patient(async_session: AsyncSession) -> User:
    return await _make_user(
        async_session, email="other.patient@example.com", role=UserRole.PATIENT, first_name="Olive", last_name="Other"
    )


@pytest.fixture
async def provider(async_session: AsyncSession) -> User:
    return await _make_user(
        async_session,
        email="doctor@example.com",
        role=UserRole.PROVIDER,
        first_name="Gregory",
        last_name="House",
        title="Dr.",
        specialty="Cardiology",
        practice_name="Princeton Plainsboro",
        is_verified=True,
    )


@pytest.fixture
async def other_provider(async_session: AsyncSession) -> User:
    return await _make_user(
        async_session,
        email="second.doctor@example.com",
        role=UserRole.PROVIDER,
        first_name="Lisa",
        last_name="Cuddy",
        title="Dr.",
        specialty="Endocrinology",
        practice_name="Princeton Plainsboro",
    )


@pytest.fixture
async def admin(async_session: AsyncSession) -> User:
    return await _make_user(
        async_session, email="admin@example.com", role=UserRole.ADMIN, first_name="Ada", last_name="Admin"
    )
