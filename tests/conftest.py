from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.core.auth.jwt import create_access_token
from src.core.auth.models import User, UserRole
from src.core.database.base import Base
from src.core.database import get_db
from src.main import app
from src.modules.bins.models import Bin

# Test database URL (in-memory SQLite for speed, or use test PostgreSQL)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
test_async_session = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# Active bins every test starts with; "OLD-01" exists but is inactive
ACTIVE_BINS = ["A-01", "A-02", "B-01"]
INACTIVE_BINS = ["OLD-01"]


@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test and drop after."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get test database session."""
    async with test_async_session() as session:
        yield session


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Get test HTTP client with overridden database dependency."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


async def _create_user(db_session: AsyncSession, email: str, full_name: str, role: UserRole) -> User:
    user = User(email=email, full_name=full_name, role=role.value, is_active=True)
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "admin@test.com", "Admin", UserRole.ADMIN)


@pytest.fixture
async def regular_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "receiver@test.com", "Dock Receiver", UserRole.USER)


@pytest.fixture
def admin_headers(admin_user: User) -> dict[str, str]:
    token = create_access_token(admin_user.id, admin_user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_headers(regular_user: User) -> dict[str, str]:
    token = create_access_token(regular_user.id, regular_user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def bins(db_session: AsyncSession) -> list[str]:
    """Seed the bin registry."""
    db_session.add_all(Bin(name=name, is_active=True) for name in ACTIVE_BINS)
    db_session.add_all(Bin(name=name, is_active=False) for name in INACTIVE_BINS)
    await db_session.commit()
    return list(ACTIVE_BINS)
