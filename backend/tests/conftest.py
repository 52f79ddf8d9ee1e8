"""Pytest configuration and shared fixtures."""

from datetime import date
from typing import AsyncGenerator, Callable
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.database import Base, get_db
from app.core.security import create_access_token
from app.dependencies import get_current_user
from app.main import app
from app.models import Building, BuildingRole, Role, Tenancy, Unit, User

# Test database URL: use StaticPool so in-memory SQLite shares one connection
# (NullPool creates a new connection per call, losing all tables each time)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign keys for SQLite."""
    if hasattr(dbapi_conn, "execute"):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine with all tables."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest.fixture(scope="function")
def override_get_db(db_session: AsyncSession):
    """Override the get_db dependency."""

    async def _override_get_db():
        yield db_session

    return _override_get_db


@pytest_asyncio.fixture(scope="function")
async def async_client(override_get_db) -> AsyncGenerator[AsyncClient, None]:
    """Async test client bound to the test database (no authentication)."""
    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def login_as(async_client) -> Callable[[User], None]:
    """Make subsequent ``async_client`` requests run as the given user."""

    def _login(user: User) -> None:
        async def _current_user():
            return user

        app.dependency_overrides[get_current_user] = _current_user

    return _login


# ---------------------------------------------------------------------------
# Domain fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Factory: create and commit a user."""

    async def _make_user(email: str = None, **kwargs) -> User:
        user = User(
            id=uuid4(),
            email=email or f"{uuid4().hex[:12]}@example.com",
            is_active=True,
            **kwargs,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make_user


@pytest_asyncio.fixture
async def building(db_session: AsyncSession) -> Building:
    """Create a test building."""
    b = Building(id=uuid4(), name="Maple Court", address="12 Maple St", city="Springfield")
    db_session.add(b)
    await db_session.commit()
    await db_session.refresh(b)
    return b


@pytest_asyncio.fixture
async def other_building(db_session: AsyncSession) -> Building:
    """Create a second building for cross-building isolation tests."""
    b = Building(id=uuid4(), name="Oak Tower", address="1 Oak Ave", city="Springfield")
    db_session.add(b)
    await db_session.commit()
    await db_session.refresh(b)
    return b


@pytest.fixture
def give_role(db_session: AsyncSession):
    """Factory: attach a building role to a user."""

    async def _give_role(user: User, building: Building, role: Role) -> BuildingRole:
        row = BuildingRole(id=uuid4(), user_id=user.id, building_id=building.id, role=role)
        db_session.add(row)
        await db_session.commit()
        return row

    return _give_role


@pytest_asyncio.fixture
async def building_admin(make_user, give_role, building) -> User:
    """A user holding BUILDING_ADMIN in ``building``."""
    user = await make_user("manager@example.com", first_name="Morgan", last_name="Reyes")
    await give_role(user, building, Role.BUILDING_ADMIN)
    return user


@pytest_asyncio.fixture
async def staff_user(make_user) -> User:
    """A user with no roles or grants yet."""
    return await make_user("staff@example.com", first_name="Sam", last_name="Lee")


@pytest_asyncio.fixture
async def super_user(make_user) -> User:
    """A platform-wide super-user."""
    return await make_user("root@example.com", is_super_user=True)


@pytest_asyncio.fixture
async def tenant_user(db_session: AsyncSession, make_user, give_role, building) -> User:
    """A user with TENANT role and a current tenancy in ``building``."""
    user = await make_user("tenant@example.com", first_name="Taylor")
    await give_role(user, building, Role.TENANT)
    unit = Unit(id=uuid4(), building_id=building.id, unit_number="4B", floor=4)
    db_session.add(unit)
    db_session.add(
        Tenancy(id=uuid4(), unit_id=unit.id, user_id=user.id, start_date=date(2024, 1, 1))
    )
    await db_session.commit()
    return user


@pytest.fixture
def auth_headers(staff_user: User) -> dict:
    """Bearer headers carrying a built-in access token for ``staff_user``."""
    access_token = create_access_token(data={"sub": str(staff_user.id), "email": staff_user.email})
    return {"Authorization": f"Bearer {access_token}"}
