"""Test fixtures: in-memory SQLite database, temp storage root and FastAPI test client."""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from folderhub.config import settings
from folderhub.database import get_db
from folderhub.main import create_app
from folderhub.models.base import Base
from folderhub.models.user import Role, User
from folderhub.services import get_storage, get_user_service, init_services, shutdown_services
from folderhub.utils.security import create_access_token, hash_password


@pytest_asyncio.fixture
async def db_session():
    """Provide an async in-memory SQLite session for tests."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture
async def services(db_session: AsyncSession, tmp_path):
    """Wire the service singletons against a temp storage root."""
    await init_services(db_session, storage_dir=str(tmp_path / "storage"))
    yield
    await shutdown_services()


@pytest.fixture
def storage(services):
    return get_storage()


@pytest.fixture
def app(db_session: AsyncSession, services):
    app = create_app()

    async def _override_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_db
    return app


@pytest_asyncio.fixture
async def client(app):
    """Provide an async test client with overridden DB dependency."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest_asyncio.fixture
async def users(db_session: AsyncSession, services) -> dict[str, User]:
    """The seeded admin plus one manager and one basic user."""
    admin = await get_user_service().get_by_username(db_session, settings.admin_username)
    manager = User(username="maria", password_hash=hash_password("maria-pw"), role=Role.MANAGER.value)
    basic = User(username="bob", password_hash=hash_password("bob-pw"), role=Role.BASIC.value)
    db_session.add_all([manager, basic])
    await db_session.commit()
    return {"admin": admin, "manager": manager, "basic": basic}


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.username, user.role)}"}


@pytest.fixture
def admin_headers(users):
    return auth_headers(users["admin"])


@pytest.fixture
def manager_headers(users):
    return auth_headers(users["manager"])


@pytest.fixture
def basic_headers(users):
    return auth_headers(users["basic"])


@pytest.fixture
def headers_for():
    """Build bearer headers for any user created inside a test."""
    return auth_headers
