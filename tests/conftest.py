import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("LOG_FORMAT", "dev")

from typing import AsyncGenerator, Awaitable, Callable, Dict

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from app.core.enums import PrincipalRole
from app.core.models import Profile
from app.core.schemas import PrincipalRecord
from app.db.repository import SqlAlchemyStore
from app.db.session import Base, build_engine, build_sessionmaker, get_db
from app.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture()
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database per test."""
    engine = build_engine(TEST_DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
async def db_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for a test and override FastAPI dependency."""
    async_session = build_sessionmaker(engine)

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.clear()


@pytest.fixture()
def store(db_session: AsyncSession) -> SqlAlchemyStore:
    return SqlAlchemyStore(db_session)


@pytest.fixture()
def make_principal(db_session: AsyncSession) -> Callable[..., Awaitable[PrincipalRecord]]:
    """Insert a profile and return it as a PrincipalRecord."""

    async def _make(name: str = "Student", role: str = PrincipalRole.STUDENT.value) -> PrincipalRecord:
        profile = Profile(name=name, role=role)
        db_session.add(profile)
        await db_session.commit()
        await db_session.refresh(profile)
        return PrincipalRecord.model_validate(profile)

    return _make


@pytest.fixture()
def auth_headers() -> Callable[[PrincipalRecord], Dict[str, str]]:
    """Bearer header carrying a token as the identity provider would mint it."""

    def _headers(principal: PrincipalRecord) -> Dict[str, str]:
        token = jwt.encode({"sub": str(principal.id)}, os.environ["JWT_SECRET_KEY"], algorithm="HS256")
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
