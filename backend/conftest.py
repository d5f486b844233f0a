import os
import sys
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parent
sys.path.append(str(ROOT))

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret-key"

from core.rate_limit import _RATE_LIMIT_STATE  # noqa: E402
from db.database import build_engine, build_session_maker, create_db_and_tables  # noqa: E402
from db.users import User  # noqa: E402
from services.ledger import InventoryLedger  # noqa: E402
from services.reports import InventoryReports  # noqa: E402


@pytest_asyncio.fixture()
async def engine():
    engine = build_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await create_db_and_tables(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture()
def session_maker(engine):
    return build_session_maker(engine)


@pytest.fixture()
def ledger(session_maker):
    return InventoryLedger(session_maker)


@pytest.fixture()
def reports(session_maker):
    return InventoryReports(session_maker)


async def _create_user(session_maker, email: str) -> User:
    async with session_maker() as session:
        user = User(
            email=email,
            hashed_password="not-a-real-hash",
            is_active=True,
            is_superuser=False,
            is_verified=True,
        )
        session.add(user)
        await session.commit()
        return user


@pytest_asyncio.fixture()
async def owner(session_maker):
    return await _create_user(session_maker, "owner@example.com")


@pytest_asyncio.fixture()
async def other_owner(session_maker):
    return await _create_user(session_maker, "someone-else@example.com")


@pytest_asyncio.fixture()
async def api(session_maker, ledger, reports):
    # lifespan does not run under ASGITransport
    from main import app

    _RATE_LIMIT_STATE.clear()
    app.state.session_maker = session_maker
    app.state.ledger = ledger
    app.state.reports = reports

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
    _RATE_LIMIT_STATE.clear()
