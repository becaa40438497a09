"""
Test configuration and fixtures for the Leads Service API.

The database URL and platform secrets are set before the app is imported so
that settings, the engine and the session factory all point at a throwaway
database.
"""

import os
import tempfile

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient

load_dotenv()

test_db_url = os.getenv("TEST_DATABASE_URL")
if test_db_url:
    if "postgresql://" in test_db_url and "asyncpg" not in test_db_url:
        test_db_url = test_db_url.replace("postgresql://", "postgresql+asyncpg://")
    os.environ["DATABASE_URL"] = test_db_url
else:
    test_db_path = tempfile.mktemp(suffix=".db")
    os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{test_db_path}"

os.environ["ENVIRONMENT"] = "local"
os.environ["META_VERIFY_TOKEN"] = "test-verify-token"
os.environ["META_APP_SECRET"] = "meta-test-secret"
os.environ["META_ACCESS_TOKEN"] = "meta-test-access-token"
os.environ["SNAPCHAT_CLIENT_SECRET"] = "snap-test-secret"
os.environ["TIKTOK_APP_SECRET"] = "tiktok-test-secret"

from app.features.leads.models.lead_model import Lead  # noqa: E402,F401
from app.features.webhooks.models.webhook_log import WebhookLog  # noqa: E402,F401
from app.platform.config import settings  # noqa: E402
from app.platform.db.base import Base  # noqa: E402
from app.platform.db.session import SessionLocal, engine  # noqa: E402


@pytest.fixture(scope="session")
def test_app():
    """FastAPI application under test."""
    from app.main import app

    return app


@pytest_asyncio.fixture(autouse=True)
async def clean_database():
    """Every test starts from empty tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


@pytest_asyncio.fixture
async def db():
    async with SessionLocal() as session:
        yield session


@pytest_asyncio.fixture
async def client(test_app):
    """
    Async client over ASGI. Background tasks scheduled by a request have
    finished by the time the response is returned.
    """
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://testserver") as ac:
        yield ac


@pytest.fixture
def production_mode():
    """Turn on signature verification for one test."""
    previous = settings.ENVIRONMENT
    settings.ENVIRONMENT = "production"
    yield settings
    settings.ENVIRONMENT = previous
