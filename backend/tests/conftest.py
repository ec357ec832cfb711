import os
import tempfile

_db_dir = tempfile.mkdtemp(prefix="martin-tests-")
os.environ["OPENAI_API_KEY"] = "test-key"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_db_dir}/test.db"
os.environ["ENVIRONMENT"] = "test"
os.environ["PINECONE_API_KEY"] = ""
os.environ["GEMINI_API_KEY"] = ""

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from app.core.database import engine, Base, SessionLocal
from app.main import app


@pytest_asyncio.fixture(autouse=True)
async def database():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    # pooled aiosqlite connections are bound to this test's event loop
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session():
    async with SessionLocal() as session:
        yield session


@pytest_asyncio.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def register(client, email="martin@example.com", password="supersecret", name="Martin"):
    response = await client.post("/api/v1/auth/register", json={"email": email, "password": password, "name": name})
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.fixture
def register_user(client):
    async def _register(email="martin@example.com", password="supersecret", name="Martin"):
        return await register(client, email, password, name)
    return _register


@pytest_asyncio.fixture
async def auth(client):
    data = await register(client)
    return {
        "user": data["user"],
        "refresh_token": data["refreshToken"],
        "headers": {"Authorization": f"Bearer {data['token']}"},
    }


@pytest.fixture
def google_client(monkeypatch):
    from unittest.mock import AsyncMock
    from app.services.google_accounts import GoogleAccountService

    mock_client = AsyncMock()
    monkeypatch.setattr(GoogleAccountService, "get_client", AsyncMock(return_value=mock_client))
    return mock_client
