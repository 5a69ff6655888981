"""
Test configuration and fixtures.

Provides:
- An in-memory MongoDB (mongomock) per test
- The app built against it with explicit settings
- HTTPX AsyncClient and helpers for registered users
"""
from typing import AsyncGenerator

import mongomock
import pytest
from httpx import ASGITransport, AsyncClient

from config import Settings
from database import create_document, ensure_indexes
from main import create_app
from schemas import Temple

TEST_SECRET = "test-jwt-secret"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        DATABASE_URL="mongodb://localhost:27017",
        DATABASE_NAME="pilgrimage_test",
        JWT_SECRET=TEST_SECRET,
    )


@pytest.fixture
def db(settings: Settings):
    database = mongomock.MongoClient()[settings.DATABASE_NAME]
    ensure_indexes(database)
    return database


@pytest.fixture
def app(settings: Settings, db):
    return create_app(settings, db)


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.fixture
def temple(db) -> dict:
    return create_document(db, Temple.collection_name(), Temple(name="Somnath Temple", location="Prabhas Patan"))


@pytest.fixture
def register_user(client: AsyncClient):
    """Register a user through the API and return its session token."""
    async def _register(name: str, email: str, password: str = "pw1") -> str:
        response = await client.post(
            "/api/auth/register",
            json={"name": name, "email": email, "password": password},
        )
        assert response.status_code == 201, response.text
        return response.json()["token"]
    return _register


@pytest.fixture
async def alice_token(register_user) -> str:
    return await register_user("Alice", "a@x.com")


@pytest.fixture
async def bob_token(register_user) -> str:
    return await register_user("Bob", "b@x.com")
