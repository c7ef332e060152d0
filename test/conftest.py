"""
Pytest configuration and fixtures.

Every test gets its own SQLite file under ``tmp_path``; API tests drive the
FastAPI app through httpx's ASGI transport.
"""
from __future__ import annotations

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from contactbook.config import Settings
from contactbook.contacts.seed import seed_contacts
from contactbook.contacts.service import ContactService
from contactbook.main import create_app
from contactbook.shared.database import Database, StoreConnection


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Create test settings."""
    return Settings(
        app_env="dev",
        debug=True,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'contacts.db'}",
        database_busy_timeout=5.0,
        upload_dir=str(tmp_path / "uploads"),
        seed_data=True,
    )


@pytest_asyncio.fixture
async def database(test_settings: Settings) -> AsyncGenerator[Database, None]:
    """Create a database with the schema in place."""
    db = Database(test_settings.database_url, busy_timeout=test_settings.database_busy_timeout, echo=False)
    await db.create_schema()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def seeded_database(database: Database) -> Database:
    """Database holding the three seed contacts."""
    await seed_contacts(database)
    return database


@pytest_asyncio.fixture
async def connection(database: Database) -> AsyncGenerator[StoreConnection, None]:
    """Create a store connection."""
    async with database.connect() as conn:
        yield conn


@pytest.fixture
def service(connection: StoreConnection) -> ContactService:
    """Create contact service on the test connection."""
    return ContactService(connection=connection)


@pytest_asyncio.fixture
async def seeded_service(seeded_database: Database) -> AsyncGenerator[ContactService, None]:
    """Contact service on a connection opened after seeding."""
    async with seeded_database.connect() as conn:
        yield ContactService(connection=conn)


@pytest.fixture
def app(test_settings: Settings, seeded_database: Database) -> FastAPI:
    """Create the application bound to the seeded test database."""
    return create_app(settings=test_settings, database=seeded_database)


@pytest_asyncio.fixture
async def async_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API tests."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
