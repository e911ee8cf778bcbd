"""Shared fixtures for Intermax tests."""

from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from intermax.api.app import _db, app, limiter
from intermax.auth_providers.user_account import hash_password, issue_session_token, session_from_user
from intermax.storage.database import Database
from intermax.storage.seed import seed_system_roles


@pytest_asyncio.fixture
async def db(tmp_path):
    """Fresh seeded database for each test."""
    database = Database(tmp_path / "test.db")
    await database.connect()
    await seed_system_roles(database)
    yield database
    await database.close()


@pytest_asyncio.fixture
async def client(tmp_path):
    """HTTP test client wired to a fresh seeded database."""
    # Swap the global DB for tests
    _db.db_path = tmp_path / "api_test.db"
    await _db.connect()
    await seed_system_roles(_db)

    # Disable rate limiter for tests
    limiter.enabled = False

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await _db.close()


@pytest.fixture
def make_user():
    """Factory creating users directly in a database.

    Passwords are only hashed when given, keeping most tests fast.
    """

    async def _make(database, email, role=None, password=None, name=None):
        role_id = None
        if role is not None:
            found = await database.get_role_by_name(role)
            assert found is not None, f"unknown role {role}"
            role_id = found.id
        return await database.insert_user(
            email,
            hash_password(password) if password else None,
            name=name or email.split("@")[0].title(),
            role_id=role_id,
        )

    return _make


@pytest.fixture
def auth_headers():
    """Bearer headers carrying a fresh session for *user*."""

    def _headers(user):
        token = issue_session_token(session_from_user(user))
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest_asyncio.fixture
async def api_db(client):
    """The database behind ``client``."""
    return _db
