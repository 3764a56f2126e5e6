"""
Shared fixtures

The API runs against a throwaway SQLite database and with Redis caching,
email and push credentials switched off. Settings are read at import time,
so the environment is prepared before anything from farmkonnect is imported.
"""

import asyncio
import os
import tempfile
import uuid

_TMP_DIR = tempfile.mkdtemp(prefix="farmkonnect-tests-")
os.environ["DATABASE_URL_OVERRIDE"] = f"sqlite+aiosqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["CACHE_ENABLED"] = "false"
os.environ["SENDGRID_API_KEY"] = ""
os.environ["VAPID_PRIVATE_KEY"] = ""
os.environ["LOG_DIR"] = os.path.join(_TMP_DIR, "logs")

import pytest

from farmkonnect.api.core.database import engine, Base, AsyncSessionLocal
from farmkonnect.api.core.security import create_access_token, get_password_hash
from farmkonnect.api.models import User


async def _reset_schema():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture(autouse=True)
def clean_database():
    """Fresh schema for every test"""
    asyncio.run(_reset_schema())
    yield


def run(coro):
    """Run a coroutine against the test database from synchronous test code"""
    return asyncio.run(coro)


async def _insert_user(**fields) -> User:
    async with AsyncSessionLocal() as session:
        user = User(**fields)
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


def auth_headers_for(user_id) -> dict:
    token = create_access_token(data={"sub": str(user_id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_user():
    """
    Factory inserting a user straight into the database

    Returns (user, auth_headers).
    """
    def _make(role="farmer", approval_status="approved", account_status="active",
              email=None, name="Test User", password="password123"):
        user = run(_insert_user(
            email=email or f"{uuid.uuid4().hex[:10]}@example.com",
            name=name,
            password_hash=get_password_hash(password),
            role=role,
            approval_status=approval_status,
            account_status=account_status,
        ))
        return user, auth_headers_for(user.id)

    return _make


@pytest.fixture
def farmer(make_user):
    return make_user(role="farmer", name="Ama Farmer")


@pytest.fixture
def admin(make_user):
    return make_user(role="admin", name="Site Admin")


@pytest.fixture
def auth_headers():
    """Valid token for a user that does not exist in the database"""
    return auth_headers_for(uuid.uuid4())


@pytest.fixture
def run_async():
    """Helper running a coroutine to completion, for direct database checks"""
    return run


@pytest.fixture
def session_factory():
    return AsyncSessionLocal
