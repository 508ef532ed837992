"""
Shared test fixtures.

Environment variables are set before any posty module is imported, so the
global settings object, engine and encryptor are built for tests. Each test
gets its own SQLite database (foreign keys enforced) and upload directory.
"""

import os
import tempfile

_TEST_ROOT = tempfile.mkdtemp(prefix="posty-tests-")

os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_ROOT}/health.db"
os.environ["SECRET_KEY"] = "test-secret-key-for-jwt-signing"
os.environ["ENCRYPTION_KEY"] = "A" * 43 + "="
os.environ["OPENAI_API_KEY"] = "sk-test"
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "false"
os.environ["SMTP_USER"] = ""
os.environ["SMTP_PASS"] = ""
os.environ["UPLOAD_DIR"] = os.path.join(_TEST_ROOT, "uploads")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from unittest.mock import AsyncMock, MagicMock

from posty.core.config import settings
from posty.core.database import Base, get_db
from posty.core.security import create_auth_token, generate_user_id, hash_password
import posty.models  # noqa: F401
from posty.models.user import User
from posty.models.user_settings import UserSettings


def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    """Per-test upload directory."""
    path = tmp_path / "uploads"
    path.mkdir()
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(path))
    return path


@pytest.fixture
async def engine(tmp_path):
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/posty.db")
    event.listen(test_engine.sync_engine, "connect", _enable_foreign_keys)

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    """A session for arranging and asserting directly against the database."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(session_factory):
    """
    Factory for persisted users (with default settings).

    Usage:
        user = await make_user(email="a@example.com")
    """

    async def _make_user(
        email="reader@example.com",
        provider="email",
        password="correct-horse-battery",
        first_name="Ada",
        last_name="Reader",
        **settings_fields,
    ) -> User:
        async with session_factory() as session:
            user = User(
                id=generate_user_id(provider, None if provider == "email" else email),
                email=email,
                first_name=first_name,
                last_name=last_name,
                provider=provider,
                password_hash=hash_password(password) if provider == "email" else None,
            )
            session.add(user)
            await session.flush()
            session.add(UserSettings(user_id=user.id, **settings_fields))
            await session.commit()
            return user

    return _make_user


@pytest.fixture
def auth_headers():
    """Bearer header builder: auth_headers(user) -> {"Authorization": ...}."""

    def _auth_headers(user: User) -> dict:
        token = create_auth_token(user.id, user.email, user.provider)
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers


@pytest.fixture
def failing_vision_client():
    """VisionClient double whose every call fails like an exhausted quota."""
    error = Exception("Error code: 429 - You exceeded your current quota")
    client = MagicMock()
    client.transcribe = AsyncMock(side_effect=error)
    client.extract_metadata = AsyncMock(side_effect=error)
    client.classify_filename = AsyncMock(side_effect=error)
    client.ping = AsyncMock(side_effect=error)
    return client


@pytest.fixture
def vision_client():
    """VisionClient double; tests set return values per call."""
    client = MagicMock()
    client.transcribe = AsyncMock()
    client.extract_metadata = AsyncMock()
    client.classify_filename = AsyncMock()
    client.ping = AsyncMock(return_value=None)
    return client


@pytest.fixture
async def app(session_factory, upload_dir, failing_vision_client):
    """
    The FastAPI app wired to the per-test database.

    Uploads are analyzed with failing_vision_client unless a test overrides
    get_upload_processor itself.
    """
    from fastapi import Depends

    from posty.main import app as fastapi_app
    from posty.modules.analyzer.analyzer import DocumentAnalyzer
    from posty.modules.mail_items.routes import get_upload_processor
    from posty.modules.mail_items.service import UploadProcessor

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    def override_get_upload_processor(db: AsyncSession = Depends(get_db)):
        return UploadProcessor(db, analyzer=DocumentAnalyzer(client=failing_vision_client))

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_upload_processor] = override_get_upload_processor
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as http_client:
        yield http_client
