"""Shared pytest fixtures for test suite"""
import os
import secrets
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator
from unittest.mock import patch

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Settings are read at import time, so the environment must be ready first
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("ENCRYPTION_KEY", "MDEyMzQ1Njc4OWFiY2RlZjAxMjM0NTY3ODlhYmNkZWY=")
os.environ.setdefault("DISCORD_BOT_API_TOKEN", "test-bot-token")
os.environ.setdefault("DISCORD_CLIENT_ID", "test-client-id")
os.environ.setdefault("DISCORD_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("FRONTEND_URL", "http://localhost:3001")
os.environ.setdefault("OTEL_EXPORTER_OTLP_ENDPOINT", "")

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from app.main import app  # noqa: E402
from app.core.config import settings  # noqa: E402
from app.db import redis as redis_module  # noqa: E402
from app.db.session import get_db  # noqa: E402
from app.models.base import Base  # noqa: E402
from app.models.daily_word import DailyWord  # noqa: E402
from app.models.discord_server import DiscordServer  # noqa: E402
from app.models.discord_user_server import DiscordUserServer  # noqa: E402
from app.models.user import User  # noqa: E402
from app.services.word_bank import get_word_bank  # noqa: E402


BOT_TOKEN = "test-bot-token"

# SQLite in-memory database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"

# Create test engine with StaticPool for in-memory database
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create a fresh SQLite in-memory database session for each test"""
    Base.metadata.create_all(bind=test_engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def session_factory(db_session: Session):
    """Session factory for code that opens its own sessions (background jobs)"""
    return TestSessionLocal


@pytest.fixture(scope="function", autouse=True)
def mock_redis():
    """Replace the lazy Redis client with fakeredis for every test"""
    fake_redis = fakeredis.FakeStrictRedis(decode_responses=True)
    with patch.object(redis_module, "_client", fake_redis):
        yield fake_redis
    fake_redis.flushall()


@pytest.fixture(scope="function", autouse=True)
def no_avatar_downloads():
    """Result images are drawn with the placeholder avatar, never fetched"""
    with patch("app.services.image_service.fetch_avatar", return_value=None) as mock_fetch:
        yield mock_fetch


@pytest.fixture(scope="function", autouse=True)
def fresh_word_bank():
    get_word_bank.cache_clear()
    yield
    get_word_bank.cache_clear()


async def _idle_cleanup():
    return None


@pytest.fixture(scope="function")
def client(db_session: Session, mock_redis) -> Generator[TestClient, None, None]:
    """FastAPI test client with test database and mocked Redis"""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # closed by db_session

    app.dependency_overrides[get_db] = override_get_db

    try:
        with patch("app.main.init_db"), \
                patch("app.main.instrument_sqlalchemy"), \
                patch("app.tasks.cleanup.cleanup_task", new=_idle_cleanup):
            with TestClient(app, headers={"Origin": settings.FRONTEND_URL}) as test_client:
                yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def make_user(db_session: Session):
    """Factory for Discord users"""

    def _make_user(discord_id: str, username: str = None, guilds=None, **kwargs) -> User:
        user = User(
            discord_id=discord_id,
            username=username if username is not None else f"player{discord_id[-2:]}",
            guilds=list(guilds or []),
            guilds_last_sync=datetime.now(timezone.utc),
            **kwargs
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture(scope="function")
def make_server(db_session: Session):
    """Factory for servers; eligible for notifications unless told otherwise"""

    def _make_server(
        server_id: str,
        channel_id: str = None,
        auto_notify: bool = True,
        is_active: bool = True,
        server_name: str = None,
    ) -> DiscordServer:
        server = DiscordServer(
            server_id=server_id,
            server_name=server_name or f"Server {server_id}",
            owner_id="owner-1",
            wordle_channel_id=channel_id if channel_id is not None else f"chan-{server_id}",
            auto_notify=auto_notify,
            is_active=is_active,
        )
        db_session.add(server)
        db_session.commit()
        db_session.refresh(server)
        return server

    return _make_server


@pytest.fixture(scope="function")
def add_member(db_session: Session):
    """Record a bot-reported membership"""

    def _add_member(discord_id: str, server_id: str, is_active: bool = True) -> DiscordUserServer:
        row = DiscordUserServer(
            discord_id=discord_id,
            server_id=server_id,
            server_name=f"Server {server_id}",
            is_active=is_active,
        )
        db_session.add(row)
        db_session.commit()
        return row

    return _add_member


@pytest.fixture(scope="function")
def make_daily_word(db_session: Session):
    def _make_daily_word(word_id: int, word: str, day) -> DailyWord:
        daily_word = DailyWord(word_id=word_id, word=word, date=day)
        db_session.add(daily_word)
        db_session.commit()
        db_session.refresh(daily_word)
        return daily_word

    return _make_daily_word


@pytest.fixture(scope="function")
def test_user(make_user) -> User:
    return make_user("100000000000000001", username="alice", guilds=["guild-a"])


@pytest.fixture(scope="function")
def authenticated_client(client: TestClient, test_user: User, mock_redis) -> Generator[TestClient, None, None]:
    """Client with a logged-in session and its CSRF token"""
    session_id = secrets.token_urlsafe(16)
    csrf_token = secrets.token_urlsafe(16)
    mock_redis.setex(f"session:{session_id}", 2592000, str(test_user.id))
    mock_redis.setex(f"csrf:{session_id}", 2592000, csrf_token)

    client.cookies.set("session_id", session_id)
    client.headers.update({"X-CSRF-Token": csrf_token})

    # Guild refresh would call Discord
    with patch("app.services.discord_service.sync_user_guilds"):
        yield client


@pytest.fixture(scope="function")
def bot_headers() -> dict:
    return {"Authorization": f"Bearer {BOT_TOKEN}"}
