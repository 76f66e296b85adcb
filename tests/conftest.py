"""
Shared pytest fixtures and configuration
"""

import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

# Add the project root to Python path to make imports work
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables before any project module reads them
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["AUTH_ENCRYPTION_KEY"] = "test-encryption-key-with-at-least-32-characters"
os.environ["AGENT_ID"] = "test-agent"
os.environ["TWITTER_API_KEY"] = "test_api_key"
os.environ["TWITTER_API_SECRET_KEY"] = "test_api_secret_key"
os.environ["TWITTER_OAUTH_CALLBACK_URL"] = "http://testserver/api/auth/twitter/callback"

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from auth.credential_service import CredentialService
from auth.encryption_service import EncryptionService
from auth.oauth_service import OAuthService
from auth.session_cache import SessionCache
from auth.status_service import ConnectionStatusResolver
from config import Settings
from database import Base, init_db
from plugins import AuthorizationRequest

# Registers the Twitter connector and its credential model
import plugins.twitter  # noqa: F401
from plugins.twitter.auth.oauth import TwitterOAuthConnector
from plugins.twitter.config import TwitterSettings

TEST_ENCRYPTION_KEY = "test-encryption-key-with-at-least-32-characters"
TEST_AGENT_ID = "agent-1"


class FakeClock:
    """A clock that only moves when told to."""

    def __init__(self, start: datetime = None):
        self.current = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


@pytest.fixture(scope="function")
def test_engine():
    """
    In-memory SQLite engine with the credential tables created.
    Tear down the tables after the test is complete.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def encryption_service():
    return EncryptionService(TEST_ENCRYPTION_KEY)


@pytest.fixture
def credential_service(session_factory, encryption_service):
    return CredentialService(session_factory, encryption_service)


@pytest.fixture
def session_cache(clock):
    return SessionCache(max_entries=100, ttl=timedelta(minutes=15), clock=clock)


@pytest.fixture
def twitter_settings():
    return TwitterSettings(
        API_KEY="test_api_key",
        API_SECRET_KEY="test_api_secret_key",
        OAUTH_CALLBACK_URL="http://testserver/api/auth/twitter/callback",
        REQUEST_TIMEOUT_SECONDS=5,
    )


@pytest.fixture
def mock_twitter_connector(twitter_settings):
    """
    A Twitter connector whose network calls are mocked.

    ``build_credentials`` is the real implementation so stored payloads have
    the real shape.
    """
    connector = TwitterOAuthConnector(settings=twitter_settings)
    connector.get_authorization_url = AsyncMock(return_value=AuthorizationRequest(
        auth_url="https://api.twitter.com/oauth/authorize?oauth_token=test-request-token",
        request_token="test-request-token",
        request_token_secret="test-request-token-secret",
    ))
    connector.exchange_token = AsyncMock(return_value=("test-access-token", "test-access-token-secret"))
    connector.fetch_identity = AsyncMock(return_value={
        "id": "1234567890",
        "username": "alice",
        "name": "Alice",
    })
    connector.test_connection = AsyncMock(return_value={
        "id": "1234567890",
        "username": "alice",
        "name": "Alice",
    })
    return connector


@pytest.fixture
def oauth_service(session_cache, credential_service, mock_twitter_connector):
    return OAuthService(
        session_cache,
        credential_service,
        {"twitter": mock_twitter_connector},
        session_ttl=timedelta(minutes=15),
    )


@pytest.fixture
def status_resolver(credential_service, clock):
    return ConnectionStatusResolver(credential_service, services=["twitter"], clock=clock)


@pytest.fixture
def test_settings():
    return Settings(
        DATABASE_URL="sqlite:///:memory:",
        AUTH_ENCRYPTION_KEY=TEST_ENCRYPTION_KEY,
        AGENT_ID=TEST_AGENT_ID,
    )


@pytest.fixture
def runtime(test_settings, session_factory, mock_twitter_connector):
    from runtime import build_runtime

    return build_runtime(
        settings=test_settings,
        session_factory=session_factory,
        connectors={"twitter": mock_twitter_connector},
    )


@pytest.fixture
def connection_service(runtime):
    return runtime.get_service("auth")


@pytest.fixture(scope="function")
def app(runtime):
    """
    Create a FastAPI app for testing around the test runtime.
    """
    from main import create_app

    return create_app(runtime)


@pytest.fixture(scope="function")
def client(app):
    return TestClient(app)
