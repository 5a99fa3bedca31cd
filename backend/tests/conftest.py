"""Shared pytest fixtures for test suite"""
import sys
from pathlib import Path
from typing import Callable, Dict, Generator, List, Optional, Tuple
from unittest.mock import patch
from urllib.parse import parse_qs

import fakeredis
import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from socialink.main import app
from socialink.api import oauth as oauth_api
from socialink.core.config import Settings
from socialink.core.providers import SocialProvider
from socialink.db import redis as redis_module
from socialink.db.session import get_db
from socialink.models import Base
from socialink.models.user import User
from socialink.services.oauth import OAuthStateStore, create_orchestrator


# SQLite in-memory database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"

# Create test engine with StaticPool for in-memory database
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Create test session factory
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

GRAPH = "https://graph.facebook.com/v24.0"
THREADS_GRAPH = "https://graph.threads.net"
TIKTOK_TOKEN_URL = "https://open.tiktokapis.com/v2/oauth/token/"
TIKTOK_USER_INFO_URL = "https://open.tiktokapis.com/v2/user/info/"

FACEBOOK_APP_ID = "fb-app-123"
FACEBOOK_APP_SECRET = "fb-secret"


class ProviderStub:
    """Stand-in for the provider APIs, plugged into httpx.MockTransport.

    Routes are keyed by method and URL without query string. A route is either
    a (status, json) pair or a callable taking the request and returning an
    httpx.Response. Unrouted requests get a Graph-style 404.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], object] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, url: str, status: int = 200, json: Optional[dict] = None,
            handler: Optional[Callable[[httpx.Request], httpx.Response]] = None):
        self.routes[(method.upper(), url)] = handler or (status, json if json is not None else {})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, f"{request.url.scheme}://{request.url.host}{request.url.path}")
        route = self.routes.get(key)
        if route is None:
            return httpx.Response(404, json={"error": {"message": f"No stub for {key[0]} {key[1]}", "code": 803}})
        if callable(route):
            return route(request)
        status, body = route
        return httpx.Response(status, json=body)

    def calls_to(self, url: str) -> List[httpx.Request]:
        return [r for r in self.requests if f"{r.url.scheme}://{r.url.host}{r.url.path}" == url]


def form_of(request: httpx.Request) -> Dict[str, str]:
    """Decode an x-www-form-urlencoded request body"""
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


def stub_meta_token(stub: ProviderStub, short_token: str = "short-token", long_token: str = "long-token",
                    long_lived_status: int = 200):
    """Code exchange plus fb_exchange_token upgrade on the Graph token endpoint"""
    def handler(request: httpx.Request) -> httpx.Response:
        params = request.url.params
        if params.get("grant_type") == "fb_exchange_token":
            if long_lived_status != 200:
                return httpx.Response(long_lived_status, json={"error": {"message": "Upgrade failed", "code": 1}})
            return httpx.Response(200, json={"access_token": long_token, "token_type": "bearer", "expires_in": 5183944})
        return httpx.Response(200, json={"access_token": short_token, "token_type": "bearer", "expires_in": 3600})
    stub.add("GET", f"{GRAPH}/oauth/access_token", handler=handler)


def stub_debug_token(stub: ProviderStub, scopes=None, app_id: Optional[str] = FACEBOOK_APP_ID,
                     is_valid: bool = True, granular_scopes=None):
    data = {"is_valid": is_valid, "scopes": scopes or [], "user_id": "555"}
    if app_id is not None:
        data["app_id"] = app_id
    if granular_scopes is not None:
        data["granular_scopes"] = granular_scopes
    stub.add("GET", f"{GRAPH}/debug_token", json={"data": data})


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create a fresh SQLite in-memory database session for each test"""
    # Create all tables
    Base.metadata.create_all(bind=test_engine)

    # Create session
    session = TestSessionLocal()

    try:
        yield session
    finally:
        session.close()
        # Drop all tables after test
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def mock_redis():
    """Mock Redis client using fakeredis"""
    fake_redis = fakeredis.FakeStrictRedis(decode_responses=True)
    with patch.object(redis_module, "_client", fake_redis):
        yield fake_redis


@pytest.fixture(scope="function")
def oauth_settings() -> Settings:
    """Settings with every provider configured"""
    return Settings(
        DATABASE_URL=TEST_DATABASE_URL,
        ENVIRONMENT="test",
        FACEBOOK_APP_ID=FACEBOOK_APP_ID,
        FACEBOOK_APP_SECRET=FACEBOOK_APP_SECRET,
        FACEBOOK_REDIRECT_URI="https://app.example.com/api/social/facebook/callback",
        FACEBOOK_CONFIG_ID="",
        FACEBOOK_SCOPES="",
        INSTAGRAM_APP_ID="",
        INSTAGRAM_APP_SECRET="",
        INSTAGRAM_REDIRECT_URI="https://app.example.com/api/social/instagram/callback",
        INSTAGRAM_CONFIG_ID="",
        INSTAGRAM_SCOPES="",
        THREADS_APP_ID="threads-app",
        THREADS_APP_SECRET="threads-secret",
        THREADS_REDIRECT_URI="https://app.example.com/api/social/threads/callback",
        THREADS_SCOPES="",
        TIKTOK_CLIENT_KEY="tiktok-key",
        TIKTOK_CLIENT_SECRET="tiktok-secret",
        TIKTOK_REDIRECT_URI="https://app.example.com/api/social/tiktok/callback",
        TIKTOK_SCOPES="",
        OAUTH_STATE_SINGLE_USE=True,
    )


@pytest.fixture(scope="function")
def provider_stub() -> ProviderStub:
    return ProviderStub()


@pytest.fixture(scope="function")
def http_client(provider_stub: ProviderStub) -> httpx.AsyncClient:
    """Async client whose requests are answered by provider_stub"""
    return httpx.AsyncClient(transport=httpx.MockTransport(provider_stub))


@pytest.fixture(scope="function")
def state_store(mock_redis) -> OAuthStateStore:
    return OAuthStateStore(mock_redis, ttl=600, namespace="test")


@pytest.fixture(scope="function")
def unreachable_redis():
    """fakeredis client whose server is down; every command raises redis.ConnectionError"""
    server = fakeredis.FakeServer()
    server.connected = False
    return fakeredis.FakeStrictRedis(server=server, decode_responses=True)


@pytest.fixture(scope="function")
def make_orchestrator(db_session: Session, http_client, oauth_settings: Settings, state_store):
    """Factory: orchestrator for a provider, optionally with settings overrides"""
    def _make(provider: SocialProvider, **overrides):
        source = oauth_settings.model_copy(update=overrides) if overrides else oauth_settings
        return create_orchestrator(provider, http_client, db_session, state_store=state_store, source_settings=source)
    return _make


@pytest.fixture(scope="function")
def test_user(db_session: Session) -> User:
    user = User(email="jane.doe@example.com", username="janedoe", full_name="Jane Doe")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture(scope="function")
def other_user(db_session: Session) -> User:
    user = User(email="jane@x.com", username="otherjane", full_name="Other Jane")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture(scope="function")
def client(db_session: Session, mock_redis, http_client, oauth_settings: Settings, state_store) -> Generator[TestClient, None, None]:
    """FastAPI test client with test database, mocked Redis and stubbed providers"""

    # Override get_db dependency to use test database
    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Don't close session here, handled by fixture

    def override_get_orchestrator(provider: SocialProvider):
        return create_orchestrator(
            provider, http_client, db_session, state_store=state_store, source_settings=oauth_settings
        )

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[oauth_api.get_orchestrator] = override_get_orchestrator
    app.dependency_overrides[oauth_api.get_instagram_orchestrator] = lambda: override_get_orchestrator(SocialProvider.INSTAGRAM)

    try:
        with patch("socialink.main.init_db"):
            with TestClient(app) as test_client:
                yield test_client
    finally:
        # Cleanup - always clear overrides
        app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def authenticated_client(client: TestClient, test_user: User, mock_redis) -> TestClient:
    """Client with a session cookie for test_user"""
    session_id = "test-session-id"
    redis_module.set_session(session_id, test_user.id)
    client.cookies.set("session_id", session_id)
    return client


def graph_error(message: str, code: int = 100, **extra) -> dict:
    return {"error": {"message": message, "code": code, **extra}}
