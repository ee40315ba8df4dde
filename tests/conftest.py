"""
Shared fixtures: a SQLite file database per test, fake Conversions API
adapter, inline forwarder and a TestClient with dependency overrides.
"""
import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-pixel-tracker")
os.environ.setdefault("ADMIN_PASSWORD", "test-admin-password")
os.environ.setdefault("LOG_FORMAT", "text")

import httpx
import pytest
from fastapi.testclient import TestClient
from uuid import uuid4

from pixel_tracker.adapters.base import BaseConversionsAdapter, ForwardResult, TokenRefreshResult
from pixel_tracker.core.cache import TTLCache
from pixel_tracker.core.database import Base, build_engine, build_session_factory
from pixel_tracker.core.dependencies import (
    get_adapter,
    get_cache,
    get_database,
    get_forwarder,
    get_geo_service,
)
from pixel_tracker.core.rate_limit import limiter
from pixel_tracker.core.resilience import ResilientDatabase
from pixel_tracker.core.security import create_access_token
from pixel_tracker.main import app
from pixel_tracker.models.pixel_app import PixelApp
from pixel_tracker.models.pixel_settings import PixelSettings
from pixel_tracker.services.forwarding import BackgroundForwarder
from pixel_tracker.services.geo_service import GeoService

GEO_PAYLOAD = {
    "status": "success",
    "city": "Mountain View",
    "regionName": "California",
    "country": "United States",
    "countryCode": "US",
    "timezone": "America/Los_Angeles",
}


class FakeAdapter(BaseConversionsAdapter):
    """Records calls instead of talking to the Graph API."""

    def __init__(self):
        self.sent = []
        self.refresh_calls = []
        self.send_result = ForwardResult(success=True, attempts=1, status_code=200)
        self.send_error = None
        self.refresh_result = TokenRefreshResult(success=False, error="refresh not configured")

    @property
    def platform_name(self) -> str:
        return "fake"

    async def send_events(self, pixel_id, access_token, events, test_event_code=None):
        self.sent.append({
            "pixel_id": pixel_id,
            "access_token": access_token,
            "events": events,
            "test_event_code": test_event_code,
        })
        if self.send_error is not None:
            raise self.send_error
        return self.send_result

    async def refresh_access_token(self, access_token):
        self.refresh_calls.append(access_token)
        return self.refresh_result


@pytest.fixture
def engine(tmp_path):
    """SQLite file database with all tables"""
    engine = build_engine(f"sqlite:///{tmp_path / 'pixel_tracker.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def db_session(session_factory):
    """Plain session for arranging and asserting"""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def database(session_factory, engine):
    return ResilientDatabase(
        session_factory,
        engine=engine,
        max_concurrency=4,
        queue_timeout=5,
        operation_timeout=10,
        max_retries=5,
        retry_base_delay=0.01,
        ping_timeout=3,
    )


@pytest.fixture
def cache():
    return TTLCache(default_ttl=60)


@pytest.fixture
def adapter():
    return FakeAdapter()


@pytest.fixture
def forwarder():
    return BackgroundForwarder(budget=5, inline=True)


@pytest.fixture
def geo_requests():
    return []


@pytest.fixture
def geo_service(cache, geo_requests):
    def handler(request: httpx.Request) -> httpx.Response:
        geo_requests.append(str(request.url))
        return httpx.Response(200, json=GEO_PAYLOAD)

    return GeoService(cache, base_url="http://geo.test/json", transport=httpx.MockTransport(handler))


@pytest.fixture
def client(database, cache, adapter, forwarder, geo_service):
    """Create test client wired to the per-test database and fakes"""
    app.dependency_overrides[get_database] = lambda: database
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_adapter] = lambda: adapter
    app.dependency_overrides[get_forwarder] = lambda: forwarder
    app.dependency_overrides[get_geo_service] = lambda: geo_service
    limiter.reset()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {create_access_token(data={'sub': 'admin'})}"}


@pytest.fixture
def make_pixel(db_session):
    """Factory for a PixelApp with its settings row"""

    def _make(
        website_domain="mystore.myshopify.com",
        shop="mystore.myshopify.com",
        enabled=True,
        name="Main pixel",
        **settings_fields,
    ) -> PixelApp:
        pixel = PixelApp(
            id=uuid4(),
            external_id=f"px_{uuid4().hex[:12]}",
            name=name,
            enabled=enabled,
            website_domain=website_domain,
            shop=shop,
        )
        pixel.settings = PixelSettings(**settings_fields)
        db_session.add(pixel)
        db_session.commit()
        return pixel

    return _make
