"""
Pytest fixtures for Link Tracker tests.
Provides test database, mock Redis, a fake geolocation chain and FastAPI test client.
"""

import os
import pytest
from unittest.mock import patch
import sys
from pathlib import Path

# Keep app modules off MySQL and any local .env during tests
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DEV_MODE", "true")

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fastapi.testclient import TestClient


class MockRedisService:
    """Mock Redis service for testing."""

    _geo = {}

    @classmethod
    def reset(cls):
        cls._geo = {}

    @staticmethod
    def get_cached_geo(ip: str):
        return MockRedisService._geo.get(ip)

    @staticmethod
    def cache_geo(ip: str, data: dict, ttl=None) -> bool:
        MockRedisService._geo[ip] = dict(data)
        return True

    @staticmethod
    def health_check() -> bool:
        return True


class FakeGeoResolver:
    """Stands in for the provider chain; records the addresses it was asked about."""

    def __init__(self, location=None):
        from linktrack.geolocation import GeoLocation
        self.location = location or GeoLocation(country="France", city="Paris", resolved_ip="203.0.113.9")
        self.calls = []
        self.providers = []

    async def resolve(self, ip):
        self.calls.append(ip)
        return self.location


@pytest.fixture(autouse=True)
def mock_redis():
    """Automatically mock Redis for all tests."""
    MockRedisService.reset()
    with patch("linktrack.redis_client.RedisService", MockRedisService):
        with patch("linktrack.geolocation.RedisService", MockRedisService):
            with patch("linktrack.main.RedisService", MockRedisService):
                yield MockRedisService


@pytest.fixture(scope="function")
def test_db():
    """Create a test database using SQLite in-memory."""
    from linktrack.database import Base

    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )

    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def geo():
    return FakeGeoResolver()


@pytest.fixture(scope="function")
def client(test_db, mock_redis, geo):
    """Create a FastAPI test client with mocked dependencies."""
    from linktrack.main import app, get_geo_resolver
    from linktrack.database import get_db

    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_geo_resolver] = lambda: geo

    with TestClient(app, follow_redirects=False) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def owner_id():
    return "user-123"


@pytest.fixture
def project(test_db, owner_id):
    """A project with slug 'acme'."""
    from linktrack.schemas import ProjectCreate
    from linktrack.services import ProjectService

    project, error = ProjectService.create_project(
        test_db, ProjectCreate(owner_id=owner_id, name="Acme launch", slug="acme")
    )
    assert error is None
    return project


@pytest.fixture
def make_link(test_db):
    """Factory adding a tracked link to a project."""
    from linktrack.schemas import LinkCreate
    from linktrack.services import LinkService

    def _make(project, url, title="Landing page", platform="tiktok"):
        link, error = LinkService.create_link(
            test_db, project, LinkCreate(destination_url=url, link_title=title, platform=platform)
        )
        assert error is None, error
        return link

    return _make


@pytest.fixture
def link(project, make_link):
    return make_link(project, "https://example.com/landing")


@pytest.fixture
def auth_headers(owner_id):
    return {"X-User-Id": owner_id}
