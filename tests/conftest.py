"""Pytest configuration and fixtures."""

import json
import os

# Configure the app before anything imports ai_tagging.config
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("DISPATCH_WORKER_ENABLED", "false")
os.environ.setdefault("INTERNAL_API_KEY", "test-internal-key")
os.environ.setdefault("LOG_FORMAT", "console")

from unittest.mock import AsyncMock, MagicMock, patch  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from ai_tagging.db.database import Base, get_db  # noqa: E402
from ai_tagging.db.models import AssetObject, AssetTag  # noqa: E402
from ai_tagging.main import app  # noqa: E402
from ai_tagging.services.tagging.dispatcher import DispatchReport  # noqa: E402

# Test database - in-memory SQLite with StaticPool for connection sharing
TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEAM_ID = "team-1"


@pytest.fixture(scope="session", autouse=True)
def setup_database():
    """Create tables once for entire test session."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db(setup_database):
    """Provide a transactional database session that rolls back after each test."""
    connection = engine.connect()
    transaction = connection.begin()
    session = TestingSessionLocal(bind=connection)

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture(scope="function")
def session_factory():
    """Fresh database per test for code that opens its own sessions and commits.

    Processor, dispatcher and taxonomy/settings providers each open sessions;
    they all share one in-memory connection through StaticPool.
    """
    test_engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

    yield factory

    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture(scope="function")
def mock_dispatcher():
    """Dispatcher stand-in for API tests."""
    dispatcher = MagicMock()
    dispatcher.tick = AsyncMock(return_value=DispatchReport(claimed=2, skipped_due_to_race=1))
    dispatcher.drain = AsyncMock()
    dispatcher.in_flight = 0
    return dispatcher


@pytest.fixture(scope="function")
def client(db, mock_dispatcher):
    """Create test client with database and dispatcher overrides."""

    def override_get_db():
        try:
            yield db
        finally:
            pass  # Do not close - managed by db fixture

    app.dependency_overrides[get_db] = override_get_db
    app.state.dispatcher = mock_dispatcher

    with (
        patch("ai_tagging.main.get_redis_pool", AsyncMock(return_value=None)),
        patch("ai_tagging.api.health.is_redis_available", AsyncMock(return_value=False)),
    ):
        with TestClient(app) as test_client:
            yield test_client

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def internal_headers() -> dict:
    return {"Authorization": "Bearer test-internal-key"}


def make_asset(session, team_id: str = TEAM_ID, **overrides) -> AssetObject:
    fields = {
        "team_id": team_id,
        "external_id": "ext-asset-1",
        "name": "summer_campaign_banner.png",
        "description": "Banner for the summer sale",
        "materialized_path": "/Marketing/Campaigns/Summer",
        "content_analysis": json.dumps({"ai_description": "A beach with sunglasses"}),
    }
    fields.update(overrides)
    asset = AssetObject(**fields)
    session.add(asset)
    session.flush()
    return asset


def make_taxonomy(session, team_id: str = TEAM_ID) -> dict[str, AssetTag]:
    """Marketing > Campaigns > Summer, plus Product (no external id) and a disabled tag."""
    marketing = AssetTag(team_id=team_id, name="Marketing", external_id="t-100", sort=1)
    session.add(marketing)
    session.flush()
    campaigns = AssetTag(
        team_id=team_id, name="Campaigns", parent_id=marketing.id, external_id="t-110", sort=1
    )
    session.add(campaigns)
    session.flush()
    summer = AssetTag(
        team_id=team_id,
        name="Summer",
        parent_id=campaigns.id,
        external_id="t-111",
        keywords=json.dumps(["summer", "beach"]),
        negative_keywords=json.dumps(["winter"]),
        sort=1,
    )
    product = AssetTag(team_id=team_id, name="Product", external_id=None, sort=2)
    archived = AssetTag(team_id=team_id, name="Archived", tagging_enabled=False, sort=3)
    session.add_all([summer, product, archived])
    session.flush()
    return {
        "marketing": marketing,
        "campaigns": campaigns,
        "summer": summer,
        "product": product,
        "archived": archived,
    }


@pytest.fixture(scope="function")
def asset(db) -> AssetObject:
    """Create a sample asset."""
    return make_asset(db)


@pytest.fixture
def asset_factory():
    """make_asset(session, team_id=..., **overrides) as a fixture."""
    return make_asset


@pytest.fixture
def taxonomy_factory():
    """make_taxonomy(session, team_id=...) as a fixture."""
    return make_taxonomy
