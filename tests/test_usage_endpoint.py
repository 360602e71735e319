"""
Integration tests for GET /api/usage/stats.
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from applyai.main import app
from applyai.core.auth_dependency import get_db
from applyai.core.plan_limits import PLAN_LIMITS
from applyai.core.security import create_access_token
from applyai.db.base import Base
from applyai.db.models.user import User
from applyai.services.quota_service import check_and_reserve, get_or_create_daily_usage, record_usage


# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


def override_get_db():
    """Override get_db dependency for testing."""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function", autouse=True)
def setup_db():
    """Create and drop tables for each test."""
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def db_session():
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client():
    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_user(db_session, email="test@example.com", plan="free"):
    user = User(full_name="Test User", email=email, plan=plan)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token({'sub': user.email})}"}


def test_stats_fresh_day(client, db_session):
    user = make_user(db_session)

    response = client.get("/api/usage/stats", headers=auth_headers(user))

    assert response.status_code == 200
    data = response.json()
    assert data["plan"] == "free"
    assert data["credits_remaining"] == PLAN_LIMITS["free"]["daily_credits"]
    assert data["api_calls_today"] == 0
    assert data["max_daily_api_calls"] == PLAN_LIMITS["free"]["max_daily_api_calls"]
    assert data["can_make_api_call"] is True
    assert data["usage_by_endpoint"] == {}
    assert data["recent_usage"] == []
    assert data["total_tokens_used"] == 0


def test_stats_reflect_usage(client, db_session):
    user = make_user(db_session)
    decision = check_and_reserve(db_session, user.id, "ats_score")
    record_usage(db_session, user.id, "ats_score", tokens_used=321, success=True,
                 response_time_ms=900, usage_date=decision.usage_date)
    decision = check_and_reserve(db_session, user.id, "application_prepare")
    record_usage(db_session, user.id, "application_prepare", success=False, usage_date=decision.usage_date)

    data = client.get("/api/usage/stats", headers=auth_headers(user)).json()

    assert data["api_calls_today"] == 2
    assert data["credits_remaining"] == PLAN_LIMITS["free"]["daily_credits"] - 1
    assert data["usage_by_endpoint"] == {"ats_score": 1, "application_prepare": 1}
    assert data["total_tokens_used"] == 321
    assert len(data["recent_usage"]) == 2


def test_stats_exhausted_credits(client, db_session):
    user = make_user(db_session)
    usage = get_or_create_daily_usage(db_session, user.id)
    usage.credits_remaining = 0
    db_session.commit()

    data = client.get("/api/usage/stats", headers=auth_headers(user)).json()

    assert data["credits_remaining"] == 0
    assert data["can_make_api_call"] is False


def test_stats_elite_plan(client, db_session):
    user = make_user(db_session, email="elite@example.com", plan="elite")

    data = client.get("/api/usage/stats", headers=auth_headers(user)).json()

    assert data["plan"] == "elite"
    assert data["credits_remaining"] == PLAN_LIMITS["elite"]["daily_credits"]


def test_stats_requires_auth(client):
    assert client.get("/api/usage/stats").status_code == 401


def test_stats_unknown_user_is_404(client):
    headers = {"Authorization": f"Bearer {create_access_token({'sub': 'ghost@example.com'})}"}

    assert client.get("/api/usage/stats", headers=headers).status_code == 404
