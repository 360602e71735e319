"""
Tests for the set_user_plan operator script.
"""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from applyai.core.plan_limits import PLAN_LIMITS
from applyai.db.base import Base
from applyai.db.models.user import User
from applyai.services.quota_service import get_or_create_daily_usage, get_usage_stats
from scripts.set_user_plan import set_user_plan


test_engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def db():
    Base.metadata.create_all(bind=test_engine)
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


def test_creates_user_on_plan(db):
    user = set_user_plan(db, " New.User@Example.com ", "pro")

    assert user.email == "new.user@example.com"
    assert user.full_name == "new.user"
    assert get_usage_stats(db, user.id)["plan"] == "pro"


def test_updates_existing_user(db):
    db.add(User(full_name="Existing", email="existing@example.com", plan="free"))
    db.commit()

    user = set_user_plan(db, "existing@example.com", "elite")

    assert user.full_name == "Existing"
    assert user.plan == "elite"
    assert db.query(User).count() == 1


def test_unknown_plan_rejected(db):
    with pytest.raises(ValueError):
        set_user_plan(db, "someone@example.com", "platinum")


def test_downgrade_applies_from_next_day(db):
    user = set_user_plan(db, "busy@example.com", "pro")
    usage = get_or_create_daily_usage(db, user.id)
    usage.api_calls_today = 120
    db.commit()

    set_user_plan(db, "busy@example.com", "free")

    stats = get_usage_stats(db, user.id)
    assert stats["plan"] == "free"
    assert stats["api_calls_today"] == 120
    assert stats["max_daily_api_calls"] == PLAN_LIMITS["pro"]["max_daily_api_calls"]
    assert stats["api_calls_today"] <= stats["max_daily_api_calls"]
