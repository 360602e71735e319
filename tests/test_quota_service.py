"""
Unit tests for the usage gate.
Tests reservation, denial reasons, refunds on failure and concurrent reservations.
"""
import threading
import pytest
from datetime import date, timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from applyai.core.errors import DAILY_LIMIT_REACHED, NO_CREDITS_REMAINING, NotFound
from applyai.core.plan_limits import PLAN_LIMITS, get_daily_credits, normalize_plan
from applyai.db.base import Base
from applyai.db.models.daily_usage import DailyUsage
from applyai.db.models.usage import UsageEvent
from applyai.db.models.user import User
from applyai.services.quota_service import (
    Allowed,
    Denied,
    check_and_reserve,
    get_or_create_daily_usage,
    get_usage_stats,
    record_usage,
)


# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

TODAY = date(2026, 3, 2)


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=test_engine)
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def test_user(db):
    """Create a free-plan test user."""
    user = User(full_name="Test User", email="test@example.com", plan="free")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def set_counters(db, user_id, api_calls_today=None, credits_remaining=None):
    usage = get_or_create_daily_usage(db, user_id, TODAY)
    if api_calls_today is not None:
        usage.api_calls_today = api_calls_today
    if credits_remaining is not None:
        usage.credits_remaining = credits_remaining
    db.commit()
    return usage


def test_daily_usage_seeded_with_plan_credits(db, test_user):
    usage = get_or_create_daily_usage(db, test_user.id, TODAY)

    assert usage.api_calls_today == 0
    assert usage.credits_remaining == get_daily_credits("free")
    assert usage.total_tokens_used == 0
    # Second call returns the same row
    assert get_or_create_daily_usage(db, test_user.id, TODAY).id == usage.id


def test_new_day_gets_fresh_counters(db, test_user):
    set_counters(db, test_user.id, api_calls_today=7, credits_remaining=0)

    tomorrow = get_or_create_daily_usage(db, test_user.id, TODAY + timedelta(days=1))

    assert tomorrow.api_calls_today == 0
    assert tomorrow.credits_remaining == get_daily_credits("free")


def test_reserve_counts_call_and_holds_credit(db, test_user):
    decision = check_and_reserve(db, test_user.id, "ats_score", TODAY)

    assert isinstance(decision, Allowed)
    assert decision.allowed is True
    assert decision.api_calls_today == 1
    assert decision.credits_remaining == get_daily_credits("free") - 1

    usage = db.query(DailyUsage).filter_by(user_id=test_user.id, date=TODAY).one()
    assert usage.api_calls_today == 1
    assert usage.credits_remaining == get_daily_credits("free") - 1


def test_no_credits_denied_and_only_event_written(db, test_user):
    set_counters(db, test_user.id, api_calls_today=2, credits_remaining=0)

    decision = check_and_reserve(db, test_user.id, "ats_score", TODAY)

    assert isinstance(decision, Denied)
    assert decision.allowed is False
    assert decision.reason == NO_CREDITS_REMAINING

    db.expire_all()
    usage = db.query(DailyUsage).filter_by(user_id=test_user.id, date=TODAY).one()
    assert usage.api_calls_today == 2
    assert usage.credits_remaining == 0

    events = db.query(UsageEvent).all()
    assert len(events) == 1
    assert events[0].success is False
    assert events[0].denied_reason == NO_CREDITS_REMAINING


def test_daily_limit_denied(db, test_user):
    max_calls = PLAN_LIMITS["free"]["max_daily_api_calls"]
    set_counters(db, test_user.id, api_calls_today=max_calls, credits_remaining=2)

    decision = check_and_reserve(db, test_user.id, "application_prepare", TODAY)

    assert isinstance(decision, Denied)
    assert decision.reason == DAILY_LIMIT_REACHED
    assert decision.max_daily_api_calls == max_calls


def test_daily_limit_reported_before_credits(db, test_user):
    max_calls = PLAN_LIMITS["free"]["max_daily_api_calls"]
    set_counters(db, test_user.id, api_calls_today=max_calls, credits_remaining=0)

    decision = check_and_reserve(db, test_user.id, "ats_score", TODAY)

    assert decision.reason == DAILY_LIMIT_REACHED


def test_record_success_keeps_credit_and_adds_tokens(db, test_user):
    decision = check_and_reserve(db, test_user.id, "ats_score", TODAY)
    record_usage(db, test_user.id, "ats_score", tokens_used=420, success=True,
                 response_time_ms=1200, usage_date=decision.usage_date)

    db.expire_all()
    usage = db.query(DailyUsage).filter_by(user_id=test_user.id, date=TODAY).one()
    assert usage.credits_remaining == get_daily_credits("free") - 1
    assert usage.api_calls_today == 1
    assert usage.total_tokens_used == 420


def test_record_failure_refunds_credit_but_keeps_call(db, test_user):
    decision = check_and_reserve(db, test_user.id, "ats_score", TODAY)
    event = record_usage(db, test_user.id, "ats_score", tokens_used=0, success=False,
                         error_message="GenerationTimeout", usage_date=decision.usage_date)

    db.expire_all()
    usage = db.query(DailyUsage).filter_by(user_id=test_user.id, date=TODAY).one()
    assert usage.credits_remaining == get_daily_credits("free")
    assert usage.api_calls_today == 1
    assert event.success is False
    assert event.error_message == "GenerationTimeout"


def test_counters_never_exceed_limits(db, test_user):
    credits = get_daily_credits("free")
    decisions = [check_and_reserve(db, test_user.id, "ats_score", TODAY) for _ in range(credits + 3)]

    assert sum(isinstance(d, Allowed) for d in decisions) == credits
    db.expire_all()
    usage = db.query(DailyUsage).filter_by(user_id=test_user.id, date=TODAY).one()
    assert usage.credits_remaining == 0
    assert usage.api_calls_today == credits


def test_unknown_user_raises_not_found(db):
    with pytest.raises(NotFound):
        check_and_reserve(db, 999, "ats_score", TODAY)


def test_usage_stats_read_only_for_fresh_day(db, test_user):
    stats = get_usage_stats(db, test_user.id, TODAY)

    assert stats["plan"] == "free"
    assert stats["api_calls_today"] == 0
    assert stats["credits_remaining"] == get_daily_credits("free")
    assert stats["can_make_api_call"] is True
    assert stats["usage_by_endpoint"] == {}
    assert db.query(DailyUsage).count() == 0


def test_usage_stats_after_activity(db, test_user):
    decision = check_and_reserve(db, test_user.id, "ats_score", TODAY)
    record_usage(db, test_user.id, "ats_score", tokens_used=100, success=True, usage_date=decision.usage_date)
    set_counters(db, test_user.id, credits_remaining=0)
    check_and_reserve(db, test_user.id, "application_prepare", TODAY)

    stats = get_usage_stats(db, test_user.id, TODAY)

    assert stats["api_calls_today"] == 1
    assert stats["can_make_api_call"] is False
    assert stats["total_tokens_used"] == 100
    # Denied attempts are logged but not counted per endpoint
    assert stats["usage_by_endpoint"] == {"ats_score": 1}
    assert len(stats["recent_usage"]) == 2
    assert {e["denied_reason"] for e in stats["recent_usage"]} == {None, NO_CREDITS_REMAINING}


def test_pro_plan_gets_more_credits(db):
    user = User(full_name="Pro User", email="pro@example.com", plan="premium")
    db.add(user)
    db.commit()

    usage = get_or_create_daily_usage(db, user.id, TODAY)

    assert normalize_plan("premium") == "pro"
    assert usage.credits_remaining == PLAN_LIMITS["pro"]["daily_credits"]


def test_concurrent_reservations_only_one_wins(tmp_path):
    """N threads racing for the last credit: exactly one is allowed."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'quota.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    setup = Session()
    user = User(full_name="Racer", email="race@example.com", plan="free")
    setup.add(user)
    setup.commit()
    user_id = user.id
    usage = get_or_create_daily_usage(setup, user_id, TODAY)
    usage.credits_remaining = 1
    setup.commit()
    setup.close()

    results = []
    errors = []
    barrier = threading.Barrier(8)

    def worker():
        session = Session()
        try:
            barrier.wait()
            results.append(check_and_reserve(session, user_id, "ats_score", TODAY))
        except Exception as e:  # surfaced by the assertion below
            errors.append(e)
        finally:
            session.close()

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert sum(isinstance(r, Allowed) for r in results) == 1
    assert sum(isinstance(r, Denied) for r in results) == 7

    check = Session()
    final = check.query(DailyUsage).filter_by(user_id=user_id, date=TODAY).one()
    assert final.credits_remaining == 0
    assert final.api_calls_today == 1
    check.close()
    engine.dispose()


def test_unknown_endpoint_rejected(db, test_user):
    with pytest.raises(ValueError):
        check_and_reserve(db, test_user.id, "cv_parse", TODAY)

    assert db.query(DailyUsage).count() == 0


def test_mid_day_downgrade_keeps_seeded_ceiling(db):
    user = User(full_name="Pro User", email="pro@example.com", plan="pro")
    db.add(user)
    db.commit()
    set_counters(db, user.id, api_calls_today=120)

    user.plan = "free"
    db.commit()

    stats = get_usage_stats(db, user.id, TODAY)
    assert stats["plan"] == "free"
    assert stats["max_daily_api_calls"] == PLAN_LIMITS["pro"]["max_daily_api_calls"]
    assert stats["api_calls_today"] <= stats["max_daily_api_calls"]

    decision = check_and_reserve(db, user.id, "ats_score", TODAY)
    assert isinstance(decision, Allowed)
    assert decision.max_daily_api_calls == PLAN_LIMITS["pro"]["max_daily_api_calls"]

    # The free ceiling takes over on the next day's record
    tomorrow = get_or_create_daily_usage(db, user.id, TODAY + timedelta(days=1))
    assert tomorrow.max_daily_api_calls == PLAN_LIMITS["free"]["max_daily_api_calls"]
    assert tomorrow.credits_remaining == PLAN_LIMITS["free"]["daily_credits"]
