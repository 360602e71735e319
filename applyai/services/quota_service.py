"""
Quota service for daily usage limits and tracking.

Holds the per-user, per-UTC-day counters (DailyUsage) and the usage gate:
check_and_reserve() before a metered operation, record_usage() after it.

The reservation is a single conditional UPDATE, so two concurrent requests for
the same user can never both take the last credit. A reservation counts the
call toward the daily ceiling and holds one credit; record_usage() hands the
credit back when the operation failed.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Union

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from applyai.core.errors import DAILY_LIMIT_REACHED, NO_CREDITS_REMAINING, USER_NOT_FOUND, NotFound
from applyai.core.plan_limits import METERED_ENDPOINTS, get_daily_credits, get_max_daily_api_calls, normalize_plan
from applyai.db.models.daily_usage import DailyUsage
from applyai.db.models.usage import UsageEvent
from applyai.db.models.user import User

logger = logging.getLogger(__name__)

RECENT_USAGE_LIMIT = 10


def utc_today() -> date:
    """Current UTC date; daily counters roll over at UTC midnight."""
    return datetime.now(timezone.utc).date()


@dataclass(frozen=True)
class Allowed:
    """Gate decision: the caller may proceed and must call record_usage() afterwards."""
    endpoint: str
    usage_date: date
    api_calls_today: int
    max_daily_api_calls: int
    credits_remaining: int
    allowed: bool = field(default=True, init=False)


@dataclass(frozen=True)
class Denied:
    """Gate decision: quota exhausted, nothing was reserved."""
    endpoint: str
    usage_date: date
    reason: str  # DAILY_LIMIT_REACHED | NO_CREDITS_REMAINING
    api_calls_today: int
    max_daily_api_calls: int
    credits_remaining: int
    allowed: bool = field(default=False, init=False)


GateDecision = Union[Allowed, Denied]


def get_plan_for_user(db: Session, user_id: int) -> str:
    """
    Get user's plan type, defaulting to 'free'.

    Raises:
        NotFound: if the user does not exist
    """
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFound("User not found", code=USER_NOT_FOUND)
    return normalize_plan(user.plan)


def _get_daily_usage(db: Session, user_id: int, usage_date: date) -> Optional[DailyUsage]:
    return db.query(DailyUsage).filter(
        DailyUsage.user_id == user_id,
        DailyUsage.date == usage_date
    ).first()


def get_or_create_daily_usage(db: Session, user_id: int, usage_date: Optional[date] = None) -> DailyUsage:
    """
    Get today's usage record for a user, creating it on first use of the day.

    A new record starts with zero calls and takes the call ceiling and daily
    credits from the user's plan at that moment; both stay fixed for the day.
    """
    usage_date = usage_date or utc_today()
    usage = _get_daily_usage(db, user_id, usage_date)
    if usage:
        return usage

    plan_type = get_plan_for_user(db, user_id)
    usage = DailyUsage(
        user_id=user_id,
        date=usage_date,
        api_calls_today=0,
        max_daily_api_calls=get_max_daily_api_calls(plan_type),
        credits_remaining=get_daily_credits(plan_type),
        total_tokens_used=0,
    )
    db.add(usage)
    try:
        db.commit()
    except IntegrityError:
        # Another request created the row first
        db.rollback()
        usage = _get_daily_usage(db, user_id, usage_date)
    else:
        db.refresh(usage)
        logger.info(
            f"Daily usage record created: user_id={user_id}, date={usage_date}, "
            f"plan={plan_type}, credits={usage.credits_remaining}"
        )
    return usage


def _log_event(
    db: Session,
    user_id: int,
    endpoint: str,
    usage_date: date,
    tokens_used: int = 0,
    success: bool = True,
    response_time_ms: Optional[int] = None,
    error_message: Optional[str] = None,
    denied_reason: Optional[str] = None,
) -> UsageEvent:
    event = UsageEvent(
        user_id=user_id,
        endpoint=endpoint,
        tokens_used=max(0, int(tokens_used or 0)),
        success=success,
        response_time_ms=response_time_ms,
        error_message=error_message[:1000] if error_message else None,
        denied_reason=denied_reason,
        usage_date=usage_date,
    )
    db.add(event)
    return event


def check_and_reserve(
    db: Session,
    user_id: int,
    endpoint: str,
    usage_date: Optional[date] = None
) -> GateDecision:
    """
    Decide whether a metered operation may proceed, reserving quota if so.

    On Allowed, one daily call is counted and one credit is held. The caller
    must call record_usage() with the same usage_date once the operation ends,
    whether it succeeded or not.

    On Denied, counters are untouched and a UsageEvent with denied_reason is logged.

    Args:
        db: Database session
        user_id: User ID
        endpoint: Metered endpoint name (ats_score, application_prepare)
        usage_date: UTC day to meter against (default: today)

    Returns:
        Allowed or Denied

    Raises:
        ValueError: endpoint is not a metered endpoint
    """
    if endpoint not in METERED_ENDPOINTS:
        raise ValueError(f"Unknown metered endpoint: {endpoint}")

    usage_date = usage_date or utc_today()
    plan_type = get_plan_for_user(db, user_id)
    max_calls = get_or_create_daily_usage(db, user_id, usage_date).max_daily_api_calls

    result = db.execute(
        update(DailyUsage)
        .where(
            DailyUsage.user_id == user_id,
            DailyUsage.date == usage_date,
            DailyUsage.api_calls_today < DailyUsage.max_daily_api_calls,
            DailyUsage.credits_remaining > 0,
        )
        .values(
            api_calls_today=DailyUsage.api_calls_today + 1,
            credits_remaining=DailyUsage.credits_remaining - 1,
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()
    reserved = result.rowcount == 1

    usage = _get_daily_usage(db, user_id, usage_date)
    db.refresh(usage)

    if reserved:
        logger.info(
            f"Usage reserved: user_id={user_id}, endpoint={endpoint}, "
            f"calls={usage.api_calls_today}/{max_calls}, credits_remaining={usage.credits_remaining}, plan={plan_type}"
        )
        return Allowed(
            endpoint=endpoint,
            usage_date=usage_date,
            api_calls_today=usage.api_calls_today,
            max_daily_api_calls=max_calls,
            credits_remaining=usage.credits_remaining,
        )

    if usage.api_calls_today >= max_calls:
        reason = DAILY_LIMIT_REACHED
    else:
        reason = NO_CREDITS_REMAINING

    _log_event(db, user_id, endpoint, usage_date, success=False, error_message=reason, denied_reason=reason)
    db.commit()

    logger.warning(
        f"Usage denied: user_id={user_id}, endpoint={endpoint}, reason={reason}, "
        f"calls={usage.api_calls_today}/{max_calls}, credits_remaining={usage.credits_remaining}, plan={plan_type}"
    )
    return Denied(
        endpoint=endpoint,
        usage_date=usage_date,
        reason=reason,
        api_calls_today=usage.api_calls_today,
        max_daily_api_calls=max_calls,
        credits_remaining=usage.credits_remaining,
    )


def record_usage(
    db: Session,
    user_id: int,
    endpoint: str,
    tokens_used: int = 0,
    success: bool = True,
    response_time_ms: Optional[int] = None,
    error_message: Optional[str] = None,
    usage_date: Optional[date] = None,
) -> UsageEvent:
    """
    Record the outcome of an operation that check_and_reserve() allowed.

    Adds tokens to the day's total and appends a UsageEvent. A failed
    operation keeps its daily call but gets its held credit back.

    Args:
        db: Database session
        user_id: User ID
        endpoint: Metered endpoint name
        tokens_used: Tokens consumed by the generation service
        success: Whether the AI path produced the result
        response_time_ms: Wall time of the operation
        error_message: Failure detail, if any
        usage_date: Day the reservation was made on (default: today)

    Returns:
        The UsageEvent written
    """
    usage_date = usage_date or utc_today()
    tokens_used = max(0, int(tokens_used or 0))

    values = {"total_tokens_used": DailyUsage.total_tokens_used + tokens_used}
    if not success:
        values["credits_remaining"] = DailyUsage.credits_remaining + 1

    db.execute(
        update(DailyUsage)
        .where(DailyUsage.user_id == user_id, DailyUsage.date == usage_date)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    event = _log_event(
        db, user_id, endpoint, usage_date,
        tokens_used=tokens_used,
        success=success,
        response_time_ms=response_time_ms,
        error_message=error_message,
    )
    db.commit()
    db.refresh(event)

    logger.info(
        f"Usage recorded: user_id={user_id}, endpoint={endpoint}, tokens={tokens_used}, "
        f"success={success}, response_time_ms={response_time_ms}"
    )
    return event


def get_usage_by_endpoint(db: Session, user_id: int, usage_date: date) -> Dict[str, int]:
    """Count of reserved (non-denied) calls per endpoint for a day."""
    rows = db.query(
        UsageEvent.endpoint,
        func.count(UsageEvent.id).label('total')
    ).filter(
        UsageEvent.user_id == user_id,
        UsageEvent.usage_date == usage_date,
        UsageEvent.denied_reason.is_(None),
    ).group_by(UsageEvent.endpoint).all()

    return {endpoint: int(total) for endpoint, total in rows}


def get_recent_usage(db: Session, user_id: int, limit: int = RECENT_USAGE_LIMIT) -> List[UsageEvent]:
    return db.query(UsageEvent).filter(
        UsageEvent.user_id == user_id
    ).order_by(UsageEvent.created_at.desc(), UsageEvent.id.desc()).limit(limit).all()


def get_usage_stats(db: Session, user_id: int, usage_date: Optional[date] = None) -> Dict:
    """
    Get usage data formatted for GET /api/usage/stats.

    Read-only: when the user has not made a metered call today, the plan's
    fresh-day values are reported without creating a record. Otherwise the
    limits seeded on the day's record apply, even after a plan change.
    """
    usage_date = usage_date or utc_today()
    plan_type = get_plan_for_user(db, user_id)

    usage = _get_daily_usage(db, user_id, usage_date)
    if usage:
        max_calls = usage.max_daily_api_calls
        api_calls_today = usage.api_calls_today
        credits_remaining = usage.credits_remaining
        total_tokens_used = usage.total_tokens_used
    else:
        max_calls = get_max_daily_api_calls(plan_type)
        api_calls_today = 0
        credits_remaining = get_daily_credits(plan_type)
        total_tokens_used = 0

    recent_usage = [
        {
            "endpoint": event.endpoint,
            "created_at": event.created_at,
            "tokens_used": event.tokens_used,
            "success": event.success,
            "response_time_ms": event.response_time_ms,
            "denied_reason": event.denied_reason,
        }
        for event in get_recent_usage(db, user_id)
    ]

    return {
        "plan": plan_type,
        "date": usage_date,
        "credits_remaining": credits_remaining,
        "api_calls_today": api_calls_today,
        "max_daily_api_calls": max_calls,
        "can_make_api_call": api_calls_today < max_calls and credits_remaining > 0,
        "usage_by_endpoint": get_usage_by_endpoint(db, user_id, usage_date),
        "recent_usage": recent_usage,
        "total_tokens_used": total_tokens_used,
    }
