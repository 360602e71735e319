"""
Plan-based usage limits configuration.

Single source of truth for daily call ceilings and daily credit allowances.
Every metered endpoint draws from the same daily pool.
"""
from typing import Dict, List

from applyai.core.config import MAX_DAILY_API_CALLS, FREE_DAILY_CREDITS

# Metered endpoints (recorded on UsageEvent.endpoint)
METERED_ENDPOINTS: List[str] = [
    "ats_score",
    "application_prepare",
]

# Plan limits (per UTC day)
PLAN_LIMITS: Dict[str, Dict[str, int]] = {
    "free": {
        "max_daily_api_calls": MAX_DAILY_API_CALLS,
        "daily_credits": FREE_DAILY_CREDITS,
    },
    "pro": {
        "max_daily_api_calls": 200,
        "daily_credits": 50,
    },
    "elite": {
        "max_daily_api_calls": 500,
        "daily_credits": 200,
    },
}


def normalize_plan(plan_type: str) -> str:
    """Map legacy plan names onto the current tiers, defaulting to free."""
    plan_type = (plan_type or "free").lower()
    # Legacy names from the first pricing page
    if plan_type in ("explorer", "basic"):
        return "free"
    if plan_type == "premium":
        return "pro"
    return plan_type if plan_type in PLAN_LIMITS else "free"


def get_plan_limits(plan_type: str) -> Dict[str, int]:
    """Get daily limits for a plan type."""
    return PLAN_LIMITS[normalize_plan(plan_type)]


def get_max_daily_api_calls(plan_type: str) -> int:
    return get_plan_limits(plan_type)["max_daily_api_calls"]


def get_daily_credits(plan_type: str) -> int:
    return get_plan_limits(plan_type)["daily_credits"]
