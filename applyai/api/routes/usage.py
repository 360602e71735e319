"""
Usage tracking endpoints.

Provides the daily credit and call counters for authenticated users.
"""
import logging
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from applyai.core.auth_dependency import get_db, get_current_user_obj
from applyai.db.models.user import User
from applyai.schemas.usage import UsageStatsResponse
from applyai.services.quota_service import get_usage_stats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/usage", tags=["Usage"])


@router.get("/stats", response_model=UsageStatsResponse, status_code=status.HTTP_200_OK)
def usage_stats(
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    """
    Get today's usage for the authenticated user.

    Returns credits remaining, calls made against the daily ceiling, whether
    the next metered call would be allowed, per-endpoint counts and the most
    recent attempts. Reading stats never consumes quota.
    """
    stats = get_usage_stats(db, user.id)
    logger.debug(f"Usage stats requested: user_id={user.id}, plan={stats['plan']}")
    return stats
