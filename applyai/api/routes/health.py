"""
Health check endpoint for deployment monitoring.
"""
from datetime import datetime, timezone
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from applyai.core.auth_dependency import get_db
from applyai.llm.runner import GenerationRunner, get_generation_runner

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
def health_check(
    db: Session = Depends(get_db),
    runner: GenerationRunner = Depends(get_generation_runner),
):
    """
    Health check endpoint for deployment monitoring.

    Returns 200 if the API is up. Status is "degraded" when the database is
    unreachable; AI being unavailable is reported but does not degrade, since
    metered endpoints fall back to basic mode.
    """
    status = "healthy"

    # Check database connectivity
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception as e:
        db_status = f"error: {str(e)}"
        status = "degraded"

    return {
        "status": status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": db_status,
        "ai": "available" if runner.available else "basic_mode",
        "version": "1.0.0",
    }
