from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, Boolean, Date, Text
from sqlalchemy.sql import func
from applyai.db.base import Base


class UsageEvent(Base):
    """
    Append-only log of metered call attempts.

    Written for every attempt, including ones the gate denied (denied_reason set).
    Rows are never updated after insert.
    """
    __tablename__ = "usage_events"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    endpoint = Column(String, nullable=False, index=True)  # "ats_score", "application_prepare"
    tokens_used = Column(Integer, default=0, nullable=False)
    success = Column(Boolean, default=True, nullable=False)
    response_time_ms = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)
    denied_reason = Column(String, nullable=True)  # DAILY_LIMIT_REACHED | NO_CREDITS_REMAINING
    usage_date = Column(Date, nullable=False, index=True)  # UTC day, matches DailyUsage.date
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    # Composite index for per-day aggregation by endpoint
    __table_args__ = (
        Index('idx_usage_user_date_endpoint', 'user_id', 'usage_date', 'endpoint'),
    )
