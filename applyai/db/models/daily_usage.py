from sqlalchemy import Column, Integer, ForeignKey, Date, UniqueConstraint, CheckConstraint
from applyai.db.base import Base


class DailyUsage(Base):
    """
    Per-user, per-UTC-day usage counters.

    One row per (user_id, date). A row is created lazily on the first metered
    call of the day, so a new day starts with fresh counters without any reset job.
    Both the call ceiling and the credits are fixed from the plan at that point;
    a plan change applies from the next row.
    Only the usage gate in quota_service mutates these columns.
    """
    __tablename__ = "daily_usage"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    api_calls_today = Column(Integer, default=0, nullable=False)
    max_daily_api_calls = Column(Integer, nullable=False)  # plan ceiling when the row was seeded
    credits_remaining = Column(Integer, default=0, nullable=False)
    total_tokens_used = Column(Integer, default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint('user_id', 'date', name='uq_daily_usage_user_date'),
        CheckConstraint('credits_remaining >= 0', name='ck_daily_usage_credits_non_negative'),
    )

    def __repr__(self):
        return (
            f"<DailyUsage(user_id={self.user_id}, date={self.date}, "
            f"calls={self.api_calls_today}, credits={self.credits_remaining})>"
        )
