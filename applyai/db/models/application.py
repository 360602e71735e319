from sqlalchemy import Column, Integer, String, ForeignKey, Text, DateTime, JSON, Index
from sqlalchemy.sql import func
from applyai.db.base import Base

# Tracking statuses, in the order an application usually moves through them
APPLICATION_STATUSES = ("applied", "viewed", "interviewing", "offered", "rejected")


class Application(Base):
    """
    Tracked job application.

    Carries the preparation state (preparation_status, tailored_cv, cover_letter,
    preparation_metadata). Those columns are written only by preparation_service;
    the tracking fields (status, notes) are updated through application_service.
    """
    __tablename__ = "applications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    company = Column(String, nullable=False)
    job_title = Column(String, nullable=False)
    location = Column(String, nullable=True)
    job_description = Column(Text, nullable=True)
    requirements = Column(JSON, nullable=True)  # list of requirement keywords
    status = Column(String, default="applied", nullable=False)  # one of APPLICATION_STATUSES
    match_score = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)

    # Preparation state
    preparation_status = Column(String, default="pending", nullable=False)  # pending, preparing, ready, failed
    tailored_cv = Column(Text, nullable=True)
    cover_letter = Column(Text, nullable=True)
    preparation_metadata = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        Index('idx_application_user_created', 'user_id', 'created_at'),
    )

    def __repr__(self):
        return f"<Application(id={self.id}, user_id={self.user_id}, preparation_status={self.preparation_status})>"
