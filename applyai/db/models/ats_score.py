from sqlalchemy import Column, Integer, String, ForeignKey, Text, DateTime, JSON
from sqlalchemy.sql import func
from applyai.db.base import Base

class ATSScore(Base):
    __tablename__ = "ats_scores"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    score_percentage = Column(Integer, nullable=False)
    matched_factors = Column(JSON, nullable=True)
    missing_factors = Column(JSON, nullable=True)
    explanation = Column(Text, nullable=True)
    method = Column(String, nullable=False)  # "ai" | "basic"
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
