from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from applyai.db.base import Base

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True)
    plan = Column(String, default="free", nullable=False)  # free | pro | elite
    created_at = Column(DateTime(timezone=True), server_default=func.now())
