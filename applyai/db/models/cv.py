from sqlalchemy import Column, Integer, String, ForeignKey, Text, DateTime, JSON
from sqlalchemy.sql import func
from applyai.db.base import Base


class Cv(Base):
    __tablename__ = "cvs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    file_name = Column(String, nullable=False)
    original_content = Column(Text, nullable=True)
    full_name = Column(String, nullable=True)
    email = Column(String, nullable=True)
    skills = Column(JSON, nullable=True)  # list of skill strings
    experience = Column(Text, nullable=True)
    education = Column(Text, nullable=True)
    parsed_data = Column(JSON, nullable=True)  # extraction details (processing_method, etc.)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
