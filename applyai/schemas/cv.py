"""
Pydantic schemas for CV endpoints.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class CvCreate(BaseModel):
    """Schema for uploading CV text."""
    file_name: str = Field("cv.txt", description="Original file name", min_length=1, max_length=255)
    content: str = Field(..., description="Plain-text CV content")
    skills: Optional[List[str]] = Field(None, description="Skills; extracted from the content when omitted")
    experience: Optional[str] = Field(None, description="Experience summary; extracted when omitted")
    education: Optional[str] = Field(None, description="Education summary; extracted when omitted")


class CvResponse(BaseModel):
    """Schema for CV response."""
    id: int
    file_name: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    skills: List[str] = Field(default_factory=list)
    experience: Optional[str] = None
    education: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
