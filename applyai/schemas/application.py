"""
Pydantic schemas for application tracking and preparation.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_validator

from applyai.db.models.application import APPLICATION_STATUSES


class ApplicationCreate(BaseModel):
    """Schema for creating a tracked application."""
    company: str = Field(..., description="Company name", min_length=1, max_length=255)
    job_title: str = Field(..., description="Job title", min_length=1, max_length=255)
    location: Optional[str] = Field(None, description="Job location")
    job_description: Optional[str] = Field(None, description="Full job description")
    requirements: Optional[List[str]] = Field(None, description="Requirement keywords; extracted when omitted")
    notes: Optional[str] = Field(None, description="Notes about this application")

    @field_validator("company", "job_title")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class ApplicationUpdate(BaseModel):
    """Schema for updating the tracking fields of an application. Omitted fields are left unchanged."""
    status: Optional[str] = Field(None, description="applied, viewed, interviewing, offered or rejected")
    notes: Optional[str] = Field(None, description="Notes about this application")

    @field_validator("status")
    @classmethod
    def known_status(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip().lower()
        if value not in APPLICATION_STATUSES:
            raise ValueError(f"must be one of: {', '.join(APPLICATION_STATUSES)}")
        return value

    class Config:
        json_schema_extra = {
            "example": {"status": "interviewing", "notes": "First round booked for Tuesday"}
        }


class ApplicationResponse(BaseModel):
    """Schema for application response."""
    id: int = Field(..., description="Application ID")
    company: str
    job_title: str
    location: Optional[str] = None
    job_description: Optional[str] = None
    requirements: List[str] = Field(default_factory=list)
    status: str = Field(..., description="Tracking status")
    match_score: Optional[int] = Field(None, description="Latest job match score")
    notes: Optional[str] = None
    preparation_status: str = Field(..., description="pending, preparing, ready or failed")
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    @field_validator("requirements", mode="before")
    @classmethod
    def default_requirements(cls, value: Any) -> Any:
        return value or []


class PreparationStateResponse(BaseModel):
    """Response schema for application preparation."""
    application_id: int = Field(..., description="Application ID")
    status: str = Field(..., description="pending, preparing, ready or failed")
    tailored_cv: Optional[str] = Field(None, description="CV tailored to the job")
    cover_letter: Optional[str] = Field(None, description="Cover letter for the job")
    match_score: Optional[int] = Field(None, description="Job match score from the analysis step")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Per-step method, tokens and timings")
    updated_at: Optional[datetime] = None

    class Config:
        json_schema_extra = {
            "example": {
                "application_id": 1,
                "status": "ready",
                "tailored_cv": "SKILLS: Python, SQL, Docker\n\nEXPERIENCE: ...",
                "cover_letter": "Dear Hiring Manager, ...",
                "match_score": 68,
                "metadata": {
                    "started_at": "2026-01-15T10:00:00+00:00",
                    "steps": {
                        "analysis": {"method": "ai", "score": 68, "tokens_used": 410, "processing_time_ms": 1800},
                        "tailored_cv": {"method": "ai", "tokens_used": 950, "processing_time_ms": 4200,
                                        "key_changes": ["AI-optimized for job requirements"]},
                        "cover_letter": {"method": "basic", "tokens_used": 0, "processing_time_ms": 8001,
                                         "template_used": "default_cover_letter",
                                         "fallback_reason": "GenerationTimeout"}
                    },
                    "method": "mixed",
                    "total_tokens": 1360,
                    "prepared_at": "2026-01-15T10:00:14+00:00"
                },
                "updated_at": "2026-01-15T10:00:14Z"
            }
        }
