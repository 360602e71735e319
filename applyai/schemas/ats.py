"""
Pydantic schemas for ATS scoring.
"""
from datetime import datetime
from typing import List, Literal
from pydantic import BaseModel, Field


class ATSScoreRequest(BaseModel):
    """Request schema for POST /api/ats/score."""
    resume_text: str = Field(..., description="Plain-text resume")
    job_description: str = Field(..., description="Job description to score against")


class ATSScoreResponse(BaseModel):
    """Response schema for POST /api/ats/score."""
    id: int = Field(..., description="Stored score ID")
    score: int = Field(..., ge=0, le=100, description="Match score 0-100")
    matched_factors: List[str] = Field(default_factory=list, description="Requirements found in the resume")
    missing_factors: List[str] = Field(default_factory=list, description="Requirements missing from the resume")
    explanation: str = Field("", description="Human-readable explanation")
    method: Literal["ai", "basic"] = Field(..., description="ai when the model scored it, basic for keyword fallback")
    tokens_used: int = Field(0, description="Tokens consumed")
    created_at: datetime = Field(..., description="When the score was computed")

    class Config:
        json_schema_extra = {
            "example": {
                "id": 1,
                "score": 72,
                "matched_factors": ["Python", "SQL"],
                "missing_factors": ["Kubernetes"],
                "explanation": "Strong backend match; no container orchestration experience shown.",
                "method": "ai",
                "tokens_used": 812,
                "created_at": "2026-01-15T10:00:00Z"
            }
        }
