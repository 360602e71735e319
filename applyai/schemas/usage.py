"""
Pydantic schemas for usage endpoints.
"""
from datetime import date as Date, datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class UsageEventResponse(BaseModel):
    """One metered attempt."""
    endpoint: str = Field(..., description="Metered endpoint (ats_score, application_prepare)")
    created_at: datetime = Field(..., description="When the attempt was made")
    tokens_used: int = Field(0, description="Tokens consumed")
    success: bool = Field(..., description="Whether the AI path produced the result")
    response_time_ms: Optional[int] = Field(None, description="Wall time in milliseconds")
    denied_reason: Optional[str] = Field(None, description="Set when the gate denied the attempt")


class UsageStatsResponse(BaseModel):
    """Response schema for GET /api/usage/stats."""
    plan: str = Field(..., description="Current plan type (free, pro, elite)")
    date: Date = Field(..., description="UTC day the counters apply to")
    credits_remaining: int = Field(..., description="Credits left today")
    api_calls_today: int = Field(..., description="Metered calls made today")
    max_daily_api_calls: int = Field(..., description="Daily call ceiling for the plan")
    can_make_api_call: bool = Field(..., description="Whether the next metered call would be allowed")
    usage_by_endpoint: Dict[str, int] = Field(default_factory=dict, description="Calls per endpoint today")
    recent_usage: List[UsageEventResponse] = Field(default_factory=list, description="Most recent attempts")
    total_tokens_used: int = Field(0, description="Tokens consumed today")

    class Config:
        json_schema_extra = {
            "example": {
                "plan": "free",
                "date": "2026-01-15",
                "credits_remaining": 2,
                "api_calls_today": 1,
                "max_daily_api_calls": 50,
                "can_make_api_call": True,
                "usage_by_endpoint": {"ats_score": 1},
                "recent_usage": [
                    {
                        "endpoint": "ats_score",
                        "created_at": "2026-01-15T10:00:00Z",
                        "tokens_used": 812,
                        "success": True,
                        "response_time_ms": 2140,
                        "denied_reason": None
                    }
                ],
                "total_tokens_used": 812
            }
        }


class QuotaExceededResponse(BaseModel):
    """Error detail for a denied metered call (HTTP 429)."""
    error: str = Field(..., description="DAILY_LIMIT_REACHED or NO_CREDITS_REMAINING")
    message: str = Field(..., description="Human-readable error message")
    endpoint: str = Field(..., description="Endpoint that was denied")
    limit: int = Field(..., description="Daily call ceiling")
    used: int = Field(..., description="Calls made today")
    remaining: int = Field(..., description="Credits remaining")
    timestamp: str = Field(..., description="ISO timestamp of the denial")

    class Config:
        json_schema_extra = {
            "example": {
                "error": "NO_CREDITS_REMAINING",
                "message": "No credits remaining for today. Upgrade your plan for more credits.",
                "endpoint": "ats_score",
                "limit": 50,
                "used": 3,
                "remaining": 0,
                "timestamp": "2026-01-15T10:00:00+00:00"
            }
        }
