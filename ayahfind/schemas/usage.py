"""
Pydantic schemas for usage endpoints.

Null limit/remaining mean unlimited (premium).
"""
from datetime import datetime
from typing import Optional
from pydantic import ConfigDict, Field

from ayahfind.schemas.base import CamelModel


class SearchAllowanceResponse(CamelModel):
    """Response schema for GET /usage/validate."""
    allowed: bool
    remaining: Optional[int] = Field(None, description="Searches left in the window (None for unlimited)")
    limit: Optional[int] = Field(None, description="Daily limit (None for unlimited)")
    reason: Optional[str] = None


class UsageStatsResponse(CamelModel):
    """Response schema for GET /usage/stats."""
    used: int = Field(..., description="Searches in the current window")
    remaining: Optional[int] = Field(None, description="Remaining searches (None for unlimited)")
    limit: Optional[int] = Field(None, description="Daily limit (None for unlimited)")
    reset_at: datetime = Field(..., description="UTC time the current window ends")
    subscription_tier: str
    unlimited: bool = False

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "used": 3,
                "remaining": 2,
                "limit": 5,
                "resetAt": "2026-01-02T00:00:00",
                "subscriptionTier": "free",
                "unlimited": False
            }
        }
    )


class UsageIncrementResponse(CamelModel):
    message: str
    usage: UsageStatsResponse
