"""
Pydantic schemas for the Admin API
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from uuid import UUID
from datetime import date, datetime


class LoginRequest(BaseModel):
    username: str
    password: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class PixelResponse(BaseModel):
    """Schema for pixel listing"""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    external_id: str
    name: str
    shop: str
    enabled: bool
    website_domain: Optional[str] = None
    forwarding_enabled: bool = False
    external_pixel_id: Optional[str] = None
    has_access_token: bool = False
    token_expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class DomainUpdate(BaseModel):
    website_domain: str = Field(..., min_length=1, max_length=255)


class DailyStatResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: date
    pageviews: int
    unique_users: int
    sessions: int
    purchases: int
    revenue: float


class StatsTotals(BaseModel):
    pageviews: int = 0
    unique_users: int = 0
    sessions: int = 0
    purchases: int = 0
    revenue: float = 0.0


class StatsResponse(BaseModel):
    external_id: str
    days: int
    totals: StatsTotals
    daily: List[DailyStatResponse]
    cached_at: datetime


class TokenRefreshResponse(BaseModel):
    refreshed: int
    failed: int
    total: int
