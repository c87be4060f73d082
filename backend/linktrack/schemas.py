from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Dict, List, Optional
from datetime import date, datetime
import re

from .security import validate_destination_url

SLUG_PATTERN = re.compile(r'^[a-z0-9][a-z0-9-]*$')


class ProjectCreate(BaseModel):
    """Input for creating a project."""

    owner_id: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    slug: Optional[str] = Field(
        None,
        min_length=1,
        max_length=32,
        description="Custom project slug (optional, generated when omitted)"
    )

    @field_validator('slug')
    @classmethod
    def validate_slug(cls, v):
        if v is None:
            return v
        v = v.strip().lower()
        if not SLUG_PATTERN.match(v):
            raise ValueError('Slug must contain only lowercase letters, numbers and hyphens')
        return v


class LinkCreate(BaseModel):
    """Input for adding a tracked link to a project."""

    destination_url: str = Field(..., description="Where visitors are redirected")
    link_title: str = Field(..., min_length=1, max_length=255)
    platform: Optional[str] = Field(None, max_length=100)

    @field_validator('destination_url')
    @classmethod
    def validate_destination(cls, v):
        v = v.strip()
        is_valid, error = validate_destination_url(v)
        if not is_valid:
            raise ValueError(error or 'Invalid destination URL')
        return v


class ClickEventResponse(BaseModel):
    """A stored click, exactly as recorded."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    link_id: int
    platform_name: Optional[str]
    creator_username: Optional[str]
    submission_number: Optional[str]
    ip_address: Optional[str]
    user_agent: Optional[str]
    referrer: Optional[str]
    country: Optional[str]
    city: Optional[str]
    device_type: str
    browser: str
    os: str
    is_bot: bool
    clicked_at: datetime


class DailyCountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: date
    label: str
    count: int


class CreatorSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    username: str
    total_clicks: int
    last_click: Optional[datetime]
    submissions: int


class AnalyticsResponse(BaseModel):
    """Dashboard statistics for a link or a whole project."""
    model_config = ConfigDict(from_attributes=True)

    start: date
    end: date
    total_clicks: int
    clicks_by_link_title: Dict[str, int]
    clicks_by_creator: Dict[str, int]
    clicks_by_submission: Dict[str, int]
    clicks_by_country: Dict[str, int]
    clicks_by_device: Dict[str, int]
    clicks_by_browser: Dict[str, int]
    daily: List[DailyCountResponse]
    recent: List[ClickEventResponse]
    creators: List[CreatorSummaryResponse]


class CreatorAnalyticsResponse(BaseModel):
    """Drill-down statistics for one creator."""
    model_config = ConfigDict(from_attributes=True)

    creator: str
    selected_submission: str
    total_clicks: int
    submissions: List[str]
    clicks_by_submission: Dict[str, int]
    clicks_by_country: Dict[str, int]
    clicks_by_device: Dict[str, int]
    clicks_by_browser: Dict[str, int]
    recent: List[ClickEventResponse]


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    database: bool
    redis: bool
    version: str
