# models.py
"""Pydantic models for relay requests, webhook payloads, audit logs and leads."""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

LEAD_SOURCE = "webhook-search"

# Attempts at or above this count mark a failed delivery as "failed" rather than "queued"
FAILED_ATTEMPTS_THRESHOLD = 3

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def _parse_int(value: Any) -> Optional[int]:
    """Parse the leading integer of a value the way a form field is read.

    Returns None when no integer can be read.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    match = _LEADING_INT.match(str(value))
    if match is None:
        return None
    return int(match.group(1))


class DeliveryStatus(str, Enum):
    """Outcome recorded in the webhook audit log."""

    SUCCESS = "success"
    FAILED = "failed"
    QUEUED = "queued"


def derive_log_status(success: bool, attempts: int) -> DeliveryStatus:
    """Map a delivery outcome to its audit status.

    A failure that took fewer than three attempts is recorded as ``queued``:
    it gave up quickly and is worth a manual retry soon.
    """
    if success:
        return DeliveryStatus.SUCCESS
    if attempts >= FAILED_ATTEMPTS_THRESHOLD:
        return DeliveryStatus.FAILED
    return DeliveryStatus.QUEUED


class SearchRequest(BaseModel):
    """Lead search criteria sent by the CRM frontend.

    Field names follow the frontend's camelCase body. ``niche``, ``country``
    and ``city`` default to empty strings; the relay rejects them after the
    caller has been authenticated.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    niche: str = Field(default="", description="Niche display name")
    country: str = Field(default="", description="Country name (English)")
    city: str = Field(default="", description="City name")
    min_rating: Optional[str] = Field(default=None, alias="minRating")
    has_website: Optional[str] = Field(default=None, alias="hasWebsite")
    min_reviews: Optional[int] = Field(default=None, alias="minReviews")
    include_social_media: Optional[bool] = Field(
        default=None, alias="includeSocialMedia"
    )
    max_results: Optional[int] = Field(default=None, alias="maxResults")
    webhook_url: Optional[str] = Field(default=None, alias="webhookUrl")

    @field_validator("niche", "country", "city", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> str:
        if v is None:
            return ""
        return str(v).strip()

    @field_validator("min_rating", "has_website", mode="before")
    @classmethod
    def coerce_token(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        return str(v).strip()

    @field_validator("min_reviews", mode="before")
    @classmethod
    def parse_min_reviews(cls, v: Any) -> Optional[int]:
        """Blank means no constraint; unreadable numbers count as zero."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        parsed = _parse_int(v)
        if parsed is None:
            return 0
        return max(parsed, 0)

    @field_validator("max_results", mode="before")
    @classmethod
    def parse_max_results(cls, v: Any) -> Optional[int]:
        """Keep only positive counts; unreadable counts fall back to 20."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        parsed = _parse_int(v)
        if parsed is None:
            return 20
        return parsed if parsed > 0 else None

    @field_validator("webhook_url", mode="before")
    @classmethod
    def blank_url_is_none(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    def missing_fields(self) -> List[str]:
        """Return the names of required fields that are empty."""
        return [
            name
            for name in ("country", "city", "niche")
            if not getattr(self, name)
        ]


class WebhookPayload(BaseModel):
    """Wire body POSTed to the automation webhook."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    country: str
    region: str
    city: str
    minimum_rating: str = Field(default="", alias="minimumRating")
    website_status: str = Field(default="allPlaces", alias="websiteStatus")
    min_reviews: Optional[int] = Field(default=None, alias="minReviews")
    include_social_media: Optional[bool] = Field(
        default=None, alias="includeSocialMedia"
    )
    max_results: Optional[int] = Field(default=None, alias="maxResults")

    def to_wire(self) -> dict:
        """Serialize with the webhook's key names, omitting absent options."""
        return self.model_dump(by_alias=True, exclude_none=True)


class DeliveryAttemptLog(BaseModel):
    """Audit record summarizing one relay invocation's delivery attempts."""

    user_id: str
    payload: dict
    webhook_url: str
    status: DeliveryStatus
    attempts: int = Field(..., ge=1)
    last_attempt_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    response_code: Optional[int] = None
    response_body: Optional[str] = None


class LeadRecord(BaseModel):
    """Business lead created from one webhook result item."""

    user_id: str
    name: str = "N/A"
    niche: str
    city: str
    country: str
    rating: Optional[float] = None
    reviews: int = 0
    phone: Optional[str] = None
    email: Optional[str] = None
    additional_emails: Optional[List[str]] = None
    website: Optional[str] = None
    has_website: bool = False
    instagram: Optional[List[str]] = None
    facebook: Optional[List[str]] = None
    twitter: Optional[List[str]] = None
    youtube: Optional[List[str]] = None
    tiktok: Optional[List[str]] = None
    linkedin: Optional[List[str]] = None
    address: str = ""
    maps_url: Optional[str] = None
    image_url: Optional[str] = None
    last_review_date: Optional[str] = None
    campaign: str
    source: str = LEAD_SOURCE


class RelayResponse(BaseModel):
    """Body returned to the frontend after a relay invocation."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: Optional[str] = None
    saved_count: Optional[int] = Field(default=None, alias="savedCount")
    attempts: Optional[int] = None
    error: Optional[str] = None
    details: Optional[str] = None
    status_code: int = Field(default=200, exclude=True)

    def to_body(self) -> dict:
        """Serialize with camelCase keys, omitting empty fields."""
        return self.model_dump(by_alias=True, exclude_none=True)
