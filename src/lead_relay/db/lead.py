"""Lead SQLAlchemy model for businesses returned by webhook searches."""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, Float, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from . import Base


class Lead(Base):
    """SQLAlchemy model representing a business lead.

    Leads created by one search share a ``campaign`` identifier so the
    frontend can group or undo a whole batch. The relay only inserts rows;
    saving, status changes and deletion belong to the CRM frontend.

    Attributes:
        id: Unique identifier for the lead (UUID).
        user_id: Owner of the lead.
        name: Business name ("N/A" when the webhook omitted it).
        niche: Niche display name the search was run for.
        rating: Maps star rating.
        reviews: Number of reviews.
        additional_emails: Emails beyond the first one (JSON array).
        instagram, facebook, twitter, youtube, tiktok, linkedin: Social
            profile URLs (JSON arrays).
        campaign: Search batch identifier.
        source: Origin of the lead ("webhook-search").
    """

    __tablename__ = "leads"

    # Primary key
    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )

    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    # Core business information
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    niche: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str] = mapped_column(String(255), nullable=False)
    country: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Rating and review data
    rating: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    reviews: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, default=0)
    last_review_date: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # Contact data
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    additional_emails: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    website: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    has_website: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)

    # Social profiles
    instagram: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    facebook: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    twitter: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    youtube: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    tiktok: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    linkedin: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)

    # Maps data
    maps_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Batch tracking
    campaign: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        index=True,
        comment="Search batch identifier shared by one relay invocation"
    )
    source: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    def __repr__(self) -> str:
        return f"<Lead(id={self.id!r}, name={self.name!r}, campaign={self.campaign!r})>"
