# ingestion.py
"""Transform webhook results into lead records."""

import json
import logging
import math
import secrets
import string
import time
from typing import Any, Dict, List, Optional

from .models import LEAD_SOURCE, LeadRecord, SearchRequest

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase

# Webhook list field -> lead column
SOCIAL_FIELDS = {
    "instagrams": "instagram",
    "facebooks": "facebook",
    "twitters": "twitter",
    "youtubes": "youtube",
    "tiktoks": "tiktok",
    "linkedins": "linkedin",
}


def generate_campaign_id() -> str:
    """Generate the identifier shared by every lead from one search."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"search-{int(time.time() * 1000)}-{suffix}"


def parse_results(body: Optional[str]) -> List[Dict[str, Any]]:
    """Parse a webhook response body into result items.

    A body that is not a JSON array yields no items; the delivery itself
    already succeeded, so this is not treated as a failure.
    """
    if not body:
        return []
    try:
        data = json.loads(body)
    except ValueError as e:
        logger.error("Failed to parse webhook response", extra={"error": str(e)})
        return []

    if not isinstance(data, list):
        logger.warning(
            "Webhook response is not a list",
            extra={"type": type(data).__name__},
        )
        return []

    items = [item for item in data if isinstance(item, dict)]
    if len(items) != len(data):
        logger.warning(
            "Skipped non-object webhook result items",
            extra={"skipped": len(data) - len(items)},
        )
    return items


def _text(value: Any) -> Optional[str]:
    """Read a scalar as text; containers, booleans and blanks become None."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, (str, int, float)):
        return str(value) or None
    return None


def _rating(value: Any) -> Optional[float]:
    """Read a star rating; zero and unreadable values mean no rating."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return None
    if isinstance(value, (int, float)) and math.isfinite(value) and value:
        return float(value)
    return None


def _count(value: Any) -> int:
    """Read a review count; anything unreadable counts as zero."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return 0
    if isinstance(value, (int, float)) and math.isfinite(value):
        return max(int(value), 0)
    return 0


def _string_list(value: Any) -> Optional[List[str]]:
    """Keep the non-empty strings of a list; None when nothing is left."""
    if not isinstance(value, list):
        return None
    strings = [entry for entry in value if isinstance(entry, str) and entry]
    return strings or None


def _last_review_date(item: Dict[str, Any]) -> Optional[str]:
    flat = _text(item.get("reviews[0].publishAt"))
    if flat:
        return flat
    reviews = item.get("reviews")
    if isinstance(reviews, list) and reviews and isinstance(reviews[0], dict):
        return _text(reviews[0].get("publishAt"))
    return None


def build_lead_record(
    item: Dict[str, Any],
    request: SearchRequest,
    user_id: str,
    campaign_id: str,
) -> LeadRecord:
    """Map one webhook result item to a lead record.

    Items are loosely typed, so every field is read leniently: numbers given
    as text are parsed, numeric phone numbers become text, and values of the
    wrong shape are dropped instead of failing the whole batch.

    Args:
        item: Result item returned by the webhook.
        request: The search that produced the item; supplies niche and the
            city/country fallbacks.
        user_id: Owner of the new lead.
        campaign_id: Identifier shared by the whole search batch.

    Returns:
        LeadRecord ready for insertion.
    """
    city = _text(item.get("city")) or request.city
    country = _text(item.get("countryCode")) or request.country
    state = _text(item.get("state")) or ""
    website = _text(item.get("website"))

    emails = _string_list(item.get("emails")) or []

    socials = {
        column: _string_list(item.get(field))
        for field, column in SOCIAL_FIELDS.items()
    }

    return LeadRecord(
        user_id=user_id,
        name=_text(item.get("title")) or "N/A",
        niche=request.niche,
        city=city,
        country=country,
        rating=_rating(item.get("totalScore")),
        reviews=_count(item.get("reviewsCount")),
        phone=_text(item.get("phoneUnformatted")),
        email=emails[0] if emails else None,
        additional_emails=emails[1:] or None,
        website=website,
        has_website=bool(website),
        address=f"{city}, {state}, {country}",
        maps_url=_text(item.get("url")),
        image_url=_text(item.get("imageUrl")),
        last_review_date=_last_review_date(item),
        campaign=campaign_id,
        source=LEAD_SOURCE,
        **socials,
    )


def build_lead_records(
    items: List[Dict[str, Any]],
    request: SearchRequest,
    user_id: str,
    campaign_id: str,
) -> List[LeadRecord]:
    """Map every webhook result item to a lead record sharing one campaign."""
    return [
        build_lead_record(item, request, user_id, campaign_id) for item in items
    ]
