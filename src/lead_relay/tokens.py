# tokens.py
"""Filter token normalization for the automation webhook.

The webhook expects a closed vocabulary for its rating and website filters.
Both normalizers are total: every input maps to a token, and unrecognized
input falls back to the most permissive filter instead of raising.
"""

from typing import Optional

from .models import SearchRequest, WebhookPayload

NO_RATING_CONSTRAINT = ""

MINIMUM_RATING_TOKENS = {
    "2": "two",
    "2.5": "twoAndHalf",
    "3": "three",
    "3.5": "threeAndHalf",
    "4": "four",
    "4.5": "fourAndHalf",
}

ALL_PLACES = "allPlaces"
WITH_WEBSITE = "withWebsite"
WITHOUT_WEBSITE = "withoutWebsite"

# Inputs meaning "no website filter"
UNFILTERED_WEBSITE_VALUES = frozenset({"", "none", ALL_PLACES})


def normalize_minimum_rating(raw: Optional[str]) -> str:
    """Map a UI rating value to the webhook's rating token.

    Args:
        raw: One of "2", "2.5", ..., "4.5"; empty, "none" or None for no minimum.

    Returns:
        The mapped token, or "" (no constraint) for anything unrecognized.
    """
    if raw is None:
        return NO_RATING_CONSTRAINT
    return MINIMUM_RATING_TOKENS.get(raw, NO_RATING_CONSTRAINT)


def normalize_website_status(raw: Optional[str]) -> str:
    """Map a UI website filter to the webhook's website token.

    "", "none", "allPlaces" and None select all places and "with" selects
    places with a website. Any other non-empty value, including values the UI
    never sends, selects places *without* a website.
    """
    if raw is None or raw in UNFILTERED_WEBSITE_VALUES:
        return ALL_PLACES
    if raw == "with":
        return WITH_WEBSITE
    return WITHOUT_WEBSITE


def build_payload(request: SearchRequest, max_results_cap: int) -> WebhookPayload:
    """Build the webhook payload for a validated search request.

    Args:
        request: The caller's search request.
        max_results_cap: Upper bound applied to the requested result count.

    Returns:
        WebhookPayload with normalized tokens; optional filters are left
        unset when the caller did not supply them.
    """
    max_results = request.max_results
    if max_results is not None:
        max_results = min(max_results, max_results_cap)

    return WebhookPayload(
        country=request.country,
        region=request.niche,
        city=request.city,
        minimum_rating=normalize_minimum_rating(request.min_rating),
        website_status=normalize_website_status(request.has_website),
        min_reviews=request.min_reviews,
        include_social_media=request.include_social_media,
        max_results=max_results,
    )
