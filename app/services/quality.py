from __future__ import annotations

import dataclasses
from typing import List, Sequence, Tuple

from app.models.drafts import AIContent, QualityReportEntry
from app.models.listings import Listing
from app.models.photos import ZoneImage


REQUIRED_FIELDS = ("property_name", "address", "city", "listing_type")
OPTIONAL_FIELDS = ("price", "lease_rate", "building_sf", "land_acres", "zoning", "year_built", "broker", "overview")

DATA_MAX = 40.0
PHOTOS_MAX = 30.0
AI_MAX = 20.0
BRAND_POINTS = 10.0

ANY_PHOTO_POINTS = 15.0
PER_ZONE_POINTS = 5.0
EXTRA_ZONE_MAX = 15.0
OVERVIEW_MIN_CHARS = 100
MIN_HIGHLIGHTS = 4


def _populated(listing: Listing, field_name: str) -> bool:
    if field_name == "broker":
        return listing.primary_broker is not None and bool(listing.primary_broker.name)
    return bool(getattr(listing, field_name))


def score_quality(
    listing: Listing,
    content: AIContent,
    zone_images: Sequence[ZoneImage],
) -> Tuple[int, List[QualityReportEntry]]:
    """
    Deterministic 0-100 completeness score with one report entry per subscore.

    Photo coverage gives 15 points once any zone image exists, then 5 per
    additional distinct filled zone (the first zone is already covered by
    the base points), up to 15 more. Data completeness is judged on the
    listing as rendered, so a generated overview fills an empty CRM one.
    """
    listing = dataclasses.replace(listing, overview=content.overview or listing.overview)
    data_points = sum(5.0 for name in REQUIRED_FIELDS if _populated(listing, name))
    data_points += sum(2.5 for name in OPTIONAL_FIELDS if _populated(listing, name))
    data_points = min(DATA_MAX, data_points)

    filled_zones = {(image.template_id, image.zone) for image in zone_images}
    photo_points = 0.0
    if filled_zones:
        photo_points = ANY_PHOTO_POINTS + min(EXTRA_ZONE_MAX, PER_ZONE_POINTS * (len(filled_zones) - 1))

    ai_points = 0.0
    if len(content.overview or "") > OVERVIEW_MIN_CHARS:
        ai_points += 10.0
    if len(content.highlights) >= MIN_HIGHLIGHTS:
        ai_points += 5.0
    if content.tagline:
        ai_points += 5.0

    report = [
        QualityReportEntry("data", data_points, DATA_MAX, f"Data: {data_points:.0f}/{DATA_MAX:.0f}"),
        QualityReportEntry(
            "photos",
            photo_points,
            PHOTOS_MAX,
            f"Photos: {photo_points:.0f}/{PHOTOS_MAX:.0f} ({len(filled_zones)} zone(s) filled)",
        ),
        QualityReportEntry("ai_content", ai_points, AI_MAX, f"AI content: {ai_points:.0f}/{AI_MAX:.0f}"),
        QualityReportEntry("brand", BRAND_POINTS, BRAND_POINTS, f"Brand compliance: {BRAND_POINTS:.0f}/{BRAND_POINTS:.0f}"),
    ]

    total = data_points + photo_points + ai_points + BRAND_POINTS
    # Half-up: 92.5 scores 93.
    score = min(100, int(total + 0.5))
    return score, report
