"""
Marketing copy and photo-role composition.

Two paths produce the same `CompositionResult` shape:

- the AI path sends the listing and photo previews to the Anthropic API;
- the offline path is pure and deterministic, built from phrase tables and
  listing facts.

`validate_composition` always runs afterwards so callers never see a
missing field or a classification list of the wrong length.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Literal, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from app.models.drafts import AIMetrics
from app.models.listings import Listing
from app.models.photos import (
    DEFAULT_CLASSIFICATION,
    DEFAULT_CONFIDENCE,
    DEFAULT_ZONE,
    PHOTO_CATEGORIES,
    PhotoPreview,
)
from app.services.anthropic_http_client import AnthropicHTTPClient
from app.services.classifier import HEURISTIC_CONFIDENCE, classify_by_aspect
from app.services.errors import CompositionError
from app.services.formatting import format_number


logger = logging.getLogger(__name__)

OFFLINE_MODEL = "offline-fallback"
MAX_HIGHLIGHTS = 8
MAX_KEYWORDS = 10
DEFAULT_HIGHLIGHTS = ["Prime commercial location", "Excellent visibility and access"]

OVERVIEW_PHRASES = {
    "for_sale": "an exceptional acquisition opportunity",
    "for_lease": "a premier leasing opportunity",
    "sale_or_lease": "a versatile commercial opportunity available for sale or lease",
    "investment": "a compelling investment opportunity",
    "land_sale": "a prime development site",
    "build_to_suit": "a build-to-suit opportunity",
    "retail_lease": "a prime retail leasing opportunity",
    "specialty": "a unique commercial property",
}
DEFAULT_OVERVIEW_PHRASE = "a commercial property opportunity"

TAGLINE_WORDS = {
    "for_sale": "Acquisition Opportunity",
    "for_lease": "Leasing Opportunity",
    "sale_or_lease": "Commercial Opportunity",
    "investment": "Investment Opportunity",
    "land_sale": "Development Site",
    "build_to_suit": "Build-to-Suit",
    "retail_lease": "Retail Space",
    "specialty": "Unique Opportunity",
}
DEFAULT_TAGLINE_WORD = "Commercial Property"

OFFLINE_FOCAL_Y = 0.45


class FocalPointModel(BaseModel):
    x: float = 0.5
    y: float = 0.5


class PhotoClassificationModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    photo_index: int
    classification: str = DEFAULT_CLASSIFICATION
    confidence: float = DEFAULT_CONFIDENCE
    description: str = ""
    recommended_zone: str = DEFAULT_ZONE
    focal_point: FocalPointModel = Field(default_factory=FocalPointModel)


class CompositionResult(BaseModel):
    """
    Output contract shared by the AI and offline composition paths.

    Every content field is optional on input; `validate_composition` fills
    the gaps.
    """

    model_config = ConfigDict(extra="ignore")

    photo_classifications: List[PhotoClassificationModel] = Field(default_factory=list)
    property_overview: Optional[str] = None
    tagline_suggestion: Optional[str] = None
    highlights_enhanced: List[str] = Field(default_factory=list)
    seo_keywords: List[str] = Field(default_factory=list)
    metrics: AIMetrics = Field(default_factory=lambda: AIMetrics(model=OFFLINE_MODEL))
    source: Literal["ai", "offline"] = "offline"

    @classmethod
    def from_ai_payload(cls, payload: Dict[str, Any], metrics: AIMetrics) -> "CompositionResult":
        """
        Build a result from untrusted model JSON.

        Malformed classification entries and non-string list items are
        dropped; wrongly typed text fields are treated as missing.
        """
        classifications: List[PhotoClassificationModel] = []
        for entry in payload.get("photo_classifications") or []:
            if not isinstance(entry, dict):
                continue
            if entry.get("focal_point") is None:
                entry = {k: v for k, v in entry.items() if k != "focal_point"}
            try:
                classifications.append(PhotoClassificationModel.model_validate(entry))
            except ValidationError as exc:
                logger.warning("Dropping malformed photo classification %r: %s", entry, exc.errors()[:1])

        return cls(
            photo_classifications=classifications,
            property_overview=_text_or_none(payload.get("property_overview")),
            tagline_suggestion=_text_or_none(payload.get("tagline_suggestion")),
            highlights_enhanced=_string_list(payload.get("highlights_enhanced")),
            seo_keywords=_string_list(payload.get("seo_keywords")),
            metrics=metrics,
            source="ai",
        )


def _text_or_none(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


# ---------------------------------------------------------------------------
# Offline generators
# ---------------------------------------------------------------------------


def generate_overview(listing: Listing) -> str:
    phrase = OVERVIEW_PHRASES.get(listing.listing_type, DEFAULT_OVERVIEW_PHRASE)
    parts = [f"{listing.property_name} presents {phrase} at {listing.address}."]

    specs: List[str] = []
    if listing.building_sf:
        specs.append(f"{format_number(listing.building_sf)}± square feet of commercial space")
    if listing.land_acres:
        specs.append(f"{format_number(listing.land_acres)}± acres")
    if listing.zoning:
        specs.append(f"{listing.zoning} zoning")
    if listing.year_built:
        specs.append(f"built in {listing.year_built}")
    if specs:
        parts.append(f"The property features {', '.join(specs)}.")

    if listing.city:
        parts.append(
            f"\n\nStrategically located in {listing.city}, {listing.state or 'FL'}, the property "
            "benefits from excellent visibility and accessibility within one of the market's "
            "most active commercial corridors."
        )

    if listing.highlights:
        top = ", ".join(listing.highlights[:3])
        parts.append(f"Key features include {top.lower()}.")

    return " ".join(parts)


def generate_tagline(listing: Listing) -> str:
    word = TAGLINE_WORDS.get(listing.listing_type, DEFAULT_TAGLINE_WORD)
    place = listing.city or "FL"
    if listing.building_sf:
        return f"{format_number(listing.building_sf)}± SF {word} — {place}"
    if listing.land_acres:
        return f"{format_number(listing.land_acres)}± Acre {word} — {place}"
    return f"Premier {word} — {place}"


def enhance_highlights(highlights: Sequence[str]) -> List[str]:
    if not highlights:
        return list(DEFAULT_HIGHLIGHTS)
    return list(highlights[:MAX_HIGHLIGHTS])


def generate_keywords(listing: Listing) -> List[str]:
    keywords: List[str] = []
    if listing.city:
        keywords.append(f"{listing.city} commercial real estate")
    if listing.listing_type:
        keywords.append(listing.listing_type.replace("_", " "))
    if listing.zoning:
        keywords.append(listing.zoning)
    if listing.property_name:
        keywords.append(listing.property_name.lower())
    keywords.extend(["CRE", "commercial property", listing.state or "FL"])
    return keywords[:MAX_KEYWORDS]


def classify_preview_offline(preview: PhotoPreview, position: int) -> PhotoClassificationModel:
    """Aspect-ratio-only classification; the first photo is proposed for the cover."""
    classification = classify_by_aspect(preview.aspect_ratio)
    aspect = preview.aspect_ratio

    if classification == "aerial":
        zone = "hero_cover" if position == 0 else "aerial_full"
    elif classification == "interior":
        zone = "interior_detail"
    elif aspect > 1.5 and position == 0:
        zone = "hero_cover"
    else:
        zone = "secondary_exterior"

    return PhotoClassificationModel(
        photo_index=preview.index,
        classification=classification,
        confidence=HEURISTIC_CONFIDENCE,
        description=f"Photo {preview.index + 1}, classified from image proportions",
        recommended_zone=zone,
        focal_point=FocalPointModel(x=0.5, y=OFFLINE_FOCAL_Y),
    )


def compose_offline(listing: Listing, previews: Sequence[PhotoPreview]) -> CompositionResult:
    """Deterministic composition with no network dependency."""
    result = CompositionResult(
        photo_classifications=[classify_preview_offline(p, position) for position, p in enumerate(previews)],
        property_overview=generate_overview(listing),
        tagline_suggestion=generate_tagline(listing),
        highlights_enhanced=enhance_highlights(listing.highlights),
        seo_keywords=generate_keywords(listing),
        metrics=AIMetrics(model=OFFLINE_MODEL),
        source="offline",
    )
    logger.info(
        "Offline composition: %d photos classified, overview %d chars, tagline %r",
        len(result.photo_classifications),
        len(result.property_overview or ""),
        result.tagline_suggestion,
    )
    return result


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def default_classification(photo_index: int) -> PhotoClassificationModel:
    return PhotoClassificationModel(
        photo_index=photo_index,
        classification=DEFAULT_CLASSIFICATION,
        confidence=DEFAULT_CONFIDENCE,
        description="Unclassified, default assignment",
        recommended_zone=DEFAULT_ZONE,
        focal_point=FocalPointModel(x=0.5, y=0.5),
    )


def validate_composition(result: CompositionResult, listing: Listing, photo_count: int) -> CompositionResult:
    """
    Enforce the output contract on either path's result.

    Empty text and list fields are back-filled from the offline generators.
    The classification list is normalized to exactly one entry per input
    photo, ordered by index: out-of-range and duplicate indices are dropped,
    unknown categories become the default category, confidence and focal
    point are clamped, and missing indices get a low-confidence default.
    """
    if not (result.property_overview or "").strip():
        result.property_overview = generate_overview(listing)
    if not (result.tagline_suggestion or "").strip():
        result.tagline_suggestion = generate_tagline(listing)
    if not result.highlights_enhanced:
        result.highlights_enhanced = enhance_highlights(listing.highlights)
    if not result.seo_keywords:
        result.seo_keywords = generate_keywords(listing)

    by_index: Dict[int, PhotoClassificationModel] = {}
    for entry in result.photo_classifications:
        if not 0 <= entry.photo_index < photo_count:
            logger.warning("Dropping classification for out-of-range photo index %d", entry.photo_index)
            continue
        if entry.photo_index in by_index:
            continue
        if entry.classification not in PHOTO_CATEGORIES:
            logger.warning(
                "Unknown classification %r for photo %d, using %s",
                entry.classification, entry.photo_index, DEFAULT_CLASSIFICATION,
            )
            entry.classification = DEFAULT_CLASSIFICATION
        entry.confidence = _clamp(entry.confidence, 0.0, 1.0)
        entry.focal_point.x = _clamp(entry.focal_point.x, 0.0, 1.0)
        entry.focal_point.y = _clamp(entry.focal_point.y, 0.0, 1.0)
        by_index[entry.photo_index] = entry

    missing = [i for i in range(photo_count) if i not in by_index]
    if missing:
        logger.info("Padding %d missing photo classification(s): %s", len(missing), missing)
    for index in missing:
        by_index[index] = default_classification(index)

    result.photo_classifications = [by_index[i] for i in range(photo_count)]
    return result


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def compose_marketing_content(
    listing: Listing,
    previews: Sequence[PhotoPreview],
    photo_count: int,
    client: AnthropicHTTPClient | None,
    timeout: float,
    force_offline: bool = False,
) -> CompositionResult:
    """
    Produce validated composition for a listing.

    The AI call runs in a worker thread bounded by `timeout`. Any AI failure
    (missing key, HTTP or network error, unparseable JSON, timeout) falls
    back to the offline path; it never propagates to the caller.
    """
    result: CompositionResult | None = None

    if client is not None and client.is_available() and not force_offline:
        try:
            response = await asyncio.wait_for(asyncio.to_thread(client.compose, listing, previews), timeout)
            result = CompositionResult.from_ai_payload(response.payload, response.metrics)
        except asyncio.TimeoutError:
            logger.warning("AI composition timed out after %.0fs, falling back to offline mode", timeout)
        except CompositionError as exc:
            logger.warning("AI composition failed (%s), falling back to offline mode", exc)
        except Exception:  # noqa: BLE001
            logger.exception("Unexpected AI composition error, falling back to offline mode")
    else:
        logger.info("AI composition unavailable or disabled, using offline mode")

    if result is None:
        result = compose_offline(listing, previews)

    return validate_composition(result, listing, photo_count)
