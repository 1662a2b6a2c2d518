from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List

from app.api.v1.schemas import DraftStatus


def utcnow() -> datetime:
    """Return an explicit, timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class FocalPoint:
    """Normalized subject center of a photo, both axes in [0, 1]."""

    x: float = 0.5
    y: float = 0.5


@dataclass(slots=True)
class PhotoClassification:
    """
    Final classification recorded on the draft for one input photo.

    There is exactly one entry per input photo, in input order.
    """

    photo_index: int
    classification: str
    confidence: float
    recommended_zone: str
    focal_point: FocalPoint = field(default_factory=FocalPoint)
    description: str = ""


@dataclass(slots=True)
class AIContent:
    """Marketing copy persisted on a completed draft."""

    overview: str
    tagline: str
    highlights: List[str] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)


@dataclass(slots=True)
class AIMetrics:
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    latency_ms: int = 0


@dataclass(slots=True)
class QualityReportEntry:
    # Subscore label: "data", "photos", "ai_content" or "brand".
    label: str
    points: float
    max_points: float
    message: str


@dataclass(slots=True)
class Artifact:
    """Locator and size of the stored multi-page PDF."""

    locator: str
    size_bytes: int
    page_count: int


@dataclass(slots=True)
class Draft:
    """
    Internal representation of one marketing generation attempt.

    Owned and mutated by the generation pipeline only. It is intentionally
    separate from API schemas so storage details can evolve without breaking
    the API.
    """

    id: str
    listing_id: str
    tenant_id: str = "default"
    # None means "use the tenant default brand".
    brand_id: str | None = None
    # Empty means "derive from the listing type at run time".
    template_sequence: List[str] = field(default_factory=list)
    status: DraftStatus = DraftStatus.QUEUED
    attempts: int = 0
    artifact: Artifact | None = None
    quality_score: int | None = None
    quality_report: List[QualityReportEntry] = field(default_factory=list)
    ai_content: AIContent | None = None
    ai_metrics: AIMetrics | None = None
    photo_classifications: List[PhotoClassification] = field(default_factory=list)
    # Set only when status is FAILED.
    error_message: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    started_at: datetime | None = None
    completed_at: datetime | None = None
