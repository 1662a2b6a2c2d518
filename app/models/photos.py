from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List

from app.models.drafts import FocalPoint


PHOTO_CATEGORIES = (
    "exterior",
    "interior",
    "aerial",
    "floor_plan",
    "detail",
    "warehouse",
    "parking",
    "landscape",
)

# Assigned to photos that no classification path produced an entry for.
DEFAULT_CLASSIFICATION = "exterior"
DEFAULT_CONFIDENCE = 0.3
DEFAULT_ZONE = "detail_grid"


@dataclass(slots=True)
class ProcessedImage:
    """Print-ready JPEG produced for one zone."""

    data: bytes
    width: int
    height: int
    media_type: str = "image/jpeg"


@dataclass(slots=True)
class PhotoPreview:
    """Lightweight JPEG thumbnail sent to the composition step."""

    index: int
    base64: str
    original_width: int
    original_height: int
    media_type: str = "image/jpeg"

    @property
    def aspect_ratio(self) -> float:
        if self.original_height <= 0:
            return 1.0
        return self.original_width / self.original_height


@dataclass(slots=True)
class Photo:
    """
    A raw listing photo for the duration of one pipeline run.

    Created fresh each run; never persisted as-is.
    """

    index: int
    path: str
    filename: str
    classification: str = DEFAULT_CLASSIFICATION
    confidence: float = DEFAULT_CONFIDENCE
    recommended_zone: str = DEFAULT_ZONE
    focal_point: FocalPoint = field(default_factory=FocalPoint)
    width: int = 0
    height: int = 0
    # True when a declared type or filename hint decided the classification.
    hinted: bool = False


@dataclass(frozen=True, slots=True)
class ZoneSpec:
    """Named rectangular photo slot on a page template."""

    name: str
    width: int
    height: int
    label: str = ""
    accepts: FrozenSet[str] = frozenset()


@dataclass(frozen=True, slots=True)
class TemplatePage:
    template_id: str
    zones: tuple[ZoneSpec, ...] = ()


@dataclass(slots=True)
class ZoneAssignment:
    photo: Photo
    spec: ZoneSpec


@dataclass(slots=True)
class ZoneImage:
    """Result of cropping and enhancing the photo assigned to a zone."""

    template_id: str
    zone: str
    photo_index: int
    image: ProcessedImage


@dataclass(slots=True)
class ResolutionCheck:
    width: int
    height: int
    passes: bool
    effective_dpi: int
    recommendation: str


@dataclass(slots=True)
class PageAllocation:
    """Zone assignments for one page of the template sequence."""

    page: TemplatePage
    assignments: Dict[str, ZoneAssignment] = field(default_factory=dict)

    @property
    def filled_zones(self) -> List[str]:
        return list(self.assignments.keys())
