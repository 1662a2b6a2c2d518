from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple

from PIL import Image, ImageOps, ImageStat

from app.models.photos import PHOTO_CATEGORIES


logger = logging.getLogger(__name__)

HINT_CONFIDENCE = 1.0
FILENAME_CONFIDENCE = 0.8
HEURISTIC_CONFIDENCE = 0.6

# Checked in order; the first category with a matching keyword wins.
FILENAME_KEYWORDS: List[Tuple[str, Tuple[str, ...]]] = [
    ("aerial", ("aerial", "drone", "satellite")),
    ("floor_plan", ("floor", "plan", "layout")),
    ("exterior", ("exterior", "front", "building")),
    ("interior", ("interior", "office", "lobby")),
    ("warehouse", ("warehouse", "dock", "loading")),
    ("parking", ("parking", "lot")),
    ("detail", ("detail", "sign", "equipment")),
    ("landscape", ("land", "site", "vacant")),
]

AERIAL_MIN_ASPECT = 2.0
EXTERIOR_MIN_ASPECT = 1.5
INTERIOR_MAX_ASPECT = 0.8
FLOOR_PLAN_MIN_BRIGHTNESS = 200.0
FLOOR_PLAN_MAX_SATURATION = 40.0


@dataclass(slots=True)
class PhotoHints:
    declared_type: str | None = None
    filename: str | None = None


@dataclass(slots=True)
class ImageStats:
    """
    Cheap global statistics used by the heuristic classifier.

    `saturation` is not a true HSV saturation: it is the channel-mean spread
    |R - G| + |G - B|, which is near zero for grayscale diagrams.
    """

    width: int
    height: int
    brightness: float
    saturation: float

    @property
    def aspect_ratio(self) -> float:
        if self.height <= 0:
            return 1.0
        return self.width / self.height


def measure_image(image: Image.Image) -> ImageStats:
    """Compute aspect, mean brightness and channel spread for a PIL image."""
    if image.mode not in ("RGB", "L"):
        image = image.convert("RGB")
    means = ImageStat.Stat(image).mean
    brightness = sum(means) / len(means)
    if len(means) >= 3:
        saturation = abs(means[0] - means[1]) + abs(means[1] - means[2])
    else:
        saturation = 0.0
    return ImageStats(
        width=image.width,
        height=image.height,
        brightness=brightness,
        saturation=saturation,
    )


def classify_by_filename(filename: str) -> str | None:
    name = filename.lower()
    for category, keywords in FILENAME_KEYWORDS:
        if any(keyword in name for keyword in keywords):
            return category
    return None


def classify_by_aspect(aspect_ratio: float) -> str:
    """
    Heuristic classification from aspect ratio alone.

    Used where no pixel statistics are available (offline composition works
    from preview dimensions only), so the brightness rule is skipped.
    """
    if aspect_ratio > AERIAL_MIN_ASPECT:
        return "aerial"
    if aspect_ratio > EXTERIOR_MIN_ASPECT:
        return "exterior"
    if aspect_ratio < INTERIOR_MAX_ASPECT:
        return "interior"
    return "exterior"


def classify_by_stats(stats: ImageStats) -> str:
    """
    Heuristic classification from image properties.

    The rule order and the strict comparisons are part of the contract:
    very wide images are aerial even when bright, and the floor-plan rule
    runs before the exterior/interior aspect rules.
    """
    aspect = stats.aspect_ratio
    if aspect > AERIAL_MIN_ASPECT:
        return "aerial"
    if stats.brightness > FLOOR_PLAN_MIN_BRIGHTNESS and stats.saturation < FLOOR_PLAN_MAX_SATURATION:
        return "floor_plan"
    if aspect > EXTERIOR_MIN_ASPECT:
        return "exterior"
    if aspect < INTERIOR_MAX_ASPECT:
        return "interior"
    return "exterior"


def classify_photo(stats: ImageStats, hints: PhotoHints | None = None) -> Tuple[str, float]:
    """
    Assign one of the photo categories plus a confidence.

    Priority: declared type hint, then filename keywords, then image
    heuristics. An unknown declared type is ignored rather than trusted.
    """
    hints = hints or PhotoHints()

    if hints.declared_type:
        declared = hints.declared_type.strip().lower()
        if declared in PHOTO_CATEGORIES:
            return declared, HINT_CONFIDENCE
        logger.warning("Ignoring unknown declared photo type %r", hints.declared_type)

    if hints.filename:
        by_name = classify_by_filename(hints.filename)
        if by_name is not None:
            return by_name, FILENAME_CONFIDENCE

    return classify_by_stats(stats), HEURISTIC_CONFIDENCE


def classify_path(path: str, declared_type: str | None = None) -> Tuple[str, float, ImageStats]:
    """
    Open a photo from disk and classify it using its filename as a hint.

    Measured in display orientation (EXIF rotation applied), matching the
    crops. Raises OSError (or PIL.UnidentifiedImageError) when the file
    cannot be read, and PIL.Image.DecompressionBombError for oversized
    images; callers decide whether that is fatal.
    """
    with Image.open(path) as raw:
        stats = measure_image(ImageOps.exif_transpose(raw))
    classification, confidence = classify_photo(
        stats,
        PhotoHints(declared_type=declared_type, filename=Path(path).name),
    )
    logger.debug("Classified %s as %s (%.2f)", path, classification, confidence)
    return classification, confidence, stats
