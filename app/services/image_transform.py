"""
Zone image preparation: focal-point aware cropping and print enhancement.

Cropping always produces exactly the zone's target size. When the caller
knows the subject position, the crop window is centered on that focal point;
otherwise a saliency map stands in for it (attention crop). Enhancement
applies a fixed per-classification preset and re-encodes as high-quality
sRGB JPEG.
"""

from __future__ import annotations

import base64
import logging
import math
from dataclasses import dataclass
from io import BytesIO
from typing import Dict

import cv2
import numpy as np
from PIL import Image, ImageEnhance, ImageFilter, ImageOps, UnidentifiedImageError

from app.models.drafts import FocalPoint
from app.models.photos import PhotoPreview, ProcessedImage, ResolutionCheck, ZoneSpec
from app.services.errors import ImageTransformError


logger = logging.getLogger(__name__)

PRINT_JPEG_QUALITY = 95
PREVIEW_JPEG_QUALITY = 80
PREVIEW_MAX_DIM = 512
# Longest side used when computing the saliency map for attention crops.
SALIENCY_MAX_DIM = 512

MIN_PRINT_WIDTH = 1200
MIN_PRINT_HEIGHT = 800
LETTER_WIDTH_INCHES = 8.5


@dataclass(frozen=True, slots=True)
class EnhancePreset:
    brightness: float
    saturation: float
    contrast: float
    sharpen: bool = True


ENHANCE_PRESETS: Dict[str, EnhancePreset] = {
    "exterior": EnhancePreset(brightness=1.03, saturation=1.10, contrast=1.06),
    "aerial": EnhancePreset(brightness=1.02, saturation=1.12, contrast=1.04),
    "interior": EnhancePreset(brightness=1.05, saturation=1.06, contrast=1.04),
    "location_map": EnhancePreset(brightness=1.01, saturation=1.05, contrast=1.03),
    "floor_plan": EnhancePreset(brightness=1.04, saturation=0.95, contrast=1.08),
    "warehouse": EnhancePreset(brightness=1.04, saturation=1.06, contrast=1.05),
}
DEFAULT_ENHANCE_PRESET = EnhancePreset(brightness=1.02, saturation=1.08, contrast=1.05)


@dataclass(frozen=True, slots=True)
class CropWindow:
    """
    Crop geometry in the coordinate space of the scaled source.

    The source is first scaled to (scaled_width, scaled_height), then the
    window (left, top, width, height) is extracted.
    """

    scaled_width: int
    scaled_height: int
    left: int
    top: int
    width: int
    height: int


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def compute_focal_crop_window(
    src_width: int,
    src_height: int,
    target_width: int,
    target_height: int,
    focal_x: float,
    focal_y: float,
) -> CropWindow:
    """
    Compute a cover-crop window centered on a normalized focal point.

    scale = max(tw / sw, th / sh); the window is centered on the focal point
    in scaled coordinates and clamped so it never leaves the scaled image.
    """
    if src_width <= 0 or src_height <= 0:
        raise ValueError(f"Invalid source size {src_width}x{src_height}")
    if target_width <= 0 or target_height <= 0:
        raise ValueError(f"Invalid target size {target_width}x{target_height}")

    scale = max(target_width / src_width, target_height / src_height)
    scaled_w = max(target_width, _round_half_up(src_width * scale))
    scaled_h = max(target_height, _round_half_up(src_height * scale))

    fx = _round_half_up(_clamp(focal_x, 0.0, 1.0) * scaled_w)
    fy = _round_half_up(_clamp(focal_y, 0.0, 1.0) * scaled_h)

    left = int(_clamp(fx - _round_half_up(target_width / 2), 0, scaled_w - target_width))
    top = int(_clamp(fy - _round_half_up(target_height / 2), 0, scaled_h - target_height))

    return CropWindow(
        scaled_width=scaled_w,
        scaled_height=scaled_h,
        left=left,
        top=top,
        width=target_width,
        height=target_height,
    )


def focal_crop(image: Image.Image, width: int, height: int, focal_point: FocalPoint) -> Image.Image:
    window = compute_focal_crop_window(image.width, image.height, width, height, focal_point.x, focal_point.y)
    scaled = image.resize((window.scaled_width, window.scaled_height), Image.Resampling.LANCZOS)
    return scaled.crop((window.left, window.top, window.left + window.width, window.top + window.height))


def estimate_attention_point(image: Image.Image) -> FocalPoint:
    """
    Estimate the subject center from a spectral residual saliency map.

    Falls back to the geometric center when saliency cannot be computed or
    the map is empty.
    """
    preview = image.convert("RGB")
    preview.thumbnail((SALIENCY_MAX_DIM, SALIENCY_MAX_DIM))
    bgr = cv2.cvtColor(np.asarray(preview), cv2.COLOR_RGB2BGR)

    saliency = cv2.saliency.StaticSaliencySpectralResidual_create()
    success, saliency_map = saliency.computeSaliency(bgr)
    if not success or saliency_map is None:
        logger.warning("Saliency computation failed; using geometric center.")
        return FocalPoint(0.5, 0.5)

    weights = np.asarray(saliency_map, dtype=np.float64)
    total = float(weights.sum())
    if not np.isfinite(total) or total <= 0.0:
        return FocalPoint(0.5, 0.5)

    h, w = weights.shape[:2]
    ys, xs = np.mgrid[0:h, 0:w]
    center_x = float((weights * (xs + 0.5)).sum() / total) / w
    center_y = float((weights * (ys + 0.5)).sum() / total) / h
    return FocalPoint(_clamp(center_x, 0.0, 1.0), _clamp(center_y, 0.0, 1.0))


def crop_to_zone(image: Image.Image, spec: ZoneSpec, focal_point: FocalPoint | None = None) -> Image.Image:
    """
    Cover-crop an image to exactly the zone's target size.

    With no focal point the crop is attention based: the saliency center of
    mass is used as the focal point.
    """
    if focal_point is None:
        focal_point = estimate_attention_point(image)
    return focal_crop(image, spec.width, spec.height, focal_point)


def _apply_contrast(image: Image.Image, contrast: float) -> Image.Image:
    # Linear curve pivoting on mid-gray: out = c * in - 128 * (c - 1).
    if contrast == 1.0:
        return image
    offset = -128.0 * (contrast - 1.0)
    lut = [int(_clamp(round(contrast * value + offset), 0, 255)) for value in range(256)]
    return image.point(lut * len(image.getbands()))


def enhance_for_print(image: Image.Image, classification: str) -> Image.Image:
    """Apply the classification's brightness/saturation/contrast/sharpen preset."""
    preset = ENHANCE_PRESETS.get(classification, DEFAULT_ENHANCE_PRESET)
    enhanced = image.convert("RGB")
    enhanced = ImageEnhance.Brightness(enhanced).enhance(preset.brightness)
    enhanced = ImageEnhance.Color(enhanced).enhance(preset.saturation)
    enhanced = _apply_contrast(enhanced, preset.contrast)
    if preset.sharpen:
        enhanced = enhanced.filter(ImageFilter.UnsharpMask(radius=0.8, percent=80, threshold=2))
    return enhanced


def encode_print_jpeg(image: Image.Image) -> bytes:
    buffer = BytesIO()
    # subsampling=0 keeps full 4:4:4 chroma for print.
    image.convert("RGB").save(buffer, format="JPEG", quality=PRINT_JPEG_QUALITY, subsampling=0, optimize=True)
    return buffer.getvalue()


def load_photo(path: str) -> Image.Image:
    """
    Load a photo with EXIF orientation applied.

    Raises ImageTransformError for missing or undecodable files.
    """
    try:
        with Image.open(path) as raw:
            raw.load()
            image = ImageOps.exif_transpose(raw)
    except (FileNotFoundError, UnidentifiedImageError, OSError, Image.DecompressionBombError) as exc:
        raise ImageTransformError(f"Cannot read photo {path}: {exc}") from exc
    return image.convert("RGB")


def process_zone_image(
    path: str,
    spec: ZoneSpec,
    classification: str,
    focal_point: FocalPoint | None = None,
) -> ProcessedImage:
    """
    Load, crop and enhance one photo for one zone.

    Blocking; the pipeline runs it in a worker thread.
    """
    image = load_photo(path)
    try:
        cropped = crop_to_zone(image, spec, focal_point)
        enhanced = enhance_for_print(cropped, classification)
        data = encode_print_jpeg(enhanced)
    except (OSError, ValueError, cv2.error) as exc:
        raise ImageTransformError(f"Failed to transform {path} for zone {spec.name}: {exc}") from exc
    return ProcessedImage(data=data, width=enhanced.width, height=enhanced.height)


def make_preview(path: str, index: int, max_dim: int = PREVIEW_MAX_DIM) -> PhotoPreview:
    """Produce a small JPEG thumbnail for the composition request."""
    image = load_photo(path)
    original_width, original_height = image.size
    image.thumbnail((max_dim, max_dim))
    buffer = BytesIO()
    image.save(buffer, format="JPEG", quality=PREVIEW_JPEG_QUALITY)
    return PhotoPreview(
        index=index,
        base64=base64.b64encode(buffer.getvalue()).decode("utf-8"),
        original_width=original_width,
        original_height=original_height,
    )


def validate_resolution(width: int, height: int) -> ResolutionCheck:
    passes = width >= MIN_PRINT_WIDTH and height >= MIN_PRINT_HEIGHT
    if width < MIN_PRINT_WIDTH:
        recommendation = f"Image is {width}px wide; recommend at least {MIN_PRINT_WIDTH}px for print quality"
    elif height < MIN_PRINT_HEIGHT:
        recommendation = f"Image is {height}px tall; recommend at least {MIN_PRINT_HEIGHT}px for print quality"
    else:
        recommendation = "Resolution adequate for print"
    return ResolutionCheck(
        width=width,
        height=height,
        passes=passes,
        effective_dpi=_round_half_up(width / LETTER_WIDTH_INCHES),
        recommendation=recommendation,
    )


def to_data_uri(image: ProcessedImage) -> str:
    encoded = base64.b64encode(image.data).decode("utf-8")
    return f"data:{image.media_type};base64,{encoded}"
