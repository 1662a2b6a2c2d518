"""Tests for focal-point cropping and print enhancement."""

from io import BytesIO

import pytest
from PIL import Image

from app.models.drafts import FocalPoint
from app.models.photos import ZoneSpec
from app.services.errors import ImageTransformError
from app.services.image_transform import (
    DEFAULT_ENHANCE_PRESET,
    ENHANCE_PRESETS,
    compute_focal_crop_window,
    crop_to_zone,
    enhance_for_print,
    estimate_attention_point,
    focal_crop,
    make_preview,
    process_zone_image,
    to_data_uri,
    validate_resolution,
)


def test_focal_window_clamps_to_top_left():
    window = compute_focal_crop_window(4000, 2000, 1000, 1000, 0.1, 0.1)

    assert (window.scaled_width, window.scaled_height) == (2000, 1000)
    assert (window.left, window.top) == (0, 0)
    assert (window.width, window.height) == (1000, 1000)


def test_focal_window_clamps_to_bottom_right():
    window = compute_focal_crop_window(4000, 2000, 1000, 1000, 0.95, 0.95)
    assert (window.left, window.top) == (1000, 0)


def test_focal_window_centers_on_focal_point():
    window = compute_focal_crop_window(4000, 2000, 1000, 1000, 0.5, 0.5)
    assert (window.left, window.top) == (500, 0)


def test_focal_window_upscales_small_sources():
    window = compute_focal_crop_window(500, 500, 2550, 1400, 0.5, 0.5)
    assert window.scaled_width == 2550
    assert window.scaled_height == 2550
    assert window.top == 575


def test_focal_window_rejects_empty_sizes():
    with pytest.raises(ValueError):
        compute_focal_crop_window(0, 100, 10, 10, 0.5, 0.5)


def test_focal_crop_produces_exact_target_size():
    image = Image.new("RGB", (1234, 567), color=(10, 20, 30))
    cropped = focal_crop(image, 300, 200, FocalPoint(0.8, 0.2))
    assert cropped.size == (300, 200)


def test_attention_crop_produces_exact_target_size():
    image = Image.new("RGB", (800, 400), color=(200, 200, 200))
    image.paste((20, 20, 20), (600, 100, 700, 200))
    spec = ZoneSpec(name="hero_photo", width=320, height=240)

    assert crop_to_zone(image, spec).size == (320, 240)


def test_attention_point_is_normalized():
    image = Image.new("RGB", (640, 480), color=(255, 255, 255))
    image.paste((0, 0, 0), (500, 50, 600, 150))
    point = estimate_attention_point(image)
    assert 0.0 <= point.x <= 1.0
    assert 0.0 <= point.y <= 1.0


def test_presets_are_distinct_per_classification():
    names = ("exterior", "aerial", "interior", "floor_plan", "warehouse", "location_map")
    presets = [ENHANCE_PRESETS[name] for name in names]
    assert len(set(presets)) == len(names)
    assert DEFAULT_ENHANCE_PRESET not in presets


def test_enhance_keeps_size_and_mode():
    image = Image.new("RGBA", (50, 40), color=(100, 150, 200, 255))
    enhanced = enhance_for_print(image, "unknown-category")
    assert enhanced.size == (50, 40)
    assert enhanced.mode == "RGB"


def test_process_zone_image_outputs_jpeg_of_zone_size(tmp_path):
    path = tmp_path / "exterior.png"
    Image.new("RGB", (900, 600), color=(90, 140, 60)).save(path)
    spec = ZoneSpec(name="accent_photo", width=400, height=300)

    result = process_zone_image(str(path), spec, "exterior", FocalPoint(0.5, 0.45))

    assert (result.width, result.height) == (400, 300)
    with Image.open(BytesIO(result.data)) as decoded:
        assert decoded.format == "JPEG"
        assert decoded.size == (400, 300)
    assert to_data_uri(result).startswith("data:image/jpeg;base64,")


def test_process_zone_image_unreadable_file_raises(tmp_path):
    path = tmp_path / "corrupt.jpg"
    path.write_bytes(b"not an image")
    spec = ZoneSpec(name="hero_photo", width=100, height=100)

    with pytest.raises(ImageTransformError):
        process_zone_image(str(path), spec, "exterior")


def test_make_preview_keeps_original_dimensions(tmp_path):
    path = tmp_path / "wide.jpg"
    Image.new("RGB", (2048, 1024), color=(1, 2, 3)).save(path)

    preview = make_preview(str(path), index=3)

    assert preview.index == 3
    assert (preview.original_width, preview.original_height) == (2048, 1024)
    assert preview.aspect_ratio == 2.0
    assert preview.base64


def test_validate_resolution():
    low = validate_resolution(1000, 900)
    assert not low.passes
    assert "1000px wide" in low.recommendation

    ok = validate_resolution(3400, 2200)
    assert ok.passes
    assert ok.effective_dpi == 400


def test_oversized_photo_is_unreadable(tmp_path, monkeypatch):
    path = tmp_path / "orthophoto.png"
    Image.new("RGB", (300, 200)).save(path)
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 20_000)
    spec = ZoneSpec(name="hero_photo", width=100, height=100)

    with pytest.raises(ImageTransformError):
        process_zone_image(str(path), spec, "aerial")
