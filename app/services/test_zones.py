"""Tests for greedy first-fit zone allocation."""

from app.models.photos import Photo, TemplatePage, ZoneSpec
from app.services.classifier import ImageStats, PhotoHints, classify_photo
from app.services.zones import TEMPLATE_PAGES, allocate_sequence, allocate_zones, get_template_page


def _photo(index, classification):
    return Photo(index=index, path=f"/photos/{index}.jpg", filename=f"{index}.jpg", classification=classification)


def _zone(name, *accepts):
    return ZoneSpec(name=name, width=100, height=100, accepts=frozenset(accepts))


def test_aerial_filename_hint_lands_in_aerial_zone():
    stats = ImageStats(width=1000, height=1000, brightness=120.0, saturation=50.0)
    classification, _ = classify_photo(stats, PhotoHints(filename="drone_shot.jpg"))
    photo = Photo(index=0, path="drone_shot.jpg", filename="drone_shot.jpg", classification=classification)
    page = TemplatePage(template_id="aerial-only", zones=(_zone("aerial_photo", "aerial", "landscape"),))

    allocation = allocate_zones([photo], page)

    assert allocation.assignments["aerial_photo"].photo is photo


def test_first_fit_follows_zone_then_pool_order():
    pool = [_photo(0, "interior"), _photo(1, "exterior"), _photo(2, "exterior")]
    page = TemplatePage(
        template_id="p",
        zones=(_zone("a", "exterior"), _zone("b", "exterior", "interior"), _zone("c", "exterior")),
    )

    allocation = allocate_zones(pool, page)

    assert allocation.assignments["a"].photo.index == 1
    # Zone b scans the remaining pool from the start: the interior photo comes first.
    assert allocation.assignments["b"].photo.index == 0
    assert allocation.assignments["c"].photo.index == 2


def test_photo_used_at_most_once_per_page():
    pool = [_photo(0, "exterior")]
    page = TemplatePage(template_id="p", zones=(_zone("a", "exterior"), _zone("b", "exterior")))

    allocation = allocate_zones(pool, page)

    assert allocation.filled_zones == ["a"]
    assert "b" not in allocation.assignments


def test_unmatched_zone_is_left_unfilled():
    allocation = allocate_zones([_photo(0, "parking")], TEMPLATE_PAGES["floorplan"])
    assert allocation.assignments == {}


def test_each_page_gets_its_own_copy_of_the_pool():
    pool = [_photo(0, "exterior")]
    pages = [TEMPLATE_PAGES["cover-standard"], TEMPLATE_PAGES["details-offering"]]

    allocations = allocate_sequence(pool, pages)

    assert allocations[0].assignments["hero_photo"].photo.index == 0
    assert allocations[1].assignments["accent_photo"].photo.index == 0
    assert len(pool) == 1


def test_unknown_template_has_no_zones():
    page = get_template_page("does-not-exist")
    assert page.template_id == "does-not-exist"
    assert page.zones == ()
