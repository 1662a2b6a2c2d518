from app.models.drafts import AIContent
from app.models.listings import Broker, Listing
from app.models.photos import ProcessedImage, ZoneImage
from app.services.quality import score_quality


def _full_listing():
    return Listing(
        id="L-1",
        property_name="Colonial Commerce Center",
        address="4500 Colonial Blvd",
        city="Fort Myers",
        listing_type="for_sale",
        price=2500000,
        lease_rate=18.5,
        building_sf=10000,
        land_acres=1.2,
        zoning="C-1",
        year_built=2005,
        brokers=[Broker(name="Jane Broker")],
        overview="Existing overview.",
    )


def _zone_image(template_id, zone, index=0):
    return ZoneImage(
        template_id=template_id,
        zone=zone,
        photo_index=index,
        image=ProcessedImage(data=b"jpeg", width=10, height=10),
    )


def _content(overview_len=150, highlights=5, tagline="Prime Site"):
    return AIContent(
        overview="x" * overview_len,
        tagline=tagline,
        highlights=[f"h{i}" for i in range(highlights)],
        keywords=["cre"],
    )


def test_full_listing_two_zones_scores_ninety():
    zones = [_zone_image("cover-standard", "hero_photo"), _zone_image("details-offering", "accent_photo")]

    score, report = score_quality(_full_listing(), _content(), zones)

    assert score == 90
    assert [(entry.label, entry.points) for entry in report] == [
        ("data", 40.0),
        ("photos", 20.0),
        ("ai_content", 20.0),
        ("brand", 10.0),
    ]


def test_same_zone_twice_counts_once():
    zones = [_zone_image("cover-standard", "hero_photo", 0), _zone_image("cover-standard", "hero_photo", 1)]
    _, report = score_quality(_full_listing(), _content(), zones)
    assert report[1].points == 15.0


def test_photo_points_are_capped():
    zones = [_zone_image("photos-mosaic", f"photo_large_{i}") for i in range(1, 4)]
    zones += [_zone_image("photos-mosaic", f"photo_small_{i}") for i in range(1, 3)]
    _, report = score_quality(_full_listing(), _content(), zones)
    assert report[1].points == 30.0


def test_sparse_draft():
    listing = Listing(id="L-2", city="Naples", listing_type="land_sale")

    score, report = score_quality(listing, _content(overview_len=100, highlights=3, tagline=""), [])

    # city + type + generated overview = 12.5; an overview of exactly 100 chars earns no AI points.
    assert report[0].points == 12.5
    assert report[1].points == 0.0
    assert report[2].points == 0.0
    assert score == 23


def test_half_points_round_up():
    listing = Listing(id="L-3", property_name="Lot 7", listing_type="", zoning="AG")
    score, report = score_quality(listing, _content(overview_len=0, highlights=0, tagline=""), [])
    assert report[0].points == 7.5
    assert score == 18


def test_generated_overview_fills_missing_crm_overview():
    listing = _full_listing()
    listing.overview = ""

    score, report = score_quality(listing, _content(overview_len=150), [_zone_image("cover-standard", "hero_photo")])

    assert report[0].points == 40.0
    assert score == 85
    assert listing.overview == ""
