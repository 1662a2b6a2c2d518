import base64

from app.models.listings import Broker, Listing
from app.services.brands import BRANDS, brand_tokens, get_builtin_brand, render_brand_logo
from app.services.formatting import (
    derive_pricing,
    format_acres,
    format_currency,
    format_currency_psf,
    format_number,
    format_sf,
    get_listing_badge,
    prepare_listing_data,
    split_tagline,
)


def test_number_and_currency_formats():
    assert format_number(1234567) == "1,234,567"
    assert format_number(2.5) == "2.5"
    assert format_number(None) == ""
    assert format_currency(2500000) == "$2,500,000"
    assert format_currency(1234.565, 2) == "$1,234.57"
    assert format_currency_psf(18.5) == "$18.50/SF"
    assert format_sf(10000) == "10,000± SF"
    assert format_sf(0) == ""
    assert format_acres(1.25) == "1.25± Acres"


def test_listing_badges():
    assert get_listing_badge("sale_or_lease") == "FOR SALE OR LEASE"
    assert get_listing_badge("build_to_suit") == "FOR LEASE / BUILD TO SUIT"
    assert get_listing_badge("unheard_of") == "FOR SALE"


def test_derived_pricing():
    listing = Listing(id="L-1", price=2000000, lease_rate=24.0, cam=6.0, building_sf=10000)

    derived = derive_pricing(listing)

    assert derived.price_psf == 200.0
    assert derived.annual_rent == 240000.0
    assert derived.monthly_base == 20000.0
    assert derived.monthly_cam == 5000.0
    assert derived.monthly_total == 25000.0


def test_derived_pricing_needs_size():
    derived = derive_pricing(Listing(id="L-1", price=2000000))
    assert derived.price_psf is None
    assert derived.monthly_total is None


def test_split_tagline():
    assert split_tagline("Prime Retail — Gateway Plaza", "Ignored") == ("Prime Retail", "Gateway Plaza")
    assert split_tagline("Prime Retail —", "Gateway Plaza") == ("Prime Retail", "Gateway Plaza")
    assert split_tagline("Prime Retail", "Gateway Plaza") == ("Prime Retail", "Gateway Plaza")


def test_prepare_listing_data_flags_and_brokers():
    listing = Listing(
        id="L-1",
        address="100 Main St, Unit 4",
        city="Naples",
        zip="34102",
        listing_type="sale_or_lease",
        price=1000000,
        building_sf=5000,
        brokers=[Broker(name="A. Broker"), Broker(name="B. Broker", phone="239-555-0101")],
    )

    data = prepare_listing_data(listing, get_builtin_brand())

    assert data["is_sale"] and data["is_lease"]
    assert not data["is_land"]
    assert data["address_line1"] == "100 Main St"
    assert data["city_state_zip"] == "Naples, FL 34102"
    assert data["price_psf"] == "$200.00/SF"
    assert data["broker_name"] == "A. Broker"
    assert data["has_broker2"]
    assert data["broker2_phone"] == "239-555-0101"
    assert data["brand_name"] == "CRE Consultants"
    assert len(data["office_addresses"]) == 2


def test_brand_logo_substitutes_colors():
    brand = BRANDS["tcg"]
    uri = render_brand_logo(brand)

    svg = base64.b64decode(uri.split(",", 1)[1]).decode("utf-8")

    assert "{{primary}}" not in svg
    assert brand.colors.primary in svg


def test_brand_tokens_cover_palette_and_fonts():
    tokens = brand_tokens(BRANDS["tcg"])
    assert tokens["brand_primary"] == "#00B4D8"
    assert tokens["brand_font_body"].startswith("'Roboto'")


def test_unknown_builtin_brand_falls_back_to_default():
    assert get_builtin_brand("missing").id == "cre_consultants"
