"""Print-ready formatting of listing values for page templates."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict

from app.models.listings import Brand, Listing


LISTING_BADGES = {
    "for_sale": "FOR SALE",
    "for_lease": "FOR LEASE",
    "sale_or_lease": "FOR SALE OR LEASE",
    "investment": "FOR SALE",
    "nnn_leaseback": "INVESTMENT OPPORTUNITY",
    "land_sale": "FOR SALE",
    "build_to_suit": "FOR LEASE / BUILD TO SUIT",
    "retail_lease": "FOR LEASE",
    "furnished_lease": "FOR LEASE (FURNISHED)",
    "specialty": "FOR SALE",
}
DEFAULT_BADGE = "FOR SALE"

SALE_TYPES = frozenset({"for_sale", "sale_or_lease", "investment", "nnn_leaseback", "land_sale", "specialty"})
LEASE_TYPES = frozenset({"for_lease", "sale_or_lease", "build_to_suit", "retail_lease", "furnished_lease"})
INVESTMENT_TYPES = frozenset({"investment", "nnn_leaseback"})


def _quantize(value: float, decimals: int) -> Decimal:
    exponent = Decimal(1).scaleb(-decimals)
    return Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP)


def format_number(value: float | int | None) -> str:
    """1234567 -> '1,234,567'; 2.5 -> '2.5'; None -> ''."""
    if value is None:
        return ""
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,}"


def format_currency(value: float | None, decimals: int = 0) -> str:
    if value is None:
        return ""
    return f"${_quantize(value, decimals):,.{decimals}f}"


def format_currency_psf(value: float | None) -> str:
    if value is None:
        return ""
    return f"${_quantize(value, 2):.2f}/SF"


def format_sf(value: int | float | None) -> str:
    if not value:
        return ""
    return f"{format_number(value)}± SF"


def format_acres(value: float | None) -> str:
    if not value:
        return ""
    return f"{format_number(value)}± Acres"


def get_listing_badge(listing_type: str) -> str:
    return LISTING_BADGES.get(listing_type, DEFAULT_BADGE)


@dataclass(slots=True)
class DerivedPricing:
    price_psf: float | None = None
    monthly_base: float | None = None
    monthly_cam: float | None = None
    monthly_total: float | None = None
    annual_rent: float | None = None


def derive_pricing(listing: Listing) -> DerivedPricing:
    """Price per SF and monthly rent breakdown computed from listing facts."""
    derived = DerivedPricing()
    sf = listing.building_sf
    if not sf:
        return derived

    if listing.price:
        derived.price_psf = round(listing.price / sf, 2)
    if listing.lease_rate:
        derived.annual_rent = round(listing.lease_rate * sf, 2)
        derived.monthly_base = round(listing.lease_rate * sf / 12, 2)
    if listing.cam:
        derived.monthly_cam = round(listing.cam * sf / 12, 2)
    if derived.monthly_base is not None and derived.monthly_cam is not None:
        derived.monthly_total = round(derived.monthly_base + derived.monthly_cam, 2)
    return derived


def split_tagline(tagline: str, property_name: str) -> tuple[str, str]:
    """
    Split 'PREFIX — NAME' into a header prefix and display name.

    Without a separator the whole tagline is the prefix and the property
    name is displayed.
    """
    if "—" in tagline:
        prefix, _, rest = tagline.partition("—")
        return prefix.strip(), rest.strip() or property_name
    return tagline.strip(), property_name


def prepare_listing_data(listing: Listing, brand: Brand) -> Dict[str, Any]:
    """Flatten a listing into the formatted values every page template uses."""
    derived = derive_pricing(listing)
    listing_type = listing.listing_type or "for_sale"
    primary = listing.primary_broker
    secondary = listing.brokers[1] if len(listing.brokers) > 1 else None
    state = listing.state or "FL"

    if listing.price_psf:
        price_psf = format_currency_psf(listing.price_psf)
    else:
        price_psf = format_currency_psf(derived.price_psf)

    return {
        "property_name": listing.property_name,
        "tagline": listing.tagline,
        "listing_type": listing_type,
        "listing_badge": get_listing_badge(listing_type),

        "address_full": listing.address,
        "address_line1": listing.address.split(",")[0].strip() if listing.address else "",
        "city": listing.city,
        "state": state,
        "zip": listing.zip,
        "city_state_zip": f"{listing.city}, {state} {listing.zip}".strip(),

        "price": format_currency(listing.price) if listing.price else "",
        "price_raw": listing.price,
        "price_psf": price_psf,
        "lease_rate": format_currency_psf(listing.lease_rate) if listing.lease_rate else "",
        "lease_type": listing.lease_type,
        "cam": format_currency_psf(listing.cam) if listing.cam else "",
        "cap_rate": listing.cap_rate,
        "monthly_base": format_currency(derived.monthly_base, 2),
        "monthly_cam": format_currency(derived.monthly_cam, 2),
        "monthly_total": format_currency(derived.monthly_total, 2),
        "annual_rent": format_currency(derived.annual_rent, 2),

        "building_sf": format_sf(listing.building_sf),
        "building_sf_raw": listing.building_sf,
        "land_acres": format_acres(listing.land_acres),
        "land_acres_raw": listing.land_acres,
        "zoning": listing.zoning,
        "year_built": listing.year_built or "",
        "parking": listing.parking,
        "re_taxes": format_currency(listing.re_taxes, 2) if listing.re_taxes else "",
        "parcel_id": listing.parcel_id,
        "nearby_roads": listing.nearby_roads,

        "highlights": list(listing.highlights),
        "has_highlights": bool(listing.highlights),

        "broker_name": primary.name if primary else "",
        "broker_title": primary.title if primary else "",
        "broker_phone": primary.phone if primary else "",
        "broker_email": primary.email if primary else "",
        "has_broker": primary is not None,
        "broker2_name": secondary.name if secondary else "",
        "broker2_title": secondary.title if secondary else "",
        "broker2_phone": secondary.phone if secondary else "",
        "broker2_email": secondary.email if secondary else "",
        "has_broker2": secondary is not None,

        "overview": listing.overview,
        "has_overview": bool(listing.overview),

        "photo_count": len(listing.photos),
        "has_photos": bool(listing.photos),

        "brand_name": brand.name,
        "brand_website": brand.website,
        "disclaimer": brand.disclaimer,
        "office_addresses": [
            {"city": office.city, "address": office.address, "phone": office.phone}
            for office in brand.office_addresses
        ],

        "is_sale": listing_type in SALE_TYPES,
        "is_lease": listing_type in LEASE_TYPES,
        "is_investment": listing_type in INVESTMENT_TYPES,
        "is_land": listing_type == "land_sale",
    }
