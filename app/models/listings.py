from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List


@dataclass(slots=True)
class PhotoRef:
    """Raw photo reference attached to a listing."""

    path: str
    # Optional classification supplied by the CRM; wins over any heuristic.
    declared_type: str | None = None


@dataclass(slots=True)
class Broker:
    name: str
    title: str = ""
    phone: str = ""
    email: str = ""


@dataclass(slots=True)
class Listing:
    """
    Property facts as read from the CRM.

    Read-only to the generation pipeline. Numeric fields are None when the
    CRM has no value, string fields are empty.
    """

    id: str
    tenant_id: str = "default"
    property_name: str = ""
    address: str = ""
    city: str = ""
    state: str = "FL"
    zip: str = ""
    listing_type: str = "for_sale"
    price: float | None = None
    price_psf: float | None = None
    lease_rate: float | None = None
    lease_type: str = ""
    cam: float | None = None
    cap_rate: str = ""
    building_sf: int | None = None
    land_acres: float | None = None
    zoning: str = ""
    year_built: int | None = None
    parking: str = ""
    re_taxes: float | None = None
    parcel_id: str = ""
    brokers: List[Broker] = field(default_factory=list)
    highlights: List[str] = field(default_factory=list)
    overview: str = ""
    tagline: str = ""
    nearby_roads: List[Dict[str, str]] = field(default_factory=list)
    photos: List[PhotoRef] = field(default_factory=list)

    @property
    def primary_broker(self) -> Broker | None:
        return self.brokers[0] if self.brokers else None


@dataclass(slots=True)
class BrandColors:
    primary: str = "#1B6B3A"
    primary_dark: str = "#145A2E"
    primary_light: str = "#2A8B4A"
    accent: str = "#C41E3A"
    text: str = "#333333"
    text_light: str = "#FFFFFF"
    text_muted: str = "#666666"
    background: str = "#FFFFFF"
    background_dark: str = "#4A4A4A"
    background_darker: str = "#2D2D2D"
    border: str = "#E0E0E0"
    border_light: str = "#F0F0F0"
    highlight: str = "#F7F7F7"


@dataclass(slots=True)
class BrandFonts:
    heading: str = "'Montserrat', 'Arial Black', sans-serif"
    body: str = "'Open Sans', 'Helvetica Neue', sans-serif"


@dataclass(slots=True)
class OfficeAddress:
    city: str
    address: str
    phone: str = ""


@dataclass(slots=True)
class Brand:
    """Tenant theming applied to every rendered page."""

    id: str
    name: str
    tenant_id: str = "default"
    colors: BrandColors = field(default_factory=BrandColors)
    fonts: BrandFonts = field(default_factory=BrandFonts)
    disclaimer: str = ""
    office_addresses: List[OfficeAddress] = field(default_factory=list)
    website: str = ""
    # SVG markup with {{primary}}, {{primaryDark}} and {{text}} color tokens.
    logo_svg: str = ""
    is_default: bool = False
