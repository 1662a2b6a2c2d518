"""Built-in white-label brand profiles and logo rendering."""

from __future__ import annotations

import base64
from typing import Dict

from app.models.listings import Brand, BrandColors, BrandFonts, OfficeAddress


DEFAULT_BRAND_ID = "cre_consultants"

_CRE_LOGO = """<svg viewBox="0 0 240 80" xmlns="http://www.w3.org/2000/svg">
  <polygon points="30,5 55,70 5,70" fill="{{primary}}" stroke="none"/>
  <polygon points="30,18 48,62 12,62" fill="{{primaryDark}}" stroke="none"/>
  <text x="68" y="32" font-family="Montserrat, Arial Black, sans-serif" font-weight="800" font-size="22" fill="{{primary}}" letter-spacing="1">CRE</text>
  <text x="68" y="56" font-family="Montserrat, Arial, sans-serif" font-weight="400" font-size="11" fill="{{text}}" letter-spacing="3">CONSULTANTS</text>
  <line x1="68" y1="38" x2="190" y2="38" stroke="{{primary}}" stroke-width="0.8"/>
</svg>"""

_TCG_LOGO = """<svg viewBox="0 0 200 70" xmlns="http://www.w3.org/2000/svg">
  <circle cx="25" cy="35" r="18" fill="none" stroke="{{primary}}" stroke-width="3"/>
  <circle cx="25" cy="35" r="4" fill="{{primary}}"/>
  <text x="52" y="30" font-family="Open Sans, Arial, sans-serif" font-weight="800" font-size="20" fill="{{primary}}" letter-spacing="1">TCG</text>
  <text x="52" y="50" font-family="Open Sans, Arial, sans-serif" font-weight="400" font-size="7" fill="{{text}}" letter-spacing="3">TRINITY COMMERCIAL GROUP</text>
</svg>"""

BRANDS: Dict[str, Brand] = {
    "cre_consultants": Brand(
        id="cre_consultants",
        name="CRE Consultants",
        colors=BrandColors(),
        fonts=BrandFonts(),
        disclaimer=(
            "The information contained herein was obtained from sources believed reliable. "
            "CRE Consultants makes no guarantees, warranties or representations as to the "
            "completeness or accuracy thereof. The presentation of this property is submitted "
            "subject to errors, omissions, change of price or conditions prior to sale or lease, "
            "or withdrawal without notice. No liability is assumed for the accuracy of the data "
            "contained herein. Prospective purchasers/tenants are advised to independently verify the data."
        ),
        office_addresses=[
            OfficeAddress("Fort Myers", "4524 Gun Club Rd., Suite 203 · Fort Myers, FL 33907", "239.481.3800"),
            OfficeAddress("Naples", "4501 Tamiami Trail N., Suite 300 · Naples, FL 34103", "239.659.1447"),
        ],
        website="CRECONSULTANTS.COM",
        logo_svg=_CRE_LOGO,
        is_default=True,
    ),
    "tcg": Brand(
        id="tcg",
        name="Trinity Commercial Group",
        colors=BrandColors(
            primary="#00B4D8",
            primary_dark="#0077B6",
            primary_light="#48CAE4",
            accent="#FF6B35",
            background_dark="#333333",
            background_darker="#1A1A2E",
            highlight="#F0FAFE",
        ),
        fonts=BrandFonts(
            heading="'Open Sans', 'Arial', sans-serif",
            body="'Roboto', 'Helvetica Neue', sans-serif",
        ),
        disclaimer=(
            "The information contained herein was obtained from sources believed reliable. "
            "Trinity Commercial Group makes no guarantees, warranties or representations as to "
            "the completeness or accuracy thereof."
        ),
        website="TRINITYCOMMERCIALGROUP.COM",
        logo_svg=_TCG_LOGO,
    ),
}


def get_builtin_brand(brand_id: str | None = None) -> Brand:
    """Return a built-in brand; unknown or missing ids get the default brand."""
    return BRANDS.get(brand_id or DEFAULT_BRAND_ID, BRANDS[DEFAULT_BRAND_ID])


def render_brand_logo(brand: Brand) -> str:
    """Substitute the brand colors into its logo SVG and return a data URI."""
    svg = brand.logo_svg or BRANDS[DEFAULT_BRAND_ID].logo_svg
    svg = (
        svg.replace("{{primary}}", brand.colors.primary)
        .replace("{{primaryDark}}", brand.colors.primary_dark)
        .replace("{{text}}", brand.colors.text)
    )
    encoded = base64.b64encode(svg.encode("utf-8")).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"


def brand_tokens(brand: Brand) -> Dict[str, str]:
    """Theming values injected into every page template."""
    colors = brand.colors
    return {
        "brand_primary": colors.primary,
        "brand_primary_dark": colors.primary_dark,
        "brand_primary_light": colors.primary_light,
        "brand_accent": colors.accent,
        "brand_text": colors.text,
        "brand_text_light": colors.text_light,
        "brand_text_muted": colors.text_muted,
        "brand_bg": colors.background,
        "brand_bg_dark": colors.background_dark,
        "brand_bg_darker": colors.background_darker,
        "brand_border": colors.border,
        "brand_border_light": colors.border_light,
        "brand_highlight": colors.highlight,
        "brand_font_heading": brand.fonts.heading,
        "brand_font_body": brand.fonts.body,
    }
