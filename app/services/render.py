"""
Render orchestration: template selection, data assembly, per-page HTML
rendering, and combination into one paginated PDF.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol, Sequence

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from app.models.drafts import AIContent
from app.models.listings import Brand, Listing
from app.models.photos import ZoneImage
from app.services.brands import brand_tokens, render_brand_logo
from app.services.errors import RenderError
from app.services.formatting import prepare_listing_data, split_tagline
from app.services.image_transform import to_data_uri
from app.services.templates import TemplateRegistry


logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_SEQUENCE = ("cover-standard", "details-offering", "location-map")

TEMPLATE_SEQUENCES: Dict[str, tuple[str, ...]] = {
    "land_sale": DEFAULT_TEMPLATE_SEQUENCE,
    "for_sale": DEFAULT_TEMPLATE_SEQUENCE,
    "investment": DEFAULT_TEMPLATE_SEQUENCE,
    "for_lease": DEFAULT_TEMPLATE_SEQUENCE,
    "sale_or_lease": DEFAULT_TEMPLATE_SEQUENCE,
    "build_to_suit": DEFAULT_TEMPLATE_SEQUENCE,
    "retail_lease": DEFAULT_TEMPLATE_SEQUENCE,
    "specialty": DEFAULT_TEMPLATE_SEQUENCE,
}

PROPERTY_TYPE_DESCS = {
    "for_sale": "commercial",
    "for_lease": "commercial",
    "sale_or_lease": "commercial",
    "investment": "investment",
    "land_sale": "development",
    "build_to_suit": "retail",
    "retail_lease": "retail",
    "specialty": "specialized",
    "industrial": "industrial",
}

# Zones preferred for the cover hero image, in order.
HERO_ZONES = ("hero_photo", "aerial_photo", "photo_large_1")

PAGE_WIDTH = "8.5in"
PAGE_HEIGHT = "11in"
VIEWPORT = {"width": 816, "height": 1056}

_BODY_RE = re.compile(r"<body[^>]*>(.*)</body>", re.IGNORECASE | re.DOTALL)
_STYLE_RE = re.compile(r"<style[^>]*>.*?</style>", re.IGNORECASE | re.DOTALL)
_PDF_PAGE_RE = re.compile(rb"/Type\s*/Page(?![a-zA-Z])")

COMBINED_TEMPLATE = """<!DOCTYPE html>
<html><head><meta charset="UTF-8">
<style>
  @page {{ size: {width} {height}; margin: 0; }}
  html, body {{ margin: 0; padding: 0; }}
  .page-wrapper {{ page-break-after: always; width: {width}; height: {height}; overflow: hidden; position: relative; }}
  .page-wrapper:last-child {{ page-break-after: auto; }}
</style></head><body>
{pages}
</body></html>"""


@dataclass(slots=True)
class RenderedDocument:
    pdf: bytes
    page_count: int


@dataclass(slots=True)
class RenderResult:
    pdf: bytes
    page_count: int
    size_bytes: int
    template_ids: List[str] = field(default_factory=list)


class DocumentRenderer(Protocol):
    async def render(self, html: str, expected_pages: int) -> RenderedDocument:
        """Render one combined HTML document to a PDF."""
        ...


def select_templates(listing_type: str) -> List[str]:
    return list(TEMPLATE_SEQUENCES.get(listing_type, DEFAULT_TEMPLATE_SEQUENCE))


def assemble_template_data(
    listing: Listing,
    brand: Brand,
    content: AIContent,
    zone_images: Sequence[ZoneImage],
) -> Dict[str, Any]:
    """
    Merge listing, brand, AI content and zone images into one flat mapping.

    AI content replaces the listing's own overview, highlights and tagline.
    Each zone image is exposed as `<zone>_src` (a JPEG data URI); zone names
    are unique across page templates.
    """
    enriched = dataclasses.replace(
        listing,
        overview=content.overview or listing.overview,
        highlights=list(content.highlights or listing.highlights),
        tagline=content.tagline or listing.tagline,
    )
    data = prepare_listing_data(enriched, brand)

    tagline_prefix, display_name = split_tagline(data["tagline"], data["property_name"])

    images: Dict[str, str] = {}
    for zone_image in zone_images:
        images.setdefault(zone_image.zone, to_data_uri(zone_image.image))

    hero = next((images[zone] for zone in HERO_ZONES if zone in images), None)
    if hero is None and images:
        hero = next(iter(images.values()))

    data.update(brand_tokens(brand))
    data.update({f"{zone}_src": uri for zone, uri in images.items()})
    data.update(
        {
            "tagline_prefix": tagline_prefix,
            "header_display_name": display_name.upper(),
            "listing_badge_lower": data["listing_badge"].lower(),
            "property_type_desc": PROPERTY_TYPE_DESCS.get(listing.listing_type, "commercial"),
            "brand_logo_src": render_brand_logo(brand),
            "seo_keywords": list(content.keywords),
            "road_labels": list(listing.nearby_roads),
            "hero_image_src": hero,
            "accent_image_src": images.get("accent_photo"),
            "zone_images": images,
        }
    )
    return data


def render_pages(template_ids: Sequence[str], data: Dict[str, Any], registry: TemplateRegistry) -> List[str]:
    """Render each page template independently to an HTML document."""
    pages: List[str] = []
    for template_id in template_ids:
        try:
            pages.append(registry.render(template_id, data))
        except KeyError as exc:
            raise RenderError(f"Page template not found: {template_id}") from exc
    return pages


def build_combined_html(pages: Sequence[str]) -> str:
    """
    Concatenate page documents into one with a page break between pages.

    Each page keeps its own <style> blocks and the contents of its <body>,
    wrapped in a letter-sized `.page-wrapper`.
    """
    wrapped: List[str] = []
    for html in pages:
        styles = "\n".join(_STYLE_RE.findall(html))
        body_match = _BODY_RE.search(html)
        body = body_match.group(1) if body_match else html
        wrapped.append(f'<div class="page-wrapper">{styles}{body}</div>')
    return COMBINED_TEMPLATE.format(width=PAGE_WIDTH, height=PAGE_HEIGHT, pages="\n".join(wrapped))


def count_pdf_pages(pdf: bytes) -> int:
    return len(_PDF_PAGE_RE.findall(pdf))


class PlaywrightRenderer:
    """Headless Chromium renderer: letter size, zero margins, backgrounds kept."""

    def __init__(self, executable_path: str | None = None) -> None:
        self.executable_path = executable_path

    async def render(self, html: str, expected_pages: int) -> RenderedDocument:
        try:
            async with async_playwright() as playwright:
                browser = await playwright.chromium.launch(
                    executable_path=self.executable_path,
                    args=["--no-sandbox", "--disable-dev-shm-usage", "--disable-gpu"],
                )
                try:
                    page = await browser.new_page(viewport=VIEWPORT)
                    await page.set_content(html, wait_until="networkidle")
                    await page.evaluate("() => document.fonts.ready.then(() => true)")
                    pdf = await page.pdf(
                        width=PAGE_WIDTH,
                        height=PAGE_HEIGHT,
                        print_background=True,
                        prefer_css_page_size=True,
                        margin={"top": "0", "right": "0", "bottom": "0", "left": "0"},
                        scale=1,
                    )
                finally:
                    await browser.close()
        except PlaywrightError as exc:
            raise RenderError(f"Headless render failed: {exc}") from exc

        page_count = count_pdf_pages(pdf) or expected_pages
        return RenderedDocument(pdf=pdf, page_count=page_count)


async def render_document(
    listing: Listing,
    brand: Brand,
    content: AIContent,
    zone_images: Sequence[ZoneImage],
    template_ids: Sequence[str],
    registry: TemplateRegistry,
    renderer: DocumentRenderer,
    timeout: float,
) -> RenderResult:
    """
    Assemble, render and combine all pages into one PDF.

    Raises:
        RenderError: on a missing template, renderer failure or timeout
    """
    if not template_ids:
        raise RenderError("No page templates to render")

    data = assemble_template_data(listing, brand, content, zone_images)
    pages = render_pages(template_ids, data, registry)
    combined = build_combined_html(pages)
    logger.info("Rendering %d page(s): %s", len(pages), " -> ".join(template_ids))

    try:
        document = await asyncio.wait_for(renderer.render(combined, len(pages)), timeout)
    except asyncio.TimeoutError as exc:
        raise RenderError(f"Render timed out after {timeout:.0f}s") from exc

    if not document.pdf:
        raise RenderError("Renderer returned an empty document")

    return RenderResult(
        pdf=document.pdf,
        page_count=document.page_count,
        size_bytes=len(document.pdf),
        template_ids=list(template_ids),
    )
