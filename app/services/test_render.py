"""
Tests for render orchestration.

The headless browser is replaced by an in-memory renderer; page templates
are either the packaged ones or registered inline.
"""

import asyncio

import pytest

from app.models.drafts import AIContent
from app.models.listings import Broker, Listing
from app.models.photos import ProcessedImage, ZoneImage
from app.services.brands import get_builtin_brand
from app.services.errors import RenderError
from app.services.render import (
    DEFAULT_TEMPLATE_SEQUENCE,
    RenderedDocument,
    assemble_template_data,
    build_combined_html,
    count_pdf_pages,
    render_document,
    select_templates,
)
from app.services.templates import TemplateRegistry


class FakeRenderer:
    def __init__(self, delay=0.0, pdf=b"%PDF-1.7 fake"):
        self.delay = delay
        self.pdf = pdf
        self.calls = []

    async def render(self, html, expected_pages):
        self.calls.append((html, expected_pages))
        if self.delay:
            await asyncio.sleep(self.delay)
        return RenderedDocument(pdf=self.pdf, page_count=expected_pages)


def _listing():
    return Listing(
        id="L-1",
        property_name="Colonial Commerce Center",
        address="4500 Colonial Blvd, Suite 100",
        city="Fort Myers",
        zip="33966",
        listing_type="for_lease",
        lease_rate=18.5,
        cam=6.0,
        building_sf=12000,
        zoning="C-1",
        brokers=[Broker(name="Jane Broker", phone="239-555-0100")],
        highlights=["Old highlight"],
        nearby_roads=[{"name": "I-75", "top": "30%", "left": "70%"}],
    )


def _content():
    return AIContent(
        overview="Colonial Commerce Center offers flexible office space.",
        tagline="Flexible Office Space — Colonial Commerce Center",
        highlights=["Signalized corner", "Monument signage"],
        keywords=["fort myers office"],
    )


def _zone_image(template_id, zone):
    return ZoneImage(template_id=template_id, zone=zone, photo_index=0, image=ProcessedImage(b"\xff\xd8jpeg", 4, 3))


def _registry(tmp_path, *template_ids):
    registry = TemplateRegistry(template_dir=tmp_path)
    for template_id in template_ids:
        registry.register(
            template_id,
            "<html><head><style>.p{color:red}</style></head>"
            "<body><h1>{{ header_display_name }}</h1><p>" + template_id + "</p></body></html>",
        )
    return registry


def test_unknown_listing_type_uses_default_sequence():
    assert select_templates("mystery") == list(DEFAULT_TEMPLATE_SEQUENCE)
    assert select_templates("for_sale") == ["cover-standard", "details-offering", "location-map"]


def test_assembled_data_prefers_ai_content_and_exposes_zones():
    zones = [_zone_image("cover-standard", "hero_photo"), _zone_image("details-offering", "accent_photo")]

    data = assemble_template_data(_listing(), get_builtin_brand(), _content(), zones)

    assert data["highlights"] == ["Signalized corner", "Monument signage"]
    assert data["tagline_prefix"] == "Flexible Office Space"
    assert data["header_display_name"] == "COLONIAL COMMERCE CENTER"
    assert data["listing_badge"] == "FOR LEASE"
    assert data["address_line1"] == "4500 Colonial Blvd"
    assert data["lease_rate"] == "$18.50/SF"
    assert data["monthly_base"] == "$18,500.00"
    assert data["monthly_total"] == "$24,500.00"
    assert data["hero_photo_src"].startswith("data:image/jpeg;base64,")
    assert data["hero_image_src"] == data["hero_photo_src"]
    assert data["accent_image_src"] == data["accent_photo_src"]
    assert data["brand_logo_src"].startswith("data:image/svg+xml;base64,")
    assert data["brand_primary"]
    assert data["road_labels"][0]["name"] == "I-75"


def test_combined_html_keeps_styles_and_separates_pages():
    pages = [
        "<html><head><style>.a{}</style></head><body><div>one</div></body></html>",
        "<html><head><style>.b{}</style></head><body class='x'><div>two</div></body></html>",
    ]

    combined = build_combined_html(pages)

    assert combined.count('class="page-wrapper"') == 2
    assert ".a{}" in combined and ".b{}" in combined
    assert combined.index("one") < combined.index("two")
    assert "size: 8.5in 11in" in combined
    assert "page-break-after: always" in combined


def test_count_pdf_pages_ignores_pages_tree():
    pdf = b"<< /Type /Pages /Count 2 >> << /Type /Page >> << /Type /Page >>"
    assert count_pdf_pages(pdf) == 2


def test_render_document_single_page(tmp_path):
    renderer = FakeRenderer()
    registry = _registry(tmp_path, "cover-standard")

    result = asyncio.run(
        render_document(_listing(), get_builtin_brand(), _content(), [], ["cover-standard"], registry, renderer, 5.0)
    )

    assert result.page_count == 1
    assert result.size_bytes == len(renderer.pdf)
    assert result.template_ids == ["cover-standard"]
    html, expected = renderer.calls[0]
    assert expected == 1
    assert "COLONIAL COMMERCE CENTER" in html


def test_render_document_renders_packaged_templates(tmp_path):
    renderer = FakeRenderer()
    zones = [_zone_image("cover-standard", "hero_photo")]

    result = asyncio.run(
        render_document(
            _listing(),
            get_builtin_brand(),
            _content(),
            zones,
            ["cover-standard", "details-offering", "location-map", "photos-mosaic", "floorplan", "aerial"],
            TemplateRegistry(),
            renderer,
            5.0,
        )
    )

    assert result.page_count == 6
    html, _ = renderer.calls[0]
    assert html.count('class="page-wrapper"') == 6


def test_render_timeout_is_a_render_error(tmp_path):
    renderer = FakeRenderer(delay=1.0)
    registry = _registry(tmp_path, "cover-standard")

    with pytest.raises(RenderError, match="timed out"):
        asyncio.run(
            render_document(_listing(), get_builtin_brand(), _content(), [], ["cover-standard"], registry, renderer, 0.05)
        )


def test_missing_template_is_a_render_error(tmp_path):
    with pytest.raises(RenderError, match="not found"):
        asyncio.run(
            render_document(
                _listing(), get_builtin_brand(), _content(), [], ["nope"], _registry(tmp_path), FakeRenderer(), 5.0
            )
        )


def test_empty_pdf_is_a_render_error(tmp_path):
    with pytest.raises(RenderError):
        asyncio.run(
            render_document(
                _listing(),
                get_builtin_brand(),
                _content(),
                [],
                ["cover-standard"],
                _registry(tmp_path, "cover-standard"),
                FakeRenderer(pdf=b""),
                5.0,
            )
        )


def test_registry_lists_packaged_templates():
    ids = TemplateRegistry().template_ids()
    for template_id in DEFAULT_TEMPLATE_SEQUENCE:
        assert template_id in ids
