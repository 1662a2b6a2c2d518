from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Sequence

from app.models.photos import PageAllocation, Photo, TemplatePage, ZoneAssignment, ZoneSpec


logger = logging.getLogger(__name__)


def _zone(name: str, width: int, height: int, label: str, *accepts: str) -> ZoneSpec:
    return ZoneSpec(name=name, width=width, height=height, label=label, accepts=frozenset(accepts))


# Target pixel sizes are for 300 DPI letter pages.
TEMPLATE_PAGES: Dict[str, TemplatePage] = {
    "cover-standard": TemplatePage(
        template_id="cover-standard",
        zones=(_zone("hero_photo", 2550, 1400, "Cover Hero", "exterior", "aerial", "landscape"),),
    ),
    "details-offering": TemplatePage(
        template_id="details-offering",
        zones=(_zone("accent_photo", 1200, 900, "Details Accent", "exterior", "interior", "warehouse"),),
    ),
    # The map page uses a generated map graphic, not listing photos.
    "location-map": TemplatePage(template_id="location-map", zones=()),
    "photos-mosaic": TemplatePage(
        template_id="photos-mosaic",
        zones=(
            _zone("photo_large_1", 1200, 900, "Mosaic Large", "exterior", "aerial"),
            _zone("photo_large_2", 1200, 900, "Mosaic Large", "interior", "warehouse"),
            _zone("photo_large_3", 1200, 900, "Mosaic Large", "interior", "exterior", "warehouse"),
            _zone("photo_small_1", 800, 600, "Mosaic Small", "detail", "interior", "parking"),
            _zone("photo_small_2", 800, 600, "Mosaic Small", "detail", "interior", "parking"),
        ),
    ),
    "floorplan": TemplatePage(
        template_id="floorplan",
        zones=(_zone("floorplan_image", 2400, 1800, "Floor Plan", "floor_plan"),),
    ),
    "aerial": TemplatePage(
        template_id="aerial",
        zones=(_zone("aerial_photo", 2550, 3300, "Aerial Full Page", "aerial", "landscape"),),
    ),
}


def get_template_page(template_id: str) -> TemplatePage:
    """Return the page definition for a template id; unknown ids have no zones."""
    page = TEMPLATE_PAGES.get(template_id)
    if page is None:
        logger.warning("No zone definition for template %s; page has no photo zones", template_id)
        return TemplatePage(template_id=template_id, zones=())
    return page


def allocate_zones(pool: Iterable[Photo], page: TemplatePage) -> PageAllocation:
    """
    Greedy first-fit assignment of photos to a page's zones.

    Zones are filled in declaration order; each takes the first photo in the
    remaining pool whose classification it accepts, and that photo is removed
    from the pool. Zones with no match stay unfilled. The caller's pool is
    copied, never mutated.
    """
    available: List[Photo] = list(pool)
    allocation = PageAllocation(page=page)

    for spec in page.zones:
        match_index = next(
            (i for i, photo in enumerate(available) if photo.classification in spec.accepts),
            None,
        )
        if match_index is None:
            continue
        photo = available.pop(match_index)
        allocation.assignments[spec.name] = ZoneAssignment(photo=photo, spec=spec)

    return allocation


def allocate_sequence(pool: Sequence[Photo], pages: Sequence[TemplatePage]) -> List[PageAllocation]:
    """
    Allocate every page of a template sequence.

    Each page starts from its own copy of the full pool, so one photo can be
    used on several pages (but at most once per page).
    """
    allocations: List[PageAllocation] = []
    for page in pages:
        allocation = allocate_zones(pool, page)
        if allocation.assignments:
            logger.info(
                "%s: %d zone(s) filled (%s)",
                page.template_id,
                len(allocation.assignments),
                ", ".join(
                    f"{zone}={a.photo.filename}/{a.photo.classification}"
                    for zone, a in allocation.assignments.items()
                ),
            )
        allocations.append(allocation)
    return allocations
