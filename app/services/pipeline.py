"""
Generation pipeline: the job controller for one marketing draft.

Stages run strictly in order for a single draft:

1. load listing and brand (missing records fail the draft)
2. classify photos and build previews (unreadable photos are kept with a
   default classification and simply never produce a zone image)
3. composition, AI or offline, always validated
4. zone allocation per page, then concurrent crop + enhance per zone
5. render and combine all pages into one PDF (failure is fatal)
6. quality score, artifact storage, terminal state
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Sequence, Set, Tuple

from PIL import Image

from app.api.v1.schemas import DraftStatus
from app.config import Settings, get_settings
from app.models.drafts import AIContent, Artifact, Draft, FocalPoint, PhotoClassification, utcnow
from app.models.listings import Brand, Listing
from app.models.photos import Photo, PhotoPreview, ZoneAssignment, ZoneImage
from app.services.anthropic_http_client import AnthropicHTTPClient
from app.services.classifier import FILENAME_CONFIDENCE, classify_path
from app.services.composition import CompositionResult, compose_marketing_content
from app.services.errors import (
    BrandNotFoundError,
    DraftNotFoundError,
    ImageTransformError,
    InvalidTransitionError,
    ListingNotFoundError,
)
from app.services.image_transform import make_preview, process_zone_image, validate_resolution
from app.services.quality import score_quality
from app.services.render import DocumentRenderer, PlaywrightRenderer, render_document, select_templates
from app.services.stores import BrandStore, DraftStore, ListingStore, LocalArtifactStore
from app.services.templates import TemplateRegistry, get_template_registry
from app.services.zones import allocate_sequence, get_template_page


logger = logging.getLogger(__name__)

# A failed draft may be retried this many times, each as a new attempt.
MAX_RETRIES = 3

ALLOWED_TRANSITIONS: Dict[DraftStatus, Set[DraftStatus]] = {
    DraftStatus.QUEUED: {DraftStatus.GENERATING, DraftStatus.FAILED},
    DraftStatus.GENERATING: {DraftStatus.COMPLETE, DraftStatus.FAILED},
    DraftStatus.COMPLETE: set(),
    # Only through retry_draft, which starts a new attempt.
    DraftStatus.FAILED: {DraftStatus.QUEUED},
}


def transition(draft: Draft, target: DraftStatus) -> None:
    """Move a draft to `target`, enforcing the lifecycle order."""
    if target not in ALLOWED_TRANSITIONS[draft.status]:
        raise InvalidTransitionError(
            f"Draft {draft.id}: cannot move from {draft.status.value} to {target.value}"
        )
    logger.info("Draft %s: %s -> %s", draft.id, draft.status.value, target.value)
    draft.status = target
    draft.updated_at = utcnow()


def _inspect_photo(index: int, path: str, declared_type: str | None) -> Tuple[Photo, PhotoPreview | None]:
    """Classify one photo and build its preview. Blocking."""
    photo = Photo(index=index, path=path, filename=Path(path).name)
    try:
        classification, confidence, stats = classify_path(path, declared_type)
        preview = make_preview(path, index)
    except (OSError, Image.DecompressionBombError, ImageTransformError) as exc:
        logger.warning("Photo %d (%s) is unreadable, zones using it will be skipped: %s", index, path, exc)
        return photo, None

    photo.classification = classification
    photo.confidence = confidence
    photo.hinted = confidence >= FILENAME_CONFIDENCE
    photo.width = stats.width
    photo.height = stats.height

    resolution = validate_resolution(stats.width, stats.height)
    if not resolution.passes:
        logger.warning("Photo %d (%s): %s", index, photo.filename, resolution.recommendation)
    return photo, preview


def merge_classifications(photos: Sequence[Photo], composition: CompositionResult) -> List[PhotoClassification]:
    """
    Combine pipeline classification with composition output, in place.

    A declared-type or filename hint always wins. Otherwise an AI
    classification replaces the pixel heuristic; in offline mode the
    heuristic (which also sees brightness) is kept. Photos that could not be
    read take the composition's default entry. Zone recommendation and focal
    point always come from composition.
    """
    records: List[PhotoClassification] = []
    for photo, entry in zip(photos, composition.photo_classifications):
        readable = photo.width > 0
        if not readable or (composition.source == "ai" and not photo.hinted):
            photo.classification = entry.classification
            photo.confidence = entry.confidence
        photo.recommended_zone = entry.recommended_zone
        photo.focal_point = FocalPoint(entry.focal_point.x, entry.focal_point.y)

        records.append(
            PhotoClassification(
                photo_index=photo.index,
                classification=photo.classification,
                confidence=photo.confidence,
                recommended_zone=photo.recommended_zone,
                focal_point=photo.focal_point,
                description=entry.description,
            )
        )
    return records


class GenerationPipeline:
    """
    Runs generation for drafts against injected stores and collaborators.

    Only the pipeline mutates drafts. Callers must ensure at most one
    `execute` per draft id runs at a time (see `GenerationQueue`); the
    status check on entry rejects a second run for a draft that is
    already generating.
    """

    def __init__(
        self,
        drafts: DraftStore,
        listings: ListingStore,
        brands: BrandStore,
        artifacts: LocalArtifactStore,
        ai_client: AnthropicHTTPClient | None = None,
        renderer: DocumentRenderer | None = None,
        registry: TemplateRegistry | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._drafts = drafts
        self._listings = listings
        self._brands = brands
        self._artifacts = artifacts
        self._ai_client = ai_client
        self._renderer = renderer or PlaywrightRenderer(self._settings.chromium_executable)
        self._registry = registry or get_template_registry()

    async def execute(self, draft_id: str) -> Draft:
        """
        Run one generation attempt to a terminal state.

        Raises:
            DraftNotFoundError: the draft does not exist
            InvalidTransitionError: the draft is not queued
        """
        draft = await self._drafts.get(draft_id)
        if draft is None:
            raise DraftNotFoundError(draft_id)

        self._start_attempt(draft)
        await self._drafts.save(draft)

        logger.info("=" * 60)
        logger.info("GENERATION PIPELINE - draft %s (attempt %d)", draft.id, draft.attempts)
        logger.info("=" * 60)

        try:
            await self._run(draft)
        except Exception as exc:  # noqa: BLE001
            self._fail(draft, exc)

        await self._drafts.save(draft)
        return draft

    async def retry_draft(self, draft_id: str) -> Draft:
        """Queue a failed draft for a new attempt."""
        draft = await self._drafts.get(draft_id)
        if draft is None:
            raise DraftNotFoundError(draft_id)
        if draft.status != DraftStatus.FAILED:
            raise InvalidTransitionError(f"Draft {draft_id}: only failed drafts can be retried")
        if draft.attempts - 1 >= MAX_RETRIES:
            raise InvalidTransitionError(f"Draft {draft_id}: max retry limit ({MAX_RETRIES}) reached")

        transition(draft, DraftStatus.QUEUED)
        draft.error_message = None
        await self._drafts.save(draft)
        return draft

    def _start_attempt(self, draft: Draft) -> None:
        transition(draft, DraftStatus.GENERATING)
        draft.attempts += 1
        draft.started_at = utcnow()
        draft.completed_at = None
        draft.artifact = None
        draft.quality_score = None
        draft.quality_report = []
        draft.ai_content = None
        draft.ai_metrics = None
        draft.photo_classifications = []
        draft.error_message = None

    def _fail(self, draft: Draft, exc: BaseException) -> None:
        message = str(exc) or exc.__class__.__name__
        logger.error("Generation failed for draft %s: %s", draft.id, message, exc_info=exc)
        if draft.status != DraftStatus.GENERATING:
            return
        transition(draft, DraftStatus.FAILED)
        draft.error_message = message
        draft.completed_at = utcnow()

    async def _load_brand(self, draft: Draft) -> Brand:
        if draft.brand_id:
            brand = await self._brands.get(draft.brand_id)
            if brand is None:
                raise BrandNotFoundError(draft.brand_id)
            return brand
        return await self._brands.get_default(draft.tenant_id)

    async def _run(self, draft: Draft) -> None:
        settings = self._settings

        listing = await self._listings.get(draft.listing_id)
        if listing is None:
            raise ListingNotFoundError(draft.listing_id)
        brand = await self._load_brand(draft)
        logger.info("Listing: %s | Brand: %s | Photos: %d",
                    listing.property_name or listing.address, brand.name, len(listing.photos))

        photos, previews = await self._prepare_photos(listing)

        composition = await compose_marketing_content(
            listing,
            previews,
            photo_count=len(photos),
            client=self._ai_client,
            timeout=settings.ai_timeout_seconds,
            force_offline=settings.force_offline,
        )
        draft.photo_classifications = merge_classifications(photos, composition)
        content = AIContent(
            overview=composition.property_overview or "",
            tagline=composition.tagline_suggestion or "",
            highlights=list(composition.highlights_enhanced),
            keywords=list(composition.seo_keywords),
        )
        metrics = composition.metrics

        template_ids = list(draft.template_sequence) or select_templates(listing.listing_type)
        pages = [get_template_page(template_id) for template_id in template_ids]
        allocations = allocate_sequence(photos, pages)
        use_focal_point = composition.source == "ai"
        zone_images = await self._transform_zones(
            [
                (allocation.page.template_id, assignment)
                for allocation in allocations
                for assignment in allocation.assignments.values()
            ],
            use_focal_point,
        )

        rendered = await render_document(
            listing,
            brand,
            content,
            zone_images,
            template_ids,
            self._registry,
            self._renderer,
            timeout=settings.render_timeout_seconds,
        )

        score, report = score_quality(listing, content, zone_images)

        locator = await asyncio.to_thread(self._artifacts.put_pdf, draft.tenant_id, draft.id, rendered.pdf)

        draft.artifact = Artifact(locator=locator, size_bytes=rendered.size_bytes, page_count=rendered.page_count)
        draft.quality_score = score
        draft.quality_report = report
        draft.ai_content = content
        draft.ai_metrics = metrics
        transition(draft, DraftStatus.COMPLETE)
        draft.completed_at = utcnow()

        logger.info(
            "Generation complete: %s, %d page(s), %.0fKB, score %d/100, model %s",
            locator, rendered.page_count, rendered.size_bytes / 1024, score, metrics.model,
        )

    async def _prepare_photos(self, listing: Listing) -> Tuple[List[Photo], List[PhotoPreview]]:
        results = await asyncio.gather(
            *(
                asyncio.to_thread(_inspect_photo, index, ref.path, ref.declared_type)
                for index, ref in enumerate(listing.photos)
            )
        )
        photos = [photo for photo, _ in results]
        previews = [preview for _, preview in results if preview is not None]
        return photos, previews

    async def _transform_zones(
        self,
        jobs: Sequence[Tuple[str, ZoneAssignment]],
        use_focal_point: bool,
    ) -> List[ZoneImage]:
        """Crop and enhance every assigned zone concurrently; failed zones are skipped."""

        async def transform(template_id: str, assignment: ZoneAssignment) -> ZoneImage | None:
            photo, spec = assignment.photo, assignment.spec
            focal_point = photo.focal_point if use_focal_point else None
            try:
                image = await asyncio.to_thread(
                    process_zone_image, photo.path, spec, photo.classification, focal_point
                )
            except ImageTransformError as exc:
                logger.warning("Skipping zone %s/%s: %s", template_id, spec.name, exc)
                return None
            return ZoneImage(template_id=template_id, zone=spec.name, photo_index=photo.index, image=image)

        results = await asyncio.gather(*(transform(template_id, assignment) for template_id, assignment in jobs))
        return [result for result in results if result is not None]
