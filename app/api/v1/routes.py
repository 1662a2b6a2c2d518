from fastapi import APIRouter, HTTPException, status
from fastapi.responses import FileResponse

from app.api.v1.schemas import (
    AIContentOut,
    AIMetricsOut,
    ArtifactOut,
    DraftCreateRequest,
    DraftCreateResponse,
    DraftDetail,
    DraftStatus,
    DraftSummary,
    GenerateResponse,
    ListingIn,
    PhotoClassificationOut,
    QualityReportEntryOut,
    TemplatePageOut,
)
from app.models.drafts import Draft
from app.models.listings import Broker, Listing, PhotoRef
from app.services.errors import DraftBusyError, InvalidTransitionError
from app.services.jobs import get_generation_queue
from app.services.rate_limiter import get_rate_limiter_stats
from app.services.stores import get_artifact_store, get_brand_store, get_draft_store, get_listing_store
from app.services.templates import get_template_registry
from app.services.zones import TEMPLATE_PAGES

router = APIRouter(prefix="/api/v1")


def _draft_detail(draft: Draft) -> DraftDetail:
    return DraftDetail(
        id=draft.id,
        listing_id=draft.listing_id,
        brand_id=draft.brand_id,
        tenant_id=draft.tenant_id,
        status=draft.status,
        attempts=draft.attempts,
        template_sequence=list(draft.template_sequence),
        artifact=ArtifactOut.model_validate(draft.artifact) if draft.artifact else None,
        quality_score=draft.quality_score,
        quality_report=[QualityReportEntryOut.model_validate(entry) for entry in draft.quality_report],
        ai_content=AIContentOut.model_validate(draft.ai_content) if draft.ai_content else None,
        ai_metrics=AIMetricsOut.model_validate(draft.ai_metrics) if draft.ai_metrics else None,
        photo_classifications=[
            PhotoClassificationOut.model_validate(record) for record in draft.photo_classifications
        ],
        error_message=draft.error_message,
        created_at=draft.created_at.isoformat(),
        updated_at=draft.updated_at.isoformat(),
    )


async def _get_draft_or_404(draft_id: str) -> Draft:
    draft = await get_draft_store().get(draft_id)
    if draft is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Draft not found.",
        )
    return draft


@router.get("/health", tags=["health"])
async def health_check() -> dict:
    """API v1 health check endpoint."""
    return {"status": "ok", "api_version": "v1"}


@router.post(
    "/listings",
    status_code=status.HTTP_201_CREATED,
    tags=["listings"],
    summary="Register or update a CRM listing",
)
async def put_listing(payload: ListingIn) -> dict:
    """
    Store the listing facts a draft will be generated from.

    Listings are read-only to generation; pushing the same id again replaces
    the stored record for future runs.
    """
    listing = Listing(
        **payload.model_dump(exclude={"brokers", "photos"}),
        brokers=[Broker(**broker.model_dump()) for broker in payload.brokers],
        photos=[PhotoRef(path=photo.path, declared_type=photo.declared_type) for photo in payload.photos],
    )
    await get_listing_store().put(listing)
    return {"listing_id": listing.id, "photos": len(listing.photos)}


@router.post(
    "/drafts",
    response_model=DraftCreateResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["drafts"],
    summary="Create a marketing draft for a listing",
)
async def create_draft(payload: DraftCreateRequest) -> DraftCreateResponse:
    if await get_listing_store().get(payload.listing_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Listing not found.",
        )
    if payload.brand_id and await get_brand_store().get(payload.brand_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Brand not found.",
        )

    draft = await get_draft_store().create(
        listing_id=payload.listing_id,
        tenant_id=payload.tenant_id,
        brand_id=payload.brand_id,
        template_sequence=payload.template_sequence,
    )
    return DraftCreateResponse(draft_id=draft.id, status=draft.status)


@router.get(
    "/drafts",
    response_model=list[DraftSummary],
    tags=["drafts"],
    summary="List drafts (development use)",
)
async def list_drafts() -> list[DraftSummary]:
    """
    List all known drafts.

    Intended primarily for development and debugging; in a real multi-tenant
    system, this would be scoped to the caller's tenant.
    """
    drafts = await get_draft_store().list_drafts()
    return [DraftSummary.model_validate(draft) for draft in drafts]


@router.get(
    "/drafts/{draft_id}",
    response_model=DraftDetail,
    tags=["drafts"],
    summary="Get status and results for a draft",
)
async def get_draft(draft_id: str) -> DraftDetail:
    """
    Poll a draft.

    Terminal drafts carry either an artifact with quality report and AI
    content (complete) or an error message (failed).
    """
    draft = await _get_draft_or_404(draft_id)
    return _draft_detail(draft)


@router.post(
    "/drafts/{draft_id}/generate",
    response_model=GenerateResponse,
    status_code=status.HTTP_202_ACCEPTED,
    tags=["drafts"],
    summary="Start (or retry) generation for a draft",
)
async def generate_draft(draft_id: str) -> GenerateResponse:
    """
    Queue a generation run and return immediately.

    A queued draft starts its first attempt. A failed draft starts a new
    attempt while retries remain. A draft that is generating or already
    complete is rejected with 409; poll `GET /drafts/{id}` for progress.
    """
    draft = await _get_draft_or_404(draft_id)
    queue = get_generation_queue()

    if queue.is_busy(draft_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Generation already in progress for this draft.",
        )

    try:
        if draft.status == DraftStatus.FAILED:
            draft = await queue.pipeline.retry_draft(draft_id)
        elif draft.status != DraftStatus.QUEUED:
            raise InvalidTransitionError(f"Draft {draft_id} is {draft.status.value}")
        queue.submit(draft_id)
    except (InvalidTransitionError, DraftBusyError) as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc

    return GenerateResponse(draft_id=draft.id, status=draft.status, attempt=draft.attempts + 1)


@router.get(
    "/drafts/{draft_id}/artifact",
    tags=["drafts"],
    summary="Download the rendered PDF",
)
async def get_draft_artifact(draft_id: str) -> FileResponse:
    draft = await _get_draft_or_404(draft_id)
    if draft.status != DraftStatus.COMPLETE or draft.artifact is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Draft has no rendered artifact yet.",
        )

    path = get_artifact_store().resolve_path(draft.artifact.locator)
    if path is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Artifact file is missing.",
        )
    return FileResponse(path, media_type="application/pdf", filename=path.name)


@router.get(
    "/templates",
    response_model=list[TemplatePageOut],
    tags=["templates"],
    summary="List renderable page templates and their photo zones",
)
async def list_templates() -> list[TemplatePageOut]:
    registry = get_template_registry()
    return [
        TemplatePageOut(
            template_id=template_id,
            zones=[zone.name for zone in TEMPLATE_PAGES[template_id].zones] if template_id in TEMPLATE_PAGES else [],
        )
        for template_id in registry.template_ids()
    ]


@router.get("/rate-limit", tags=["health"], summary="AI rate limiter status")
async def rate_limit_status() -> dict:
    return get_rate_limiter_stats()
