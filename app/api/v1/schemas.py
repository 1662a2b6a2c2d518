from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, PositiveInt


class DraftStatus(str, Enum):
    """Lifecycle states for a marketing draft generation attempt."""

    QUEUED = "queued"
    GENERATING = "generating"
    COMPLETE = "complete"
    FAILED = "failed"


class PhotoRefIn(BaseModel):
    """Reference to a raw listing photo on disk."""

    path: str = Field(..., description="Filesystem path of the raw photo.")
    declared_type: str | None = Field(
        default=None,
        description="Optional classification hint from the CRM, e.g. 'aerial'.",
    )


class BrokerIn(BaseModel):
    name: str = Field(..., description="Broker display name.")
    title: str = ""
    phone: str = ""
    email: str = ""


class ListingIn(BaseModel):
    """Listing facts pushed by the CRM before a draft is created."""

    id: str = Field(..., description="CRM listing identifier.")
    tenant_id: str = Field(default="default", description="Owning tenant.")
    property_name: str = ""
    address: str = ""
    city: str = ""
    state: str = "FL"
    zip: str = ""
    listing_type: str = Field(default="for_sale", description="Transaction type, e.g. 'for_lease'.")
    price: float | None = None
    price_psf: float | None = None
    lease_rate: float | None = None
    lease_type: str = ""
    cam: float | None = None
    cap_rate: str = ""
    building_sf: PositiveInt | None = None
    land_acres: float | None = None
    zoning: str = ""
    year_built: int | None = None
    parking: str = ""
    re_taxes: float | None = None
    parcel_id: str = ""
    brokers: List[BrokerIn] = Field(default_factory=list, max_length=2)
    highlights: List[str] = Field(default_factory=list)
    overview: str = ""
    tagline: str = ""
    nearby_roads: List[Dict[str, str]] = Field(
        default_factory=list,
        description="Road labels for the location map, e.g. {\"name\": \"I-75\", \"top\": \"40%\", \"left\": \"20%\"}.",
    )
    photos: List[PhotoRefIn] = Field(default_factory=list)


class DraftCreateRequest(BaseModel):
    """Request body for creating a new draft for an existing listing."""

    listing_id: str = Field(..., description="Listing to generate marketing for.")
    tenant_id: str = Field(default="default", description="Owning tenant.")
    brand_id: str | None = Field(
        default=None,
        description="Explicit brand; when omitted the tenant default brand is used.",
    )
    template_sequence: List[str] = Field(
        default_factory=list,
        description="Ordered page template ids. Empty means derive from listing type.",
    )


class DraftCreateResponse(BaseModel):
    draft_id: str = Field(..., description="Server-generated unique draft identifier.")
    status: DraftStatus = Field(
        default=DraftStatus.QUEUED,
        description="Initial status of the draft (always 'queued' on creation).",
    )


class GenerateResponse(BaseModel):
    """Acknowledgement that a generation run was queued."""

    draft_id: str
    status: DraftStatus
    attempt: int = Field(..., description="Attempt number of the queued run.")


class DraftSummary(BaseModel):
    """Lightweight view of a draft suitable for listings."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Unique draft identifier.")
    listing_id: str
    status: DraftStatus = Field(..., description="Current lifecycle status for the draft.")


class ArtifactOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    locator: str = Field(..., description="Stored-artifact path or URL.")
    size_bytes: int
    page_count: int


class QualityReportEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    label: str
    points: float
    max_points: float
    message: str


class AIContentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    overview: str
    tagline: str
    highlights: List[str]
    keywords: List[str]


class AIMetricsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    model: str
    input_tokens: int
    output_tokens: int
    latency_ms: int


class FocalPointOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    x: float
    y: float


class PhotoClassificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    photo_index: int
    classification: str
    confidence: float
    recommended_zone: str
    focal_point: FocalPointOut
    description: str = ""


class DraftDetail(BaseModel):
    """Detailed view of a single draft."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    listing_id: str
    brand_id: str | None
    tenant_id: str
    status: DraftStatus
    attempts: int
    template_sequence: List[str] = Field(default_factory=list)
    artifact: ArtifactOut | None = None
    quality_score: int | None = None
    quality_report: List[QualityReportEntryOut] = Field(default_factory=list)
    ai_content: AIContentOut | None = None
    ai_metrics: AIMetricsOut | None = None
    photo_classifications: List[PhotoClassificationOut] = Field(default_factory=list)
    error_message: str | None = None
    created_at: str = Field(..., description="Creation timestamp in ISO 8601 format (UTC).")
    updated_at: str = Field(..., description="Last modification timestamp in ISO 8601 format (UTC).")


class TemplatePageOut(BaseModel):
    """A page template and the photo zones it exposes."""

    template_id: str
    zones: List[str] = Field(default_factory=list)
