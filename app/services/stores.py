from __future__ import annotations

import re
import uuid
from pathlib import Path
from typing import Dict, List

from app.config import get_settings
from app.models.drafts import Draft, utcnow
from app.models.listings import Brand, Listing
from app.services.brands import BRANDS, DEFAULT_BRAND_ID
from app.services.errors import DraftStorageError


ARTIFACT_URL_PREFIX = "/marketing/files"
_SAFE_SEGMENT = re.compile(r"^[A-Za-z0-9_.-]+$")


def _is_safe_segment(value: str) -> bool:
    return bool(_SAFE_SEGMENT.match(value)) and value not in (".", "..")


class ListingStore:
    """
    In-memory listing records as pushed by the CRM.

    Read-only from the pipeline's point of view.
    """

    def __init__(self) -> None:
        self._listings: Dict[str, Listing] = {}

    async def put(self, listing: Listing) -> Listing:
        self._listings[listing.id] = listing
        return listing

    async def get(self, listing_id: str) -> Listing | None:
        return self._listings.get(listing_id)


class BrandStore:
    """In-memory brand records, seeded with the built-in brand profiles."""

    def __init__(self) -> None:
        self._brands: Dict[str, Brand] = dict(BRANDS)

    async def put(self, brand: Brand) -> Brand:
        self._brands[brand.id] = brand
        return brand

    async def get(self, brand_id: str) -> Brand | None:
        return self._brands.get(brand_id)

    async def get_default(self, tenant_id: str) -> Brand:
        """The tenant's default brand, or the built-in default when it has none."""
        for brand in self._brands.values():
            if brand.tenant_id == tenant_id and brand.is_default:
                return brand
        return self._brands.get(DEFAULT_BRAND_ID, BRANDS[DEFAULT_BRAND_ID])


class DraftStore:
    """
    Simple in-memory draft store.

    Can later be replaced by a database without changing the API surface.
    """

    def __init__(self) -> None:
        self._drafts: Dict[str, Draft] = {}

    async def create(
        self,
        listing_id: str,
        tenant_id: str = "default",
        brand_id: str | None = None,
        template_sequence: List[str] | None = None,
    ) -> Draft:
        draft = Draft(
            id=uuid.uuid4().hex,
            listing_id=listing_id,
            tenant_id=tenant_id,
            brand_id=brand_id,
            template_sequence=list(template_sequence or []),
        )
        self._drafts[draft.id] = draft
        return draft

    async def get(self, draft_id: str) -> Draft | None:
        return self._drafts.get(draft_id)

    async def list_drafts(self) -> List[Draft]:
        return list(self._drafts.values())

    async def save(self, draft: Draft) -> Draft:
        draft.updated_at = utcnow()
        self._drafts[draft.id] = draft
        return draft


class LocalArtifactStore:
    """
    Filesystem-backed storage for rendered PDFs.

    Files live under `<base_dir>/<tenant_id>/<draft_id>_flyer.pdf` and are
    addressed by the locator `/marketing/files/<tenant_id>/<draft_id>_flyer.pdf`.
    """

    def __init__(self, base_dir: Path) -> None:
        self._base_dir = base_dir

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    @staticmethod
    def filename_for(draft_id: str) -> str:
        return f"{draft_id}_flyer.pdf"

    def put_pdf(self, tenant_id: str, draft_id: str, data: bytes) -> str:
        """Write the PDF and return its locator. Blocking."""
        if not (_is_safe_segment(tenant_id) and _is_safe_segment(draft_id)):
            raise DraftStorageError(f"Unsafe artifact key: {tenant_id}/{draft_id}")

        filename = self.filename_for(draft_id)
        target_dir = self._base_dir / tenant_id
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            (target_dir / filename).write_bytes(data)
        except OSError as exc:
            raise DraftStorageError("Failed to persist rendered PDF to disk.") from exc
        return f"{ARTIFACT_URL_PREFIX}/{tenant_id}/{filename}"

    def resolve_path(self, locator: str) -> Path | None:
        """Map a locator back to its file, or None if it is not one of ours."""
        prefix = f"{ARTIFACT_URL_PREFIX}/"
        if not locator.startswith(prefix):
            return None
        parts = locator[len(prefix):].split("/")
        if len(parts) != 2 or not all(_is_safe_segment(part) for part in parts):
            return None
        path = self._base_dir / parts[0] / parts[1]
        return path if path.is_file() else None


_listing_store = ListingStore()
_brand_store = BrandStore()
_draft_store = DraftStore()
_artifact_store: LocalArtifactStore | None = None


def get_listing_store() -> ListingStore:
    return _listing_store


def get_brand_store() -> BrandStore:
    return _brand_store


def get_draft_store() -> DraftStore:
    """
    Return the process-wide draft store instance.

    Abstracted behind a function so tests can inject their own stores.
    """
    return _draft_store


def get_artifact_store() -> LocalArtifactStore:
    global _artifact_store
    if _artifact_store is None:
        _artifact_store = LocalArtifactStore(base_dir=get_settings().storage_dir)
    return _artifact_store
