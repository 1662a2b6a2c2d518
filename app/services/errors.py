from __future__ import annotations


class GenerationError(RuntimeError):
    """Base class for errors raised while generating a marketing draft."""


class DraftNotFoundError(GenerationError):
    def __init__(self, draft_id: str) -> None:
        super().__init__(f"Draft not found: {draft_id}")
        self.draft_id = draft_id


class ListingNotFoundError(GenerationError):
    def __init__(self, listing_id: str) -> None:
        super().__init__(f"Listing not found: {listing_id}")
        self.listing_id = listing_id


class BrandNotFoundError(GenerationError):
    def __init__(self, brand_id: str) -> None:
        super().__init__(f"Brand not found: {brand_id}")
        self.brand_id = brand_id


class CompositionError(GenerationError):
    """Raised when the external AI service cannot produce usable content."""


class ImageTransformError(GenerationError):
    """Raised when a single source photo cannot be loaded or transformed."""


class RenderError(GenerationError):
    """Raised when the headless renderer fails or times out. Always fatal."""


class InvalidTransitionError(GenerationError):
    """Raised when a draft status change would break the lifecycle order."""


class DraftBusyError(GenerationError):
    """Raised when a generation run is already queued or active for a draft."""

    def __init__(self, draft_id: str) -> None:
        super().__init__(f"Generation already in progress for draft: {draft_id}")
        self.draft_id = draft_id


class DraftStorageError(GenerationError):
    """Raised when a storage operation fails in a non-recoverable way."""
