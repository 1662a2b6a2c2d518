import asyncio

import pytest

from app.models.listings import Brand
from app.services.errors import DraftStorageError
from app.services.stores import BrandStore, DraftStore, LocalArtifactStore


def test_artifact_round_trip(tmp_path):
    store = LocalArtifactStore(tmp_path)

    locator = store.put_pdf("tenant-a", "abc123", b"%PDF-1.7")

    assert locator == "/marketing/files/tenant-a/abc123_flyer.pdf"
    assert (tmp_path / "tenant-a" / "abc123_flyer.pdf").read_bytes() == b"%PDF-1.7"
    assert store.resolve_path(locator) == tmp_path / "tenant-a" / "abc123_flyer.pdf"


def test_artifact_keys_must_be_safe(tmp_path):
    store = LocalArtifactStore(tmp_path)
    with pytest.raises(DraftStorageError):
        store.put_pdf("..", "abc", b"x")
    with pytest.raises(DraftStorageError):
        store.put_pdf("tenant", "a/b", b"x")


def test_resolve_rejects_foreign_locators(tmp_path):
    store = LocalArtifactStore(tmp_path)
    assert store.resolve_path("/etc/passwd") is None
    assert store.resolve_path("/marketing/files/../secret.pdf") is None
    assert store.resolve_path("/marketing/files/tenant/missing_flyer.pdf") is None


def test_tenant_default_brand():
    store = BrandStore()

    async def scenario():
        fallback = await store.get_default("tenant-x")
        await store.put(Brand(id="x-brand", name="X Realty", tenant_id="tenant-x", is_default=True))
        own = await store.get_default("tenant-x")
        return fallback, own

    fallback, own = asyncio.run(scenario())

    assert fallback.id == "cre_consultants"
    assert own.id == "x-brand"


def test_draft_store_create_and_save():
    store = DraftStore()

    async def scenario():
        draft = await store.create("L-1", template_sequence=["cover-standard"])
        before = draft.updated_at
        await store.save(draft)
        return draft, before, await store.list_drafts()

    draft, before, drafts = asyncio.run(scenario())

    assert draft.status.value == "queued"
    assert draft.attempts == 0
    assert draft.template_sequence == ["cover-standard"]
    assert draft.updated_at >= before
    assert drafts == [draft]
