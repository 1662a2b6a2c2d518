"""
API tests for the Marketing Draft service.

Drives the FastAPI app in-process. The generation queue is rebuilt per test
with a fake PDF renderer and forced offline composition, so no browser or
network access is needed.
"""

import asyncio
import time

import pytest
from fastapi.testclient import TestClient

from app.config import Settings
from app.main import app
from app.services import jobs, stores
from app.services.errors import RenderError
from app.services.jobs import GenerationQueue
from app.services.pipeline import GenerationPipeline
from app.services.render import RenderedDocument
from app.services.stores import LocalArtifactStore, get_brand_store, get_draft_store, get_listing_store

FAKE_PDF = b"%PDF-1.7\n<< /Type /Page >>\n%%EOF"


class FlakyRenderer:
    """Fails the first `failures` renders, then succeeds."""

    def __init__(self, failures=0):
        self.failures = failures

    async def render(self, html, expected_pages):
        await asyncio.sleep(0.01)
        if self.failures:
            self.failures -= 1
            raise RenderError("Headless render failed: browser crashed")
        return RenderedDocument(pdf=FAKE_PDF, page_count=expected_pages)


def _install_queue(monkeypatch, tmp_path, renderer):
    artifacts = LocalArtifactStore(tmp_path / "marketing")
    pipeline = GenerationPipeline(
        drafts=get_draft_store(),
        listings=get_listing_store(),
        brands=get_brand_store(),
        artifacts=artifacts,
        renderer=renderer,
        settings=Settings(force_offline=True, storage_dir=tmp_path / "marketing"),
    )
    monkeypatch.setattr(jobs, "_queue", GenerationQueue(pipeline))
    monkeypatch.setattr(stores, "_artifact_store", artifacts)


@pytest.fixture
def client(monkeypatch, tmp_path):
    _install_queue(monkeypatch, tmp_path, FlakyRenderer())
    with TestClient(app) as test_client:
        yield test_client


def _listing_payload(listing_id):
    return {
        "id": listing_id,
        "property_name": "Colonial Commerce Center",
        "address": "4500 Colonial Blvd",
        "city": "Fort Myers",
        "zip": "33966",
        "listing_type": "for_sale",
        "price": 2500000,
        "building_sf": 10000,
        "zoning": "C-1",
        "brokers": [{"name": "Jane Broker", "phone": "239-555-0100"}],
        "highlights": ["Signalized corner", "Monument signage"],
    }


def _create_draft(client, listing_id):
    response = client.post("/api/v1/listings", json=_listing_payload(listing_id))
    assert response.status_code == 201
    response = client.post("/api/v1/drafts", json={"listing_id": listing_id})
    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "queued"
    return body["draft_id"]


def _wait_for_terminal(client, draft_id, timeout=10.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        body = client.get(f"/api/v1/drafts/{draft_id}").json()
        if body["status"] in ("complete", "failed"):
            return body
        time.sleep(0.05)
    pytest.fail(f"Draft {draft_id} did not finish within {timeout}s")


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/api/v1/health").json() == {"status": "ok", "api_version": "v1"}


def test_generate_and_download(client):
    draft_id = _create_draft(client, "api-L-1")

    response = client.post(f"/api/v1/drafts/{draft_id}/generate")
    assert response.status_code == 202
    assert response.json()["attempt"] == 1

    body = _wait_for_terminal(client, draft_id)
    assert body["status"] == "complete"
    assert body["error_message"] is None
    assert body["artifact"]["locator"].endswith(f"/default/{draft_id}_flyer.pdf")
    assert body["ai_metrics"]["model"] == "offline-fallback"
    assert "Fort Myers" in body["ai_content"]["tagline"]
    assert [entry["label"] for entry in body["quality_report"]] == ["data", "photos", "ai_content", "brand"]

    artifact = client.get(f"/api/v1/drafts/{draft_id}/artifact")
    assert artifact.status_code == 200
    assert artifact.headers["content-type"] == "application/pdf"
    assert artifact.content == FAKE_PDF

    # Complete drafts cannot be generated again.
    assert client.post(f"/api/v1/drafts/{draft_id}/generate").status_code == 409


def test_failed_draft_can_be_retried(monkeypatch, tmp_path):
    _install_queue(monkeypatch, tmp_path, FlakyRenderer(failures=1))
    with TestClient(app) as client:
        draft_id = _create_draft(client, "api-L-2")

        client.post(f"/api/v1/drafts/{draft_id}/generate")
        failed = _wait_for_terminal(client, draft_id)
        assert failed["status"] == "failed"
        assert failed["error_message"] == "Headless render failed: browser crashed"
        assert failed["artifact"] is None

        response = client.post(f"/api/v1/drafts/{draft_id}/generate")
        assert response.status_code == 202
        assert response.json()["attempt"] == 2

        body = _wait_for_terminal(client, draft_id)
        assert body["status"] == "complete"
        assert body["attempts"] == 2


def test_draft_for_unknown_listing_is_rejected(client):
    response = client.post("/api/v1/drafts", json={"listing_id": "no-such-listing"})
    assert response.status_code == 404


def test_draft_for_unknown_brand_is_rejected(client):
    client.post("/api/v1/listings", json=_listing_payload("api-L-3"))
    response = client.post("/api/v1/drafts", json={"listing_id": "api-L-3", "brand_id": "no-such-brand"})
    assert response.status_code == 404


def test_unknown_draft(client):
    assert client.get("/api/v1/drafts/nope").status_code == 404
    assert client.post("/api/v1/drafts/nope/generate").status_code == 404


def test_artifact_before_completion(client):
    draft_id = _create_draft(client, "api-L-4")
    assert client.get(f"/api/v1/drafts/{draft_id}/artifact").status_code == 409


def test_list_drafts(client):
    draft_id = _create_draft(client, "api-L-5")
    ids = [draft["id"] for draft in client.get("/api/v1/drafts").json()]
    assert draft_id in ids


def test_invalid_listing_payload(client):
    payload = _listing_payload("api-L-6")
    payload["building_sf"] = -10
    assert client.post("/api/v1/listings", json=payload).status_code == 422


def test_templates(client):
    templates = {page["template_id"]: page["zones"] for page in client.get("/api/v1/templates").json()}
    assert templates["cover-standard"] == ["hero_photo"]
    assert templates["location-map"] == []
    assert len(templates["photos-mosaic"]) == 5


def test_rate_limit_status(client):
    stats = client.get("/api/v1/rate-limit").json()
    assert "tokens_available" in stats
    assert "is_rate_limited" in stats
