"""
Direct HTTP client for the Anthropic Messages API.

One batched request per draft carries the listing context and every photo
preview; the model answers with a single JSON object holding the photo
classifications and the marketing copy.

All calls go through the centralized rate limiter: a token is acquired before
each request, 429 responses trigger backoff, and only 5xx responses are
retried here.
"""

import json
import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import requests

from app.config import get_settings
from app.models.drafts import AIMetrics
from app.models.listings import Listing
from app.models.photos import PhotoPreview
from app.services.errors import CompositionError
from app.services.rate_limiter import acquire_ai_token, report_ai_429, report_ai_success

logger = logging.getLogger(__name__)

OUTPUT_LOG = Path("output.txt")

API_URL = "https://api.anthropic.com/v1/messages"
API_VERSION = "2023-06-01"

# Rate limiting is handled by the limiter; these retries cover 5xx only.
MAX_RETRIES = 2
RETRY_DELAY = 2  # seconds
RETRY_BACKOFF = 2

SYSTEM_PROMPT = """You are a commercial real estate marketing specialist. You analyze listing data and listing photos and produce copy for a printed marketing flyer.

You will receive:
1. Structured listing data (property details, pricing, location, broker info)
2. One or more listing photos to classify, each followed by a caption with its index and original size

Return a JSON object with exactly this structure:
{
  "photo_classifications": [
    {
      "photo_index": 0,
      "classification": "exterior|interior|aerial|floor_plan|detail|warehouse|parking|landscape",
      "confidence": 0.0-1.0,
      "description": "Brief description of what is in the photo",
      "recommended_zone": "hero_cover|secondary_exterior|interior_detail|aerial_full|floorplan|location_reference|detail_grid",
      "focal_point": {"x": 0.0-1.0, "y": 0.0-1.0}
    }
  ],
  "property_overview": "2-3 paragraph professional overview in third person, present tense. Cover location advantages, property features and market positioning. Do not include pricing.",
  "tagline_suggestion": "A 5-8 word tagline for the page header",
  "highlights_enhanced": ["6-8 polished highlight bullet points"],
  "seo_keywords": ["5-10 search keywords for digital distribution"]
}

Classification categories (use only these):
- exterior: building exterior, street view, facade
- interior: office space, lobby, common area, reception
- aerial: drone or elevated view, satellite
- floor_plan: architectural floor plan or layout diagram
- detail: close-up of features, equipment, signage, amenities
- warehouse: industrial interior, loading dock, storage
- parking: parking lot, garage
- landscape: undeveloped land, vacant site, terrain

Recommended zones:
- hero_cover: the most impressive exterior or aerial, used on the cover
- secondary_exterior: supporting exterior for the details page
- interior_detail: interior shots for gallery pages
- aerial_full: drone or aerial for a full aerial page
- floorplan: floor plan page
- location_reference: map or location context
- detail_grid: equipment, amenities, signage

The focal point is the normalized center of the main subject; crops are centered on it.

Return ONLY valid JSON. No markdown, no code fences, no preamble."""

_FENCE_RE = re.compile(r"```(?:json)?\s*")


def log_to_file(message: str):
    """Append message to output.txt with timestamp."""
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    with open(OUTPUT_LOG, "a", encoding="utf-8") as f:
        f.write(f"[{timestamp}] {message}\n")


@dataclass(slots=True)
class AIResponse:
    """Parsed JSON payload from the model plus call metrics."""

    payload: Dict[str, Any]
    metrics: AIMetrics


def _money(value: float) -> str:
    return f"{value:,.0f}" if float(value).is_integer() else f"{value:,.2f}"


def build_listing_context(listing: Listing) -> str:
    """Format listing facts as the plain-text context block of the request."""
    lines: List[str] = []

    lines.append(f"Property Name: {listing.property_name or 'N/A'}")
    if listing.tagline:
        lines.append(f"Tagline: {listing.tagline}")
    lines.append(f"Listing Type: {listing.listing_type or 'N/A'}")
    lines.append(f"Address: {listing.address or 'N/A'}")
    lines.append(f"City/State: {listing.city}, {listing.state or 'FL'} {listing.zip}".rstrip())

    if listing.price:
        lines.append(f"Price: ${_money(listing.price)}")
    if listing.price_psf:
        lines.append(f"Price/SF: ${listing.price_psf}")
    if listing.lease_rate:
        lines.append(f"Lease Rate: ${listing.lease_rate}/SF")
    if listing.lease_type:
        lines.append(f"Lease Type: {listing.lease_type}")
    if listing.cam:
        lines.append(f"CAM: ${listing.cam}/SF")
    if listing.cap_rate:
        lines.append(f"Cap Rate: {listing.cap_rate}")

    if listing.building_sf:
        lines.append(f"Building Size: {listing.building_sf:,}± SF")
    if listing.land_acres:
        lines.append(f"Land Area: {listing.land_acres}± Acres")
    if listing.zoning:
        lines.append(f"Zoning: {listing.zoning}")
    if listing.year_built:
        lines.append(f"Year Built: {listing.year_built}")
    if listing.parking:
        lines.append(f"Parking: {listing.parking}")

    broker = listing.primary_broker
    lines.append(f"\nBroker: {broker.name if broker else 'N/A'}")
    if broker and broker.title:
        lines.append(f"Title: {broker.title}")
    if len(listing.brokers) > 1:
        second = listing.brokers[1]
        lines.append(f"Broker 2: {second.name}, {second.title}".rstrip(", "))

    if listing.highlights:
        lines.append("\nExisting Highlights:")
        lines.extend(f"  • {highlight}" for highlight in listing.highlights)

    if listing.overview:
        lines.append(f"\nExisting Overview (enhance this):\n{listing.overview}")

    return "\n".join(lines)


def _first_json_object(text: str) -> Optional[str]:
    """Return the first balanced {...} block in text, honoring JSON strings."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for pos in range(start, len(text)):
            char = text[pos]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start:pos + 1]
        start = text.find("{", start + 1)
    return None


def parse_response_text(text: str) -> Dict[str, Any]:
    """
    Parse the model's reply as a JSON object.

    Markdown fences are stripped first; if strict parsing still fails, the
    first balanced object in the text is extracted and parsed.

    Raises:
        CompositionError: when no JSON object can be recovered
    """
    cleaned = _FENCE_RE.sub("", text).strip()
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as parse_err:
        logger.warning("AI response is not strict JSON, attempting extraction")
        block = _first_json_object(text)
        if block is None:
            raise CompositionError(f"Failed to parse AI response as JSON: {parse_err}") from parse_err
        try:
            parsed = json.loads(block)
        except json.JSONDecodeError as block_err:
            raise CompositionError(f"Failed to parse AI response as JSON: {block_err}") from block_err

    if not isinstance(parsed, dict):
        raise CompositionError(f"AI response JSON is a {type(parsed).__name__}, expected an object")
    return parsed


class AnthropicHTTPClient:
    """Messages API client for batched listing composition."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        request_timeout: Optional[float] = None,
        api_url: str = API_URL,
    ):
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.anthropic_api_key
        self.model = model or settings.anthropic_model
        self.max_tokens = max_tokens or settings.anthropic_max_tokens
        self.request_timeout = request_timeout or settings.ai_timeout_seconds
        self.api_url = api_url

        if not self.api_key:
            message = "⚠️  ANTHROPIC API KEY NOT FOUND - AI composition DISABLED"
            print("\n" + "=" * 60)
            print(message)
            print("=" * 60)
            print("Drafts will use offline composition")
            print("To enable: add ANTHROPIC_API_KEY to .env and restart")
            print("=" * 60 + "\n")
            logger.warning("ANTHROPIC_API_KEY not set. AI composition will be unavailable.")
            log_to_file(message)
            self.available = False
            return

        message = "✅ ANTHROPIC API KEY FOUND - AI composition ENABLED"
        print("\n" + "=" * 60)
        print(message)
        print(f"✓ Using model: {self.model}")
        print("=" * 60 + "\n")
        self.available = True
        logger.info("Anthropic HTTP client initialized (model %s)", self.model)
        log_to_file(message)

    def is_available(self) -> bool:
        return self.available and bool(self.api_key)

    def build_request(self, listing: Listing, previews: Sequence[PhotoPreview]) -> Dict[str, Any]:
        content: List[Dict[str, Any]] = []
        total = len(previews)
        for position, preview in enumerate(previews):
            content.append(
                {
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": preview.media_type,
                        "data": preview.base64,
                    },
                }
            )
            content.append(
                {
                    "type": "text",
                    "text": (
                        f"[Photo {position + 1} of {total}, photo_index {preview.index}] "
                        f"Original: {preview.original_width}x{preview.original_height}px"
                    ),
                }
            )

        content.append(
            {
                "type": "text",
                "text": (
                    f"\n\n--- LISTING DATA ---\n{build_listing_context(listing)}\n\n"
                    f"--- INSTRUCTIONS ---\nAnalyze the {total} photos above and the listing data. "
                    "Return a single JSON object with photo_classifications (one per photo), "
                    "property_overview (2-3 paragraphs), tagline_suggestion, highlights_enhanced "
                    "(6-8 bullets) and seo_keywords (5-10). Return ONLY valid JSON."
                ),
            }
        )

        return {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "system": SYSTEM_PROMPT,
            "messages": [{"role": "user", "content": content}],
        }

    def compose(self, listing: Listing, previews: Sequence[PhotoPreview]) -> AIResponse:
        """
        Run one batched composition request. Blocking.

        Raises:
            CompositionError: on missing key, rate limiter timeout, HTTP or
                network failure, or an unparseable response
        """
        if not self.is_available():
            raise CompositionError("Anthropic API key not configured")

        if not acquire_ai_token(timeout=30.0):
            log_to_file("❌ AI RATE LIMITER TIMEOUT - using offline composition")
            raise CompositionError("Timed out waiting for AI rate limiter")

        request_body = self.build_request(listing, previews)
        started = time.monotonic()

        for attempt in range(MAX_RETRIES + 1):
            try:
                data = self._post(request_body, attempt, len(previews))
                break
            except requests.exceptions.HTTPError as e:
                status_code = e.response.status_code if e.response is not None else 0

                if status_code == 429:
                    report_ai_429()
                    log_to_file("❌ AI RATE LIMITED (429) - backoff applied")
                    raise CompositionError("AI service rate limited (429)") from e

                if 400 <= status_code < 500 or attempt >= MAX_RETRIES:
                    detail = self._error_detail(e)
                    logger.error("AI request failed (%s): %s", status_code, detail)
                    log_to_file(f"❌ AI REQUEST FAILED ({status_code}): {detail}")
                    raise CompositionError(f"AI service error {status_code}: {detail}") from e

                delay = RETRY_DELAY * (RETRY_BACKOFF ** attempt)
                logger.warning(
                    "AI server error %s, retrying in %ss (attempt %d/%d)",
                    status_code, delay, attempt + 1, MAX_RETRIES,
                )
                log_to_file(f"⏳ Server error ({status_code}) - retrying in {delay}s")
                time.sleep(delay)
            except requests.exceptions.RequestException as e:
                logger.error("AI request error: %s", e)
                log_to_file(f"❌ AI REQUEST ERROR: {e}")
                raise CompositionError(f"AI request failed: {e}") from e

        report_ai_success()
        latency_ms = int((time.monotonic() - started) * 1000)

        text = "".join(
            block.get("text", "")
            for block in data.get("content", [])
            if isinstance(block, dict) and block.get("type") == "text"
        )
        payload = parse_response_text(text)

        usage = data.get("usage") or {}
        metrics = AIMetrics(
            model=data.get("model") or self.model,
            input_tokens=int(usage.get("input_tokens") or 0),
            output_tokens=int(usage.get("output_tokens") or 0),
            latency_ms=latency_ms,
        )
        logger.info(
            "AI composition received in %dms (%d in / %d out tokens, %d classifications)",
            metrics.latency_ms,
            metrics.input_tokens,
            metrics.output_tokens,
            len(payload.get("photo_classifications") or []),
        )
        log_to_file(f"✅ AI COMPOSITION OK - {metrics.input_tokens} in / {metrics.output_tokens} out")
        return AIResponse(payload=payload, metrics=metrics)

    def _post(self, request_body: Dict[str, Any], attempt: int, photo_count: int) -> Dict[str, Any]:
        attempt_suffix = f" (attempt {attempt + 1})" if attempt > 0 else ""
        info_msg = f"🚀 CALLING ANTHROPIC API{attempt_suffix} - Model: {self.model}, Photos: {photo_count}"
        logger.info(info_msg)
        log_to_file(info_msg)

        response = requests.post(
            self.api_url,
            headers={
                "content-type": "application/json",
                "x-api-key": self.api_key,
                "anthropic-version": API_VERSION,
            },
            json=request_body,
            timeout=self.request_timeout,
        )
        response.raise_for_status()
        return response.json()

    @staticmethod
    def _error_detail(error: requests.exceptions.HTTPError) -> str:
        if error.response is None:
            return str(error)
        try:
            body = error.response.json()
        except ValueError:
            return error.response.text[:500]
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            return str(body["error"].get("message", body))
        return str(body)[:500]


_ai_client: Optional[AnthropicHTTPClient] = None


def get_ai_client() -> AnthropicHTTPClient:
    """Get or create the process-wide Anthropic client."""
    global _ai_client
    if _ai_client is None:
        _ai_client = AnthropicHTTPClient()
    return _ai_client
