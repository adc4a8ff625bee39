import logging
import httpx
from flask import current_app

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "image/jpeg"


class SourcingError(RuntimeError):
    """A candidate image could not be fetched or was not acceptable."""


def build_client(config=None):
    """HTTP client used for image downloads and provider scraping.

    Every request is bounded by FETCH_TIMEOUT_SECONDS so a stuck provider
    cannot stall a batch.
    """
    config = config or current_app.config
    return httpx.Client(
        timeout=config["FETCH_TIMEOUT_SECONDS"],
        follow_redirects=True,
        headers={
            "User-Agent": config["FETCH_USER_AGENT"],
            "Accept": "image/*,*/*;q=0.8",
        },
    )


def fetch_image(client, url):
    """Download a candidate image.

    Returns:
        (bytes, content_type)

    Raises:
        SourcingError on transport errors or non-success HTTP status
    """
    if not url:
        raise SourcingError("No source URL")
    try:
        resp = client.get(url)
    except httpx.HTTPError as e:
        raise SourcingError(f"Fetch failed: {e}") from e

    if not resp.is_success:
        raise SourcingError(f"HTTP {resp.status_code}: {resp.reason_phrase}")

    content_type = resp.headers.get("content-type") or DEFAULT_CONTENT_TYPE
    return resp.content, content_type


def validate_candidate(data, content_type, min_bytes):
    """Reject non-image or undersized payloads.

    Raises:
        SourcingError when the candidate is not acceptable
    """
    media_type = (content_type or "").split(";")[0].strip().lower()
    if not media_type.startswith("image/"):
        raise SourcingError(f"Not an image: {content_type}")
    if len(data) < min_bytes:
        raise SourcingError(f"Image too small: {len(data)} bytes (min {min_bytes})")


def assess_confidence(size, min_bytes, from_placeholder, margin=1.5):
    """Confidence tier for an accepted candidate.

    Placeholders are never representative of the product, and payloads
    within `margin` of the size floor are likely thumbnails.
    """
    if from_placeholder:
        return "low"
    if size < min_bytes * margin:
        return "low"
    return "high"
