"""Tests for hashing, fetching and candidate validation."""
import httpx
import pytest
from sourcing.services import hashing, image_service
from sourcing.services.image_service import SourcingError
from tests.helpers import image_response, mock_client


def test_content_hash_is_stable_hex():
    data = b"\x89PNG" + b"\x00" * 100
    digest = hashing.content_hash(data)

    assert digest == hashing.content_hash(data)
    assert len(digest) == 64
    assert digest == digest.lower()


def test_content_hash_differs_for_different_bytes():
    assert hashing.content_hash(b"abc") != hashing.content_hash(b"abd")


def test_fetch_image_returns_bytes_and_type():
    client = mock_client(lambda request: image_response(size=100, content_type="image/png"))
    data, content_type = image_service.fetch_image(client, "https://x/a.png")

    assert len(data) == 100
    assert content_type == "image/png"


def test_fetch_image_defaults_missing_content_type():
    client = mock_client(lambda request: httpx.Response(200, content=b"x" * 10))
    _, content_type = image_service.fetch_image(client, "https://x/a")
    assert content_type == "image/jpeg"


def test_fetch_image_raises_on_404():
    client = mock_client(lambda request: httpx.Response(404))
    with pytest.raises(SourcingError, match="HTTP 404"):
        image_service.fetch_image(client, "https://x/missing.jpg")


def test_fetch_image_raises_on_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(SourcingError, match="Fetch failed"):
        image_service.fetch_image(mock_client(handler), "https://x/a.jpg")


def test_fetch_image_requires_url():
    with pytest.raises(SourcingError, match="No source URL"):
        image_service.fetch_image(mock_client(lambda r: image_response()), "")


def test_build_client_sets_timeout_and_user_agent(app):
    client = image_service.build_client()
    try:
        assert client.timeout.read == app.config["FETCH_TIMEOUT_SECONDS"]
        assert client.headers["User-Agent"] == app.config["FETCH_USER_AGENT"]
    finally:
        client.close()


def test_validate_rejects_non_image():
    with pytest.raises(SourcingError, match="Not an image"):
        image_service.validate_candidate(b"x" * 50_000, "text/html; charset=utf-8", 10_000)


def test_validate_rejects_small_payload():
    with pytest.raises(SourcingError, match="too small"):
        image_service.validate_candidate(b"x" * 9_999, "image/jpeg", 10_000)


def test_validate_accepts_image_with_parameters():
    image_service.validate_candidate(b"x" * 10_000, "image/webp; q=0.9", 10_000)


def test_confidence_tiers():
    assert image_service.assess_confidence(100_000, 40_000, False) == "high"
    assert image_service.assess_confidence(45_000, 40_000, False) == "low"
    assert image_service.assess_confidence(500_000, 40_000, True) == "low"
