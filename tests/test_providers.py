"""Tests for scraping providers and the fallback chain."""
import httpx
import pytest
from sourcing.services.providers import (
    PexelsProvider,
    ProviderChain,
    UnsplashProvider,
    build_chain,
    build_query,
)
from tests.helpers import mock_client

PLACEHOLDERS = {
    "accessories": "https://placeholders.test/accessories.jpg",
    "default": "https://placeholders.test/default.jpg",
}


class FakeProvider:
    def __init__(self, name, result=None, exc=None):
        self.name = name
        self.result = result
        self.exc = exc
        self.queries = []

    def find_image(self, query):
        self.queries.append(query)
        if self.exc:
            raise self.exc
        return self.result


def test_chain_returns_first_match():
    first = FakeProvider("a", result="https://images.test/a.jpg")
    second = FakeProvider("b", result="https://images.test/b.jpg")
    candidate = ProviderChain([first, second], PLACEHOLDERS).find("red mug home")

    assert candidate.url == "https://images.test/a.jpg"
    assert candidate.provider == "a"
    assert not candidate.from_placeholder
    assert second.queries == []


def test_chain_skips_failing_provider():
    broken = FakeProvider("a", exc=httpx.ConnectError("down"))
    working = FakeProvider("b", result="https://images.test/b.jpg")
    candidate = ProviderChain([broken, working], PLACEHOLDERS).find("red mug")

    assert candidate.provider == "b"


def test_chain_survives_parse_errors():
    broken = FakeProvider("a", exc=AttributeError("page layout changed"))
    candidate = ProviderChain([broken], PLACEHOLDERS).find("red mug")
    assert candidate.from_placeholder


def test_chain_falls_back_to_category_placeholder():
    providers = [FakeProvider("a", exc=httpx.ReadTimeout("slow")), FakeProvider("b")]
    candidate = ProviderChain(providers, PLACEHOLDERS).find(
        "blue widget accessories", "Accessories "
    )

    assert candidate.from_placeholder
    assert candidate.url == PLACEHOLDERS["accessories"]


def test_chain_unmapped_category_uses_default():
    candidate = ProviderChain([FakeProvider("a")], PLACEHOLDERS).find("gizmo", "gadgets")
    assert candidate.url == PLACEHOLDERS["default"]


def test_chain_rejects_empty_query():
    with pytest.raises(ValueError):
        ProviderChain([], PLACEHOLDERS).find("  ")


def test_chain_requires_default_placeholder():
    with pytest.raises(ValueError):
        ProviderChain([], {"home": "https://x/home.jpg"})


def test_build_query():
    assert build_query("Blue Widget", "Accessories") == "Blue Widget accessories product isolated"
    assert build_query("Blue Widget", None) == "Blue Widget default product isolated"


def test_unsplash_prefers_800px_rendition():
    page = (
        '<img src="https://images.unsplash.com/photo-1?w=400&amp;q=60">'
        '<img src="https://images.unsplash.com/photo-2?w=800&amp;q=80">'
    )

    def handler(request):
        assert request.url.host == "unsplash.com"
        assert request.headers["User-Agent"] == "Mozilla/5.0 ProductBot"
        return httpx.Response(200, text=page)

    url = UnsplashProvider(mock_client(handler)).find_image("red mug")
    assert url == "https://images.unsplash.com/photo-2?w=800&q=80"


def test_pexels_extracts_cdn_url():
    page = '<a data-big-src="https://images.pexels.com/photos/1/pexels-1.jpeg?w=1260">'
    client = mock_client(lambda request: httpx.Response(200, text=page))

    url = PexelsProvider(client).find_image("red mug")
    assert url == "https://images.pexels.com/photos/1/pexels-1.jpeg?w=1260"


def test_provider_non_200_is_no_match():
    client = mock_client(lambda request: httpx.Response(403))
    assert PexelsProvider(client).find_image("red mug") is None


def test_build_chain_follows_config_order(app):
    config = dict(app.config)
    config["IMAGE_PROVIDERS"] = ["pexels", "unknown", "unsplash"]
    chain = build_chain(mock_client(lambda r: httpx.Response(404)), config)

    assert [p.name for p in chain.providers] == ["pexels", "unsplash"]
    assert chain.placeholder_for("nope") == app.config["CATEGORY_PLACEHOLDERS"]["default"]
