"""Image providers and the ordered fallback chain.

Providers scrape public search pages for CDN image URLs. The HTML shapes
they match are fragile, so each one is isolated behind `find_image` and
the chain treats any provider error as "no result".
"""
import html
import logging
import re
from dataclasses import dataclass
from urllib.parse import quote

import httpx

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Candidate:
    url: str
    provider: str
    from_placeholder: bool = False


class Provider:
    name = "base"

    def __init__(self, client, user_agent="Mozilla/5.0 ProductBot"):
        self.client = client
        self.user_agent = user_agent

    def search_url(self, query):
        raise NotImplementedError

    def extract(self, page):
        raise NotImplementedError

    def find_image(self, query):
        """Return an image URL for `query`, or None if nothing matched."""
        resp = self.client.get(
            self.search_url(query), headers={"User-Agent": self.user_agent}
        )
        if resp.status_code != 200:
            logger.info("%s returned HTTP %d for %r", self.name, resp.status_code, query)
            return None
        url = self.extract(resp.text)
        return html.unescape(url) if url else None


class UnsplashProvider(Provider):
    name = "unsplash"
    _pattern = re.compile(r'src="(https://images\.unsplash\.com[^"]+)"')

    def search_url(self, query):
        return f"https://unsplash.com/s/photos/{quote(query)}"

    def extract(self, page):
        # Prefer the 800px rendition used for catalog cards
        for match in self._pattern.finditer(page):
            if "w=800" in match.group(1):
                return match.group(1)
        return None


class PexelsProvider(Provider):
    name = "pexels"
    _pattern = re.compile(r'https://images\.pexels\.com[^"\s]+')

    def search_url(self, query):
        return f"https://www.pexels.com/search/{quote(query)}/"

    def extract(self, page):
        match = self._pattern.search(page)
        return match.group(0) if match else None


PROVIDERS = {
    UnsplashProvider.name: UnsplashProvider,
    PexelsProvider.name: PexelsProvider,
}


def normalize_category(category):
    return (category or "").strip().lower()


def build_query(title, category):
    category = normalize_category(category) or "default"
    return f"{title} {category} product isolated"


class ProviderChain:
    """Try providers in order, falling back to a category placeholder."""

    def __init__(self, providers, placeholders):
        if "default" not in placeholders:
            raise ValueError("Placeholder map needs a 'default' entry")
        self.providers = list(providers)
        self.placeholders = dict(placeholders)

    def placeholder_for(self, category):
        key = normalize_category(category)
        return self.placeholders.get(key) or self.placeholders["default"]

    def find(self, query, category=None):
        if not query or not query.strip():
            raise ValueError("Query must not be empty")

        for provider in self.providers:
            try:
                url = provider.find_image(query)
            except httpx.HTTPError as e:
                logger.warning("Provider %s failed for %r: %s", provider.name, query, e)
                continue
            except Exception:
                logger.exception("Provider %s crashed for %r", provider.name, query)
                continue
            if url:
                logger.info("Provider %s matched %r", provider.name, query)
                return Candidate(url=url, provider=provider.name)

        logger.info("No provider matched %r, using placeholder", query)
        return Candidate(
            url=self.placeholder_for(category),
            provider="placeholder",
            from_placeholder=True,
        )


def build_chain(client, config):
    """Chain from app config: IMAGE_PROVIDERS order + CATEGORY_PLACEHOLDERS."""
    providers = []
    for name in config["IMAGE_PROVIDERS"]:
        provider_cls = PROVIDERS.get(name)
        if provider_cls is None:
            logger.warning("Unknown image provider %r in config, skipping", name)
            continue
        providers.append(provider_cls(client, user_agent=config["SCRAPER_USER_AGENT"]))
    return ProviderChain(providers, config["CATEGORY_PLACEHOLDERS"])
