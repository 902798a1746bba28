"""Fetches the configured source pages and turns them into text extracts.

Pages are fetched one after another with a short timeout.  A page that
fails (HTTP error, timeout, unparsable markup) is logged and left out of
the pass; it is simply tried again on the next one.
"""

from __future__ import annotations

import logging
import re

import httpx
from bs4 import BeautifulSoup, Tag

from src.config import SCRAPE_TIMEOUT_SECONDS
from src.models import CachedContent, Listing
from src.services.metrics import metrics

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

_STRIPPED_TAGS = ["script", "style", "nav", "footer"]
_WHITESPACE_RE = re.compile(r"\s+")

# fs-cmsfilter-field name (lower-case) → Listing attribute
_LISTING_FIELDS = {
    "name": "name",
    "gesucht": "status",
    "status": "status",
    "datum": "date",
    "date": "date",
    "beschreibung": "description",
    "description": "description",
    "preis": "price",
    "price": "price",
}


def build_http_client(timeout: float = SCRAPE_TIMEOUT_SECONDS) -> httpx.AsyncClient:
    """Create the scraping client.  The lifespan owns its lifecycle."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT},
    )


def _clean(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def extract_listings(soup: BeautifulSoup) -> list[Listing]:
    """Read Webflow CMS collection items tagged with ``fs-cmsfilter-field``."""
    listings: list[Listing] = []
    for item in soup.select(".w-dyn-item"):
        fields: dict[str, str] = {}
        for el in item.select("[fs-cmsfilter-field]"):
            key = _LISTING_FIELDS.get(str(el.get("fs-cmsfilter-field", "")).strip().lower())
            value = _clean(el.get_text(" "))
            if key and value and key not in fields:
                fields[key] = value
        if fields.get("name"):
            listings.append(Listing(**fields))
    return listings


def parse_page(url: str, html: str) -> CachedContent:
    """Extract title, normalised body text and listings from ``html``."""
    soup = BeautifulSoup(html, "html.parser")
    # Listings are read before <nav>/<footer> removal; CMS lists can live anywhere.
    listings = extract_listings(soup)
    for tag in soup(_STRIPPED_TAGS):
        tag.decompose()

    title = _clean(soup.title.get_text()) if soup.title else ""
    body = soup.body if isinstance(soup.body, Tag) else soup
    return CachedContent(
        source_url=url,
        title=title,
        text=_clean(body.get_text(" ")),
        listings=listings,
    )


class PageFetcher:
    """Scrapes a list of URLs into ``CachedContent`` entries."""

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client or build_http_client()

    async def fetch(self, url: str) -> CachedContent:
        """Fetch and parse a single page.  Raises on any failure."""
        with metrics.track("scraper", "GET page"):
            response = await self._client.get(url)
            response.raise_for_status()
        return parse_page(url, response.text)

    async def scrape_all(self, urls: list[str]) -> list[CachedContent]:
        """Fetch ``urls`` sequentially, omitting the ones that fail for any reason."""
        pages: list[CachedContent] = []
        for url in urls:
            try:
                pages.append(await self.fetch(url))
            except Exception as exc:
                logger.warning("Error scraping %s: %s", url, exc)
                continue
            logger.info("Content scraped from: %s", url)
        logger.info("Scrape pass finished: %d/%d pages", len(pages), len(urls))
        return pages

    async def aclose(self) -> None:
        await self._client.aclose()
