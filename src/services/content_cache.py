"""Cache of the scraped source pages (24 hour TTL).

A refresh is one full pass over every configured URL.  Whatever that pass
returns replaces the previous collection as a whole, even when some pages
failed; the failed ones are retried on the next pass.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from src.config import CONTENT_TTL_SECONDS, SOURCE_URLS
from src.errors import ContentRefreshError
from src.models import CachedContent
from src.services.cache import Clock, RefreshingCache, utc_now
from src.services.fetcher import PageFetcher

logger = logging.getLogger(__name__)


class _ContentRefreshingCache(RefreshingCache[list[CachedContent]]):
    def is_stale(self, age: timedelta) -> bool:
        # Content stays valid for the full TTL, inclusive.
        return age > self.ttl


class ContentCache:
    """Serves the current page extracts, re-scraping them when expired."""

    def __init__(
        self,
        fetcher: PageFetcher,
        urls: list[str] | None = None,
        *,
        ttl: timedelta = timedelta(seconds=CONTENT_TTL_SECONDS),
        clock: Clock = utc_now,
    ) -> None:
        self._fetcher = fetcher
        self._urls = list(urls if urls is not None else SOURCE_URLS)
        self._cache = _ContentRefreshingCache(
            self._scrape, ttl, clock=clock, name="content",
        )

    @property
    def urls(self) -> list[str]:
        return list(self._urls)

    @property
    def last_refreshed(self) -> datetime | None:
        snap = self._cache.snapshot
        return snap.refreshed_at if snap else None

    async def _scrape(self) -> list[CachedContent]:
        logger.info("Scraping fresh content from %d pages…", len(self._urls))
        return await self._fetcher.scrape_all(self._urls)

    async def get_current_content(self) -> list[CachedContent]:
        """Return the cached pages, scraping first if missing or expired.

        Never raises: if the pass itself blows up, the previous collection
        (or an empty one) is served and the next call tries again.
        """
        try:
            return await self._cache.get()
        except Exception:
            logger.exception("Content refresh failed; serving previous content")
            snap = self._cache.snapshot
            return snap.value if snap else []

    async def refresh_content(self) -> list[CachedContent]:
        """Re-scrape unconditionally.  Raises ``ContentRefreshError`` on failure."""
        logger.info("Manual content refresh requested")
        try:
            return await self._cache.refresh()
        except Exception as exc:
            raise ContentRefreshError() from exc

    async def aclose(self) -> None:
        """Cancel a scrape pass still running (server shutdown)."""
        await self._cache.aclose()
