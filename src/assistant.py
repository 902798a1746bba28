"""Emil, the Gutshof assistant: orchestration of caches, context and LLM.

Chat flow (``reply``):

    ContentCache ──┐
                   ├─> build_context ─> CompletionGateway ─> reply text
    Availability ──┘

* Page extracts come from the content cache (24 h TTL, re-scraped lazily).
* Free Thursday slots come from the availability cache (5 min TTL).
* Neither source can fail the chat: both degrade to "unchanged" or empty,
  the answer just carries less context.

``reply_to_history`` sends the static template with a client-held message
history, and ``interpret_search`` powers the ki-search endpoint.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from src.config import CALENDLY_URL, CONTENT_EXCERPT_CHARS
from src.context import build_context
from src.prompts import get_system_prompt
from src.search import (
    ParsedFilters,
    RawInterpretationFallback,
    build_search_prompt,
    parse_search_reply,
)
from src.services.availability import AvailabilityService
from src.services.calendly_client import CalendlyClient
from src.services.completion import ADVANCED, CHAT, SEARCH, CompletionGateway
from src.services.content_cache import ContentCache
from src.services.fetcher import PageFetcher

logger = logging.getLogger(__name__)


class Assistant:
    """Everything one request handler needs, shared for the process lifetime."""

    def __init__(
        self,
        *,
        content: ContentCache,
        availability: AvailabilityService,
        gateway: CompletionGateway,
        template: str | None = None,
        booking_url: str = CALENDLY_URL,
        excerpt_chars: int = CONTENT_EXCERPT_CHARS,
        closers: Sequence = (),
    ) -> None:
        self.content = content
        self.availability = availability
        self.gateway = gateway
        self.template = get_system_prompt() if template is None else template
        self.booking_url = booking_url
        self.excerpt_chars = excerpt_chars
        self._closers = list(closers)

    async def build_chat_context(self) -> str:
        pages = await self.content.get_current_content()
        available_times = await self.availability.get_available_times()
        logger.debug(
            "Context from %d pages and %d free slots", len(pages), len(available_times),
        )
        return build_context(
            self.template,
            pages,
            available_times,
            booking_url=self.booking_url,
            excerpt_chars=self.excerpt_chars,
        )

    async def reply(self, message: str) -> str:
        """Answer a single user message with the fully enriched context."""
        context = await self.build_chat_context()
        return await self.gateway.complete(context, message, profile=CHAT)

    async def reply_to_history(self, messages: Sequence[dict[str, str]]) -> str:
        """Answer the last turn of a ``{role, content}`` conversation."""
        return await self.gateway.complete(self.template, messages, profile=ADVANCED)

    async def interpret_search(
        self, query: str, search_type: Any = None,
    ) -> ParsedFilters | RawInterpretationFallback:
        """Translate a colloquial search query into listing filters."""
        pages = await self.content.get_current_content()
        logger.info("ki-search (type=%s): %r", search_type or "-", query[:100])
        reply = await self.gateway.complete(
            build_search_prompt(query, pages), query, profile=SEARCH,
        )
        return parse_search_reply(reply)

    async def warm_up(self) -> None:
        """Eager content scrape at startup; failures are only logged."""
        logger.info("Starting initial scrape of the source pages…")
        pages = await self.content.get_current_content()
        logger.info("Initial scrape finished (%d pages)", len(pages))

    async def aclose(self) -> None:
        """Stop in-flight refreshes first, then close the HTTP clients they use."""
        await self.content.aclose()
        await self.availability.aclose()
        for closer in self._closers:
            await closer.aclose()


def create_assistant() -> Assistant:
    """Wire the production services from ``src.config``."""
    fetcher = PageFetcher()
    calendly = CalendlyClient()
    if not calendly.configured:
        logger.info("CALENDLY_API_TOKEN not set; availability lookup disabled")
    return Assistant(
        content=ContentCache(fetcher),
        availability=AvailabilityService(calendly),
        gateway=CompletionGateway(),
        closers=[fetcher, calendly],
    )
