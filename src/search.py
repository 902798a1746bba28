"""ki-search: turns a colloquial search query into listing filter criteria.

The model is asked for a JSON object.  Its reply is interpreted as one of
two results:

* ``ParsedFilters``: the reply was a JSON object of the expected shape;
* ``RawInterpretationFallback``: anything else; the raw reply becomes the
  interpretation of a generic search.

Both serialise to the same wire shape, so the endpoint never fails because
of an unparsable reply.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Sequence
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from src.models import CachedContent
from src.prompts import render_search_prompt

logger = logging.getLogger(__name__)

NO_LISTINGS = "Keine aktuellen Angebote verfügbar"
FALLBACK_FILTER = "Allgemeine Suche"
FALLBACK_CONFIDENCE = 0.7

_CODE_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL)


class FilterDescriptor(BaseModel):
    """One ``fs-cmsfilter-field`` filter for the Finsweet CMS filter UI."""

    model_config = ConfigDict(extra="allow")

    field: str
    value: str | int | float
    type: str = "checkbox"


class SearchResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    interpretation: str = ""
    filters: list[str] = Field(default_factory=list)
    filter_descriptors: list[FilterDescriptor] = Field(
        default_factory=list, alias="finsweetFilters",
    )
    suggestions: list[str] = Field(default_factory=list)
    confidence: float = 0.0

    def to_response(self) -> dict:
        return self.model_dump(by_alias=True, exclude={"kind"})


class ParsedFilters(SearchResult):
    """The model answered with a usable JSON object."""

    kind: Literal["parsed"] = "parsed"


class RawInterpretationFallback(SearchResult):
    """The model's reply could not be read as JSON; wrap it verbatim."""

    kind: Literal["fallback"] = "fallback"

    @classmethod
    def from_reply(cls, reply: str) -> RawInterpretationFallback:
        return cls(
            interpretation=reply,
            filters=[FALLBACK_FILTER],
            filter_descriptors=[],
            suggestions=[],
            confidence=FALLBACK_CONFIDENCE,
        )


def summarize_listings(pages: Sequence[CachedContent]) -> str:
    """One ``n. name - status - description`` line per cached listing."""
    lines = []
    for page in pages:
        for listing in page.listings:
            lines.append(
                f"{len(lines) + 1}. {listing.name} - {listing.status or ''} - "
                f"{listing.description or ''}"
            )
    return "\n".join(lines) or NO_LISTINGS


def build_search_prompt(query: str, pages: Sequence[CachedContent]) -> str:
    return render_search_prompt(summarize_listings(pages), query)


def _strip_code_fence(reply: str) -> str:
    match = _CODE_FENCE_RE.match(reply)
    return match.group(1) if match else reply


def parse_search_reply(reply: str) -> ParsedFilters | RawInterpretationFallback:
    """Interpret the model reply, falling back when it is not a JSON object."""
    try:
        data = json.loads(_strip_code_fence(reply))
    except (json.JSONDecodeError, TypeError):
        logger.info("ki-search reply is not JSON; using fallback interpretation")
        return RawInterpretationFallback.from_reply(reply)

    if not isinstance(data, dict):
        return RawInterpretationFallback.from_reply(reply)
    data.pop("kind", None)
    try:
        return ParsedFilters.model_validate(data)
    except PydanticValidationError as exc:
        logger.info("ki-search JSON has an unexpected shape: %s", exc.error_count())
        return RawInterpretationFallback.from_reply(reply)
