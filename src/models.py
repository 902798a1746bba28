"""Domain models shared by the caches, the context assembler and the API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class Listing(BaseModel):
    """A structured offer scraped from a CMS collection item."""

    name: str
    status: str | None = None
    date: str | None = None
    description: str | None = None
    price: str | None = None


class CachedContent(BaseModel):
    """The text extract of one successfully scraped source page."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    source_url: str = Field(..., alias="url")
    title: str = ""
    text: str = Field("", alias="content")
    listings: list[Listing] = Field(default_factory=list, alias="companyListings")


class AvailabilitySlot(BaseModel):
    """A free Calendly slot with its display label."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    label: str
