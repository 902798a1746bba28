"""Pydantic schemas for the FastAPI endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.models import CachedContent


class ChatRequest(BaseModel):
    """A single message from the website chat widget."""

    message: str = Field(..., min_length=1, description="The user's message")


class ChatMessage(BaseModel):
    """One turn; ``system`` turns are folded into the system context."""

    role: str
    content: str


class AdvancedChatRequest(BaseModel):
    """A conversation kept by the client, oldest turn first (may be empty)."""

    messages: list[ChatMessage]


class ChatResponse(BaseModel):
    reply: str = Field(..., description="The assistant's answer (HTML snippets allowed)")


class RefreshResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str = "OK"
    message: str = "Inhalte erfolgreich aktualisiert"
    pages_scraped: int = Field(..., alias="pagesScraped")


class ContentResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str = "OK"
    content: list[CachedContent]
    last_updated: datetime | None = Field(None, alias="lastUpdated")


class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1, description="Colloquial search query")
    type: Any = Field(None, description="Optional search category hint (only logged)")


class HealthResponse(BaseModel):
    status: str = "OK"
    message: str = "Server läuft"
