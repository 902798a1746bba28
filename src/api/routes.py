"""FastAPI route definitions for the Gutshof assistant API."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request

from src.api.schemas import (
    AdvancedChatRequest,
    ChatRequest,
    ChatResponse,
    ContentResponse,
    RefreshResponse,
    SearchRequest,
)
from src.assistant import Assistant
from src.errors import AssistantError, ContentRefreshError, RateLimitError

logger = logging.getLogger(__name__)

router = APIRouter()

GENERIC_ERROR = "Ein Fehler ist aufgetreten. Bitte versuchen Sie es später erneut."


def _get_assistant(request: Request) -> Assistant:
    """Retrieve the assistant created during the FastAPI lifespan."""
    assistant = getattr(request.app.state, "assistant", None)
    if assistant is None:
        raise HTTPException(
            status_code=503,
            detail="Der Assistent startet gerade. Bitte versuchen Sie es gleich noch einmal.",
        )
    return assistant


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "?")


def _to_http_error(exc: Exception, request_id: str, *, expose_rate_limit: bool = True) -> HTTPException:
    """Map an assistant error onto its HTTP status without leaking details."""
    if isinstance(exc, AssistantError):
        if isinstance(exc, RateLimitError) and not expose_rate_limit:
            return HTTPException(status_code=500, detail=GENERIC_ERROR)
        return HTTPException(status_code=exc.http_status, detail=exc.message)
    logger.exception("[%s] Unexpected error", request_id)
    return HTTPException(status_code=500, detail=GENERIC_ERROR)


# ── Endpoints ────────────────────────────────────────────────────────


@router.post("/chat", response_model=ChatResponse)
async def chat(body: ChatRequest, request: Request):
    """Answer one message, enriched with website content and free slots."""
    assistant = _get_assistant(request)
    request_id = _request_id(request)
    try:
        reply = await assistant.reply(body.message)
    except Exception as exc:
        logger.error("[%s] Chat request failed: %s", request_id, exc)
        raise _to_http_error(exc, request_id) from exc
    return ChatResponse(reply=reply)


@router.post("/chat-advanced", response_model=ChatResponse)
async def chat_advanced(body: AdvancedChatRequest, request: Request):
    """Answer the last turn of a client-held conversation history."""
    assistant = _get_assistant(request)
    request_id = _request_id(request)
    try:
        reply = await assistant.reply_to_history(
            [m.model_dump() for m in body.messages],
        )
    except Exception as exc:
        logger.error("[%s] Advanced chat request failed: %s", request_id, exc)
        raise _to_http_error(exc, request_id, expose_rate_limit=False) from exc
    return ChatResponse(reply=reply)


@router.post("/refresh-content", response_model=RefreshResponse)
async def refresh_content(request: Request):
    """Re-scrape all source pages now, ignoring the cache age."""
    assistant = _get_assistant(request)
    request_id = _request_id(request)
    try:
        pages = await assistant.content.refresh_content()
    except ContentRefreshError as exc:
        logger.error("[%s] Content refresh failed: %s", request_id, exc.__cause__)
        raise HTTPException(status_code=500, detail=exc.message) from exc
    return RefreshResponse(pages_scraped=len(pages))


@router.get("/content", response_model=ContentResponse)
async def get_content(request: Request):
    """Current cached page extracts and when they were scraped."""
    assistant = _get_assistant(request)
    try:
        pages = await assistant.content.get_current_content()
    except Exception as exc:
        logger.exception("[%s] Reading content failed", _request_id(request))
        raise HTTPException(
            status_code=500, detail="Fehler beim Abrufen der Inhalte",
        ) from exc
    return ContentResponse(content=pages, last_updated=assistant.content.last_refreshed)


@router.post("/ki-search")
async def ki_search(body: SearchRequest, request: Request) -> dict:
    """Translate a colloquial query into listing filter criteria."""
    assistant = _get_assistant(request)
    request_id = _request_id(request)
    try:
        result = await assistant.interpret_search(body.query, body.type)
    except Exception as exc:
        logger.error("[%s] ki-search failed: %s", request_id, exc)
        raise _to_http_error(exc, request_id) from exc
    return result.to_response()
