"""FastAPI server for the Gutshof assistant (Emil).

Run with:
    uvicorn src.server:app --reload --host 0.0.0.0 --port 3000
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse

from src.api.routes import router
from src.api.schemas import HealthResponse
from src.assistant import create_assistant
from src.config import CORS_ORIGINS, SERVER_HOST, SERVER_PORT, WARMUP_ON_STARTUP
from src.errors import ValidationError
from src.services.metrics import metrics

# ── Logging ──────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan: initialise / tear-down shared resources ────────────────
@asynccontextmanager
async def lifespan(application: FastAPI):
    """Create the assistant once and kick off the initial scrape.

    The scrape runs as a background task so the server accepts requests
    immediately; the first chat request simply joins it if still running.
    """
    assistant = create_assistant()
    application.state.assistant = assistant
    metrics.start()

    warmup: asyncio.Task | None = None
    if WARMUP_ON_STARTUP:
        warmup = asyncio.create_task(assistant.warm_up())
    logger.info("Assistant ready (CORS origins: %s)", ", ".join(CORS_ORIGINS))
    yield

    if warmup is not None and not warmup.done():
        warmup.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await warmup
    await assistant.aclose()
    metrics.flush()
    application.state.assistant = None


# ── FastAPI application ──────────────────────────────────────────────
app = FastAPI(
    title="Gutshof-KI Emil",
    description=(
        "Chat backend for the Alter Behring Gutshof assistant: answers with "
        "current website content and free Calendly slots."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Request-ID middleware ────────────────────────────────────────────
@app.middleware("http")
async def add_request_id(request: Request, call_next) -> Response:
    """Attach a request ID (client-supplied or new) for log correlation."""
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id
    logger.info("[%s] %s %s", request_id, request.method, request.url.path)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ── Validation errors are client errors: 400, not FastAPI's 422 ──────
@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    fields = sorted({".".join(str(p) for p in err["loc"][1:]) or "body" for err in exc.errors()})
    logger.info(
        "[%s] Rejected invalid body (%s)",
        getattr(request.state, "request_id", "?"), ", ".join(fields),
    )
    error = ValidationError(f"Ungültige Anfrage: {', '.join(fields)} fehlt oder ist ungültig.")
    return JSONResponse(status_code=error.http_status, content={"detail": error.message})


# ── Register routes ──────────────────────────────────────────────────
app.include_router(router, prefix="/api")


@app.get("/health", response_model=HealthResponse)
async def health_check():
    return HealthResponse()


@app.get("/", response_class=HTMLResponse)
async def root():
    """Small info page so that GET / does not 404."""
    return """<!DOCTYPE html>
<html lang="de">
<head><meta charset="UTF-8"><title>Gutshof-KI Emil</title></head>
<body style="font-family:sans-serif;max-width:600px;margin:2rem auto;padding:1rem;">
    <h1>Gutshof-KI Emil</h1>
    <p>Backend für den Chat-Assistenten des Alten Behring Gutshofs.</p>
    <p><a href="/health">Health-Check</a> · Chat-API: <code>POST /api/chat</code></p>
</body>
</html>"""


@app.get("/favicon.ico", include_in_schema=False)
@app.get("/favicon.png", include_in_schema=False)
async def favicon():
    return Response(status_code=204)


# ── CLI entry point ──────────────────────────────────────────────────

if __name__ == "__main__":
    logger.info("Starting Gutshof assistant on %s:%d", SERVER_HOST, SERVER_PORT)
    uvicorn.run(
        "src.server:app",
        host=SERVER_HOST,
        port=SERVER_PORT,
        reload=True,
    )
