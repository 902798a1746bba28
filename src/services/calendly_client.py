"""Async HTTP client for the read-only parts of the Calendly API v2.

Calendly API docs: https://developer.calendly.com/api-docs/
All requests require a Personal Access Token passed as a Bearer token.

Failures are raised, never retried here: the availability cache treats any
error as "no slots right now" and simply asks again on a later request.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from src.config import CALENDLY_API_TOKEN, CALENDLY_BASE_URL
from src.services.metrics import metrics

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 15.0


class CalendlyAPIError(Exception):
    """Raised when a Calendly API call fails or returns an unusable payload."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class CalendlyClient:
    """Thin async wrapper around the Calendly endpoints needed for free slots.

    The user is resolved on every ``get_event_types`` call, so each
    availability refresh goes identity, event types, available times.
    """

    def __init__(
        self,
        token: str | None = None,
        base_url: str | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ):
        self._token = CALENDLY_API_TOKEN if token is None else token
        self._base_url = base_url or CALENDLY_BASE_URL
        self._client = client or httpx.AsyncClient(
            base_url=self._base_url,
            headers={
                "Authorization": f"Bearer {self._token}",
                "Content-Type": "application/json",
            },
            timeout=REQUEST_TIMEOUT_SECONDS,
        )

    @property
    def configured(self) -> bool:
        """Whether a token is set (without one, no call is ever made)."""
        return bool(self._token)

    # ── Internal helpers ─────────────────────────────────────────────

    async def _get(self, path: str, params: dict[str, str] | None = None) -> dict[str, Any]:
        with metrics.track("calendly", f"GET {path}"):
            response = await self._client.get(path, params=params)
            if response.status_code >= 400:
                raise CalendlyAPIError(
                    f"Calendly error {response.status_code}: {response.text}",
                    status_code=response.status_code,
                )
            try:
                return response.json()
            except ValueError as exc:
                raise CalendlyAPIError(f"Invalid JSON from Calendly {path}") from exc

    # ── Public API methods ───────────────────────────────────────────

    async def get_current_user_uri(self) -> str:
        """Return the URI of the authenticated Calendly user."""
        data = await self._get("/users/me")
        uri = (data.get("resource") or {}).get("uri")
        if not uri:
            raise CalendlyAPIError("Calendly /users/me returned no user URI")
        return uri

    async def get_event_types(self) -> list[dict[str, Any]]:
        """List the active event types of the current user."""
        user_uri = await self.get_current_user_uri()
        data = await self._get("/event_types", params={"user": user_uri, "active": "true"})
        return data.get("collection") or []

    async def get_available_times(
        self,
        event_type_uri: str,
        start_time: str,
        end_time: str,
    ) -> list[dict[str, Any]]:
        """Get available time slots for an event type and date range.

        Args:
            event_type_uri: The URI of the event type.
            start_time: ISO 8601 start (must lie in the future).
            end_time: ISO 8601 end, at most 7 days after ``start_time``.

        Returns:
            Slot dicts with ``start_time`` and ``status``.
        """
        data = await self._get(
            "/event_type_available_times",
            params={
                "event_type": event_type_uri,
                "start_time": start_time,
                "end_time": end_time,
            },
        )
        return data.get("collection") or []

    async def aclose(self) -> None:
        await self._client.aclose()
