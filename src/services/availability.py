"""Free preliminary-meeting slots from Calendly, cached for five minutes.

Preliminary meetings only take place on Thursdays, so slots are filtered to
that weekday *in Europe/Berlin* (a UTC weekday check would be wrong around
midnight and across daylight-saving changes) and formatted the way the
Calendly booking widget shows them, e.g. ``Do., 19.02.2026, 10:00``.

An empty result after a successful lookup is cached like any other.  A
failed lookup is not: it returns ``[]`` and leaves the cache as it was, so
the next request asks Calendly again instead of waiting out the TTL.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
import pytz

from src.config import (
    AVAILABILITY_TTL_SECONDS,
    AVAILABILITY_WINDOW_DAYS,
    BOOKING_TIMEZONE,
    BOOKING_WEEKDAY,
    EVENT_TYPE_SLUG_MARKER,
    MAX_AVAILABLE_SLOTS,
)
from src.models import AvailabilitySlot
from src.services.cache import Clock, RefreshingCache, utc_now
from src.services.calendly_client import CalendlyAPIError, CalendlyClient

logger = logging.getLogger(__name__)

_GERMAN_WEEKDAYS = ("Mo.", "Di.", "Mi.", "Do.", "Fr.", "Sa.", "So.")
_QUARTER_HOUR = timedelta(minutes=15)


def next_quarter_hour(now: datetime) -> datetime:
    """Return the first quarter-hour boundary strictly after ``now`` (UTC)."""
    now = now.astimezone(UTC)
    floored = now.replace(minute=now.minute - now.minute % 15, second=0, microsecond=0)
    return floored + _QUARTER_HOUR


def format_slot_label(local: datetime) -> str:
    """German short form matching the booking widget: ``Do., 19.02.2026, 10:00``."""
    return f"{_GERMAN_WEEKDAYS[local.weekday()]}, {local:%d.%m.%Y, %H:%M}"


def _to_calendly_time(dt: datetime) -> str:
    return dt.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def select_event_type(event_types: list[dict[str, Any]], marker: str) -> str | None:
    """Pick the event type whose slug contains ``marker``, else the first one."""
    for event_type in event_types:
        if marker in (event_type.get("slug") or ""):
            return event_type.get("uri")
    return event_types[0].get("uri") if event_types else None


def filter_slots(
    raw_slots: list[dict[str, Any]],
    tz: pytz.BaseTzInfo,
    weekday: int,
    limit: int,
) -> list[AvailabilitySlot]:
    """Keep available slots on ``weekday`` in ``tz``, in provider order, capped."""
    slots: list[AvailabilitySlot] = []
    for raw in raw_slots:
        if len(slots) >= limit:
            break
        if raw.get("status", "available") != "available" or not raw.get("start_time"):
            continue
        try:
            start = datetime.fromisoformat(str(raw["start_time"]).replace("Z", "+00:00"))
        except ValueError:
            logger.debug("Skipping slot with unparsable start_time %r", raw["start_time"])
            continue
        if start.tzinfo is None:
            start = start.replace(tzinfo=UTC)
        local = start.astimezone(tz)
        if local.weekday() != weekday:
            continue
        slots.append(AvailabilitySlot(start=start, label=format_slot_label(local)))
    return slots


class AvailabilityService:
    """Looks up and caches the bookable Thursday slots for the next week."""

    def __init__(
        self,
        client: CalendlyClient,
        *,
        ttl: timedelta = timedelta(seconds=AVAILABILITY_TTL_SECONDS),
        clock: Clock = utc_now,
        timezone: str = BOOKING_TIMEZONE,
        weekday: int = BOOKING_WEEKDAY,
        max_slots: int = MAX_AVAILABLE_SLOTS,
        slug_marker: str = EVENT_TYPE_SLUG_MARKER,
        window_days: int = AVAILABILITY_WINDOW_DAYS,
    ) -> None:
        self._client = client
        self._clock = clock
        self._tz = pytz.timezone(timezone)
        self._weekday = weekday
        self._max_slots = max_slots
        self._slug_marker = slug_marker
        self._window = timedelta(days=window_days)
        self._cache: RefreshingCache[list[AvailabilitySlot]] = RefreshingCache(
            self._load_slots, ttl, clock=clock, name="availability",
        )

    @property
    def cache(self) -> RefreshingCache[list[AvailabilitySlot]]:
        return self._cache

    async def get_available_slots(self) -> list[AvailabilitySlot]:
        """Return the cached slots, asking Calendly when expired.

        Returns ``[]`` without any network call when no token is configured,
        and ``[]`` (uncached) when Calendly cannot be queried.
        """
        if not self._client.configured:
            return []
        try:
            return await self._cache.get()
        except (CalendlyAPIError, httpx.HTTPError) as exc:
            status = getattr(exc, "status_code", None)
            logger.error("Calendly API error (status=%s): %s", status, exc)
            return []
        except Exception:
            logger.exception("Unexpected Calendly payload; skipping availability")
            return []

    async def get_available_times(self) -> list[str]:
        """The display labels of ``get_available_slots``."""
        return [slot.label for slot in await self.get_available_slots()]

    async def _load_slots(self) -> list[AvailabilitySlot]:
        event_type_uri = select_event_type(
            await self._client.get_event_types(), self._slug_marker,
        )
        if not event_type_uri:
            raise CalendlyAPIError("No Calendly event type available")

        start = next_quarter_hour(self._clock())
        end = start + self._window
        raw_slots = await self._client.get_available_times(
            event_type_uri, _to_calendly_time(start), _to_calendly_time(end),
        )
        slots = filter_slots(raw_slots, self._tz, self._weekday, self._max_slots)
        logger.info(
            "Calendly: %d of %d slots kept (weekday %d, %s)",
            len(slots), len(raw_slots), self._weekday, self._tz.zone,
        )
        return slots

    async def aclose(self) -> None:
        """Cancel a Calendly lookup still running (server shutdown)."""
        await self._cache.aclose()
