"""Time-to-live cache around a single async loader, with single-flight refresh.

Design decisions
────────────────
• **One value per cache.**  Both users (scraped pages, Calendly slots) hold
  exactly one collection, so there are no keys.
• **Immutable snapshots.**  The value and its refresh timestamp live in one
  frozen ``CacheSnapshot`` that is swapped by a single assignment.  Readers
  never see a new value with an old timestamp or vice versa, and a refresh
  that raises leaves the previous snapshot untouched.
• **Single-flight.**  Concurrent misses await the same ``asyncio.Task``
  instead of each starting their own refresh.  Waiters are shielded, so a
  client disconnect does not cancel a refresh other requests depend on.
• **Injected clock.**  ``clock`` returns an aware ``datetime``; tests pass a
  controllable one.

Usage
─────
>>> cache = RefreshingCache(load_pages, ttl=timedelta(hours=24), name="content")
>>> pages = await cache.get()        # loads on first use
>>> pages = await cache.get()        # served from memory inside the TTL
>>> pages = await cache.refresh()    # unconditional reload
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class CacheSnapshot(Generic[T]):
    value: T
    refreshed_at: datetime


class RefreshingCache(Generic[T]):
    """Holds the latest successful result of ``loader`` for ``ttl``."""

    def __init__(
        self,
        loader: Callable[[], Awaitable[T]],
        ttl: timedelta,
        *,
        clock: Clock = utc_now,
        name: str = "cache",
    ) -> None:
        self._loader = loader
        self._ttl = ttl
        self._clock = clock
        self._name = name
        self._snapshot: CacheSnapshot[T] | None = None
        self._inflight: asyncio.Task[T] | None = None

    # ── Introspection ────────────────────────────────────────────────

    @property
    def snapshot(self) -> CacheSnapshot[T] | None:
        return self._snapshot

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    @property
    def refreshing(self) -> bool:
        return self._inflight is not None

    def is_stale(self, age: timedelta) -> bool:
        """Whether a snapshot of this ``age`` must be reloaded."""
        return age >= self._ttl

    def fresh_snapshot(self) -> CacheSnapshot[T] | None:
        """Return the snapshot if it is still inside the TTL, else ``None``."""
        snap = self._snapshot
        if snap is None or self.is_stale(self._clock() - snap.refreshed_at):
            return None
        return snap

    # ── Core operations ──────────────────────────────────────────────

    async def get(self) -> T:
        """Return the cached value, reloading it first if missing or stale."""
        snap = self.fresh_snapshot()
        if snap is not None:
            return snap.value
        return await self.refresh()

    async def refresh(self) -> T:
        """Reload regardless of age, joining a reload already in flight."""
        task = self._inflight
        if task is None or task.done():
            task = asyncio.ensure_future(self._run_loader())
            task.add_done_callback(self._retrieve_failure)
            self._inflight = task
        return await asyncio.shield(task)

    def clear(self) -> None:
        """Forget the current snapshot (the next ``get`` reloads)."""
        self._snapshot = None

    async def aclose(self) -> None:
        """Cancel a refresh still in flight and wait for it to unwind."""
        task = self._inflight
        if task is None or task.done():
            return
        logger.debug("Cache %s: cancelling in-flight refresh", self._name)
        task.cancel()
        # ``wait`` does not re-raise the outcome of the task.
        await asyncio.wait({task})
        if self._inflight is task:
            self._inflight = None

    def _retrieve_failure(self, task: asyncio.Task[T]) -> None:
        # Marks the exception as retrieved even when every waiter was cancelled.
        if not task.cancelled() and task.exception() is not None:
            logger.debug("Cache %s: refresh failed: %r", self._name, task.exception())

    async def _run_loader(self) -> T:
        logger.debug("Cache %s: refreshing", self._name)
        try:
            value = await self._loader()
        finally:
            self._inflight = None
        self._snapshot = CacheSnapshot(value=value, refreshed_at=self._clock())
        logger.debug("Cache %s: refreshed", self._name)
        return value
