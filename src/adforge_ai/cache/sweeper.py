"""Periodic background sweep of expired cache entries."""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from datetime import UTC, datetime

from adforge_ai.cache.manager import ResponseCache
from adforge_ai.logging import get_logger

log = get_logger("adforge_ai.cache.sweeper")


@dataclass
class SweeperStats:
    """Counters for the sweep loop."""

    total_sweeps: int = 0
    total_removed: int = 0
    failed_sweeps: int = 0
    last_sweep: datetime | None = None


class CacheSweeper:
    """Runs :meth:`ResponseCache.clear_expired` on a fixed interval.

    Independent of request handling; the only background task in the
    dispatcher.
    """

    def __init__(self, cache: ResponseCache, interval_seconds: float = 3600) -> None:
        self._cache = cache
        self._interval = interval_seconds
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._stats = SweeperStats()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def stats(self) -> SweeperStats:
        return self._stats

    async def start(self) -> None:
        """Start the sweep loop."""
        if self._running:
            log.warning("cache_sweeper_already_running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        log.info("cache_sweeper_started", interval_seconds=self._interval)

    async def stop(self) -> None:
        """Stop the sweep loop and wait for it to finish."""
        self._running = False
        task = self._task
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
            self._task = None
        log.info("cache_sweeper_stopped")

    async def sweep_once(self) -> int:
        """Run a single sweep. Returns the number of durable rows removed."""
        removed = await self._cache.clear_expired()
        self._stats.total_sweeps += 1
        self._stats.total_removed += removed
        self._stats.last_sweep = datetime.now(UTC)
        return removed

    async def _run_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self._interval)
            try:
                await self.sweep_once()
            except Exception as e:
                self._stats.failed_sweeps += 1
                log.error("cache_sweep_failed", error=str(e))
