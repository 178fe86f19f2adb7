"""Background eviction of expired window records.

Sweeping only bounds memory: the limiter already treats an expired record as
absent, so admit/reject decisions never depend on a sweep having run.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Iterable

from reccollection.adapters.rate_limit.base import AbstractWindowStore
from reccollection.adapters.rate_limit.in_memory import system_clock_ms

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """Periodically removes expired records from one or more window stores.

    Tests call :meth:`sweep_once` directly instead of waiting on the interval.
    """

    def __init__(
        self,
        stores: AbstractWindowStore | Iterable[AbstractWindowStore],
        *,
        interval_seconds: float = 60.0,
        clock: Callable[[], int] = system_clock_ms,
        stop_timeout_seconds: float = 5.0,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._stores: list[AbstractWindowStore] = (
            [stores] if isinstance(stores, AbstractWindowStore) else list(stores)
        )
        self._interval = interval_seconds
        self._clock = clock
        self._stop_timeout = stop_timeout_seconds
        self._stop_event: asyncio.Event | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def add_store(self, store: AbstractWindowStore) -> None:
        if store not in self._stores:
            self._stores.append(store)

    def sweep_once(self) -> int:
        """Run one eviction pass over every store.

        Returns:
            Total number of records removed.
        """
        now = int(self._clock())
        removed = sum(store.sweep(now) for store in self._stores)
        remaining = sum(len(store) for store in self._stores)
        logger.debug(
            "rate_limit.sweep",
            extra={"removed": removed, "remaining": remaining},
        )
        return removed

    async def start(self) -> None:
        """Start the background sweep task; a no-op if already running."""
        if self.running:
            logger.debug("rate_limit.sweeper_already_running")
            return

        # Events bind to the running loop, so each start gets a fresh one
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(self._stop_event))
        logger.info(
            "rate_limit.sweeper_started",
            extra={"interval_s": self._interval, "stores": len(self._stores)},
        )

    async def stop(self) -> None:
        """Stop the background task, cancelling it if it does not exit in time."""
        if self._task is None:
            return

        if self._stop_event is not None:
            self._stop_event.set()
        try:
            await asyncio.wait_for(self._task, timeout=self._stop_timeout)
        except asyncio.TimeoutError:
            logger.warning("rate_limit.sweeper_stop_timeout")
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        finally:
            self._task = None
            self._stop_event = None
            logger.info("rate_limit.sweeper_stopped")

    async def _run(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                # Interval elapsed without a stop request
                self.sweep_once()
