"""Background expiry sweep for the correlation store.

One sweeper runs per provider. It wakes every ``interval`` and prunes
entries older than ``ttl``. The interval is independent of the TTL and
usually much shorter (hourly sweeps against a 12h TTL), so an entry lives
between ``ttl`` and ``ttl + interval``.

Lifecycle:
    1. ``start()`` spawns the sweep task on the running loop
    2. ``sweep()`` runs a single prune cycle (also used by the task)
    3. ``stop()`` cancels the task and waits for it to exit
"""

import asyncio
import time
from collections.abc import Callable
from datetime import timedelta

import structlog

from alertrelay.alerts.correlation import CorrelationStore
from alertrelay.observability.metrics import MetricsCollector

logger = structlog.get_logger(__name__)


class ExpirySweeper:
    """Periodically prunes a CorrelationStore."""

    def __init__(
        self,
        store: CorrelationStore,
        ttl: timedelta,
        interval: timedelta = timedelta(hours=1),
        metrics: MetricsCollector | None = None,
        name: str = "expiry-sweeper",
        on_pruned: Callable[[int], None] | None = None,
    ) -> None:
        if interval.total_seconds() <= 0:
            raise ValueError("sweep interval must be positive")
        self._store = store
        self._ttl = ttl
        self._interval = interval
        self._metrics = metrics
        self._name = name
        # Called with the remaining entry count after every prune.
        self.on_pruned = on_pruned
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Spawn the sweep task. No-op if already running."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name=self._name)
        logger.info(
            "Expiry sweeper started",
            sweeper=self._name,
            ttl_seconds=self._ttl.total_seconds(),
            interval_seconds=self._interval.total_seconds(),
        )

    async def stop(self) -> None:
        """Cancel the sweep task and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Expiry sweeper stopped", sweeper=self._name)

    def sweep(self) -> int:
        """Run one prune cycle. Returns the number of entries removed."""
        start = time.perf_counter()
        removed = self._store.prune(self._ttl)
        duration = time.perf_counter() - start

        remaining = len(self._store)
        if self._metrics is not None:
            self._metrics.record_prune(duration)
        if self.on_pruned is not None:
            self.on_pruned(remaining)
        logger.debug(
            "Pruned active alerts",
            sweeper=self._name,
            removed=removed,
            remaining=remaining,
        )
        return removed

    async def _run(self) -> None:
        interval = self._interval.total_seconds()
        while True:
            await asyncio.sleep(interval)
            try:
                self.sweep()
            except Exception as e:
                logger.error("Error pruning active alerts", sweeper=self._name, error=str(e))
