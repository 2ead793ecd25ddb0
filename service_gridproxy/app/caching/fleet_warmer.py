"""
Periodic warming of the node cache for the whole fleet.
"""

import asyncio
import time
from typing import List, Optional, TYPE_CHECKING

from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..adapters.directory_client import DirectoryClient
    from .node_cache import NodeCache
    from shared.metrics import MetricsCollector


DEFAULT_WARM_INTERVAL = 30 * 60


class FleetWarmer:
    """Best-effort sweep that keeps every node's info cached ahead of reads.

    Nodes are visited strictly one after another so the remote fleet is never
    hit in parallel. A sweep therefore takes up to fleet size times the fetch
    timeout, which is the main scalability bound of the service.
    """

    def __init__(
        self,
        directory: "DirectoryClient",
        node_cache: "NodeCache",
        *,
        interval_seconds: float = DEFAULT_WARM_INTERVAL,
        fetch_timeout: float = 30.0,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.directory = directory
        self.node_cache = node_cache
        self.interval_seconds = interval_seconds
        self.fetch_timeout = fetch_timeout
        self.metrics = metrics
        self.logger = get_logger("gridproxy.fleet_warmer")

        self.warm_task: Optional[asyncio.Task] = None
        self.running = False

    async def start(self):
        """Run a sweep now and then every ``interval_seconds`` until stopped."""
        if self.running:
            return
        self.running = True
        self.warm_task = asyncio.create_task(self._warm_loop())
        self.logger.info("Fleet warmer started", interval_seconds=self.interval_seconds)

    async def stop(self):
        """Cancel the schedule, interrupting a sweep in progress."""
        self.running = False
        if self.warm_task:
            self.warm_task.cancel()
            try:
                await self.warm_task
            except asyncio.CancelledError:
                pass
            self.warm_task = None

        self.logger.info("Fleet warmer stopped")

    async def sweep(self) -> None:
        """Fetch and cache every known node once, tolerating per-node failure."""
        start = time.perf_counter()
        node_ids = await self._list_node_ids()
        self._warn_if_sweep_may_overrun(len(node_ids))

        failures = 0
        for index, node_id in enumerate(node_ids, start=1):
            self.logger.debug("fetching node", position=index, total=len(node_ids), node_id=node_id)
            try:
                await self.node_cache.get_or_fetch(node_id)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                failures += 1
                self._record_node("error")
                self.logger.error("could not fetch node data", node_id=node_id, error=str(exc))
                continue
            self._record_node("ok")

        duration = time.perf_counter() - start
        self._record_sweep(duration)
        self.logger.info(
            "Fetching nodes completed",
            nodes=len(node_ids),
            failures=failures,
            duration_seconds=round(duration, 2),
            next_sweep_in_seconds=self.interval_seconds,
        )

    async def _list_node_ids(self) -> List[str]:
        try:
            return [str(node_id) for node_id in await self.directory.list_node_ids()]
        except Exception as exc:
            self.logger.error("failed to query nodes", error=str(exc))
            return []

    def _warn_if_sweep_may_overrun(self, fleet_size: int) -> None:
        worst_case = fleet_size * self.fetch_timeout
        if worst_case > self.interval_seconds:
            self.logger.warning(
                "Sequential fleet sweep may outlast the warm interval",
                fleet_size=fleet_size,
                worst_case_seconds=worst_case,
                interval_seconds=self.interval_seconds,
            )

    async def _warm_loop(self):
        """Main warm loop; sweeps never overlap."""
        while self.running:
            started = time.monotonic()
            try:
                await self.sweep()
            except asyncio.CancelledError:
                break
            except Exception as e:
                self.logger.error("Error in fleet warm loop", error=str(e))

            elapsed = time.monotonic() - started
            try:
                await asyncio.sleep(max(0.0, self.interval_seconds - elapsed))
            except asyncio.CancelledError:
                break

    def _record_node(self, result: str) -> None:
        if not self.metrics:
            return
        try:
            self.metrics.increment_counter("fleet_warm_nodes_total", result=result)
        except Exception as exc:  # pragma: no cover - metrics failures never break warming
            self.logger.debug("Failed to record warm metrics", error=str(exc))

    def _record_sweep(self, duration: float) -> None:
        if not self.metrics:
            return
        try:
            self.metrics.observe_histogram("fleet_warm_duration_seconds", duration)
        except Exception as exc:  # pragma: no cover - metrics failures never break warming
            self.logger.debug("Failed to record warm metrics", error=str(exc))
