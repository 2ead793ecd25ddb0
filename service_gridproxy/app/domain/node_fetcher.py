"""
Live node data retrieval over the message bus.
"""

import asyncio
import time
from typing import Callable, Optional, TYPE_CHECKING

from shared.logging import get_logger
from shared.errors import FetchError, NodeNotFoundError
from ..models import CapacityResult, NodeInfo
from ..adapters.rmb_client import NodeClient, RmbClient

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from .twin_resolver import TwinResolver
    from shared.metrics import MetricsCollector


DEFAULT_FETCH_TIMEOUT = 30.0

NodeClientFactory = Callable[[int], NodeClient]


class NodeDataFetcher:
    """Fetches capacity, DMI and hypervisor data of a node in one bounded session."""

    def __init__(
        self,
        twin_resolver: "TwinResolver",
        client_factory: NodeClientFactory,
        *,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.twin_resolver = twin_resolver
        self.client_factory = client_factory
        self.timeout = timeout
        self.metrics = metrics
        self.logger = get_logger("gridproxy.node_fetcher")

    @classmethod
    def over_rmb(cls, twin_resolver: "TwinResolver", rmb: RmbClient, **kwargs) -> "NodeDataFetcher":
        """Build a fetcher whose sessions talk to nodes through ``rmb``."""
        return cls(twin_resolver, lambda twin_id: NodeClient(twin_id, rmb), **kwargs)

    async def fetch(self, node_id: str) -> NodeInfo:
        """Return a complete NodeInfo for ``node_id`` or raise.

        NodeNotFoundError from twin resolution is raised unchanged; every other
        failure, including the session timeout, is raised as FetchError.
        """
        start = time.perf_counter()
        result = "error"
        try:
            try:
                twin_id = await self.twin_resolver.resolve(node_id)
            except NodeNotFoundError:
                result = "not_found"
                raise
            except Exception as exc:
                raise FetchError(node_id, "could not resolve node twin", details={"error": str(exc)}) from exc

            client = self.client_factory(twin_id)
            try:
                info = await asyncio.wait_for(self._collect(node_id, client), timeout=self.timeout)
            except asyncio.TimeoutError as exc:
                raise FetchError(
                    node_id,
                    f"timed out after {self.timeout}s",
                    details={"twin_id": twin_id},
                ) from exc

            result = "ok"
            return info
        finally:
            self._record_fetch(result, time.perf_counter() - start)

    async def _collect(self, node_id: str, client: NodeClient) -> NodeInfo:
        try:
            total, used = await client.counters()
        except Exception as exc:
            raise FetchError(node_id, "could not get node capacity", details={"error": str(exc)}) from exc

        try:
            dmi = await client.system_dmi()
        except Exception as exc:
            raise FetchError(node_id, "could not get node DMI info", details={"error": str(exc)}) from exc

        try:
            hypervisor = await client.system_hypervisor()
        except Exception as exc:
            raise FetchError(node_id, "could not get node hypervisor info", details={"error": str(exc)}) from exc

        try:
            return NodeInfo(
                capacity=CapacityResult(total=total, used=used),
                dmi=dmi,
                hypervisor=hypervisor,
            )
        except ValueError as exc:
            raise FetchError(node_id, "malformed node data", details={"error": str(exc)}) from exc

    def _record_fetch(self, result: str, duration: float) -> None:
        if not self.metrics:
            return
        try:
            self.metrics.observe_histogram("node_fetch_duration_seconds", duration, result=result)
        except Exception as exc:  # pragma: no cover - metrics failures never break fetching
            self.logger.debug("Failed to record fetch metrics", error=str(exc))
