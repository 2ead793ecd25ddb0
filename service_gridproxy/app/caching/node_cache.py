"""
Cache-aside storage of node info in Redis.
"""

import json
from typing import Optional, TYPE_CHECKING

import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.logging import get_logger
from shared.errors import BadGatewayError, NodeNotFoundError, SerializationError
from ..models import NodeInfo

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..domain.node_fetcher import NodeDataFetcher
    from shared.metrics import MetricsCollector


NODE_KEY_PREFIX = "GRID3NODE"
DEFAULT_NODE_TTL = 30 * 60


class NodeCache:
    """Read-through cache of node info keyed by node id.

    A cached value is returned verbatim for its whole TTL; it is never
    compared against the live node. Only complete, successfully fetched
    payloads are written.
    """

    def __init__(
        self,
        store: redis.Redis,
        fetcher: "NodeDataFetcher",
        *,
        ttl_seconds: int = DEFAULT_NODE_TTL,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.store = store
        self.fetcher = fetcher
        self.ttl_seconds = ttl_seconds
        self.metrics = metrics
        self.logger = get_logger("gridproxy.node_cache")

    @staticmethod
    def key_for(node_id: str) -> str:
        return f"{NODE_KEY_PREFIX}:{node_id}"

    async def close(self) -> None:
        """Close Redis connections."""
        await self.store.aclose()

    async def get_cached(self, node_id: str) -> Optional[bytes]:
        """Return the stored payload, treating store read failures as a miss."""
        try:
            value = await self.store.get(self.key_for(node_id))
        except RedisError as exc:
            self.logger.warning("Node cache read failed", node_id=node_id, error=str(exc))
            return None

        if value is None:
            return None
        return value.encode("utf-8") if isinstance(value, str) else value

    async def contains(self, node_id: str) -> bool:
        """Whether a payload is currently stored. Store failures propagate."""
        return bool(await self.store.exists(self.key_for(node_id)))

    async def get_or_fetch(self, node_id: str) -> bytes:
        """Return cached node info bytes, fetching and storing them on a miss.

        Raises NodeNotFoundError when the node is unknown, BadGatewayError when
        the node could not be fetched and SerializationError when the fetched
        data cannot be encoded. None of these outcomes are cached.
        """
        node_id = str(node_id)
        cached = await self.get_cached(node_id)
        if cached:
            self._record_lookup("hit")
            return cached

        self._record_lookup("miss")
        try:
            info = await self.fetcher.fetch(node_id)
        except NodeNotFoundError:
            raise
        except Exception as exc:
            self.logger.warning("Node fetch failed", node_id=node_id, error=str(exc))
            raise BadGatewayError(
                f"could not reach node {node_id}",
                details={"node_id": node_id, "error": str(exc)}
            ) from exc

        payload = self._serialize(node_id, info)

        try:
            await self.store.set(self.key_for(node_id), payload, ex=self.ttl_seconds)
        except RedisError as exc:
            self.logger.warning("could not cache data in redis", node_id=node_id, error=str(exc))

        return payload

    def _serialize(self, node_id: str, info: NodeInfo) -> bytes:
        try:
            return json.dumps(info.model_dump(mode="json")).encode("utf-8")
        except (TypeError, ValueError) as exc:
            self.logger.error("could not marshal node info", node_id=node_id, error=str(exc))
            raise SerializationError(
                "could not marshal node info",
                details={"node_id": node_id, "error": str(exc)}
            ) from exc

    def _record_lookup(self, result: str) -> None:
        if not self.metrics:
            return
        try:
            self.metrics.increment_counter("node_cache_lookups_total", result=result)
        except Exception as exc:  # pragma: no cover - metrics failures never break lookups
            self.logger.debug("Failed to record node cache metrics", error=str(exc))
