"""
Node id to twin id resolution backed by a short-lived in-memory cache.
"""

import time
from typing import Callable, Optional, TYPE_CHECKING

from cachetools import TTLCache

from shared.logging import get_logger
from shared.errors import NodeNotFoundError

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..adapters.directory_client import DirectoryClient
    from shared.metrics import MetricsCollector


DEFAULT_TWIN_TTL = 10 * 60
DEFAULT_TWIN_PURGE_INTERVAL = 15 * 60


def create_twin_cache(
    maxsize: int = 10000,
    ttl: int = DEFAULT_TWIN_TTL,
    timer: Callable[[], float] = time.monotonic,
) -> TTLCache:
    """Build the in-memory twin id cache owned by a TwinResolver."""
    return TTLCache(maxsize=maxsize, ttl=ttl, timer=timer)


class TwinResolver:
    """Resolves node ids to twin ids, caching hits for the soft TTL.

    Entries stop being served once the soft TTL elapses. Expired entries are
    dropped from memory by a lazy purge: the first ``resolve`` after the purge
    interval has passed clears every expired entry, read or not. With no
    resolve calls the expired entries stay in memory, though the cache never
    serves them.
    """

    def __init__(
        self,
        directory: "DirectoryClient",
        cache: TTLCache,
        *,
        purge_interval: int = DEFAULT_TWIN_PURGE_INTERVAL,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.directory = directory
        self.cache = cache
        self.purge_interval = purge_interval
        self.metrics = metrics
        self.logger = get_logger("gridproxy.twin_resolver")
        self._last_purge = cache.timer()

    async def resolve(self, node_id: str) -> int:
        """Return the twin id for ``node_id``.

        Raises NodeNotFoundError when the directory has no matching node and
        QueryError when the directory call fails.
        """
        self._purge_if_due()
        key = str(node_id)

        twin_id = self.cache.get(key)
        if twin_id is not None:
            self._record_lookup("hit")
            return twin_id

        self._record_lookup("miss")
        twin_ids = await self.directory.get_node_twin_ids(key)
        if not twin_ids:
            self.logger.info("Node not found in directory", node_id=key)
            raise NodeNotFoundError(key)

        twin_id = twin_ids[0]
        self.cache[key] = twin_id
        self.logger.debug("Resolved node twin", node_id=key, twin_id=twin_id)
        return twin_id

    def purge(self) -> None:
        """Drop every expired entry."""
        self.cache.expire()
        self._last_purge = self.cache.timer()

    def _purge_if_due(self) -> None:
        if self.cache.timer() - self._last_purge >= self.purge_interval:
            self.purge()

    def _record_lookup(self, result: str) -> None:
        if not self.metrics:
            return
        try:
            self.metrics.increment_counter("twin_cache_lookups_total", result=result)
        except Exception as exc:  # pragma: no cover - metrics failures never break resolution
            self.logger.debug("Failed to record twin cache metrics", error=str(exc))
