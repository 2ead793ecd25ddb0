"""
Node liveness derived from node cache presence.
"""

from typing import List, TYPE_CHECKING

from shared.logging import get_logger
from ..models import NodeRecord, NodeState

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from .node_cache import NodeCache


class CachePresenceLiveness:
    """Reports a node "up" while its info is cached and "down" otherwise.

    This is a heuristic, not a reachability probe: a node that just went
    offline stays "up" until its cache entry expires, and a reachable node
    whose entry expired reads "down" until the next fetch.
    """

    def __init__(self, node_cache: "NodeCache"):
        self.node_cache = node_cache
        self.logger = get_logger("gridproxy.liveness")

    async def status(self, node_id: str) -> NodeState:
        try:
            present = await self.node_cache.contains(str(node_id))
        except Exception as exc:
            self.logger.warning("Liveness lookup failed", node_id=str(node_id), error=str(exc))
            return NodeState.DOWN
        return NodeState.UP if present else NodeState.DOWN

    async def annotate(self, records: List[NodeRecord]) -> List[NodeRecord]:
        """Set ``state`` on each record in place and return them."""
        for record in records:
            record.state = await self.status(str(record.node_id))
        return records
