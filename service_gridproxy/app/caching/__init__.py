"""
Grid Proxy caching package.

The node cache is read-through and serves stale data until its TTL expires;
the fleet warmer keeps it populated and liveness is read from its presence.
"""

from .node_cache import NodeCache
from .fleet_warmer import FleetWarmer
from .liveness import CachePresenceLiveness

__all__ = [
    "CachePresenceLiveness",
    "FleetWarmer",
    "NodeCache",
]
