"""
Domain logic for the Grid Proxy service: twin resolution and live node fetches.
"""

from .twin_resolver import TwinResolver, create_twin_cache
from .node_fetcher import NodeDataFetcher

__all__ = [
    "NodeDataFetcher",
    "TwinResolver",
    "create_twin_cache",
]
