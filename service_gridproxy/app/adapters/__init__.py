"""
Adapters package for the Grid Proxy service.

Contains client wrappers for the service's collaborators:

- DirectoryClient: GraphQL directory listing farms and nodes
- RmbClient / NodeClient: message bus calls to individual nodes

Adapters map transport failures to shared errors and never retry.
"""

from .directory_client import DirectoryClient
from .rmb_client import NodeClient, RmbClient

__all__ = [
    "DirectoryClient",
    "NodeClient",
    "RmbClient",
]
