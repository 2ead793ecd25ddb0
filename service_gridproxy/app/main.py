"""
Grid Proxy service.

Serves farm and node listings from the directory and node details from the
node cache, and keeps that cache warm for the whole fleet in the background.
"""

from typing import Dict, Optional

import redis.asyncio as redis
from fastapi import Path, Query, Response
from fastapi.responses import JSONResponse, PlainTextResponse

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.logging import set_node_context

from .adapters.directory_client import DirectoryClient
from .adapters.rmb_client import RmbClient
from .caching.fleet_warmer import FleetWarmer
from .caching.liveness import CachePresenceLiveness
from .caching.node_cache import NodeCache
from .domain.node_fetcher import NodeDataFetcher
from .domain.twin_resolver import TwinResolver, create_twin_cache
from .models import NodeListQuery


WELCOME_MESSAGE = (
    "welcome to grid proxy server, available endpoints "
    "[/farms, /nodes, /nodes/<node-id>, /gateways, /gateways/<node-id>]"
)


class GridProxyService(BaseService):
    """Grid Proxy service implementation.

    Collaborators are built here once and passed to each component; tests may
    supply their own.
    """

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        directory: Optional[DirectoryClient] = None,
        node_cache: Optional[NodeCache] = None,
        rmb: Optional[RmbClient] = None,
    ):
        super().__init__("gridproxy", 8080, config)

        self.directory = directory or DirectoryClient(
            self.config.directory_url,
            timeout=self.config.directory_timeout_seconds,
        )
        self.rmb = rmb or RmbClient(
            self.config.rmb_redis_url,
            default_timeout=int(self.config.node_fetch_timeout_seconds),
        )

        self.twin_resolver: Optional[TwinResolver] = None
        if node_cache is None:
            self.twin_resolver = TwinResolver(
                self.directory,
                create_twin_cache(
                    maxsize=self.config.twin_cache_max_entries,
                    ttl=self.config.twin_cache_ttl_seconds,
                ),
                purge_interval=self.config.twin_cache_purge_seconds,
                metrics=self.metrics,
            )
            fetcher = NodeDataFetcher.over_rmb(
                self.twin_resolver,
                self.rmb,
                timeout=self.config.node_fetch_timeout_seconds,
                metrics=self.metrics,
            )
            node_cache = NodeCache(
                redis.from_url(self.config.redis_url),
                fetcher,
                ttl_seconds=self.config.node_cache_ttl_seconds,
                metrics=self.metrics,
            )
        self.node_cache = node_cache
        self.liveness = CachePresenceLiveness(self.node_cache)
        self.fleet_warmer = FleetWarmer(
            self.directory,
            self.node_cache,
            interval_seconds=self.config.fleet_warm_interval_seconds,
            fetch_timeout=self.config.node_fetch_timeout_seconds,
            metrics=self.metrics,
        )

        @self.app.on_event("startup")
        async def _startup():
            if self.config.fleet_warm_enabled:
                await self.fleet_warmer.start()

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.fleet_warmer.stop()
            await self.node_cache.close()
            await self.rmb.close()

        self._setup_gridproxy_routes()

    async def _check_dependencies(self) -> Dict[str, str]:
        """Report Redis reachability for the health endpoint."""
        try:
            await self.node_cache.store.ping()
            redis_status = "ok"
        except Exception as exc:
            self.logger.warning("Redis health check failed", error=str(exc))
            redis_status = "error"
        return {
            "redis": redis_status,
            "fleet_warmer": "running" if self.fleet_warmer.running else "stopped",
        }

    def _setup_gridproxy_routes(self):
        """Set up listing and node detail routes."""

        default_max_result = self.config.default_max_result

        @self.app.get("/", response_class=PlainTextResponse)
        async def index():
            """Index page."""
            return WELCOME_MESSAGE

        @self.app.get("/farms")
        async def list_farms(
            page: int = Query(1, ge=1, description="Page number"),
            max_result: int = Query(default_max_result, ge=1, description="Max result per page"),
        ):
            """Show farms on the grid, paginated."""
            listing = await self.directory.list_farms(max_result, (page - 1) * max_result)
            return JSONResponse(content={"data": listing.model_dump(by_alias=True)})

        async def _list_nodes(page: int, max_result: int, farm_id: Optional[int], gateways_only: bool):
            params = NodeListQuery(
                page=page,
                max_result=max_result,
                farm_id=farm_id,
                gateways_only=gateways_only,
            )
            nodes = await self.directory.list_nodes(params)
            await self.liveness.annotate(nodes)
            return JSONResponse(
                content=[node.model_dump(mode="json", by_alias=True) for node in nodes]
            )

        @self.app.get("/nodes")
        async def list_nodes(
            page: int = Query(1, ge=1, description="Page number"),
            max_result: int = Query(default_max_result, ge=1, description="Max result per page"),
            farm_id: Optional[int] = Query(None, description="Get nodes for specific farm"),
        ):
            """Show nodes on the grid annotated with their cached state."""
            return await _list_nodes(page, max_result, farm_id, gateways_only=False)

        @self.app.get("/gateways")
        async def list_gateways(
            page: int = Query(1, ge=1, description="Page number"),
            max_result: int = Query(default_max_result, ge=1, description="Max result per page"),
            farm_id: Optional[int] = Query(None, description="Get gateways for specific farm"),
        ):
            """Show nodes with a public IPv4 config."""
            return await _list_nodes(page, max_result, farm_id, gateways_only=True)

        async def _node_details(node_id: str) -> Response:
            set_node_context(node_id)
            payload = await self.node_cache.get_or_fetch(node_id)
            return Response(content=payload, media_type="application/json")

        @self.app.get("/nodes/{node_id}")
        async def get_node(node_id: str = Path(..., pattern=r"^[0-9]+$")):
            """Show capacity, DMI and hypervisor details of a node."""
            return await _node_details(node_id)

        @self.app.get("/gateways/{node_id}")
        async def get_gateway(node_id: str = Path(..., pattern=r"^[0-9]+$")):
            """Show capacity, DMI and hypervisor details of a gateway node."""
            return await _node_details(node_id)


def create_app():
    """Create FastAPI application."""
    service = GridProxyService()
    return service.app


if __name__ == "__main__":
    service = GridProxyService()
    service.run()
