#!/usr/bin/env python3
"""
Warm the node cache for the whole fleet once.

Runs a single fleet sweep outside the service, e.g. right after deploying a
fresh Redis, so the first readers do not pay for live node fetches.
"""

import argparse
import asyncio
import os
import sys

import redis.asyncio as redis

from service_gridproxy.app.adapters.directory_client import DirectoryClient
from service_gridproxy.app.adapters.rmb_client import RmbClient
from service_gridproxy.app.caching.fleet_warmer import FleetWarmer
from service_gridproxy.app.caching.node_cache import NodeCache
from service_gridproxy.app.domain.node_fetcher import NodeDataFetcher
from service_gridproxy.app.domain.twin_resolver import TwinResolver, create_twin_cache
from shared.logging import configure_logging


async def warm(
    *,
    redis_url: str,
    rmb_redis_url: str,
    directory_url: str,
    fetch_timeout: float,
    ttl_seconds: int,
) -> None:
    """Run one sequential sweep over every node known to the directory."""
    directory = DirectoryClient(directory_url)
    rmb = RmbClient(rmb_redis_url, default_timeout=int(fetch_timeout))
    resolver = TwinResolver(directory, create_twin_cache())
    fetcher = NodeDataFetcher.over_rmb(resolver, rmb, timeout=fetch_timeout)
    node_cache = NodeCache(redis.from_url(redis_url), fetcher, ttl_seconds=ttl_seconds)
    warmer = FleetWarmer(directory, node_cache, fetch_timeout=fetch_timeout)

    try:
        await warmer.sweep()
    finally:
        await node_cache.close()
        await rmb.close()


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Warm the Grid Proxy node cache for every node.")
    parser.add_argument("--redis-url", default=os.getenv("GRIDPROXY_REDIS_URL", "redis://localhost:6379/0"), help="Node cache Redis URL")
    parser.add_argument("--rmb-redis-url", default=os.getenv("GRIDPROXY_RMB_REDIS_URL", "redis://localhost:6379/0"), help="Message bus Redis URL")
    parser.add_argument("--directory-url", default=os.getenv("GRIDPROXY_DIRECTORY_URL", "https://explorer.devnet.grid.tf/graphql/"), help="Directory GraphQL URL")
    parser.add_argument("--fetch-timeout", type=float, default=float(os.getenv("GRIDPROXY_NODE_FETCH_TIMEOUT_SECONDS", 30)), help="Per-node fetch timeout in seconds")
    parser.add_argument("--ttl", type=int, default=int(os.getenv("GRIDPROXY_NODE_CACHE_TTL_SECONDS", 1800)), help="Cache entry TTL in seconds")
    parser.add_argument("--log-level", default=os.getenv("GRIDPROXY_LOG_LEVEL", "info"), help="Log level")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    configure_logging("gridproxy-warm", args.log_level)
    try:
        asyncio.run(
            warm(
                redis_url=args.redis_url,
                rmb_redis_url=args.rmb_redis_url,
                directory_url=args.directory_url,
                fetch_timeout=args.fetch_timeout,
                ttl_seconds=args.ttl,
            )
        )
    except KeyboardInterrupt:
        return 130
    except Exception as exc:  # pragma: no cover - CLI surface
        print(f"[node-cache-warm] failed: {exc}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
