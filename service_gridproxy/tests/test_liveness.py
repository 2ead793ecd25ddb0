"""
Unit tests for cache presence liveness.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from service_gridproxy.app.caching.fleet_warmer import FleetWarmer
from service_gridproxy.app.caching.liveness import CachePresenceLiveness
from service_gridproxy.app.caching.node_cache import NodeCache
from service_gridproxy.app.models import CapacityResult, NodeInfo, NodeRecord, NodeState
from shared.test_helpers import FakeRedis, NodeDataFactory, StubDirectoryClient


class TestCachePresenceLiveness:
    """Test cases for CachePresenceLiveness."""

    @pytest.fixture
    def store(self):
        return FakeRedis()

    @pytest.fixture
    def node_cache(self, store):
        return NodeCache(store, MagicMock())

    @pytest.fixture
    def liveness(self, node_cache):
        return CachePresenceLiveness(node_cache)

    @pytest.mark.asyncio
    async def test_never_fetched_node_is_down(self, liveness):
        """Test nodes without a cache entry are down."""
        assert await liveness.status("1") == NodeState.DOWN

    @pytest.mark.asyncio
    async def test_cached_node_is_up(self, liveness, store):
        """Test nodes with a cache entry are up."""
        store.data["GRID3NODE:1"] = b"{}"

        assert await liveness.status("1") == NodeState.UP

    @pytest.mark.asyncio
    async def test_expired_node_is_down(self, liveness, store):
        """Test a node reads down once its entry expires."""
        store.data["GRID3NODE:1"] = b"{}"
        store.expire_key("GRID3NODE:1")

        assert await liveness.status("1") == NodeState.DOWN

    @pytest.mark.asyncio
    async def test_store_failure_is_down(self, liveness, store):
        """Test lookup failures are answered conservatively."""
        store.data["GRID3NODE:1"] = b"{}"
        store.fail_reads = True

        assert await liveness.status("1") == NodeState.DOWN

    @pytest.mark.asyncio
    async def test_up_after_warm(self, store):
        """Test a node is up right after a successful warm."""
        fetcher = MagicMock()
        total, used = NodeDataFactory.counters()
        fetcher.fetch = AsyncMock(return_value=NodeInfo(
            capacity=CapacityResult(total=total, used=used),
            dmi=NodeDataFactory.dmi(),
            hypervisor=NodeDataFactory.hypervisor(),
        ))
        node_cache = NodeCache(store, fetcher)
        warmer = FleetWarmer(StubDirectoryClient({"7": 70}), node_cache)
        liveness = CachePresenceLiveness(node_cache)

        await warmer.sweep()

        assert await liveness.status("7") == NodeState.UP
        assert await liveness.status("8") == NodeState.DOWN

    @pytest.mark.asyncio
    async def test_annotate_sets_state(self, liveness, store):
        """Test list records are annotated in place."""
        records = [NodeRecord.model_validate(raw) for raw in NodeDataFactory.node_records()]
        store.data["GRID3NODE:2"] = b"{}"

        annotated = await liveness.annotate(records)

        assert annotated is records
        assert [record.state for record in records] == [NodeState.DOWN, NodeState.UP]
