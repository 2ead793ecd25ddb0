"""
Unit tests for the node data fetcher.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock

from service_gridproxy.app.domain.node_fetcher import NodeDataFetcher
from service_gridproxy.app.models import NodeInfo
from shared.errors import FetchError, NodeNotFoundError, QueryError
from shared.test_helpers import NodeDataFactory, StubNodeClient


class TestNodeDataFetcher:
    """Test cases for NodeDataFetcher."""

    @pytest.fixture
    def resolver(self):
        resolver = MagicMock()
        resolver.resolve = AsyncMock(return_value=11)
        return resolver

    @pytest.fixture
    def clients(self):
        """Node clients handed out by the factory, keyed by twin id."""
        return {}

    @pytest.fixture
    def make_fetcher(self, resolver, clients):
        def _make(fail_on=None, timeout=30.0):
            def factory(twin_id):
                client = StubNodeClient(twin_id, fail_on=fail_on)
                clients[twin_id] = client
                return client
            return NodeDataFetcher(resolver, factory, timeout=timeout)
        return _make

    @pytest.mark.asyncio
    async def test_fetch_success(self, make_fetcher, resolver, clients):
        """Test a full fetch returns complete node info."""
        fetcher = make_fetcher()

        info = await fetcher.fetch("1")

        total, used = NodeDataFactory.counters()
        assert isinstance(info, NodeInfo)
        assert info.capacity.total == total
        assert info.capacity.used == used
        assert info.dmi == NodeDataFactory.dmi()
        assert info.hypervisor == "kvm"
        resolver.resolve.assert_awaited_once_with("1")
        assert clients[11].calls == ["counters", "system_dmi", "system_hypervisor"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("fail_on", ["counters", "system_dmi", "system_hypervisor"])
    async def test_any_step_failure_aborts_fetch(self, make_fetcher, clients, fail_on):
        """Test a failing sub-call aborts the whole fetch with FetchError."""
        fetcher = make_fetcher(fail_on=fail_on)

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch("1")

        assert exc_info.value.node_id == "1"
        assert clients[11].calls[-1] == fail_on

    @pytest.mark.asyncio
    async def test_dmi_failure_skips_hypervisor(self, make_fetcher, clients):
        """Test calls stop at the first failure."""
        fetcher = make_fetcher(fail_on="system_dmi")

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch("1")

        assert clients[11].calls == ["counters", "system_dmi"]
        assert "DMI" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_not_found_passes_through(self, make_fetcher, resolver, clients):
        """Test twin resolution not-found is not wrapped."""
        resolver.resolve.side_effect = NodeNotFoundError("99")
        fetcher = make_fetcher()

        with pytest.raises(NodeNotFoundError):
            await fetcher.fetch("99")

        assert clients == {}

    @pytest.mark.asyncio
    async def test_resolver_query_error_becomes_fetch_error(self, make_fetcher, resolver):
        """Test directory failures during resolution abort the fetch."""
        resolver.resolve.side_effect = QueryError("failed to query explorer network")
        fetcher = make_fetcher()

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch("1")

        assert isinstance(exc_info.value.__cause__, QueryError)

    @pytest.mark.asyncio
    async def test_session_timeout(self, resolver):
        """Test the session is bounded by the fetch timeout."""
        client = StubNodeClient(11)

        async def slow_dmi():
            await asyncio.sleep(5)

        client.system_dmi = slow_dmi
        fetcher = NodeDataFetcher(resolver, lambda twin_id: client, timeout=0.05)

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch("1")

        assert "timed out" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_records_fetch_metrics(self, resolver):
        """Test fetch durations are observed by outcome."""
        metrics = MagicMock()
        fetcher = NodeDataFetcher(resolver, lambda twin_id: StubNodeClient(twin_id), metrics=metrics)

        await fetcher.fetch("1")

        metrics.observe_histogram.assert_called_once()
        args, kwargs = metrics.observe_histogram.call_args
        assert args[0] == "node_fetch_duration_seconds"
        assert kwargs == {"result": "ok"}
