"""
Test helper functions and in-memory doubles for the Grid Proxy service.
"""

from typing import Any, Dict, List, Optional, Tuple

from redis.exceptions import ConnectionError as RedisConnectionError

from shared.errors import QueryError, RmbError


class FakeRedis:
    """In-memory stand-in for the subset of ``redis.asyncio.Redis`` in use.

    Values are stored as bytes like a client without ``decode_responses``.
    Expiry is manual: call ``expire_key`` to simulate a TTL running out.
    """

    def __init__(self):
        self.data: Dict[str, bytes] = {}
        self.ttls: Dict[str, Optional[int]] = {}
        self.set_calls: List[Tuple[str, bytes, Optional[int]]] = []
        self.fail_reads = False
        self.fail_writes = False
        self.closed = False

    async def get(self, key: str) -> Optional[bytes]:
        if self.fail_reads:
            raise RedisConnectionError("redis unavailable")
        return self.data.get(key)

    async def set(self, key: str, value: Any, ex: Optional[int] = None) -> bool:
        if self.fail_writes:
            raise RedisConnectionError("redis unavailable")
        payload = value if isinstance(value, bytes) else str(value).encode("utf-8")
        self.set_calls.append((key, payload, ex))
        self.data[key] = payload
        self.ttls[key] = ex
        return True

    async def exists(self, *keys: str) -> int:
        if self.fail_reads:
            raise RedisConnectionError("redis unavailable")
        return sum(1 for key in keys if key in self.data)

    async def ping(self) -> bool:
        if self.fail_reads:
            raise RedisConnectionError("redis unavailable")
        return True

    async def aclose(self) -> None:
        self.closed = True

    def expire_key(self, key: str) -> None:
        self.data.pop(key, None)
        self.ttls.pop(key, None)


class StubDirectoryClient:
    """Directory double answering from an in-memory node -> twin mapping."""

    def __init__(self, twins: Optional[Dict[str, int]] = None):
        self.twins: Dict[str, int] = dict(twins or {})
        self.twin_queries: List[str] = []
        self.fail = False
        self.nodes: List[Any] = []
        self.farms: Any = None

    async def get_node_twin_ids(self, node_id: str) -> List[int]:
        self.twin_queries.append(node_id)
        if self.fail:
            raise QueryError("failed to query explorer network")
        twin_id = self.twins.get(str(node_id))
        return [twin_id] if twin_id is not None else []

    async def list_node_ids(self) -> List[int]:
        if self.fail:
            raise QueryError("failed to query explorer network")
        return [int(node_id) for node_id in self.twins]

    async def list_nodes(self, params: Any) -> List[Any]:
        if self.fail:
            raise QueryError("failed to query explorer network")
        return list(self.nodes)

    async def list_farms(self, max_result: int, offset: int) -> Any:
        if self.fail:
            raise QueryError("failed to query explorer network")
        return self.farms


class StubNodeClient:
    """Node client double returning canned data; any call can be made to fail."""

    def __init__(
        self,
        twin_id: int,
        counters: Optional[Tuple[Dict[str, Any], Dict[str, Any]]] = None,
        dmi: Any = None,
        hypervisor: Any = None,
        fail_on: Optional[str] = None,
    ):
        self.twin_id = twin_id
        self._counters = counters or NodeDataFactory.counters()
        self._dmi = dmi if dmi is not None else NodeDataFactory.dmi()
        self._hypervisor = hypervisor if hypervisor is not None else NodeDataFactory.hypervisor()
        self.fail_on = fail_on
        self.calls: List[str] = []

    def _call(self, name: str, value: Any) -> Any:
        self.calls.append(name)
        if self.fail_on == name:
            raise RmbError(f"zos.{name}", "node unreachable")
        return value

    async def counters(self) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        return self._call("counters", self._counters)

    async def system_dmi(self) -> Any:
        return self._call("system_dmi", self._dmi)

    async def system_hypervisor(self) -> Any:
        return self._call("system_hypervisor", self._hypervisor)


class NodeDataFactory:
    """Factory for realistic node payloads."""

    @staticmethod
    def counters() -> Tuple[Dict[str, Any], Dict[str, Any]]:
        total = {"cru": 8, "sru": 512110190592, "hru": 0, "mru": 33617903616, "ipv4u": 0}
        used = {"cru": 2, "sru": 107374182400, "hru": 0, "mru": 4294967296, "ipv4u": 0}
        return total, used

    @staticmethod
    def dmi() -> Dict[str, Any]:
        return {
            "tooling": {"aggregator": "0+git", "decoder": "dmidecode 3.3"},
            "sections": [
                {
                    "handleline": "Handle 0x0001, DMI type 1, 27 bytes",
                    "typestr": "System Information",
                    "typenum": 1,
                    "subsections": [
                        {
                            "title": "System Information",
                            "properties": {
                                "Manufacturer": {"value": "Supermicro"},
                                "Product Name": {"value": "X10SRL-F"},
                            },
                        }
                    ],
                }
            ],
        }

    @staticmethod
    def hypervisor() -> str:
        return "kvm"

    @staticmethod
    def node_records() -> List[Dict[str, Any]]:
        return [
            {
                "version": 1,
                "id": "node-1",
                "nodeId": 1,
                "farmId": 1,
                "twinId": 11,
                "country": "Belgium",
                "gridVersion": 1,
                "city": "Lochristi",
                "uptime": 3600,
                "created": 1634000000,
                "farmingPolicyId": 1,
                "updatedAt": "2021-10-12T10:00:00.000Z",
                "cru": "8",
                "mru": "33617903616",
                "sru": "512110190592",
                "hru": "0",
                "publicConfig": None,
            },
            {
                "version": 1,
                "id": "node-2",
                "nodeId": 2,
                "farmId": 1,
                "twinId": 12,
                "country": "Egypt",
                "gridVersion": 1,
                "city": "Cairo",
                "uptime": 60,
                "created": 1634000100,
                "farmingPolicyId": 1,
                "updatedAt": "2021-10-12T10:05:00.000Z",
                "cru": "4",
                "mru": "8589934592",
                "sru": "256055095296",
                "hru": "0",
                "publicConfig": {
                    "domain": "gw2.grid.tf",
                    "gw4": "185.69.166.1",
                    "gw6": None,
                    "ipv4": "185.69.166.20/24",
                    "ipv6": None,
                },
            },
        ]
