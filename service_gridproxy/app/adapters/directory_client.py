"""
Directory (explorer GraphQL) client for Grid Proxy.
"""

from typing import Any, Dict, List, Optional

import httpx

from shared.logging import get_logger
from shared.errors import NodeNotFoundError, QueryError
from ..models import FarmListing, NodeListQuery, NodeRecord


NODE_TWIN_QUERY = """
query NodeTwin($nodeId: Int!) {
    nodes(where: {nodeId_eq: $nodeId}) {
        twinId
    }
}
""".strip()

NODE_IDS_QUERY = """
query NodeIds {
    nodes {
        nodeId
    }
}
""".strip()

NODES_QUERY = """
query Nodes($limit: Int!, $offset: Int!, $where: NodeWhereInput) {
    nodes(limit: $limit, offset: $offset, where: $where) {
        version
        id
        nodeId
        farmId
        twinId
        country
        gridVersion
        city
        uptime
        created
        farmingPolicyId
        updatedAt
        cru
        mru
        sru
        hru
        publicConfig {
            domain
            gw4
            gw6
            ipv4
            ipv6
        }
    }
}
""".strip()

FARMS_QUERY = """
query Farms($limit: Int!, $offset: Int!) {
    farms(limit: $limit, offset: $offset) {
        name
        farmId
        twinId
        version
        pricingPolicyId
        stellarAddress
    }
    publicIps {
        id
        ip
        farmId
        contractId
        gateway
    }
}
""".strip()


class DirectoryClient:
    """Client for the GraphQL directory service listing farms and nodes."""

    def __init__(self, directory_url: str, timeout: float = 10.0):
        self.directory_url = directory_url
        self.timeout = timeout
        self.logger = get_logger("gridproxy.directory_client")

    async def query(self, query_string: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Execute a GraphQL query and return its ``data`` object.

        Raises QueryError for transport failures, non-200 responses, GraphQL
        errors and undecodable bodies. No retry is attempted.
        """
        payload: Dict[str, Any] = {"query": query_string}
        if variables:
            payload["variables"] = variables

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.directory_url, json=payload)
        except httpx.HTTPError as exc:
            self.logger.error("Directory request failed", url=self.directory_url, error=str(exc))
            raise QueryError(
                "failed to query explorer network",
                details={"error": str(exc)}
            ) from exc

        if response.status_code != 200:
            self.logger.error(
                "Directory returned unexpected status",
                url=self.directory_url,
                status_code=response.status_code,
                response=response.text
            )
            raise QueryError(
                f"Unexpected status {response.status_code}",
                details={"status_code": response.status_code, "body": response.text}
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise QueryError("invalid directory response", details={"error": str(exc)}) from exc

        if not isinstance(body, dict):
            raise QueryError("invalid directory response", details={"body": body})
        if body.get("errors"):
            raise QueryError("directory query returned errors", details={"errors": body["errors"]})

        return body.get("data") or {}

    async def get_node_twin_ids(self, node_id: str) -> List[int]:
        """Return the twin ids of the directory records matching ``node_id``."""
        try:
            node_id_value = int(node_id)
        except (TypeError, ValueError):
            # Non-numeric identifiers can never match a directory record.
            raise NodeNotFoundError(str(node_id), details={"reason": "invalid node id"})

        data = await self.query(NODE_TWIN_QUERY, {"nodeId": node_id_value})
        try:
            return [int(record["twinId"]) for record in data.get("nodes") or []]
        except (KeyError, TypeError, ValueError) as exc:
            raise QueryError("malformed node record", details={"error": str(exc)}) from exc

    async def list_node_ids(self) -> List[int]:
        """Return every node id known to the directory."""
        data = await self.query(NODE_IDS_QUERY)
        try:
            return [int(record["nodeId"]) for record in data.get("nodes") or []]
        except (KeyError, TypeError, ValueError) as exc:
            raise QueryError("malformed node record", details={"error": str(exc)}) from exc

    async def list_nodes(self, params: NodeListQuery) -> List[NodeRecord]:
        """Return a page of node records."""
        where: Dict[str, Any] = {}
        if params.farm_id is not None:
            where["farmId_eq"] = params.farm_id
        if params.gateways_only:
            where["publicConfig"] = {"ipv4_contains": "."}

        data = await self.query(
            NODES_QUERY,
            {"limit": params.max_result, "offset": params.offset, "where": where},
        )
        try:
            return [NodeRecord.model_validate(record) for record in data.get("nodes") or []]
        except ValueError as exc:
            raise QueryError("malformed node record", details={"error": str(exc)}) from exc

    async def list_farms(self, max_result: int, offset: int) -> FarmListing:
        """Return a page of farms together with the known public IPs."""
        data = await self.query(FARMS_QUERY, {"limit": max_result, "offset": offset})
        return FarmListing(
            farms=data.get("farms") or [],
            public_ips=data.get("publicIps") or [],
        )
