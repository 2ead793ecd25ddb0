"""
Data models for the Grid Proxy service.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class NodeState(str, Enum):
    """Node liveness as inferred from node cache presence."""
    UP = "up"
    DOWN = "down"


class CapacityResult(BaseModel):
    """Total and used resource counters reported by a node."""

    total: Dict[str, Any] = Field(default_factory=dict)
    used: Dict[str, Any] = Field(default_factory=dict)


class NodeInfo(BaseModel):
    """Live hardware and capacity snapshot of a node.

    Instances are only ever built once every sub-fetch has succeeded, so a
    NodeInfo is always complete.
    """

    capacity: CapacityResult
    dmi: Any
    hypervisor: Any


class PublicConfig(BaseModel):
    """Public network configuration of a gateway node."""

    domain: Optional[str] = None
    gw4: Optional[str] = None
    gw6: Optional[str] = None
    ipv4: Optional[str] = None
    ipv6: Optional[str] = None


class NodeRecord(BaseModel):
    """Directory row for a node, optionally annotated with its liveness."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    version: Optional[int] = None
    id: Optional[str] = None
    node_id: int = Field(alias="nodeId")
    farm_id: Optional[int] = Field(default=None, alias="farmId")
    twin_id: Optional[int] = Field(default=None, alias="twinId")
    country: Optional[str] = None
    grid_version: Optional[int] = Field(default=None, alias="gridVersion")
    city: Optional[str] = None
    uptime: Optional[Any] = None
    created: Optional[Any] = None
    farming_policy_id: Optional[int] = Field(default=None, alias="farmingPolicyId")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")
    cru: Optional[Any] = None
    mru: Optional[Any] = None
    sru: Optional[Any] = None
    hru: Optional[Any] = None
    public_config: Optional[PublicConfig] = Field(default=None, alias="publicConfig")
    state: Optional[NodeState] = None


class NodeListQuery(BaseModel):
    """Pagination and filtering for node listings."""

    max_result: int = 50
    page: int = 1
    farm_id: Optional[int] = None
    gateways_only: bool = False

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.max_result


class FarmListing(BaseModel):
    """Farms page together with the public IPs known to the directory."""

    model_config = ConfigDict(populate_by_name=True)

    farms: List[Dict[str, Any]] = Field(default_factory=list)
    public_ips: List[Dict[str, Any]] = Field(default_factory=list, alias="publicIps")
