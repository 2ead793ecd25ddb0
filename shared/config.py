"""
Shared configuration management for the Grid Proxy service.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="GRIDPROXY_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # External services
    redis_url: str = Field(default="redis://localhost:6379/0")
    rmb_redis_url: str = Field(default="redis://localhost:6379/0")
    directory_url: str = Field(default="https://explorer.devnet.grid.tf/graphql/")
    directory_timeout_seconds: float = Field(default=10.0)

    # Node info cache (durable store)
    node_cache_ttl_seconds: int = Field(default=30 * 60)
    node_fetch_timeout_seconds: float = Field(default=30.0)

    # Twin id cache (in-memory)
    twin_cache_ttl_seconds: int = Field(default=10 * 60)
    twin_cache_purge_seconds: int = Field(default=15 * 60)
    twin_cache_max_entries: int = Field(default=10000)

    # Fleet warming
    fleet_warm_interval_seconds: int = Field(default=30 * 60)
    # Turns the whole periodic warmer on or off
    fleet_warm_enabled: bool = Field(default=True)

    # Listing
    default_max_result: int = Field(default=50)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
