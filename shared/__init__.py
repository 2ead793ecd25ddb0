"""
Shared utilities for the Grid Proxy service.

This package aggregates common building blocks consumed by the service:

- config: Service configuration via pydantic-settings
- logging: Structured logging with trace correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- base_service: FastAPI service shell

Any cross-cutting logic should live here to avoid import cycles across
service packages. Do not import from service_* packages into shared/.
"""
