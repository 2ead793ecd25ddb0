"""
Shared error handling for the Grid Proxy service.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel

from opentelemetry import trace


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class GridProxyException(Exception):
    """Base exception for the Grid Proxy service."""

    status_code = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        trace_id = None
        current_span = trace.get_current_span()
        if current_span and current_span.is_recording():
            span_context = current_span.get_span_context()
            if span_context.trace_id != 0:
                trace_id = f"{span_context.trace_id:032x}"

        return ErrorResponse(
            trace_id=trace_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class NodeNotFoundError(GridProxyException):
    """The directory has no record of the node."""

    status_code = 404

    def __init__(self, node_id: str, details: Optional[Dict[str, Any]] = None):
        self.node_id = node_id
        super().__init__("NODE_NOT_FOUND", f"node {node_id} not found", details)


class BadGatewayError(GridProxyException):
    """Remote node unreachable, timed out or returned malformed data."""

    status_code = 502

    def __init__(self, message: str = "Bad gateway", details: Optional[Dict[str, Any]] = None):
        super().__init__("BAD_GATEWAY", message, details)


class QueryError(GridProxyException):
    """Directory service transport or decoding failure."""

    status_code = 502

    def __init__(self, message: str = "Directory query failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("QUERY_ERROR", message, details)


class FetchError(GridProxyException):
    """A node data fetch aborted part way; wraps the underlying cause."""

    status_code = 502

    def __init__(self, node_id: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.node_id = node_id
        super().__init__("FETCH_ERROR", f"node {node_id}: {message}", details)


class SerializationError(GridProxyException):
    """Cached payload could not be encoded or decoded."""

    status_code = 500

    def __init__(self, message: str = "Serialization failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("SERIALIZATION_ERROR", message, details)


class RmbError(GridProxyException):
    """Message bus call failed or the node replied with an error."""

    status_code = 502

    def __init__(self, command: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.command = command
        super().__init__("RMB_ERROR", f"{command}: {message}", details)
