"""
Structured logging for the Grid Proxy service.

Every event is rendered as one JSON object carrying an ISO-8601 UTC
``timestamp``, the log level, the emitting component and, when available,
the request id, the node being served and the active OpenTelemetry trace.
"""

import sys
import structlog
import logging
import uuid
from typing import Any, Dict, List, Optional
from contextvars import ContextVar

from opentelemetry import trace

# Correlation context for the request being served
request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
node_id_var: ContextVar[Optional[str]] = ContextVar('node_id', default=None)


class ServiceContext:
    """Tags events with the service name and the component that logged them.

    Logger names look like ``gridproxy.node_cache``; the part after the first
    dot is the component.
    """

    def __init__(self, service_name: str):
        self.service_name = service_name

    def __call__(self, logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        event_dict.setdefault("service", self.service_name)
        logger_name = event_dict.get("logger") or ""
        if "." in logger_name:
            event_dict.setdefault("component", logger_name.split(".", 1)[1])
        return event_dict


def add_trace_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Attach the active trace and span ids."""
    current_span = trace.get_current_span()
    if current_span and current_span.is_recording():
        span_context = current_span.get_span_context()
        if span_context.trace_id != 0:
            event_dict["trace_id"] = f"{span_context.trace_id:032x}"
        if span_context.span_id != 0:
            event_dict["span_id"] = f"{span_context.span_id:016x}"

    return event_dict


def add_correlation_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Attach the request id and the node being served, if set."""
    request_id = request_id_var.get()
    if request_id:
        event_dict["request_id"] = request_id

    node_id = node_id_var.get()
    if node_id and "node_id" not in event_dict:
        event_dict["node_id"] = node_id

    return event_dict


def build_processors(service_name: str) -> List[Any]:
    """Event enrichment chain shared by every logger, renderer excluded."""
    return [
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        ServiceContext(service_name),
        add_trace_context,
        add_correlation_context,
    ]


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Configure structured JSON logging for a service."""

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            *build_processors(service_name),
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )


def set_request_id(request_id: Optional[str] = None) -> str:
    """Set request ID in context, generating one when the caller sent none."""
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def set_node_context(node_id: Optional[str] = None):
    """Bind the node being served to subsequent log events."""
    node_id_var.set(node_id)


def clear_context():
    request_id_var.set(None)
    node_id_var.set(None)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
