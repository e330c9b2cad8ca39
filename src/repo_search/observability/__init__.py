"""Observability module for OpenTelemetry-aligned tracing, metrics, and logging."""

from repo_search.observability.context import get_trace_context, set_trace_context, trace_context
from repo_search.observability.logging import JsonFormatter, configure_logging
from repo_search.observability.metrics import (
    INDEX_DOCUMENTS,
    SEARCH_ERRORS,
    SEARCH_LATENCY,
    SEARCH_QUERIES,
    get_metrics,
    get_metrics_content_type,
    init_metrics,
    track_latency,
)
from repo_search.observability.tracing import create_span, get_tracer, init_tracing


__all__ = [
    "INDEX_DOCUMENTS",
    "SEARCH_ERRORS",
    "SEARCH_LATENCY",
    "SEARCH_QUERIES",
    "JsonFormatter",
    "configure_logging",
    "create_span",
    "get_metrics",
    "get_metrics_content_type",
    "get_trace_context",
    "get_tracer",
    "init_metrics",
    "init_tracing",
    "set_trace_context",
    "trace_context",
    "track_latency",
]
