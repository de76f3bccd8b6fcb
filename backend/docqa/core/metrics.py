"""Prometheus metrics instrumentation."""

from __future__ import annotations

from fastapi import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

REQUEST_COUNT = Counter(
    "docqa_requests_total",
    "Total HTTP requests",
    labelnames=("endpoint", "method", "status"),
    registry=REGISTRY,
)

REQUEST_LATENCY = Histogram(
    "docqa_request_latency_seconds",
    "Latency of HTTP requests",
    labelnames=("endpoint", "method"),
    registry=REGISTRY,
)

EMBEDDING_CALLS = Counter(
    "docqa_embedding_calls_total",
    "Embedding provider calls by outcome",
    labelnames=("mode", "outcome"),
    registry=REGISTRY,
)

EMBEDDING_RETRIES = Counter(
    "docqa_embedding_retries_total",
    "Backoff sleeps taken after transient embedding failures",
    registry=REGISTRY,
)

INGEST_DURATION = Histogram(
    "docqa_ingest_duration_seconds",
    "Document ingest duration",
    registry=REGISTRY,
)

RATE_LIMIT_DENIALS = Counter(
    "docqa_rate_limit_denials_total",
    "Requests rejected by the rate governor",
    labelnames=("policy",),
    registry=REGISTRY,
)


def metrics_response() -> Response:
    """Return Prometheus metrics as an HTTP response."""
    payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REGISTRY",
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "EMBEDDING_CALLS",
    "EMBEDDING_RETRIES",
    "INGEST_DURATION",
    "RATE_LIMIT_DENIALS",
    "metrics_response",
]
