"""
Prometheus Metrics Middleware

Provides request/response metrics for monitoring:
- HTTP request latency
- Request count by endpoint and status
- Active request gauge
- Storage hit/miss rates
- Data-quality counters (unmapped enum values, orphaned records)
- Message delivery failures

Usage:
    from app.middleware.metrics import PrometheusMiddleware, setup_metrics

    # In main.py
    app = FastAPI()
    setup_metrics(app)

Metrics Endpoint:
    GET /metrics - Prometheus-format metrics
"""

import time
import logging
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse
from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    CONTENT_TYPE_LATEST,
    generate_latest,
    REGISTRY,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import Match

logger = logging.getLogger(__name__)

# ==================== Prometheus Metrics ====================

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint", "status"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"]
)

ACTIVE_REQUESTS = Gauge(
    "http_requests_active",
    "Number of active HTTP requests",
    ["method", "endpoint"]
)

# Storage metrics
STORAGE_HITS = Counter(
    "storage_hits_total",
    "Total key-value storage hits",
    ["family"]  # messages, unread, legacy
)

STORAGE_MISSES = Counter(
    "storage_misses_total",
    "Total key-value storage misses",
    ["family"]
)

# Data-quality metrics
UNMAPPED_ENUM_VALUES = Counter(
    "unmapped_enum_values_total",
    "Enum inputs that matched no alias and took the fallback",
    ["field"]  # tier, job_status, application_status
)

ORPHANED_RECORDS = Gauge(
    "orphaned_records",
    "Records left unassociated by the last reconciliation",
    ["kind"]  # job, application
)

MESSAGE_SEND_FAILURES = Counter(
    "message_send_failures_total",
    "Messages the marketplace refused or failed to deliver"
)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """
    FastAPI middleware for Prometheus metrics collection.

    Records:
    - Request latency
    - Request count by status code
    - Active request count
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable
    ) -> Response:
        """Process request and record metrics."""
        endpoint = self._get_endpoint(request)
        method = request.method

        if endpoint == "/metrics":
            return await call_next(request)

        ACTIVE_REQUESTS.labels(method=method, endpoint=endpoint).inc()
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
            status = str(response.status_code)
        except Exception as e:
            status = "500"
            logger.error(f"Request error: {e}")
            raise
        finally:
            duration = time.perf_counter() - start_time

            REQUEST_LATENCY.labels(
                method=method,
                endpoint=endpoint,
                status=status
            ).observe(duration)

            REQUEST_COUNT.labels(
                method=method,
                endpoint=endpoint,
                status=status
            ).inc()

            ACTIVE_REQUESTS.labels(
                method=method,
                endpoint=endpoint
            ).dec()

        return response

    def _get_endpoint(self, request: Request) -> str:
        """
        Get normalized endpoint path from request.

        Uses route pattern (e.g., /messages/{employer_id}) instead of
        actual path to avoid high cardinality.
        """
        for route in request.app.routes:
            match, _ = route.matches(request.scope)
            if match == Match.FULL:
                return route.path

        return request.url.path


def metrics_endpoint(request: Request) -> Response:
    """Endpoint handler for Prometheus metrics scraping."""
    return PlainTextResponse(
        content=generate_latest(REGISTRY),
        media_type=CONTENT_TYPE_LATEST
    )


def setup_metrics(app: FastAPI) -> None:
    """
    Configure Prometheus metrics for FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_middleware(PrometheusMiddleware)
    app.add_route("/metrics", metrics_endpoint, methods=["GET"])

    logger.info("Prometheus metrics configured")


# ==================== Helper Functions ====================

def record_storage_hit(family: str) -> None:
    """Record a storage hit for the key family."""
    STORAGE_HITS.labels(family=family).inc()


def record_storage_miss(family: str) -> None:
    """Record a storage miss for the key family."""
    STORAGE_MISSES.labels(family=family).inc()


def record_unmapped_enum(field: str) -> None:
    """Record an enum input that fell back to the default token."""
    UNMAPPED_ENUM_VALUES.labels(field=field).inc()


def record_orphans(kind: str, count: int) -> None:
    """Publish the orphan count from the latest reconciliation."""
    ORPHANED_RECORDS.labels(kind=kind).set(count)


def record_send_failure() -> None:
    MESSAGE_SEND_FAILURES.inc()
