"""
Middleware Package

Contains FastAPI middleware for:
- Prometheus metrics collection
- Data-quality and storage counters
"""

from app.middleware.metrics import (
    PrometheusMiddleware,
    setup_metrics,
    REQUEST_LATENCY,
    REQUEST_COUNT,
    ACTIVE_REQUESTS,
    STORAGE_HITS,
    STORAGE_MISSES,
    UNMAPPED_ENUM_VALUES,
    ORPHANED_RECORDS,
    MESSAGE_SEND_FAILURES,
)

__all__ = [
    "PrometheusMiddleware",
    "setup_metrics",
    "REQUEST_LATENCY",
    "REQUEST_COUNT",
    "ACTIVE_REQUESTS",
    "STORAGE_HITS",
    "STORAGE_MISSES",
    "UNMAPPED_ENUM_VALUES",
    "ORPHANED_RECORDS",
    "MESSAGE_SEND_FAILURES",
]
