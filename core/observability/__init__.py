"""
Observability Module for the compute service

Provides:
- Structured logging with correlation IDs
- Metrics collection (requests, ingestion volume, processing times)
"""

from core.observability.metrics import (
    MetricsCollector,
    get_metrics,
    track_operation,
)

from core.observability.logging import (
    get_logger,
    configure_logging,
    CorrelationContext,
    with_correlation,
)

__all__ = [
    # Metrics
    "MetricsCollector",
    "get_metrics",
    "track_operation",
    # Logging
    "get_logger",
    "configure_logging",
    "CorrelationContext",
    "with_correlation",
]
