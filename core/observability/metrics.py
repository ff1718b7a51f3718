"""
Metrics Collection for the compute service

Collects and exposes metrics for:
- Requests per operation (started, succeeded, failed by status)
- Ingestion volume (files, keys, bytes, advisory cache failures)
- Processing times per operation (average, p95)

Metrics are in-memory and reset on process restart.
"""

import statistics
import time
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Dict, List, Optional


# =============================================================================
# Metric Data Classes
# =============================================================================

@dataclass
class OperationMetrics:
    """Request counts for one operation."""
    requests: int = 0
    succeeded: int = 0
    failed: int = 0
    failed_by_status: Dict[int, int] = field(default_factory=lambda: defaultdict(int))


@dataclass
class IngestionMetrics:
    """Volume written by ingestion."""
    files: int = 0
    keys: int = 0
    bytes: int = 0
    cache_failures: int = 0
    rejected_batches: int = 0


@dataclass
class TimingMetrics:
    """Processing time metrics."""
    max_samples: int = 1000
    by_operation: Dict[str, List[float]] = field(default_factory=lambda: defaultdict(list))

    def add_sample(self, operation: str, duration_ms: float):
        """Add a timing sample."""
        samples = self.by_operation[operation]
        samples.append(duration_ms)
        if len(samples) > self.max_samples:
            self.by_operation[operation] = samples[-self.max_samples:]

    def get_average(self, operation: str) -> float:
        samples = self.by_operation.get(operation, [])
        return statistics.mean(samples) if samples else 0.0

    def get_p95(self, operation: str) -> float:
        """Get 95th percentile processing time."""
        samples = self.by_operation.get(operation, [])
        if not samples:
            return 0.0
        sorted_samples = sorted(samples)
        idx = int(len(sorted_samples) * 0.95)
        return sorted_samples[min(idx, len(sorted_samples) - 1)]


# =============================================================================
# Metrics Collector (Singleton)
# =============================================================================

class MetricsCollector:
    """
    Thread-safe metrics collector.

    Usage:
        metrics = MetricsCollector.instance()
        metrics.record_request("upload")
        metrics.record_success("upload", duration_ms=42.0)
    """

    _instance: Optional["MetricsCollector"] = None
    _lock = Lock()

    def __init__(self):
        self.operations: Dict[str, OperationMetrics] = defaultdict(OperationMetrics)
        self.ingestion = IngestionMetrics()
        self.timings = TimingMetrics()
        self._lock = Lock()

    @classmethod
    def instance(cls) -> "MetricsCollector":
        """Get singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def record_request(self, operation: str):
        with self._lock:
            self.operations[operation].requests += 1

    def record_success(self, operation: str, duration_ms: Optional[float] = None):
        with self._lock:
            self.operations[operation].succeeded += 1
            if duration_ms is not None:
                self.timings.add_sample(operation, duration_ms)

    def record_failure(self, operation: str, status_code: int):
        with self._lock:
            op = self.operations[operation]
            op.failed += 1
            op.failed_by_status[status_code] += 1

    def record_file_ingested(self, keys: int, size_bytes: int):
        with self._lock:
            self.ingestion.files += 1
            self.ingestion.keys += keys
            self.ingestion.bytes += size_bytes

    def record_cache_failure(self):
        with self._lock:
            self.ingestion.cache_failures += 1

    def record_rejected_batch(self):
        with self._lock:
            self.ingestion.rejected_batches += 1

    def get_timing_stats(self, operation: str) -> Dict[str, float]:
        with self._lock:
            return {
                "average_ms": round(self.timings.get_average(operation), 2),
                "p95_ms": round(self.timings.get_p95(operation), 2),
                "samples": len(self.timings.by_operation.get(operation, [])),
            }

    def get_summary(self) -> Dict[str, Any]:
        """Snapshot of all metrics as plain JSON-serializable data."""
        with self._lock:
            operations = {
                name: {
                    "requests": op.requests,
                    "succeeded": op.succeeded,
                    "failed": op.failed,
                    "failed_by_status": {str(k): v for k, v in op.failed_by_status.items()},
                    "average_ms": round(self.timings.get_average(name), 2),
                    "p95_ms": round(self.timings.get_p95(name), 2),
                }
                for name, op in self.operations.items()
            }
            return {
                "operations": operations,
                "ingestion": {
                    "files": self.ingestion.files,
                    "keys": self.ingestion.keys,
                    "bytes": self.ingestion.bytes,
                    "cache_failures": self.ingestion.cache_failures,
                    "rejected_batches": self.ingestion.rejected_batches,
                },
            }


def get_metrics() -> MetricsCollector:
    """Get the global metrics collector."""
    return MetricsCollector.instance()


@contextmanager
def track_operation(operation: str, metrics: Optional[MetricsCollector] = None):
    """
    Record request, outcome and duration of the wrapped block.

    Usage:
        with track_operation("hash"):
            hashes = batch_fingerprint(values)

    Exceptions are re-raised after being counted; the status is taken from
    a ``status_code`` attribute when present, else 500.
    """
    mc = metrics or get_metrics()
    mc.record_request(operation)
    started = time.perf_counter()
    try:
        yield mc
    except Exception as e:
        mc.record_failure(operation, getattr(e, "status_code", 500))
        raise
    mc.record_success(operation, (time.perf_counter() - started) * 1000)
