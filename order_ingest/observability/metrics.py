"""
Prometheus metrics for order-ingest

Counters and histograms describing fetch, validation, classification
and flush activity per platform.
"""
import os
from prometheus_client import (
    Counter,
    Histogram,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST,
)
from typing import Optional


# Global registry for metrics
REGISTRY = CollectorRegistry()


# =======================
# FETCH METRICS
# =======================

pages_fetched_total = Counter(
    name="ingest_pages_fetched_total",
    documentation="Total number of page fetches issued to platform APIs",
    labelnames=["platform", "status"],  # status: success, failure, cancelled
    registry=REGISTRY,
)

fetch_retries_total = Counter(
    name="ingest_fetch_retries_total",
    documentation="Total number of retried page fetch attempts",
    labelnames=["platform", "status"],  # status: retry, exhausted
    registry=REGISTRY,
)

# =======================
# RECORD METRICS
# =======================

records_total = Counter(
    name="ingest_records_total",
    documentation="Total number of order records seen by the pipeline",
    labelnames=["platform", "status"],  # status: valid, filtered
    registry=REGISTRY,
)

orders_classified_total = Counter(
    name="ingest_orders_classified_total",
    documentation="Orders per computed lifecycle state",
    labelnames=["platform", "state"],
    registry=REGISTRY,
)

# =======================
# WAREHOUSE METRICS
# =======================

flushes_total = Counter(
    name="ingest_flushes_total",
    documentation="Total number of buffer flushes",
    labelnames=["platform", "status"],  # status: success, failure
    registry=REGISTRY,
)

rows_upserted_total = Counter(
    name="ingest_rows_upserted_total",
    documentation="Rows submitted to bulk upsert per table",
    labelnames=["platform", "table"],
    registry=REGISTRY,
)

flush_duration_seconds = Histogram(
    name="ingest_flush_duration_seconds",
    documentation="Time spent mapping and writing one buffer in seconds",
    labelnames=["platform"],
    buckets=[0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
    registry=REGISTRY,
)

platform_run_duration_seconds = Histogram(
    name="ingest_platform_run_duration_seconds",
    documentation="Wall time of one platform pipeline run in seconds",
    labelnames=["platform"],
    buckets=[1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0],
    registry=REGISTRY,
)

# =======================
# ERROR METRICS
# =======================

errors_total = Counter(
    name="ingest_errors_total",
    documentation="Total number of errors",
    labelnames=["platform", "error_type", "component"],
    registry=REGISTRY,
)


# =======================
# HELPER FUNCTIONS
# =======================

def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics in text format

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    """Content type for the Prometheus text format"""
    return CONTENT_TYPE_LATEST


def start_metrics_server(port: Optional[int] = None) -> None:
    """
    Start HTTP server for Prometheus metrics

    Args:
        port: Port to listen on (defaults to env var METRICS_PORT or 8000)
    """
    from prometheus_client import start_http_server

    metrics_port = port or int(os.getenv("METRICS_PORT", "8000"))
    start_http_server(metrics_port, registry=REGISTRY)


class track_duration:
    """
    Context manager for tracking operation duration

    Usage:
        with track_duration(flush_duration_seconds, platform="tiktok"):
            # do work
            pass
    """

    def __init__(self, histogram: Histogram, **labels):
        self.histogram = histogram
        self.labels = labels
        self.timer = None

    def __enter__(self):
        self.timer = self.histogram.labels(**self.labels).time()
        self.timer.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.timer.__exit__(exc_type, exc_val, exc_tb)
        return False


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    """
    Increment a counter metric

    Args:
        counter: Prometheus Counter metric
        value: Amount to increment (default: 1.0)
        **labels: Label values for the metric
    """
    if value:
        counter.labels(**labels).inc(value)


def record_error(platform: str, error_type: str, component: str) -> None:
    """Count one error for a platform component"""
    errors_total.labels(platform=platform, error_type=error_type, component=component).inc()
