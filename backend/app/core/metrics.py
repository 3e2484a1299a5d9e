"""Prometheus metrics for the HTTP layer and the ingestion pipeline."""

import os

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
    multiprocess,
)

REGISTRY = CollectorRegistry()

# Running under gunicorn with several workers
if "PROMETHEUS_MULTIPROC_DIR" in os.environ:
    multiprocess.MultiProcessCollector(REGISTRY)


# ============================================
# Application Info
# ============================================
APP_INFO = Info(
    "community_market_app",
    "Application information",
    registry=REGISTRY,
)


# ============================================
# HTTP Request Metrics
# ============================================
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0, 120.0, 600.0],
    registry=REGISTRY,
)

HTTP_REQUESTS_IN_PROGRESS = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests currently in progress",
    ["method", "endpoint"],
    registry=REGISTRY,
)


# ============================================
# Ingestion Pipeline Metrics
# ============================================
INGESTION_RUNS_TOTAL = Counter(
    "video_ingestion_runs_total",
    "Ingestion runs by terminal state and failing stage",
    ["state", "stage"],
    registry=REGISTRY,
)

INGESTION_STAGE_DURATION_SECONDS = Histogram(
    "video_ingestion_stage_duration_seconds",
    "Wall time spent in each ingestion stage",
    ["stage"],
    buckets=[0.05, 0.25, 1.0, 5.0, 15.0, 60.0, 180.0, 600.0, 1800.0],
    registry=REGISTRY,
)

ARTIFACT_UPLOADS_TOTAL = Counter(
    "video_artifact_uploads_total",
    "HLS artifact uploads by outcome",
    ["status"],
    registry=REGISTRY,
)

TRANSCODES_IN_PROGRESS = Gauge(
    "video_transcodes_in_progress",
    "Number of ffmpeg processes currently running",
    registry=REGISTRY,
)


def get_metrics() -> bytes:
    """Render the registry in Prometheus text format."""
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    return CONTENT_TYPE_LATEST


def set_app_info(version: str, environment: str) -> None:
    APP_INFO.info({
        "version": version,
        "environment": environment,
    })
