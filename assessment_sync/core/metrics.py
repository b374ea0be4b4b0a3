"""
Prometheus Metrics Collection for Assessment Sync

A sync run is a short-lived batch job, so metrics are not served over HTTP.
They are written once at the end of a run in the text exposition format for
a node-exporter textfile collector.
"""

import logging
from importlib.metadata import version as get_version
from pathlib import Path
from typing import Union

from prometheus_client import (
    REGISTRY,
    Counter,
    Histogram,
    Info,
    write_to_textfile,
)

logger = logging.getLogger(__name__)

# =============================================================================
# Application Info Metrics
# =============================================================================

try:
    APP_VERSION = get_version("assessment-sync")
except Exception:
    APP_VERSION = "unknown"

app_info = Info("assessment_sync_app", "Application information")
app_info.info(
    {
        "version": APP_VERSION,
        "app_name": "Assessment Sync",
    }
)

# =============================================================================
# Tracker API Metrics
# =============================================================================

tracker_api_requests_total = Counter(
    "tracker_api_requests_total",
    "Total requests sent to the remote tracker",
    ["service"],
)

tracker_api_errors_total = Counter(
    "tracker_api_errors_total",
    "Total failed requests to the remote tracker",
    ["service"],
)

tracker_api_duration_seconds = Histogram(
    "tracker_api_duration_seconds",
    "Remote tracker request duration in seconds",
    ["service"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

tracker_throttle_backoffs_total = Counter(
    "tracker_throttle_backoffs_total",
    "Extended backoffs taken after a throttling response",
    ["service"],
)

# =============================================================================
# Sync Metrics
# =============================================================================

sync_items_total = Counter(
    "sync_items_total",
    "Recommendations processed by the reconciler, by outcome",
    ["outcome"],
)

sync_containers_total = Counter(
    "sync_containers_total",
    "Tracker containers processed by the reconciler, by outcome",
    ["outcome"],
)


def write_metrics(path: Union[str, Path]) -> None:
    """Write the default registry to ``path`` in text exposition format."""
    write_to_textfile(str(path), REGISTRY)
    logger.info(f"Metrics written to {path}")
