"""Prometheus metrics for the planner API.

Provides pre-defined metrics for monitoring API performance and the
snapshot/template data-transfer pipeline.
"""

from prometheus_client import Counter, Histogram, Info

# Application info
APP_INFO = Info(
    "planner",
    "Planner application information",
)

# API metrics
API_REQUESTS = Counter(
    "planner_api_requests_total",
    "Total number of API requests",
    ["method", "endpoint", "status"],
)

API_REQUEST_DURATION = Histogram(
    "planner_api_request_duration_seconds",
    "API request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

# Data-transfer metrics
SNAPSHOT_EXPORTS = Counter(
    "planner_snapshot_exports_total",
    "Total number of snapshots exported",
)

SNAPSHOT_RESTORES = Counter(
    "planner_snapshot_restores_total",
    "Total number of snapshot restore attempts",
    ["outcome"],
)

RECORDS_IMPORTED = Counter(
    "planner_records_imported_total",
    "Total number of records inserted by snapshot restores",
    ["collection"],
)

RECORDS_SKIPPED = Counter(
    "planner_records_skipped_total",
    "Total number of snapshot records skipped because they already existed",
    ["collection"],
)

RESTORE_DURATION = Histogram(
    "planner_restore_duration_seconds",
    "Time to validate and apply a snapshot restore",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

TEMPLATE_INSTALLS = Counter(
    "planner_template_installs_total",
    "Total number of template installations",
    ["template_source", "outcome"],
)


def set_app_info(version: str, environment: str, build_hash: str = "") -> None:
    """Set application info metric.

    Args:
        version: Application version.
        environment: Deployment environment.
        build_hash: Git commit hash or build identifier.
    """
    APP_INFO.info({
        "version": version,
        "environment": environment,
        "build_hash": build_hash,
    })
