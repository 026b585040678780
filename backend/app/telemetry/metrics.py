from __future__ import annotations

import logging
import os
import threading
from typing import Dict, Optional, Tuple

from prometheus_client import CollectorRegistry, Counter, Histogram


_logger = logging.getLogger(__name__)


# Single process-wide registry for all Prometheus metrics in this service.
_REGISTRY: CollectorRegistry = CollectorRegistry()

_BASE_LABELS_LOCK = threading.Lock()
_BASE_LABELS: Optional[Dict[str, str]] = None


def _detect_service_and_env() -> Tuple[str, str]:
    """
    Determine the base `service` and `env` labels.

    Preference order:
    1. backend.app.config.get_settings() when configuration is loadable.
    2. Environment variables (SPECTR_SERVICE_NAME / SPECTR_ENV, SERVICE_NAME / APP_ENV).
    3. Safe defaults: service="api", env="local".
    """
    service = os.getenv("SPECTR_SERVICE_NAME") or os.getenv("SERVICE_NAME") or "api"
    env = os.getenv("SPECTR_ENV") or os.getenv("APP_ENV") or os.getenv("ENV") or "local"

    from backend.app.config import get_settings

    try:
        settings = get_settings()
    except RuntimeError:
        # Configuration incomplete (e.g. no DSN); labels still work from env.
        return service, env

    if settings.service.strip():
        service = settings.service.strip()
    if settings.env.strip():
        env = settings.env.strip()

    return service, env


def get_base_labels() -> Dict[str, str]:
    """
    Return the mandatory base labels for all metrics.

    Always includes:
    - service
    - env
    """
    global _BASE_LABELS
    if _BASE_LABELS is None:
        with _BASE_LABELS_LOCK:
            if _BASE_LABELS is None:
                service, env = _detect_service_and_env()
                _BASE_LABELS = {"service": service, "env": env}
                _logger.info(
                    "Initialized Prometheus base labels",
                    extra={"service": service, "env": env},
                )
    # Return a shallow copy to prevent accidental mutation.
    return dict(_BASE_LABELS)


def get_registry() -> CollectorRegistry:
    """
    Access the shared CollectorRegistry for this process.
    """
    return _REGISTRY


# ---------------------------------------------------------------------------
# Metric definitions
# ---------------------------------------------------------------------------

# 1) API HTTP metrics
API_REQUEST_LATENCY_SECONDS = Histogram(
    "http_server_request_duration_seconds",
    "HTTP server request latency in seconds.",
    labelnames=["service", "env", "route", "method", "status_code"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
    registry=_REGISTRY,
)

API_REQUESTS_TOTAL = Counter(
    "http_server_requests_total",
    "Total HTTP server requests processed.",
    labelnames=["service", "env", "route", "method", "status_code"],
    registry=_REGISTRY,
)


# 2) Dataset registry metrics

DATASET_OPERATIONS_TOTAL = Counter(
    "spectr_dataset_operations_total",
    "Dataset registry operations by operation and outcome.",
    labelnames=["service", "env", "operation", "outcome"],
    registry=_REGISTRY,
)


# 3) Usage metering metrics

USAGE_STATUS_TOTAL = Counter(
    "spectr_usage_status_total",
    "Usage classifications produced by the quota ledger.",
    labelnames=["service", "env", "metric", "status"],
    registry=_REGISTRY,
)

USAGE_INVALID_METRIC_TOTAL = Counter(
    "spectr_usage_invalid_metric_total",
    "Usage counters reported with impossible values and clamped to zero.",
    labelnames=["service", "env", "metric"],
    registry=_REGISTRY,
)


# 4) Auth metrics

JWT_VALIDATION_DURATION_SECONDS = Histogram(
    "spectr_jwt_validation_duration_seconds",
    "Bearer token validation latency in seconds.",
    labelnames=["service", "env", "outcome"],
    buckets=[0.0005, 0.001, 0.005, 0.01, 0.05, 0.1],
    registry=_REGISTRY,
)

JWT_INVALID_TOTAL = Counter(
    "auth_jwt_invalid_total",
    "Total rejected bearer tokens by reason.",
    labelnames=["service", "env", "reason"],
    registry=_REGISTRY,
)


# ---------------------------------------------------------------------------
# Helper APIs
# ---------------------------------------------------------------------------


def _coerce_non_negative_duration(duration_seconds: float) -> float:
    if duration_seconds < 0:
        _logger.warning(
            "Received negative duration_seconds; coercing to 0.0",
            extra={"duration_seconds": duration_seconds},
        )
        return 0.0
    return duration_seconds


def observe_api_request(
    route: str,
    method: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """
    Record latency and count for a single HTTP API request.

    route: normalized path template, e.g. "/admin/datasets/{dataset_id}"
    method: HTTP method, e.g. "GET"
    status_code: HTTP status code as integer
    duration_seconds: duration of the request in seconds
    """
    duration = _coerce_non_negative_duration(float(duration_seconds))
    base_labels = get_base_labels()
    labels = {
        **base_labels,
        "route": route,
        "method": method.upper(),
        "status_code": str(int(status_code)),
    }
    API_REQUEST_LATENCY_SECONDS.labels(**labels).observe(duration)
    API_REQUESTS_TOTAL.labels(**labels).inc()


def observe_dataset_operation(operation: str, outcome: str) -> None:
    """
    Count one dataset registry operation.

    operation: "create", "update", "delete", "toggle_active", ...
    outcome: "success", "not_found", "invalid"
    """
    labels = {
        **get_base_labels(),
        "operation": operation,
        "outcome": outcome,
    }
    DATASET_OPERATIONS_TOTAL.labels(**labels).inc()


def observe_usage_status(metric: str, status: str) -> None:
    """Count one usage classification (status: "ok", "near", "exceeded")."""
    labels = {
        **get_base_labels(),
        "metric": metric,
        "status": status,
    }
    USAGE_STATUS_TOTAL.labels(**labels).inc()


def observe_invalid_usage_metric(metric: str) -> None:
    """Count a usage counter that arrived with an impossible value."""
    labels = {
        **get_base_labels(),
        "metric": metric,
    }
    USAGE_INVALID_METRIC_TOTAL.labels(**labels).inc()


def observe_jwt_validation(
    outcome: str,
    reason: Optional[str],
    duration_seconds: float,
) -> None:
    """
    Record metrics for bearer token validation.

    outcome: "valid" or "invalid"
    reason: invalid reason ("expired", "invalid_signature", ...); used for auth_jwt_invalid_total
    duration_seconds: validation latency in seconds
    """
    duration = _coerce_non_negative_duration(float(duration_seconds))
    base_labels = get_base_labels()
    JWT_VALIDATION_DURATION_SECONDS.labels(**base_labels, outcome=outcome).observe(duration)

    if outcome != "valid":
        JWT_INVALID_TOTAL.labels(**base_labels, reason=reason or outcome).inc()


__all__ = [
    "get_registry",
    "get_base_labels",
    "observe_api_request",
    "observe_dataset_operation",
    "observe_usage_status",
    "observe_invalid_usage_metric",
    "observe_jwt_validation",
]
