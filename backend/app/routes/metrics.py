from __future__ import annotations

import logging

from fastapi import APIRouter, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from ..telemetry.metrics import get_registry


_logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["telemetry"],
)


@router.get(
    "/metrics",
    summary="Prometheus metrics endpoint",
    description="HTTP, dataset registry, usage metering and auth metrics in the Prometheus text format.",
)
async def metrics_endpoint() -> Response:
    """
    Prometheus scrape endpoint. Open, like ``/datasets``; no bearer token.

    Returns HTTP 500 with a plain-text body if exposition fails.
    """
    try:
        payload = generate_latest(get_registry())
    except Exception:
        _logger.exception("metrics_exposition_failed")
        return Response(
            content="metrics exposition failed\n",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)
