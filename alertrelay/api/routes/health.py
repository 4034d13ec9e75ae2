"""
Index, health check and metrics endpoints.
"""

from fastapi import APIRouter, Depends, Response

from alertrelay.api.dependencies import get_metrics
from alertrelay.api.models import Envelope
from alertrelay.observability.metrics import MetricsCollector

router = APIRouter()


@router.get("/", response_model=Envelope, summary="Index")
async def index(metrics: MetricsCollector = Depends(get_metrics)) -> Envelope:
    metrics.record_request("index")
    return Envelope(status="success", data="welcome to alertrelay!")


@router.get("/ping", response_model=Envelope, summary="Health check")
async def ping(metrics: MetricsCollector = Depends(get_metrics)) -> Envelope:
    metrics.record_request("ping")
    return Envelope(status="success", data="pong")


@router.get("/metrics", summary="Prometheus metrics", include_in_schema=False)
async def prometheus_metrics(metrics: MetricsCollector = Depends(get_metrics)) -> Response:
    body, content_type = metrics.render()
    return Response(content=body, media_type=content_type)
