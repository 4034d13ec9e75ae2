"""Dispatch endpoint receiving Alertmanager webhook notifications."""

import time

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Query

from alertrelay.alerts.errors import RelayError
from alertrelay.alerts.routing import RoomRouter
from alertrelay.alerts.schemas import Alert
from alertrelay.api.dependencies import get_metrics, get_router
from alertrelay.api.models import Envelope, WebhookPayload
from alertrelay.observability.metrics import MetricsCollector

logger = structlog.get_logger(__name__)
router = APIRouter()


async def run_dispatch(
    room_router: RoomRouter,
    metrics: MetricsCollector,
    alerts: list[Alert],
    room: str,
    started: float,
) -> None:
    """Background task: route a batch and record the outcome."""
    try:
        await room_router.dispatch(alerts, room)
    except RelayError as e:
        logger.error("Error dispatching alerts", room=room, error=str(e))
        metrics.record_request_error("dispatch")
    finally:
        metrics.record_request_duration("dispatch", time.perf_counter() - started)


@router.post(
    "/dispatch",
    response_model=Envelope,
    responses={400: {"model": Envelope, "description": "Invalid payload"}},
    summary="Dispatch alerts",
    description=(
        "Accept an Alertmanager webhook notification and relay its alerts to "
        "the room named by the room_name query param, or by the payload's "
        "receiver when the param is absent. Delivery happens in the background."
    ),
)
async def dispatch(
    payload: WebhookPayload,
    background_tasks: BackgroundTasks,
    room_name: str | None = Query(
        default=None,
        description="Room to deliver to; overrides the payload receiver",
    ),
    room_router: RoomRouter = Depends(get_router),
    metrics: MetricsCollector = Depends(get_metrics),
) -> Envelope:
    started = time.perf_counter()
    metrics.record_request("dispatch")

    room = room_name or payload.receiver
    alerts = [item.to_alert() for item in payload.alerts]

    logger.info("Dispatching new alert", room=room, count=len(alerts))

    # Large batches can take a long time to thread in the chat backend.
    background_tasks.add_task(run_dispatch, room_router, metrics, alerts, room, started)
    return Envelope(status="success", data="dispatched")
