"""
Ingestion Controllers (API Routes)
==================================

Manual trigger and status of the mailbox ingestion loop.
"""

from fastapi import APIRouter, HTTPException, Request, status

from helpdesk.ingestion.application import IngestionService, CycleSummaryResponse
from helpdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/ingestion", tags=["Ingestion"])


def _get_ingestion_service(request: Request) -> IngestionService:
    service = getattr(request.app.state, "ingestion_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Mailbox ingestion is not configured"
        )
    return service


@router.post(
    "/run",
    response_model=CycleSummaryResponse,
    summary="Run one ingestion cycle",
    description="""
    Poll the mailbox once and return the cycle summary.

    If a cycle is already running (scheduled or manual) the call returns at
    once with `skipped: true`.
    """,
    responses={503: {"description": "Mailbox ingestion is not configured"}}
)
async def run_ingestion_cycle(request: Request):
    service = _get_ingestion_service(request)
    logger.info(
        "Manual ingestion cycle requested",
        extra={"correlation_id": getattr(request.state, "correlation_id", None)}
    )
    summary = await service.run_cycle()
    return CycleSummaryResponse.from_summary(summary)


@router.get(
    "/status",
    summary="Ingestion loop status",
    description="Scheduler state, mailbox circuit state, current rules and the last cycle summary."
)
async def ingestion_status(request: Request):
    service = _get_ingestion_service(request)
    scheduler = getattr(request.app.state, "ingestion_scheduler", None)
    rules_manager = getattr(request.app.state, "rules_manager", None)

    return {
        "running": service.is_running,
        "scheduler_running": bool(scheduler and scheduler.is_running),
        "mailbox_circuit": service.circuit_breaker.state,
        "rules": rules_manager.rules.model_dump() if rules_manager else None,
        "last_cycle": (
            CycleSummaryResponse.from_summary(service.last_summary).model_dump(mode="json")
            if service.last_summary else None
        ),
    }
