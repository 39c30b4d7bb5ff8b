from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status

from app.api.dependencies import get_effect_dispatcher, get_use_cases
from app.api.routers.bookings import schedule_effects
from app.api.schemas.workers import (
    DeadlineCheckReport,
    DispatchOutboxResponse,
    SweepAllResponse,
    SweepDeadlinesRequest,
)
from app.infrastructure.db.retry import retry_on_deadlock

router = APIRouter()


@router.post(
    "/workers/deadlines/check",
    response_model=DeadlineCheckReport,
    status_code=status.HTTP_200_OK,
)
async def check_booking_deadlines(
    payload: SweepDeadlinesRequest,
    background_tasks: BackgroundTasks,
    use_cases: Annotated[dict, Depends(get_use_cases)],
    dispatcher=Depends(get_effect_dispatcher),
) -> DeadlineCheckReport:
    """Evaluate one booking against its deadlines; retried on deadlock."""

    async def execute_check():
        return await use_cases["check_deadlines"].execute(booking_id=payload.booking_id)

    report = await retry_on_deadlock(execute_check, max_attempts=3, base_delay=0.1)
    schedule_effects(background_tasks, dispatcher)
    return report


@router.post(
    "/workers/deadlines/sweep",
    response_model=SweepAllResponse,
    status_code=status.HTTP_200_OK,
)
async def sweep_all_deadlines(
    background_tasks: BackgroundTasks,
    use_cases: Annotated[dict, Depends(get_use_cases)],
    dispatcher=Depends(get_effect_dispatcher),
    limit: int = Query(default=500, ge=1, le=5000),
) -> SweepAllResponse:
    """Scheduled entry point: every booking whose status carries a deadline."""
    reports = await use_cases["check_deadlines"].execute_all(limit=limit)
    schedule_effects(background_tasks, dispatcher)
    return SweepAllResponse(evaluated=len(reports), results=reports)


@router.post(
    "/workers/outbox/dispatch",
    response_model=DispatchOutboxResponse,
    status_code=status.HTTP_200_OK,
)
async def dispatch_outbox(
    use_cases: Annotated[dict, Depends(get_use_cases)],
    worker_id: str | None = Query(default=None, alias="worker-id"),
) -> DispatchOutboxResponse:
    async def execute_dispatch():
        return await use_cases["dispatch_outbox"].execute(worker_id=worker_id)

    return await retry_on_deadlock(execute_dispatch, max_attempts=3, base_delay=0.1)
