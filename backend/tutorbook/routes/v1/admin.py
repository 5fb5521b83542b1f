# backend/tutorbook/routes/v1/admin.py
"""
Admin scheduling routes - API v1

All endpoints require an admin principal.

Endpoints:
    GET /reschedules - Recent reschedules, optionally filtered by status
    POST /reschedules/{reschedule_id}/cancel - Reverse a reschedule
    POST /sweep - Run the lifecycle sweep now
    POST /students/{student_id}/sweep - Reconcile one student's classes and packages
    GET /time-checks - Recent "has this class ended" decisions
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from ...api.dependencies import (
    get_lifecycle_service,
    get_reschedule_service,
    get_time_check_sink,
    require_admin,
)
from ...core.constants import DEFAULT_QUERY_LIMIT
from ...core.enums import RescheduleStatus
from ...monitoring.time_check_sink import TimeCheckSink
from ...principal import Principal
from ...schemas.reschedule import (
    RescheduleCancel,
    RescheduleListResponse,
    RescheduleRecordResponse,
    ReversalResultResponse,
)
from ...schemas.sweep import SweepResultResponse, TimeCheckEventResponse, TimeCheckListResponse
from ...services.lifecycle_service import LifecycleService
from ...services.reschedule_service import RescheduleService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["admin-v1"])


@router.get("/reschedules", response_model=RescheduleListResponse)
async def list_reschedules(
    status: Optional[RescheduleStatus] = Query(None),
    limit: int = Query(DEFAULT_QUERY_LIMIT, ge=1, le=500),
    _admin: Principal = Depends(require_admin),
    reschedule_service: RescheduleService = Depends(get_reschedule_service),
) -> RescheduleListResponse:
    records = await asyncio.to_thread(
        reschedule_service.list_reschedules, status=status, limit=limit
    )
    items = [RescheduleRecordResponse.model_validate(r) for r in records]
    return RescheduleListResponse(items=items, total=len(items))


@router.post("/reschedules/{reschedule_id}/cancel", response_model=ReversalResultResponse)
async def cancel_reschedule(
    reschedule_id: str,
    payload: Optional[RescheduleCancel] = Body(None),
    admin: Principal = Depends(require_admin),
    reschedule_service: RescheduleService = Depends(get_reschedule_service),
) -> ReversalResultResponse:
    """Undo a reschedule: restore the old booking and give the credit back."""
    if payload is not None and payload.note:
        logger.info(
            "Reschedule cancellation note",
            extra={"reschedule_id": reschedule_id, "note": payload.note},
        )
    result = await asyncio.to_thread(
        reschedule_service.cancel_reschedule, reschedule_id, admin.id
    )
    return ReversalResultResponse.from_result(result)


@router.post("/sweep", response_model=SweepResultResponse)
async def run_sweep_now(
    admin: Principal = Depends(require_admin),
    lifecycle_service: LifecycleService = Depends(get_lifecycle_service),
) -> SweepResultResponse:
    """Run the lifecycle sweep immediately; safe alongside the hourly run."""
    logger.info("Manual sweep triggered", extra={"admin_id": admin.id})
    result = await asyncio.to_thread(lifecycle_service.run_sweep_now)
    return SweepResultResponse.from_result(result)


@router.post("/students/{student_id}/sweep", response_model=SweepResultResponse)
async def sweep_student(
    student_id: str,
    _admin: Principal = Depends(require_admin),
    lifecycle_service: LifecycleService = Depends(get_lifecycle_service),
) -> SweepResultResponse:
    result = await asyncio.to_thread(lifecycle_service.sweep_student, student_id)
    return SweepResultResponse.from_result(result)


@router.get("/time-checks", response_model=TimeCheckListResponse)
async def list_time_checks(
    _admin: Principal = Depends(require_admin),
    sink: TimeCheckSink = Depends(get_time_check_sink),
) -> TimeCheckListResponse:
    """Most recent time-check decisions of this process, oldest first."""
    return TimeCheckListResponse(
        capacity=sink.maxlen,
        events=[TimeCheckEventResponse.from_event(e) for e in sink.recent()],
    )
