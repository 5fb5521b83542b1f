# backend/tutorbook/routes/v1/reschedules.py
"""
Reschedule routes - API v1

Endpoints:
    POST / - Move a student's booked class to a new slot
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, status

from ...api.dependencies import get_permission_service, get_principal, get_reschedule_service
from ...principal import Principal
from ...schemas.reschedule import RescheduleCreate, RescheduleResultResponse
from ...services.permission_service import PermissionService
from ...services.reschedule_service import RescheduleService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["reschedules-v1"])


@router.post("", response_model=RescheduleResultResponse, status_code=status.HTTP_201_CREATED)
async def create_reschedule(
    payload: RescheduleCreate,
    principal: Principal = Depends(get_principal),
    permission_service: PermissionService = Depends(get_permission_service),
    reschedule_service: RescheduleService = Depends(get_reschedule_service),
) -> RescheduleResultResponse:
    """
    Reschedule a class.

    Failures map to distinct codes: NOT_ELIGIBLE, NO_ACTIVE_PACKAGE,
    CREDIT_EXHAUSTED, TOO_LATE_TO_RESCHEDULE (422), SLOT_UNAVAILABLE,
    CONCURRENT_MODIFICATION (409) and SERVICE_UNAVAILABLE (503).
    """
    permission_service.require_student_access(principal, payload.student_id)
    result = await asyncio.to_thread(
        reschedule_service.reschedule,
        payload.student_id,
        payload.old_class_id,
        payload.new_slot.to_slot(),
        payload.reason,
        payload.teacher_id,
    )
    return RescheduleResultResponse.from_result(result)
