# backend/tutorbook/routes/v1/availability.py
"""
Availability routes - API v1

Versioned availability endpoints under /api/v1/availability.
All computation delegated to AvailabilityService.

Endpoints:
    GET /dates - Per-date availability over a range
    GET /slots - Per-teacher slots on one date
    GET /teachers/{teacher_id}/slots - One teacher's slots on one date
"""

import asyncio
from datetime import date, timedelta
import logging
from typing import Dict, List, Optional, cast

from fastapi import APIRouter, Depends, Query

from ...api.dependencies import (
    get_availability_service,
    get_permission_service,
    get_principal,
)
from ...principal import Principal
from ...schemas.availability import (
    AvailableDatesResponse,
    TeacherAvailableDatesResponse,
    TeacherDayAvailabilityResponse,
)
from ...services.availability_service import AvailabilityService, TeacherDayAvailability
from ...services.permission_service import PermissionService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["availability-v1"])


@router.get(
    "/dates",
    response_model=TeacherAvailableDatesResponse | AvailableDatesResponse,
)
async def get_available_dates(
    start_date: date = Query(..., description="First date (admin timezone)"),
    end_date: Optional[date] = Query(None, description="Last date; defaults to 30 days later"),
    student_id: Optional[str] = Query(None),
    teacher_id: Optional[str] = Query(None),
    principal: Principal = Depends(get_principal),
    permission_service: PermissionService = Depends(get_permission_service),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> TeacherAvailableDatesResponse | AvailableDatesResponse:
    """
    Availability over a date range.

    With ``teacher_id`` each date maps to a boolean; without it, to the
    per-teacher detail sorted primary teacher first.
    """
    if student_id:
        permission_service.require_student_access(principal, student_id)
    end = end_date or start_date + timedelta(days=30)

    result = await asyncio.to_thread(
        availability_service.get_available_dates,
        start_date,
        end,
        student_id=student_id,
        teacher_id=teacher_id,
    )
    # The service may clamp the range
    last = max(result) if result else end

    if teacher_id:
        return TeacherAvailableDatesResponse(
            teacher_id=teacher_id,
            start_date=start_date,
            end_date=last,
            dates=cast(Dict[date, bool], result),
        )
    detail = cast(Dict[date, List[TeacherDayAvailability]], result)
    return AvailableDatesResponse(
        start_date=start_date,
        end_date=last,
        dates={
            day: [TeacherDayAvailabilityResponse.from_result(t) for t in teachers]
            for day, teachers in detail.items()
        },
    )


@router.get("/slots", response_model=List[TeacherDayAvailabilityResponse])
async def get_slots_for_date(
    date: date = Query(..., description="Date in the admin timezone"),
    student_id: Optional[str] = Query(None),
    principal: Principal = Depends(get_principal),
    permission_service: PermissionService = Depends(get_permission_service),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> List[TeacherDayAvailabilityResponse]:
    """Free slots of every active teacher on one date."""
    if student_id:
        permission_service.require_student_access(principal, student_id)
    results = await asyncio.to_thread(
        availability_service.get_slots_for_date, date, student_id=student_id
    )
    return [TeacherDayAvailabilityResponse.from_result(r) for r in results]


@router.get("/teachers/{teacher_id}/slots", response_model=TeacherDayAvailabilityResponse)
async def get_teacher_slots(
    teacher_id: str,
    date: date = Query(..., description="Date in the admin timezone"),
    student_id: Optional[str] = Query(None),
    principal: Principal = Depends(get_principal),
    permission_service: PermissionService = Depends(get_permission_service),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> TeacherDayAvailabilityResponse:
    """Free slots of one teacher on one date, with the reason code."""
    if student_id:
        permission_service.require_student_access(principal, student_id)
    result = await asyncio.to_thread(
        availability_service.get_teacher_slots, teacher_id, date, student_id=student_id
    )
    return TeacherDayAvailabilityResponse.from_result(result)
