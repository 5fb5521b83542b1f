# backend/tutorbook/routes/v1/students.py
"""
Student-scoped scheduling routes - API v1

Endpoints:
    GET /{student_id}/teacher-availability - Teachers the student may book on a date
    GET /{student_id}/reschedules - The student's reschedule history
"""

import asyncio
from datetime import date

from fastapi import APIRouter, Depends, Query

from ...api.dependencies import (
    get_availability_service,
    get_permission_service,
    get_principal,
    get_reschedule_service,
)
from ...principal import Principal
from ...schemas.availability import StudentTeacherOptionsResponse
from ...schemas.reschedule import RescheduleListResponse, RescheduleRecordResponse
from ...services.availability_service import AvailabilityService
from ...services.permission_service import PermissionService
from ...services.reschedule_service import RescheduleService

router = APIRouter(tags=["students-v1"])


@router.get("/{student_id}/teacher-availability", response_model=StudentTeacherOptionsResponse)
async def get_student_teacher_availability(
    student_id: str,
    date: date = Query(..., description="Date in the admin timezone"),
    principal: Principal = Depends(get_principal),
    permission_service: PermissionService = Depends(get_permission_service),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> StudentTeacherOptionsResponse:
    """
    Teachers a student may book on a date, primary teacher first.

    Students restricted to their assigned teachers only see those.
    """
    permission_service.require_student_access(principal, student_id)
    options = await asyncio.to_thread(
        availability_service.get_student_teacher_options, student_id, date
    )
    return StudentTeacherOptionsResponse.from_result(options)


@router.get("/{student_id}/reschedules", response_model=RescheduleListResponse)
async def list_student_reschedules(
    student_id: str,
    principal: Principal = Depends(get_principal),
    permission_service: PermissionService = Depends(get_permission_service),
    reschedule_service: RescheduleService = Depends(get_reschedule_service),
) -> RescheduleListResponse:
    permission_service.require_student_access(principal, student_id)
    records = await asyncio.to_thread(reschedule_service.list_student_reschedules, student_id)
    items = [RescheduleRecordResponse.model_validate(r) for r in records]
    return RescheduleListResponse(items=items, total=len(items))
