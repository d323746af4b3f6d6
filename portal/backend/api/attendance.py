from fastapi import APIRouter, Depends, Query, Request
from datetime import date
from typing import List

from .schemas.attendance import MarkAttendanceRequest, MarkSummaryResponse, RosterEntryResponse, TeacherClassResponse
from .schemas.envelope import Envelope
from .dependencies import get_attendance_service, get_scope, require_roles
from .utilities.limiter import limiter
from .utilities.responses import ok
from ..services.attendance_service import AttendanceService, MarkEntry
from ..services.scope_resolver import ScopeSet
from ..tools.claims import Claim
from portal.shared.roles import Role

router = APIRouter(prefix="/attendance/teacher", tags=["Attendance"])

teacher_only = require_roles(Role.TEACHER)


@router.get("/classes", response_model=Envelope[List[TeacherClassResponse]], summary="Classes the teacher is class teacher of")
@limiter.limit("60/minute")
async def get_classes(request: Request, claim: Claim = Depends(teacher_only), scope: ScopeSet = Depends(get_scope), service: AttendanceService = Depends(get_attendance_service)):
    return ok(await service.get_classes(claim, scope))


@router.get("/class-students", response_model=Envelope[List[RosterEntryResponse]], summary="Roster of a class for one day")
@limiter.limit("60/minute")
async def get_class_students(
    request: Request,
    class_section_id: str = Query(...),
    academic_year_id: str = Query(...),
    on_date: date = Query(..., alias="date"),
    claim: Claim = Depends(teacher_only),
    scope: ScopeSet = Depends(get_scope),
    service: AttendanceService = Depends(get_attendance_service),
):
    roster = await service.get_class_students(claim, scope, class_section_id, academic_year_id, on_date)
    return ok(roster, meta={"total": len(roster)})


@router.post("/mark", response_model=Envelope[MarkSummaryResponse], summary="Save a fully marked roster")
@limiter.limit("30/minute")
async def mark_attendance(request: Request, body: MarkAttendanceRequest, claim: Claim = Depends(teacher_only), scope: ScopeSet = Depends(get_scope), service: AttendanceService = Depends(get_attendance_service)):
    summary = await service.mark_attendance(
        claim,
        scope,
        class_section_id=body.class_section_id,
        academic_year_id=body.academic_year_id,
        on_date=body.date,
        entries=[MarkEntry(**record.model_dump()) for record in body.records],
    )
    return ok(summary, message=f"Attendance saved: {summary.present} present, {summary.absent} absent.")
