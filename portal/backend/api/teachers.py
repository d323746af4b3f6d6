from fastapi import APIRouter, Depends, Query, Request, status
from typing import List, Optional

from .schemas.envelope import Envelope
from .schemas.teacher import (
    AssignmentRequest,
    AssignmentResponse,
    TeacherCreateRequest,
    TeacherResponse,
    TeacherUpdateRequest,
)
from .dependencies import get_scope, get_teacher_service, require_roles
from .utilities.limiter import limiter
from .utilities.responses import ok
from ..services.scope_resolver import ScopeSet
from ..services.teacher_service import TeacherFilters, TeacherService
from ..tools.claims import Claim
from portal.shared.roles import Role

router = APIRouter(prefix="/teachers", tags=["Teacher Directory"])

# Öğretmen dizinini yöneten roller
managers = require_roles(Role.SUPER_ADMIN, Role.ADMIN)


@router.get("", response_model=Envelope[List[TeacherResponse]], summary="List teachers within the caller's scope")
@limiter.limit("60/minute")
async def list_teachers(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    status: Optional[str] = None,
    department: Optional[str] = None,
    school_id: Optional[str] = None,
    claim: Claim = Depends(managers),
    scope: ScopeSet = Depends(get_scope),
    service: TeacherService = Depends(get_teacher_service),
):
    filters = TeacherFilters(page=page, limit=limit, search=search, status=status, department=department, school_id=school_id)
    teachers, meta = await service.list_teachers(scope, filters)
    return ok(teachers, meta=meta.model_dump())


@router.post("", response_model=Envelope[TeacherResponse], status_code=status.HTTP_201_CREATED, summary="Create a teacher account and profile")
@limiter.limit("20/minute")
async def create_teacher(request: Request, body: TeacherCreateRequest, claim: Claim = Depends(managers), scope: ScopeSet = Depends(get_scope), service: TeacherService = Depends(get_teacher_service)):
    teacher = await service.create_teacher(scope, body.model_dump())
    return ok(teacher, message="Teacher created successfully.")


@router.get("/{teacher_id}", response_model=Envelope[TeacherResponse], summary="Teacher detail with assignments")
@limiter.limit("60/minute")
async def get_teacher(request: Request, teacher_id: str, claim: Claim = Depends(managers), scope: ScopeSet = Depends(get_scope), service: TeacherService = Depends(get_teacher_service)):
    return ok(await service.get_teacher(scope, teacher_id))


@router.patch("/{teacher_id}", response_model=Envelope[TeacherResponse], summary="Update teacher profile fields")
@limiter.limit("30/minute")
async def update_teacher(request: Request, teacher_id: str, body: TeacherUpdateRequest, claim: Claim = Depends(managers), scope: ScopeSet = Depends(get_scope), service: TeacherService = Depends(get_teacher_service)):
    teacher = await service.update_teacher(scope, teacher_id, body.model_dump(exclude_unset=True))
    return ok(teacher, message="Teacher updated successfully.")


@router.delete("/{teacher_id}", response_model=Envelope[TeacherResponse], summary="Mark a teacher as resigned")
@limiter.limit("30/minute")
async def delete_teacher(request: Request, teacher_id: str, claim: Claim = Depends(managers), scope: ScopeSet = Depends(get_scope), service: TeacherService = Depends(get_teacher_service)):
    teacher = await service.deactivate_teacher(scope, teacher_id)
    return ok(teacher, message="Teacher deactivated successfully.")


@router.post("/{teacher_id}/assignments", response_model=Envelope[AssignmentResponse], status_code=status.HTTP_201_CREATED, summary="Add a class/subject assignment")
@limiter.limit("30/minute")
async def add_assignment(request: Request, teacher_id: str, body: AssignmentRequest, claim: Claim = Depends(managers), scope: ScopeSet = Depends(get_scope), service: TeacherService = Depends(get_teacher_service)):
    assignment = await service.add_assignment(scope, teacher_id, body.model_dump())
    return ok(assignment, message="Assignment added successfully.")


@router.delete("/{teacher_id}/assignments/{assignment_id}", response_model=Envelope[None], summary="Remove an assignment")
@limiter.limit("30/minute")
async def remove_assignment(request: Request, teacher_id: str, assignment_id: str, claim: Claim = Depends(managers), scope: ScopeSet = Depends(get_scope), service: TeacherService = Depends(get_teacher_service)):
    await service.remove_assignment(scope, teacher_id, assignment_id)
    return ok(message="Assignment removed successfully.")
