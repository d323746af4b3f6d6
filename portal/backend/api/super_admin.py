from fastapi import APIRouter, Depends, Request, status
from typing import List, Optional

from .schemas.auth import SchoolResponse
from .schemas.envelope import Envelope
from .schemas.super_admin import (
    AccessGrantRequest,
    AccessGrantsResponse,
    SchoolAdminCreateRequest,
    SchoolAdminResponse,
    SchoolCreateRequest,
)
from .dependencies import get_scope, get_super_admin_service, require_roles
from .utilities.limiter import limiter
from .utilities.responses import ok
from ..services.scope_resolver import ScopeSet
from ..services.super_admin_service import SuperAdminService
from ..tools.claims import Claim
from portal.shared.roles import Role

router = APIRouter(prefix="/super-admin", tags=["Super Admin Endpoints"])

super_admin_only = require_roles(Role.SUPER_ADMIN)

# === BÖLÜM 1: OKULLAR ===

@router.get("/schools", response_model=Envelope[List[SchoolResponse]], summary="Schools the caller can access")
@limiter.limit("60/minute")
async def list_schools(request: Request, claim: Claim = Depends(super_admin_only), scope: ScopeSet = Depends(get_scope), service: SuperAdminService = Depends(get_super_admin_service)):
    return ok(await service.list_schools(scope))


@router.post("/schools", response_model=Envelope[SchoolResponse], status_code=status.HTTP_201_CREATED, summary="Create a school in the caller's university")
@limiter.limit("20/minute")
async def create_school(request: Request, body: SchoolCreateRequest, claim: Claim = Depends(super_admin_only), scope: ScopeSet = Depends(get_scope), service: SuperAdminService = Depends(get_super_admin_service)):
    school = await service.create_school(scope, code=body.code, name=body.name, school_type=body.type)
    return ok(school, message="School created successfully.")

# === BÖLÜM 2: OKUL ADMİNLERİ ===

@router.get("/school-admins", response_model=Envelope[List[SchoolAdminResponse]], summary="List school admins within scope")
@limiter.limit("60/minute")
async def list_school_admins(request: Request, school_id: Optional[str] = None, claim: Claim = Depends(super_admin_only), scope: ScopeSet = Depends(get_scope), service: SuperAdminService = Depends(get_super_admin_service)):
    return ok(await service.list_school_admins(scope, school_id))


@router.post("/school-admins", response_model=Envelope[SchoolAdminResponse], status_code=status.HTTP_201_CREATED, summary="Create a school admin")
@limiter.limit("20/minute")
async def create_school_admin(request: Request, body: SchoolAdminCreateRequest, claim: Claim = Depends(super_admin_only), scope: ScopeSet = Depends(get_scope), service: SuperAdminService = Depends(get_super_admin_service)):
    admin = await service.create_school_admin(scope, body.school_id, body.name, body.email, body.password)
    return ok(admin, message="School admin created successfully.")

# === BÖLÜM 3: OKUL ERİŞİM YETKİLERİ ===

@router.get("/access-grants", response_model=Envelope[AccessGrantsResponse], summary="Access mode and granted schools of a super admin")
@limiter.limit("60/minute")
async def get_access_grants(request: Request, super_admin_id: Optional[str] = None, claim: Claim = Depends(super_admin_only), service: SuperAdminService = Depends(get_super_admin_service)):
    return ok(await service.get_grants(claim, super_admin_id))


@router.post("/access-grants", response_model=Envelope[AccessGrantsResponse], status_code=status.HTTP_201_CREATED, summary="Grant a school to a super admin")
@limiter.limit("20/minute")
async def grant_school(request: Request, body: AccessGrantRequest, claim: Claim = Depends(super_admin_only), scope: ScopeSet = Depends(get_scope), service: SuperAdminService = Depends(get_super_admin_service)):
    grants = await service.grant_school(claim, scope, body.school_id, body.super_admin_id)
    return ok(grants, message="School access granted.")


@router.delete("/access-grants/{school_id}", response_model=Envelope[AccessGrantsResponse], summary="Revoke a school from a super admin")
@limiter.limit("20/minute")
async def revoke_school(request: Request, school_id: str, super_admin_id: Optional[str] = None, claim: Claim = Depends(super_admin_only), scope: ScopeSet = Depends(get_scope), service: SuperAdminService = Depends(get_super_admin_service)):
    grants = await service.revoke_school(claim, scope, school_id, super_admin_id)
    return ok(grants, message="School access revoked.")
