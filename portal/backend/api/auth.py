import logging
from fastapi import APIRouter, Depends, Request, status

from .schemas.auth import LoginRequest, LoginResponse, RegisterRequest, SuperAdminProfileResponse
from .schemas.envelope import Envelope
from .dependencies import get_auth_service, get_scope, require_roles
from .utilities.limiter import limiter
from .utilities.responses import ok
from ..services.auth_service import AuthService
from ..services.scope_resolver import ScopeSet
from ..tools.claims import Claim
from portal.shared.roles import AccountKind, Role

# Bu modül için özel bir logger oluşturuyoruz.
logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)


@router.post("/super-admin/register", response_model=Envelope[LoginResponse], status_code=status.HTTP_201_CREATED, summary="Register a university and its first super admin")
@limiter.limit("5/minute")
async def register_super_admin(request: Request, body: RegisterRequest, service: AuthService = Depends(get_auth_service)):
    result = await service.register_super_admin(
        university=body.university.model_dump(),
        admin=body.admin.model_dump(),
    )
    return ok(result, message="University registered successfully.")


@router.post("/{account_kind}/login", response_model=Envelope[LoginResponse], summary="Log in as the given account kind")
@limiter.limit("20/minute")
async def login(request: Request, account_kind: AccountKind, body: LoginRequest, service: AuthService = Depends(get_auth_service)):
    """
    Her hesap türü kendi tablosunda aranır. Staff, öğrenci ve veli girişleri
    okul kodu ile yapılır; super admin girişi üniversite düzeyindedir.
    """
    logger.info(f"Login attempt for account kind '{account_kind.value}'.")
    result = await service.login(
        account_kind=account_kind,
        email=body.email,
        password=body.password,
        school_code=body.school_code,
        university_code=body.university_code,
    )
    return ok(result, message="Login successful.")


@router.get("/super-admin/me", response_model=Envelope[SuperAdminProfileResponse], summary="Current super admin with accessible schools")
@limiter.limit("60/minute")
async def get_me(
    request: Request,
    claim: Claim = Depends(require_roles(Role.SUPER_ADMIN)),
    scope: ScopeSet = Depends(get_scope),
    service: AuthService = Depends(get_auth_service),
):
    return ok(await service.get_super_admin_profile(claim, scope))
