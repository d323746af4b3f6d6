#portal/backend/api/dependencies.py
import logging
from typing import Callable, Optional

from fastapi import Request, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import redis.asyncio as redis
import asyncpg

from ..db.redis_client import RedisClient
from ..db.db_client import AsyncPostgresClient
from ..services.errors import Forbidden, ServiceError, Unauthenticated
from ..services.scope_resolver import ScopeResolver, ScopeSet
from ..services.auth_service import AuthService
from ..services.teacher_service import TeacherService
from ..services.attendance_service import AttendanceService
from ..services.super_admin_service import SuperAdminService
from ..tools.claims import Claim, decode_claim
from portal.shared.roles import Role

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_redis_pool(request: Request) -> Optional[redis.ConnectionPool]:
    """
    Uygulamanın state'inden Redis bağlantı havuzunu alır. Redis yoksa None döner;
    liste cache'i bu durumda devre dışı kalır.
    """
    return getattr(request.app.state, "redis_pool", None)


def get_postgres_pool(request: Request) -> asyncpg.Pool:
    """
    Uygulamanın state'inden PostgreSQL bağlantı havuzunu alır ve bir bağımlılık olarak sağlar.
    """
    pool = getattr(request.app.state, "postgres_pool", None)
    if pool is None:
        logger.error("PostgreSQL pool is not available.")
        raise ServiceError("The database is currently unavailable.")
    return pool


def get_db_client(postgres_pool: asyncpg.Pool = Depends(get_postgres_pool)) -> AsyncPostgresClient:
    return AsyncPostgresClient(pool=postgres_pool)


def get_auth_service(db_client: AsyncPostgresClient = Depends(get_db_client)) -> AuthService:
    return AuthService(db_client=db_client)


def get_scope_resolver(db_client: AsyncPostgresClient = Depends(get_db_client)) -> ScopeResolver:
    return ScopeResolver(db_client=db_client)


def get_teacher_service(
    redis_pool: Optional[redis.ConnectionPool] = Depends(get_redis_pool),
    db_client: AsyncPostgresClient = Depends(get_db_client),
) -> TeacherService:
    """
    Her istek için yeni bir TeacherService nesnesi oluşturur.

    Uygulama başlangıcında oluşturulan paylaşımlı havuzlar kullanılır; istemciler
    ucuzdur, havuzlar ise süreç boyunca tektir.
    """
    return TeacherService(db_client=db_client, redis_client=RedisClient(pool=redis_pool))


def get_attendance_service(db_client: AsyncPostgresClient = Depends(get_db_client)) -> AttendanceService:
    return AttendanceService(db_client=db_client)


def get_super_admin_service(db_client: AsyncPostgresClient = Depends(get_db_client)) -> SuperAdminService:
    return SuperAdminService(db_client=db_client)


# --- Kimlik ve Kapsam ---

async def get_current_claim(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Claim:
    """
    Bearer token'ı doğrular ve Claim döndürür. Sunucu oturum tutmaz;
    her istek kendi token'ı ile bağımsız olarak doğrulanır.
    """
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("Not authenticated")
    return decode_claim(credentials.credentials)


async def get_scope(
    claim: Claim = Depends(get_current_claim),
    resolver: ScopeResolver = Depends(get_scope_resolver),
) -> ScopeSet:
    return await resolver.resolve(claim)


def require_roles(*roles: Role) -> Callable:
    """
    Sadece verilen rollere izin veren bir bağımlılık üretir.
    """
    allowed = frozenset(roles)

    async def _check(claim: Claim = Depends(get_current_claim)) -> Claim:
        if claim.role not in allowed:
            logger.warning(f"Account '{claim.account_id}' with role {claim.role.value} denied.")
            raise Forbidden()
        return claim

    return _check
