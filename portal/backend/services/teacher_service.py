import logging
import math
from typing import Any, Dict, List, Optional, Tuple

import asyncpg
import redis.asyncio as redis
from pydantic import BaseModel

from ..config.config import settings
from ..db.db_client import AsyncPostgresClient
from ..db.redis_client import RedisClient
from ..models.db_models import TeacherAssignment, TeacherProfile
from ..tools.credentials import hash_secret
from .errors import Conflict, NotFound, ValidationFailed
from .scope_resolver import ScopeSet, SingleSchool, authorize_school, narrow_school_filter
from portal.shared.filters import filter_signature

logger = logging.getLogger(__name__)

RESIGNED = "RESIGNED"


class TeacherFilters(BaseModel):
    page: int = 1
    limit: int = 10
    search: Optional[str] = None
    status: Optional[str] = None
    department: Optional[str] = None
    school_id: Optional[str] = None


class PageMeta(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class TeacherService:
    """
    Teacher directory operations. Every call is checked against the caller's
    scope before the database is touched; list results are cached in Redis
    behind per-school and per-tenant version keys.
    """
    def __init__(self, db_client: AsyncPostgresClient, redis_client: RedisClient):
        self.db_client = db_client
        self.redis_client = redis_client

    # --- Cache helpers ---

    async def _list_cache_key(self, scope: ScopeSet, school_ids: Optional[List[str]], filters: TeacherFilters) -> str:
        version_keys = [f"tenant:{scope.tenant_id}"] + [f"school:{school_id}" for school_id in school_ids or []]
        versions = [str(await self.redis_client.get_version(key)) for key in version_keys]
        schools_part = ",".join(school_ids) if school_ids is not None else "*"
        return f"teachers:{scope.tenant_id}:{schools_part}:{'.'.join(versions)}:{filter_signature(filters.model_dump())}"

    async def _invalidate(self, scope: ScopeSet, school_id: str):
        try:
            await self.redis_client.bump_versions(f"tenant:{scope.tenant_id}", f"school:{school_id}")
        except redis.RedisError:
            logger.warning(f"Teacher list cache for school '{school_id}' could not be invalidated.", exc_info=True)

    # --- Queries ---

    async def list_teachers(self, scope: ScopeSet, filters: TeacherFilters) -> Tuple[List[TeacherProfile], PageMeta]:
        if filters.school_id:
            await authorize_school(self.db_client, scope, filters.school_id)
        school_ids = narrow_school_filter(scope, filters.school_id)

        cache_key = None
        try:
            cache_key = await self._list_cache_key(scope, school_ids, filters)
            cached = await self.redis_client.get_cached_list(cache_key)
            if cached:
                return [TeacherProfile(**item) for item in cached["items"]], PageMeta(**cached["meta"])
        except redis.RedisError:
            # Redis erişilemezse cache'siz devam et.
            logger.warning("Teacher list cache unavailable, reading from the database.", exc_info=True)
            cache_key = None

        teachers, total = await self.db_client.list_teachers(
            university_id=scope.tenant_id,
            school_ids=school_ids,
            page=filters.page,
            limit=filters.limit,
            search=filters.search,
            status=filters.status,
            department=filters.department,
        )
        meta = PageMeta(
            page=filters.page,
            limit=filters.limit,
            total=total,
            total_pages=math.ceil(total / filters.limit) if total else 0,
        )

        if cache_key:
            try:
                await self.redis_client.set_cached_list(
                    cache_key,
                    {"items": [t.model_dump(mode="json") for t in teachers], "meta": meta.model_dump()},
                    ttl=settings.LIST_CACHE_TTL_SECONDS,
                )
            except redis.RedisError:
                logger.warning("Teacher list could not be written to the cache.", exc_info=True)
        return teachers, meta

    async def get_teacher(self, scope: ScopeSet, teacher_id: str) -> TeacherProfile:
        teacher = await self.db_client.get_teacher(teacher_id)
        # Var olmayan öğretmen ile kapsam dışı öğretmen aynı yanıtı alır.
        await authorize_school(self.db_client, scope, teacher.school_id if teacher else None)
        return teacher

    # --- Mutations ---

    async def create_teacher(self, scope: ScopeSet, payload: Dict[str, Any]) -> TeacherProfile:
        payload = dict(payload)
        school_id = payload.pop("school_id", None)
        if not school_id and isinstance(scope, SingleSchool):
            school_id = scope.school_id
        if not school_id:
            raise ValidationFailed("School is required.", {"school_id": ["This field is required."]})
        school = await authorize_school(self.db_client, scope, school_id)

        user = {
            "name": f"{payload['first_name']} {payload['last_name']}",
            "email": payload.pop("email"),
            "password_hash": hash_secret(payload.pop("password")),
        }
        try:
            teacher = await self.db_client.create_teacher(school, user, payload)
        except asyncpg.UniqueViolationError as e:
            raise Conflict("A teacher with this email or employee code already exists in the school.") from e

        await self._invalidate(scope, school.id)
        logger.info(f"Teacher '{teacher.id}' created in school '{school.id}'.")
        return teacher

    async def update_teacher(self, scope: ScopeSet, teacher_id: str, fields: Dict[str, Any]) -> TeacherProfile:
        if not fields:
            raise ValidationFailed("Nothing to update.", {"body": ["At least one field must be provided."]})
        teacher = await self.get_teacher(scope, teacher_id)
        updated = await self.db_client.update_teacher(teacher.id, fields)
        await self._invalidate(scope, teacher.school_id)
        return updated

    async def deactivate_teacher(self, scope: ScopeSet, teacher_id: str) -> TeacherProfile:
        """Teachers are never hard-deleted; DELETE marks them as resigned."""
        teacher = await self.get_teacher(scope, teacher_id)
        updated = await self.db_client.update_teacher(teacher.id, {"status": RESIGNED})
        await self._invalidate(scope, teacher.school_id)
        logger.info(f"Teacher '{teacher.id}' marked as {RESIGNED}.")
        return updated

    async def add_assignment(self, scope: ScopeSet, teacher_id: str, assignment: Dict[str, Any]) -> TeacherAssignment:
        teacher = await self.get_teacher(scope, teacher_id)
        created = await self.db_client.add_assignment(teacher.id, assignment)
        await self._invalidate(scope, teacher.school_id)
        return created

    async def remove_assignment(self, scope: ScopeSet, teacher_id: str, assignment_id: str):
        teacher = await self.get_teacher(scope, teacher_id)
        if not await self.db_client.remove_assignment(teacher.id, assignment_id):
            raise NotFound("Assignment not found.")
        await self._invalidate(scope, teacher.school_id)
