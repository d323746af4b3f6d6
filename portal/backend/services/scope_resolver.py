import logging
from abc import ABC, abstractmethod
from typing import FrozenSet, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict

from ..db.db_client import AsyncPostgresClient
from ..models.db_models import School, SchoolAccessGrants, SchoolAccessMode
from ..tools.claims import Claim
from .errors import Forbidden
from portal.shared.roles import Role

logger = logging.getLogger(__name__)


class _Scope(BaseModel, ABC):
    model_config = ConfigDict(frozen=True)

    tenant_id: str

    @abstractmethod
    def permits(self, tenant_id: str, school_id: Optional[str] = None) -> bool:
        raise NotImplementedError

    @abstractmethod
    def school_ids(self) -> Optional[FrozenSet[str]]:
        """None means every school of the tenant."""
        raise NotImplementedError


class AllSchoolsInTenant(_Scope):
    kind: Literal["ALL_SCHOOLS_IN_TENANT"] = "ALL_SCHOOLS_IN_TENANT"

    def permits(self, tenant_id: str, school_id: Optional[str] = None) -> bool:
        return tenant_id == self.tenant_id

    def school_ids(self) -> Optional[FrozenSet[str]]:
        return None


class SpecificSchools(_Scope):
    kind: Literal["SPECIFIC_SCHOOLS"] = "SPECIFIC_SCHOOLS"
    schools: FrozenSet[str] = frozenset()

    def permits(self, tenant_id: str, school_id: Optional[str] = None) -> bool:
        # Okul belirtilmemiş tenant düzeyindeki işlemler bu kapsama dahil değildir.
        return tenant_id == self.tenant_id and school_id is not None and school_id in self.schools

    def school_ids(self) -> Optional[FrozenSet[str]]:
        return self.schools


class SingleSchool(_Scope):
    kind: Literal["SINGLE_SCHOOL"] = "SINGLE_SCHOOL"
    school_id: str

    def permits(self, tenant_id: str, school_id: Optional[str] = None) -> bool:
        return tenant_id == self.tenant_id and school_id == self.school_id

    def school_ids(self) -> Optional[FrozenSet[str]]:
        return frozenset({self.school_id})


ScopeSet = Union[AllSchoolsInTenant, SpecificSchools, SingleSchool]


def scope_from_grants(claim: Claim, grants: SchoolAccessGrants) -> ScopeSet:
    """Pure part of the resolution; the mode is read, never inferred from row count."""
    if grants.mode == SchoolAccessMode.ALL_SCHOOLS:
        return AllSchoolsInTenant(tenant_id=claim.tenant_id)
    if grants.mode == SchoolAccessMode.SPECIFIC_SCHOOLS:
        return SpecificSchools(tenant_id=claim.tenant_id, schools=frozenset(grants.school_ids))
    raise Forbidden()


def ensure_in_scope(scope: ScopeSet, tenant_id: str, school_id: Optional[str] = None) -> None:
    if not scope.permits(tenant_id, school_id):
        raise Forbidden()


def narrow_school_filter(scope: ScopeSet, requested_school_id: Optional[str]) -> Optional[List[str]]:
    """
    Intersects an optional school filter with the scope.

    Returns the list of school ids a query must be restricted to, or None when
    the query may span the whole tenant. A requested school outside the scope
    raises Forbidden.
    """
    allowed = scope.school_ids()
    if requested_school_id:
        ensure_in_scope(scope, scope.tenant_id, requested_school_id)
        return [requested_school_id]
    if allowed is None:
        return None
    return sorted(allowed)


class ScopeResolver:
    """
    Computes the ScopeSet of a claim. Side-effect free: it only reads the
    grant table and only for SUPER_ADMIN claims.
    """
    def __init__(self, db_client: AsyncPostgresClient):
        self.db_client = db_client

    async def resolve(self, claim: Claim) -> ScopeSet:
        if claim.role == Role.SUPER_ADMIN:
            grants = await self.db_client.get_school_access_grants(claim.account_id, claim.tenant_id)
            if grants is None:
                logger.warning(f"Super admin '{claim.account_id}' not found in tenant '{claim.tenant_id}'.")
                raise Forbidden()
            return scope_from_grants(claim, grants)

        if not claim.school_id:
            logger.warning(f"Claim for account '{claim.account_id}' ({claim.role.value}) carries no school.")
            raise Forbidden()
        return SingleSchool(tenant_id=claim.tenant_id, school_id=claim.school_id)


async def authorize_school(db_client: AsyncPostgresClient, scope: ScopeSet, school_id: Optional[str]) -> School:
    """
    Loads a school and checks it against the scope. A missing school and a
    school outside the scope give the same Forbidden.
    """
    school = await db_client.get_school(school_id) if school_id else None
    if school is None or school.university_id != scope.tenant_id:
        raise Forbidden()
    ensure_in_scope(scope, school.university_id, school.id)
    return school
