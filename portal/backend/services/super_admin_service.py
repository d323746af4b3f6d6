import logging
from typing import List, Optional

import asyncpg

from ..db.db_client import AsyncPostgresClient
from ..models.db_models import Account, School, SchoolAccessGrants
from ..tools.claims import Claim
from ..tools.credentials import hash_secret
from .errors import Conflict, Forbidden, NotFound
from .scope_resolver import AllSchoolsInTenant, ScopeSet, authorize_school, narrow_school_filter
from portal.shared.roles import Role

logger = logging.getLogger(__name__)


class SuperAdminService:
    """
    Tenant-level management for super admins: schools, school admins and
    school access grants.
    """
    def __init__(self, db_client: AsyncPostgresClient):
        self.db_client = db_client

    @staticmethod
    def _require_tenant_wide(scope: ScopeSet):
        # Kısıtlı bir super admin kendi kapsamını genişletemez.
        if not isinstance(scope, AllSchoolsInTenant):
            raise Forbidden("This operation requires access to all schools of the university.")

    # --- Schools ---

    async def list_schools(self, scope: ScopeSet) -> List[School]:
        return await self.db_client.list_schools(scope.tenant_id, narrow_school_filter(scope, None))

    async def create_school(self, scope: ScopeSet, code: str, name: str, school_type: str) -> School:
        self._require_tenant_wide(scope)
        try:
            school = await self.db_client.create_school(scope.tenant_id, code, name, school_type)
        except asyncpg.UniqueViolationError as e:
            raise Conflict(f"School code '{code.upper()}' is already used in this university.") from e
        logger.info(f"School '{school.code}' created in university '{scope.tenant_id}'.")
        return school

    # --- School admins ---

    async def list_school_admins(self, scope: ScopeSet, school_id: Optional[str] = None) -> List[Account]:
        if school_id:
            await authorize_school(self.db_client, scope, school_id)
        return await self.db_client.list_school_admins(scope.tenant_id, narrow_school_filter(scope, school_id))

    async def create_school_admin(self, scope: ScopeSet, school_id: str, name: str, email: str, password: str) -> Account:
        school = await authorize_school(self.db_client, scope, school_id)
        try:
            admin = await self.db_client.create_staff_user(school, name, email, hash_secret(password), Role.ADMIN)
        except asyncpg.UniqueViolationError as e:
            raise Conflict("An account with this email already exists in the school.") from e
        logger.info(f"School admin '{admin.id}' created for school '{school.id}'.")
        return admin

    # --- Access grants ---

    async def _target_super_admin(self, claim: Claim, super_admin_id: Optional[str]) -> str:
        target_id = super_admin_id or claim.account_id
        if await self.db_client.get_super_admin(target_id, claim.tenant_id) is None:
            raise Forbidden()
        return target_id

    async def get_grants(self, claim: Claim, super_admin_id: Optional[str] = None) -> SchoolAccessGrants:
        target_id = await self._target_super_admin(claim, super_admin_id)
        grants = await self.db_client.get_school_access_grants(target_id, claim.tenant_id)
        if grants is None:
            raise NotFound("Super admin not found.")
        return grants

    async def grant_school(
        self, claim: Claim, scope: ScopeSet, school_id: str, super_admin_id: Optional[str] = None
    ) -> SchoolAccessGrants:
        """Switches the target to SPECIFIC_SCHOOLS and adds the school."""
        self._require_tenant_wide(scope)
        target_id = await self._target_super_admin(claim, super_admin_id)
        school = await authorize_school(self.db_client, scope, school_id)
        await self.db_client.add_school_access_grant(target_id, school)
        logger.info(f"School '{school.id}' granted to super admin '{target_id}'.")
        return await self.get_grants(claim, target_id)

    async def revoke_school(
        self, claim: Claim, scope: ScopeSet, school_id: str, super_admin_id: Optional[str] = None
    ) -> SchoolAccessGrants:
        """Removing the last grant explicitly returns the target to ALL_SCHOOLS."""
        self._require_tenant_wide(scope)
        target_id = await self._target_super_admin(claim, super_admin_id)
        if not await self.db_client.remove_school_access_grant(target_id, school_id):
            raise NotFound("Grant not found.")
        logger.info(f"School '{school_id}' revoked from super admin '{target_id}'.")
        return await self.get_grants(claim, target_id)
