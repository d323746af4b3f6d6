import logging
from typing import Any, Dict, Optional

import asyncpg
from pydantic import BaseModel

from ..db.db_client import AsyncPostgresClient
from ..models.db_models import Account, School
from ..tools.claims import Claim, encode_claim
from ..tools.credentials import burn_verification_time, hash_secret, verify_secret
from .errors import Conflict, Forbidden, NotFound, StorageError, Unauthenticated, ValidationFailed
from .scope_resolver import ScopeSet
from portal.shared.roles import AccountKind, Role, role_matches_account_kind

logger = logging.getLogger(__name__)

INVALID_LOGIN_MESSAGE = "Invalid email or password."


class AccountSummary(BaseModel):
    """What the client keeps next to the token for display."""
    id: str
    name: str
    email: str
    role: Role
    account_kind: AccountKind
    university_id: str
    school_id: Optional[str] = None


class LoginResult(BaseModel):
    token: str
    token_type: str = "bearer"
    account: AccountSummary


class AuthService:
    """
    Login, tenant registration and the super admin's own profile.
    """
    def __init__(self, db_client: AsyncPostgresClient):
        self.db_client = db_client

    def _check_password(self, password: str, account: Optional[Account]) -> Account:
        if account is None:
            burn_verification_time(password)
            raise Unauthenticated(INVALID_LOGIN_MESSAGE)
        try:
            matches = verify_secret(password, account.password_hash)
        except StorageError:
            # Hash detayı dışarı sızmaz; sadece loglanır.
            logger.error(f"Credential record of account '{account.id}' could not be read.")
            raise Unauthenticated(INVALID_LOGIN_MESSAGE)
        if not matches:
            raise Unauthenticated(INVALID_LOGIN_MESSAGE)
        return account

    async def _resolve_school(self, school_code: Optional[str], university_code: Optional[str], password: str) -> School:
        if not school_code:
            raise ValidationFailed("School code is required.", {"school_code": ["This field is required."]})
        schools = await self.db_client.get_schools_by_code(school_code, university_code)
        if not schools:
            burn_verification_time(password)
            raise Unauthenticated(INVALID_LOGIN_MESSAGE)
        if len(schools) > 1:
            raise ValidationFailed(
                "School code is ambiguous.",
                {"university_code": ["Several universities use this school code; please specify the university."]},
            )
        school = schools[0]
        if not school.is_active:
            raise Forbidden("This school is not active.")
        return school

    async def login(
        self,
        account_kind: AccountKind,
        email: str,
        password: str,
        school_code: Optional[str] = None,
        university_code: Optional[str] = None,
    ) -> LoginResult:
        if account_kind == AccountKind.SUPER_ADMIN:
            account = self._check_password(password, await self.db_client.get_super_admin_by_email(email))
        else:
            school = await self._resolve_school(school_code, university_code, password)
            account = self._check_password(
                password, await self.db_client.get_school_account(account_kind, email, school)
            )

        if not role_matches_account_kind(account.role, account_kind):
            logger.warning(f"Account '{account.id}' has role {account.role.value} which does not fit {account_kind.value}.")
            raise Unauthenticated(INVALID_LOGIN_MESSAGE)
        if not account.is_active:
            raise Forbidden("This account is inactive.")
        if account_kind == AccountKind.STUDENT and account.status and account.status != "ACTIVE":
            raise Forbidden("This student account is suspended.")

        await self.db_client.touch_last_login(account_kind, account.id)
        token = encode_claim(
            account_id=account.id,
            role=account.role,
            account_kind=account_kind,
            tenant_id=account.university_id,
            school_id=None if account.role == Role.SUPER_ADMIN else account.school_id,
        )
        logger.info(f"Account '{account.id}' logged in as {account.role.value}.")
        return LoginResult(token=token, account=self._summary(account, account_kind))

    async def register_super_admin(self, university: Dict[str, Any], admin: Dict[str, Any]) -> LoginResult:
        """
        Creates a tenant together with its first super admin. The admin starts
        in ALL_SCHOOLS mode with no grants.
        """
        admin = dict(admin)
        admin["password_hash"] = hash_secret(admin.pop("password"))
        try:
            created_university, super_admin = await self.db_client.register_university(university, admin)
        except asyncpg.UniqueViolationError as e:
            logger.info(f"Registration rejected, duplicate value: {getattr(e, 'constraint_name', None)}")
            raise Conflict("University code or admin email is already in use.") from e

        logger.info(f"University '{created_university.code}' registered with super admin '{super_admin.id}'.")
        token = encode_claim(
            account_id=super_admin.id,
            role=Role.SUPER_ADMIN,
            account_kind=AccountKind.SUPER_ADMIN,
            tenant_id=created_university.id,
        )
        return LoginResult(token=token, account=self._summary(super_admin, AccountKind.SUPER_ADMIN))

    async def get_super_admin_profile(self, claim: Claim, scope: ScopeSet) -> Dict[str, Any]:
        super_admin = await self.db_client.get_super_admin(claim.account_id, claim.tenant_id)
        university = await self.db_client.get_university(claim.tenant_id)
        if super_admin is None or university is None:
            raise NotFound("Super admin not found.")
        allowed = scope.school_ids()
        schools = await self.db_client.list_schools(claim.tenant_id, sorted(allowed) if allowed is not None else None)
        return {
            "admin": self._summary(super_admin, AccountKind.SUPER_ADMIN),
            "school_access_mode": super_admin.school_access_mode,
            "university": university,
            "schools": schools,
        }

    @staticmethod
    def _summary(account: Account, account_kind: AccountKind) -> AccountSummary:
        return AccountSummary(
            id=account.id,
            name=account.name,
            email=account.email,
            role=account.role,
            account_kind=account_kind,
            university_id=account.university_id,
            school_id=account.school_id,
        )
