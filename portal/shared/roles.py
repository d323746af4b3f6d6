# portal/shared/roles.py
from enum import Enum


class Role(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    TEACHER = "TEACHER"
    STUDENT = "STUDENT"
    PARENT = "PARENT"


class AccountKind(str, Enum):
    """URL segment of the login endpoint; also stored in the claim."""
    SUPER_ADMIN = "super-admin"
    STAFF = "staff"
    STUDENT = "student"
    PARENT = "parent"


# Hangi hesap türü hangi rolleri taşıyabilir
ROLES_BY_ACCOUNT_KIND = {
    AccountKind.SUPER_ADMIN: frozenset({Role.SUPER_ADMIN}),
    AccountKind.STAFF: frozenset({Role.ADMIN, Role.TEACHER}),
    AccountKind.STUDENT: frozenset({Role.STUDENT}),
    AccountKind.PARENT: frozenset({Role.PARENT}),
}


def role_matches_account_kind(role: Role, account_kind: AccountKind) -> bool:
    return role in ROLES_BY_ACCOUNT_KIND[account_kind]
