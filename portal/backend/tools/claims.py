import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from ..config.config import settings
from ..services.errors import Unauthenticated
from portal.shared.roles import Role, AccountKind, role_matches_account_kind

logger = logging.getLogger(__name__)


class InvalidToken(Unauthenticated):
    """Signature, format or payload problem. Tampered tokens always end here."""
    def __init__(self, message: str = "Invalid authentication token."):
        super().__init__(message, code="INVALID_TOKEN")


class TokenExpired(Unauthenticated):
    """The token verified but its expiry has passed."""
    def __init__(self, message: str = "Session expired. Please log in again."):
        super().__init__(message, code="TOKEN_EXPIRED")


class Claim(BaseModel):
    """
    Decoded, verified identity assertion. Never persisted and never mutated;
    a role or tenant change requires issuing a new token.
    """
    account_id: str
    role: Role
    account_kind: AccountKind
    tenant_id: str
    school_id: Optional[str] = Field(None, description="Set for every role except SUPER_ADMIN.")
    issued_at: datetime
    expires_at: datetime

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_role_and_kind(self):
        if not role_matches_account_kind(self.role, self.account_kind):
            raise ValueError(f"Role {self.role.value} is not valid for account kind {self.account_kind.value}")
        return self

    def to_payload(self) -> dict:
        payload = {
            "sub": self.account_id,
            "role": self.role.value,
            "kind": self.account_kind.value,
            "tid": self.tenant_id,
            "iat": self.issued_at,
            "exp": self.expires_at,
        }
        if self.school_id is not None:
            payload["sid"] = self.school_id
        return payload

    @classmethod
    def from_payload(cls, payload: dict) -> "Claim":
        return cls(
            account_id=payload.get("sub"),
            role=payload.get("role"),
            account_kind=payload.get("kind"),
            tenant_id=payload.get("tid"),
            school_id=payload.get("sid"),
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )


def encode_claim(
    account_id: str,
    role: Role,
    account_kind: AccountKind,
    tenant_id: str,
    school_id: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
    now: Optional[datetime] = None,
) -> str:
    """Verilen kimlik bilgileriyle imzalı ve süresi sınırlı yeni bir JWT oluşturur."""
    issued_at = (now or datetime.now(timezone.utc)).replace(microsecond=0)
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claim = Claim(
        account_id=account_id,
        role=role,
        account_kind=account_kind,
        tenant_id=tenant_id,
        school_id=school_id,
        issued_at=issued_at,
        expires_at=issued_at + expires_delta,
    )
    return jwt.encode(claim.to_payload(), settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_claim(token: str) -> Claim:
    """
    Token'ı doğrular ve Claim'e çevirir.

    PyJWT imzayı süre kontrolünden önce doğrular; bu yüzden değiştirilmiş bir
    token her zaman InvalidToken, imzası sağlam ama süresi geçmiş bir token
    her zaman TokenExpired ile sonuçlanır.
    """
    if not token:
        raise InvalidToken()
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            options={"require": ["exp", "iat", "sub"]},
        )
        return Claim.from_payload(payload)
    except jwt.ExpiredSignatureError:
        raise TokenExpired()
    except (jwt.PyJWTError, ValidationError, KeyError, TypeError, ValueError) as e:
        logger.warning(f"Token validation error: {type(e).__name__}")
        raise InvalidToken()
