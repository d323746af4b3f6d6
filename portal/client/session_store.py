import json
from abc import ABC, abstractmethod
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import jwt
from pydantic import BaseModel, ConfigDict, ValidationError

from portal.shared.roles import AccountKind, Role

logger = logging.getLogger(__name__)

# Kalıcı oturum bloğunun tek ve iyi bilinen anahtarı
SESSION_KEY = "auth"


class SessionClaim(BaseModel):
    """
    Client-side view of a token's payload. Decoded without verifying the
    signature, for display and routing only; the server stays the sole judge
    of validity.
    """
    model_config = ConfigDict(frozen=True)

    account_id: str
    role: Role
    account_kind: AccountKind
    tenant_id: str
    school_id: Optional[str] = None
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or datetime.now(timezone.utc)) >= self.expires_at


def decode_for_display(token: str) -> SessionClaim:
    payload = jwt.decode(token, options={"verify_signature": False})
    return SessionClaim(
        account_id=payload["sub"],
        role=payload["role"],
        account_kind=payload["kind"],
        tenant_id=payload["tid"],
        school_id=payload.get("sid"),
        issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc) if "iat" in payload else None,
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc) if "exp" in payload else None,
    )


class StoredSession(BaseModel):
    token: str
    account_kind: AccountKind
    role: Role
    user: Dict[str, Any] = {}

    @property
    def claim(self) -> SessionClaim:
        return decode_for_display(self.token)


class SessionStore(ABC):
    """
    The single session slot. Everything that needs the current identity gets
    a SessionStore passed in; nothing reads storage directly.
    """

    def save(self, claim: SessionClaim, token: str, user: Optional[Dict[str, Any]] = None) -> StoredSession:
        session = StoredSession(token=token, account_kind=claim.account_kind, role=claim.role, user=user or {})
        self._write(session)
        return session

    def save_token(self, token: str, user: Optional[Dict[str, Any]] = None) -> StoredSession:
        return self.save(decode_for_display(token), token, user)

    @abstractmethod
    def load(self) -> Optional[StoredSession]:
        raise NotImplementedError

    @abstractmethod
    def clear(self):
        raise NotImplementedError

    def current_claim(self) -> Optional[SessionClaim]:
        session = self.load()
        if session is None:
            return None
        try:
            claim = session.claim
        except (jwt.PyJWTError, KeyError, ValidationError):
            logger.warning("Stored token could not be decoded; treating the session as logged out.")
            return None
        # Süresi geçmiş token ile rol alt ağacına girilmez; slot sunucunun 401'i ile temizlenir.
        if claim.is_expired():
            logger.info("Stored session has expired; treating it as logged out.")
            return None
        return claim

    @abstractmethod
    def _write(self, session: StoredSession):
        raise NotImplementedError


class MemorySessionStore(SessionStore):
    def __init__(self):
        self._session: Optional[StoredSession] = None

    def load(self) -> Optional[StoredSession]:
        return self._session

    def clear(self):
        self._session = None

    def _write(self, session: StoredSession):
        self._session = session


class FileSessionStore(SessionStore):
    """
    Persists {"auth": {...}} in one JSON file. Writes go through a temporary
    file and os.replace, so another process reading the slot sees either the
    old blob or the new one, never a partial write.
    """
    def __init__(self, path: str):
        self.path = Path(path)

    def load(self) -> Optional[StoredSession]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                blob = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError):
            logger.warning(f"Session file '{self.path}' is unreadable; treating as logged out.")
            return None

        data = blob.get(SESSION_KEY) if isinstance(blob, dict) else None
        if not data:
            return None
        try:
            return StoredSession.model_validate(data)
        except ValidationError:
            logger.warning(f"Session file '{self.path}' has an invalid '{SESSION_KEY}' entry.")
            return None

    def clear(self):
        try:
            os.remove(self.path)
        except FileNotFoundError:
            pass

    def _write(self, session: StoredSession):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".session-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump({SESSION_KEY: session.model_dump(mode="json")}, f)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
