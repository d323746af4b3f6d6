# tests/conftest.py
import asyncio
import os
import sys

# Uygulama ayarları import sırasında okunduğu için test ortamı önce kurulur.
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256")
os.environ.setdefault("RATE_LIMITER_REDIS_URL", "memory://")
os.environ.setdefault("PASSWORD_HASH_METHOD", "pbkdf2:sha256:1000")
os.environ.setdefault("LOG_DIR", os.path.join(os.path.dirname(__file__), ".logs"))

import pytest

from portal.backend.api.utilities.limiter import limiter
from portal.backend.tools.claims import encode_claim
from portal.shared.roles import AccountKind, Role

# This is the crucial fix for Windows asyncio issues with pytest.
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Her test temiz bir rate limit sayacıyla başlar."""
    limiter.reset()
    yield


KIND_BY_ROLE = {
    Role.SUPER_ADMIN: AccountKind.SUPER_ADMIN,
    Role.ADMIN: AccountKind.STAFF,
    Role.TEACHER: AccountKind.STAFF,
    Role.STUDENT: AccountKind.STUDENT,
    Role.PARENT: AccountKind.PARENT,
}


@pytest.fixture
def make_token():
    """Role için geçerli (veya expires_delta ile süresi geçmiş) imzalı bir token üretir."""
    def _make(role: Role = Role.TEACHER, account_id: str = "u-1", tenant_id: str = "uni-1", school_id="s-a", expires_delta=None):
        if role == Role.SUPER_ADMIN:
            school_id = None
        return encode_claim(
            account_id, role, KIND_BY_ROLE[role], tenant_id, school_id=school_id, expires_delta=expires_delta
        )
    return _make
