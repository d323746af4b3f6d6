# portal/backend/api/utilities/limiter.py
from typing import Optional

from fastapi import Request
import jwt
from slowapi import Limiter
from slowapi.util import get_remote_address

from ...config.config import settings


def _bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_limiter_key(request: Request) -> str:
    """
    Oturum açmış isteklerde limit hesap başına tutulur (tenant + sub), böylece
    aynı NAT arkasındaki kullanıcılar birbirinin kotasını tüketmez. Token yoksa
    veya imzası tutmuyorsa istemcinin IP adresi kullanılır.
    """
    token = _bearer_token(request)
    if token is None:
        return get_remote_address(request)
    try:
        # Süresi geçmiş token'lar da aynı hesaba sayılır; yetki kontrolü burada yapılmaz.
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM], options={"verify_exp": False})
    except jwt.PyJWTError:
        return get_remote_address(request)

    account_id, tenant_id = payload.get("sub"), payload.get("tid")
    if not account_id:
        return get_remote_address(request)
    return f"account:{tenant_id}:{account_id}"


# RATE_LIMITER_REDIS_URL verilmezse bellek içi depolama kullanılır.
limiter = Limiter(key_func=get_limiter_key, storage_uri=settings.RATE_LIMITER_REDIS_URL)
