import logging
from typing import Any, Dict, Optional
import json
import redis.asyncio as redis

logger = logging.getLogger(__name__)


class RedisClient:
    """
    Sunucu tarafı liste cache'ini yöneten Redis istemcisi.

    Her okulun ve tenant'ın bir versiyon anahtarı vardır. Liste anahtarları ilgili
    versiyonları içerdiği için, bir mutasyondan sonra versiyonu artırmak o
    okula ait tüm eski liste girdilerini geçersiz kılar; SCAN gerekmez.
    """

    def __init__(self, pool: Optional[redis.ConnectionPool]):
        self._redis = redis.Redis(connection_pool=pool, decode_responses=True) if pool else None

    @property
    def available(self) -> bool:
        return self._redis is not None

    # ===== Cache Versions =====

    async def get_version(self, scope_key: str) -> int:
        """scope_key örn. 'school:<id>' veya 'tenant:<id>'."""
        if not self._redis:
            return 0
        value = await self._redis.get(f"cache_version:{scope_key}")
        return int(value) if value else 0

    async def bump_versions(self, *scope_keys: str):
        """Verilen versiyonları artırır; ilgili tüm liste cache'i geçersiz olur."""
        if not self._redis or not scope_keys:
            return
        async with self._redis.pipeline(transaction=True) as pipe:
            for scope_key in scope_keys:
                pipe.incr(f"cache_version:{scope_key}")
            await pipe.execute()

    # ===== List Cache =====

    async def get_cached_list(self, key: str) -> Optional[Dict[str, Any]]:
        if not self._redis:
            return None
        cached = await self._redis.get(f"list_cache:{key}")
        return json.loads(cached) if cached else None

    async def set_cached_list(self, key: str, value: Dict[str, Any], ttl: int):
        """Liste sonucunu TTL ile kaydeder."""
        if not self._redis:
            return
        await self._redis.set(f"list_cache:{key}", json.dumps(value, default=str), ex=ttl)
