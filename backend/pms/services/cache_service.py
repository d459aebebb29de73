"""Redis cache service for search metadata (filters, destinations)."""

import json
import logging
import uuid
from typing import Any

import redis.asyncio as redis

from pms.config import settings

logger = logging.getLogger(__name__)


class CacheService:
    """Redis-backed cache. Every failure degrades to a miss."""

    def __init__(self):
        self._redis: redis.Redis | None = None
        self._unavailable = False

    async def _get_redis(self) -> redis.Redis | None:
        if not settings.cache_enabled or self._unavailable:
            return None
        if self._redis is None:
            try:
                self._redis = redis.from_url(
                    settings.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                )
                await self._redis.ping()
            except Exception as e:
                logger.warning(f"Redis unavailable, cache disabled: {e}")
                self._redis = None
                self._unavailable = True
                return None
        return self._redis

    async def get(self, key: str) -> Any | None:
        """Get a value from cache. Returns None on miss or error."""
        try:
            r = await self._get_redis()
            if r is None:
                return None
            raw = await r.get(key)
            if raw is None:
                return None
            return json.loads(raw)
        except Exception:
            return None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """Set a value in cache with TTL. Returns False on error."""
        try:
            r = await self._get_redis()
            if r is None:
                return False
            await r.set(key, json.dumps(value, default=str), ex=ttl or settings.search_metadata_cache_ttl)
            return True
        except Exception:
            return False

    async def delete(self, key: str) -> bool:
        try:
            r = await self._get_redis()
            if r is None:
                return False
            await r.delete(key)
            return True
        except Exception:
            return False

    # Search metadata helpers

    def filters_key(self, tenant_id: uuid.UUID, property_id: uuid.UUID | None) -> str:
        return f"search:filters:{tenant_id}:{property_id or 'all'}"

    def destinations_key(self, tenant_id: uuid.UUID, limit: int) -> str:
        return f"search:destinations:{tenant_id}:{limit}"

    async def get_filters(self, tenant_id: uuid.UUID, property_id: uuid.UUID | None) -> dict | None:
        return await self.get(self.filters_key(tenant_id, property_id))

    async def set_filters(self, tenant_id: uuid.UUID, property_id: uuid.UUID | None, data: dict):
        await self.set(self.filters_key(tenant_id, property_id), data)

    async def invalidate_filters(self, tenant_id: uuid.UUID, property_ids=()):
        """Drop the tenant-wide filters and those of each touched property."""
        await self.delete(self.filters_key(tenant_id, None))
        for property_id in property_ids:
            await self.delete(self.filters_key(tenant_id, property_id))

    async def get_destinations(self, tenant_id: uuid.UUID, limit: int) -> list[dict] | None:
        return await self.get(self.destinations_key(tenant_id, limit))

    async def set_destinations(self, tenant_id: uuid.UUID, limit: int, data: list[dict]):
        await self.set(self.destinations_key(tenant_id, limit), data)

    async def close(self):
        if self._redis:
            await self._redis.aclose()
            self._redis = None
        self._unavailable = False


cache_service = CacheService()
