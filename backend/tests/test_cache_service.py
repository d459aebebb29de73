"""
Tests for the search metadata cache: degradation when Redis is down, invalidation.
"""

import logging
from decimal import Decimal

from conftest import TENANT_ID, add_nights
from pms.config import settings
from pms.services import cache_service as cache_module
from pms.services.cache_service import CacheService
from pms.services.inventory_service import inventory_service


class _DownRedis:
    async def ping(self):
        raise ConnectionError("Connection refused")


class TestUnavailableRedis:

    async def test_warns_once_and_stops_retrying(self, monkeypatch, caplog):
        connects = []

        def from_url(*args, **kwargs):
            connects.append(args)
            return _DownRedis()

        monkeypatch.setattr(settings, "cache_enabled", True)
        monkeypatch.setattr(cache_module.redis, "from_url", from_url)
        cache = CacheService()

        with caplog.at_level(logging.WARNING, logger="pms.services.cache_service"):
            assert await cache.get("search:filters:x") is None
            assert await cache.set("search:filters:x", {"a": 1}) is False
            assert await cache.get_destinations(TENANT_ID, 10) is None

        assert len(connects) == 1
        assert len([r for r in caplog.records if "Redis unavailable" in r.getMessage()]) == 1

    async def test_close_allows_reconnect(self, monkeypatch):
        connects = []

        def from_url(*args, **kwargs):
            connects.append(args)
            return _DownRedis()

        monkeypatch.setattr(settings, "cache_enabled", True)
        monkeypatch.setattr(cache_module.redis, "from_url", from_url)
        cache = CacheService()

        await cache.get("k")
        await cache.close()
        await cache.get("k")
        assert len(connects) == 2


class TestFilterInvalidation:

    async def test_price_edit_drops_cached_filters(self, db, hotel, stay_start, monkeypatch):
        deleted = []

        async def record_delete(key):
            deleted.append(key)
            return True

        monkeypatch.setattr(cache_module.cache_service, "delete", record_delete)
        (record,) = await add_nights(db, hotel, hotel.standard, stay_start, 1)
        await inventory_service.update(db, TENANT_ID, record.id, {"price": Decimal("180.00")})

        cache = cache_module.cache_service
        assert deleted == [
            cache.filters_key(TENANT_ID, None),
            cache.filters_key(TENANT_ID, hotel.property.id),
        ]

    async def test_bulk_update_without_success_keeps_cache(self, db, hotel, stay_start, monkeypatch):
        deleted = []

        async def record_delete(key):
            deleted.append(key)
            return True

        monkeypatch.setattr(cache_module.cache_service, "delete", record_delete)
        await inventory_service.bulk_update(db, TENANT_ID, [
            {"room_id": hotel.room.id, "rate_plan_id": hotel.standard.id, "date": stay_start, "price": Decimal("90")},
        ])
        assert deleted == []
