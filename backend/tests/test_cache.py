import asyncio
from unittest import mock

from proctorhub.core import cache as cache_module
from proctorhub.core.cache import CacheManager, acached


def test_unreachable_redis_degrades_to_miss():
    manager = CacheManager(redis_url="redis://127.0.0.1:1/0")

    assert asyncio.run(manager.aget("missing")) is None
    assert asyncio.run(manager.aset("missing", {"a": 1}, 5)) is False
    assert manager._async_client is None


def test_acached_serves_hits_and_stores_misses(monkeypatch):
    monkeypatch.setattr(cache_module.settings, "analytics_cache_ttl", 30)
    calls = []

    @acached("analytics_cache_ttl", key_prefix="summary")
    async def summary(scope):
        calls.append(scope)
        return {"scope": scope}

    stored = {}

    async def fake_get(key):
        return stored.get(key)

    async def fake_set(key, value, ttl):
        stored[key] = value
        return True

    with mock.patch.object(cache_module.cache, "aget", fake_get), \
            mock.patch.object(cache_module.cache, "aset", fake_set):
        first = asyncio.run(summary("assignment-1"))
        second = asyncio.run(summary("assignment-1"))

    assert first == second == {"scope": "assignment-1"}
    assert calls == ["assignment-1"]
    assert list(stored) == ["summary:assignment-1"]


def test_acached_bypasses_cache_when_ttl_is_zero(monkeypatch):
    monkeypatch.setattr(cache_module.settings, "analytics_cache_ttl", 0)

    @acached("analytics_cache_ttl")
    async def summary():
        return 1

    with mock.patch.object(cache_module.cache, "aget") as aget:
        assert asyncio.run(summary()) == 1
    aget.assert_not_called()
