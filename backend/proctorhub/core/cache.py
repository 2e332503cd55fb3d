import redis.asyncio as aioredis
import json
import logging
from typing import Any, Optional
from functools import wraps
from .config import settings

logger = logging.getLogger(__name__)


class CacheManager:
    """Redis cache; every failure degrades to a cache miss"""

    def __init__(self, redis_url: Optional[str] = None, default_ttl: Optional[int] = None):
        self.redis_url = redis_url or settings.redis_url
        self.default_ttl = default_ttl or settings.cache_default_ttl
        self._async_client = None

    async def get_async_client(self) -> aioredis.Redis:
        if self._async_client is None:
            try:
                self._async_client = aioredis.from_url(
                    self.redis_url,
                    decode_responses=True,
                    socket_connect_timeout=2,
                    socket_timeout=2,
                    retry_on_timeout=True,
                    health_check_interval=30
                )
                await self._async_client.ping()
            except Exception as e:
                logger.warning(f"Failed to create async Redis client: {e}")
                self._async_client = None
                raise
        return self._async_client

    def _serialize_value(self, value: Any) -> str:
        return json.dumps(value, default=str)

    def _deserialize_value(self, value: Optional[str]) -> Any:
        if value is None:
            return None
        try:
            return json.loads(value)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Cache deserialization error: {e}")
            return None

    def _forget_client_on(self, error: Exception):
        if "connection" in str(error).lower() or "timeout" in str(error).lower():
            self._async_client = None

    async def aget(self, key: str) -> Optional[Any]:
        try:
            client = await self.get_async_client()
            value = await client.get(key)
            return self._deserialize_value(value)
        except Exception as e:
            logger.warning(f"Async cache get error for key '{key}': {e}")
            self._forget_client_on(e)
            return None

    async def aset(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        try:
            client = await self.get_async_client()
            result = await client.setex(key, ttl or self.default_ttl, self._serialize_value(value))
            return bool(result)
        except Exception as e:
            logger.warning(f"Async cache set error for key '{key}': {e}")
            self._forget_client_on(e)
            return False

    async def ahealth_check(self) -> bool:
        try:
            client = await self.get_async_client()
            return bool(await client.ping())
        except Exception as e:
            logger.warning(f"Cache health check failed: {e}")
            return False

    async def aclose(self):
        if self._async_client is not None:
            await self._async_client.close()
            self._async_client = None


cache = CacheManager()


def acached(ttl_setting: str, key_prefix: str = ""):
    """
    Async decorator caching a coroutine's JSON-serializable result.

    The TTL is read from ``settings`` on every call so tests and deployments
    can switch caching off with a value of 0.
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            ttl = getattr(settings, ttl_setting, 0)
            if ttl <= 0:
                return await func(*args, **kwargs)

            key_parts = [key_prefix or func.__name__]
            key_parts.extend(str(arg) for arg in args)
            key_parts.extend(f"{k}:{v}" for k, v in sorted(kwargs.items()))
            cache_key = ":".join(key_parts)

            result = await cache.aget(cache_key)
            if result is not None:
                return result

            result = await func(*args, **kwargs)
            await cache.aset(cache_key, result, ttl)
            return result
        return wrapper
    return decorator
