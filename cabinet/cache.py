"""
Redis key-value storage for calendar view preferences.
Only granularity and the cancelled filter are written; the pivot date and
fetched appointment windows stay in the session.
"""
import json
import logging
from typing import Any, Optional

import redis

from .config import PREFERENCES_KEY_PREFIX, REDIS_DB, REDIS_HOST, REDIS_PORT, REDIS_URL

logger = logging.getLogger(__name__)

redis_client: Optional[redis.Redis] = None


def get_redis_client() -> redis.Redis:
    """Get or create the shared Redis client"""
    global redis_client

    if redis_client is None:
        logger.info("🔄 Initializing Redis connection...")
        if REDIS_URL:
            redis_client = redis.from_url(
                REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
        else:
            redis_client = redis.Redis(
                host=REDIS_HOST,
                port=REDIS_PORT,
                db=REDIS_DB,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
        redis_client.ping()
        logger.info("Redis connected successfully")
    return redis_client


class Cache:
    """Redis cache wrapper with automatic serialization"""

    def __init__(self, client: Optional[redis.Redis] = None):
        self.redis_client = client

    def _get_client(self):
        """Lazy load Redis client"""
        if self.redis_client is None:
            try:
                self.redis_client = get_redis_client()
            except Exception as e:
                logger.warning(f"⚠️ Redis cache unavailable: {e}")
                return None
        return self.redis_client

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache"""
        client = self._get_client()
        if not client:
            return None

        try:
            value = client.get(key)
            if value:
                logger.debug(f"✅ Cache HIT: {key}")
                return json.loads(value)
            logger.debug(f"❌ Cache MISS: {key}")
            return None
        except Exception as e:
            logger.error(f"❌ Cache get error for {key}: {e}")
            return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Set value in cache; no TTL means the key never expires"""
        client = self._get_client()
        if not client:
            return False

        try:
            serialized = json.dumps(value)
            if ttl:
                client.setex(key, ttl, serialized)
            else:
                client.set(key, serialized)
            logger.debug(f"✅ Cache SET: {key} (TTL: {ttl or 'none'})")
            return True
        except Exception as e:
            logger.error(f"❌ Cache set error for {key}: {e}")
            return False

    def delete(self, key: str) -> bool:
        """Delete value from cache"""
        client = self._get_client()
        if not client:
            return False

        try:
            client.delete(key)
            logger.debug(f"✅ Cache DELETE: {key}")
            return True
        except Exception as e:
            logger.error(f"❌ Cache delete error for {key}: {e}")
            return False


# Global cache instance
cache = Cache()


def build_preferences_key(user_id: str) -> str:
    return f"{PREFERENCES_KEY_PREFIX}:{user_id}"


class PreferenceStore:
    """Persists calendar view preferences per practitioner"""

    def __init__(self, backend: Optional[Cache] = None):
        self.backend = backend or cache

    def load(self, user_id: str) -> Optional[dict]:
        return self.backend.get(build_preferences_key(user_id))

    def save(self, user_id: str, preferences: dict) -> bool:
        return self.backend.set(build_preferences_key(user_id), preferences)

    def clear(self, user_id: str) -> bool:
        return self.backend.delete(build_preferences_key(user_id))
