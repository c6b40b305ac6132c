"""
Redis cache for availability snapshots

Keys carry a generation number. Every booking write bumps the generation, so a
snapshot computed before the write lands under a key that is never read again
and simply expires. Storage stays the source of truth; any Redis failure is a
cache miss.
"""
import json
import logging
from datetime import date
from typing import Callable, Optional

from .rate_limiter import get_redis_client

logger = logging.getLogger(__name__)

AVAILABILITY_PREFIX = "availability"
GENERATION_KEY = f"{AVAILABILITY_PREFIX}:generation"


def build_availability_key(generation: int, from_date: date, to_date: date) -> str:
    return f"{AVAILABILITY_PREFIX}:{generation}:{from_date.isoformat()}:{to_date.isoformat()}"


class AvailabilityCache:
    """Generation-keyed availability snapshots; fails open when Redis is absent"""

    def __init__(self, client_factory: Callable = get_redis_client):
        self.client_factory = client_factory
        self.redis_client = None

    def _get_client(self):
        if self.redis_client is None:
            try:
                self.redis_client = self.client_factory()
            except Exception as e:
                logger.warning(f"⚠️ Redis cache unavailable: {e}")
                return None
        return self.redis_client

    def generation(self) -> Optional[int]:
        """Current generation, or None when the cache cannot be used"""
        client = self._get_client()
        if not client:
            return None
        try:
            return int(client.get(GENERATION_KEY) or 0)
        except Exception as e:
            logger.error(f"❌ Cache generation read failed: {e}")
            return None

    def get(self, generation: int, from_date: date, to_date: date) -> Optional[dict]:
        client = self._get_client()
        if not client:
            return None
        key = build_availability_key(generation, from_date, to_date)
        try:
            value = client.get(key)
        except Exception as e:
            logger.error(f"❌ Cache get error for {key}: {e}")
            return None
        if not value:
            logger.debug(f"❌ Cache MISS: {key}")
            return None
        logger.debug(f"✅ Cache HIT: {key}")
        return json.loads(value)

    def put(self, generation: int, from_date: date, to_date: date, snapshot: dict, ttl: int) -> bool:
        """Store a snapshot under the generation it was computed in"""
        client = self._get_client()
        if not client:
            return False
        key = build_availability_key(generation, from_date, to_date)
        try:
            client.setex(key, ttl, json.dumps(snapshot))
        except Exception as e:
            logger.error(f"❌ Cache set error for {key}: {e}")
            return False
        logger.debug(f"✅ Cache SET: {key} (TTL: {ttl}s)")
        return True

    def invalidate(self) -> Optional[int]:
        """Start a new generation; returns it, or None when Redis is unavailable"""
        client = self._get_client()
        if not client:
            return None
        try:
            generation = int(client.incr(GENERATION_KEY))
        except Exception as e:
            logger.error(f"❌ Cache invalidation failed: {e}")
            return None
        logger.debug(f"🔄 Availability cache generation {generation}")
        return generation


# Global cache instance
cache = AvailabilityCache()
