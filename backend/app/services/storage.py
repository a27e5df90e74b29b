"""
Key-Value Storage - Best-effort persistence for client-scoped state

Holds the employer conversation log and unread map as JSON documents in
Redis, one key per employer identity scope:

Key Patterns:
    - employer_messages_{uid} - JSON array of conversation entries, newest first
    - employer_unread_{uid}   - JSON object, candidate id -> unread count

Persistence is best-effort. Conversation history is not durable data, so
nothing here raises: reads return None on a miss, a connection failure or
malformed JSON, writes return False, deletes return 0. Callers treat None
as "no persisted state".

Usage:
    storage = await get_storage()

    history = await storage.get_json("employer_messages_42", family="messages")
    if history is None:
        history = []
    await storage.set_json("employer_messages_42", history, family="messages")
"""

import json
import logging
from typing import Any, Dict, Optional

import redis.asyncio as redis

from app.config import get_settings
from app.middleware.metrics import record_storage_hit, record_storage_miss

logger = logging.getLogger(__name__)


class KeyValueStorage:
    """
    Redis-backed JSON key-value storage with graceful degradation.

    Attributes:
        redis: Async Redis client (created lazily)
        stats: Hit/miss counters per key family
    """

    def __init__(self, redis_url: str):
        """
        Initialize storage with Redis URL.

        Args:
            redis_url: Redis connection URL (e.g., redis://localhost:6379)
        """
        self.redis_url = redis_url
        self.redis: Optional[redis.Redis] = None
        self.stats: Dict[str, Dict[str, int]] = {"hits": {}, "misses": {}}

    async def _ensure_connected(self) -> Optional[redis.Redis]:
        """Ensure Redis connection is established."""
        if self.redis is None:
            try:
                self.redis = redis.from_url(
                    self.redis_url,
                    encoding="utf-8",
                    decode_responses=True
                )
            except Exception as e:
                logger.warning(f"Failed to connect to Redis: {e}")
                return None
        return self.redis

    def _count(self, outcome: str, family: str) -> None:
        bucket = self.stats[outcome]
        bucket[family] = bucket.get(family, 0) + 1
        if outcome == "hits":
            record_storage_hit(family)
        else:
            record_storage_miss(family)

    async def get_json(self, key: str, family: str = "default") -> Optional[Any]:
        """
        Read and decode a JSON document.

        Args:
            key: Storage key
            family: Key family label for stats ("messages", "unread", ...)

        Returns:
            Decoded value, or None on miss, storage error or malformed JSON
        """
        try:
            client = await self._ensure_connected()
            if not client:
                self._count("misses", family)
                return None

            raw = await client.get(key)
            if raw is None:
                self._count("misses", family)
                return None

            value = json.loads(raw)
            self._count("hits", family)
            return value

        except ValueError as e:
            logger.warning(f"Discarding malformed JSON under {key}: {e}")
            self._count("misses", family)
            return None
        except Exception as e:
            logger.warning(f"Redis get error ({family}): {e}")
            self._count("misses", family)
            return None

    async def set_json(self, key: str, value: Any, family: str = "default") -> bool:
        """
        Encode and store a JSON document, replacing any previous value.

        Returns:
            True if stored, False otherwise (failure is logged, not raised)
        """
        try:
            client = await self._ensure_connected()
            if not client:
                return False

            await client.set(key, json.dumps(value))
            return True

        except Exception as e:
            logger.warning(f"Redis set error ({family}): {e}")
            return False

    async def exists(self, *keys: str) -> int:
        """Number of the given keys that currently exist (0 on error)."""
        if not keys:
            return 0
        try:
            client = await self._ensure_connected()
            if not client:
                return 0
            return await client.exists(*keys)

        except Exception as e:
            logger.warning(f"Redis exists error: {e}")
            return 0

    async def delete(self, *keys: str) -> int:
        """
        Delete keys.

        Returns:
            Number of keys removed (0 on error)
        """
        if not keys:
            return 0
        try:
            client = await self._ensure_connected()
            if not client:
                return 0
            return await client.delete(*keys)

        except Exception as e:
            logger.warning(f"Redis delete error: {e}")
            return 0

    async def health_check(self) -> bool:
        """
        Check Redis connection health.

        Returns:
            True if Redis is responsive
        """
        try:
            client = await self._ensure_connected()
            if not client:
                return False

            await client.ping()
            return True

        except Exception as e:
            logger.warning(f"Redis health check failed: {e}")
            return False

    def get_stats(self) -> Dict[str, Dict[str, Any]]:
        """
        Get storage statistics including hit rates.

        Returns:
            Dict with stats per key family
        """
        stats = {}
        families = set(self.stats["hits"]) | set(self.stats["misses"])

        for family in sorted(families):
            hits = self.stats["hits"].get(family, 0)
            misses = self.stats["misses"].get(family, 0)
            total = hits + misses

            stats[family] = {
                "hits": hits,
                "misses": misses,
                "total": total,
                "hit_rate": hits / total if total > 0 else 0.0,
            }

        return stats

    async def close(self) -> None:
        """Close Redis connection."""
        if self.redis:
            await self.redis.close()
            self.redis = None


# ==================== Factory Function ====================

_storage_instance: Optional[KeyValueStorage] = None


async def get_storage(redis_url: Optional[str] = None) -> KeyValueStorage:
    """
    Get or create storage singleton.

    Args:
        redis_url: Optional Redis URL (uses settings if not provided)

    Returns:
        KeyValueStorage instance
    """
    global _storage_instance

    if _storage_instance is None:
        url = redis_url or get_settings().redis_url
        _storage_instance = KeyValueStorage(redis_url=url)

    return _storage_instance
