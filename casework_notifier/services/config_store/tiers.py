"""
Storage tiers for configuration snapshots.

Every tier stores opaque string payloads under a key and exposes the same
get / put / invalidate capability set, so the resolver can layer them in any
order. Failures are logged and reported as a miss (get) or False (put,
invalidate); a broken cache never aborts a run.
"""

import time
from typing import Protocol

from casework_notifier.db.helpers import DatabaseError, execute_query, fetch_one
from casework_notifier.infrastructure.observability.logging import get_logger
from casework_notifier.services.infrastructure.redis_client import FastRedisClient

logger = get_logger(__name__)


class ConfigTier(Protocol):
    name: str

    async def get(self, key: str) -> str | None: ...

    async def put(self, key: str, value: str) -> bool: ...

    async def invalidate(self, key: str) -> bool: ...


class InMemoryTier:
    """Process-local tier with an optional TTL (used when Redis/Postgres are not configured)."""

    def __init__(self, name: str = "memory", ttl_s: int | None = None):
        self.name = name
        self._ttl_s = ttl_s
        self._store: dict[str, tuple[str, float | None]] = {}

    async def get(self, key: str) -> str | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and time.monotonic() >= expires_at:
            del self._store[key]
            return None
        return value

    async def put(self, key: str, value: str) -> bool:
        expires_at = time.monotonic() + self._ttl_s if self._ttl_s else None
        self._store[key] = (value, expires_at)
        return True

    async def invalidate(self, key: str) -> bool:
        return self._store.pop(key, None) is not None


class RedisCacheTier:
    """Fast cache tier; entries expire after the configured TTL."""

    name = "cache"

    def __init__(self, client: FastRedisClient, ttl_s: int):
        self._client = client
        self._ttl_s = ttl_s

    async def get(self, key: str) -> str | None:
        return await self._client.get(key)

    async def put(self, key: str, value: str) -> bool:
        return await self._client.set_with_ttl(key, value, self._ttl_s)

    async def invalidate(self, key: str) -> bool:
        return await self._client.delete(key)


class PostgresDurableTier:
    """Durable tier: one row per key in automation_properties, no expiry."""

    name = "durable"

    async def get(self, key: str) -> str | None:
        try:
            row = await fetch_one("SELECT value FROM automation_properties WHERE key = %s", (key,))
        except (DatabaseError, RuntimeError) as e:
            logger.error("Durable tier read failed", key=key, error=str(e))
            return None
        return row["value"] if row else None

    async def put(self, key: str, value: str) -> bool:
        try:
            await execute_query(
                """
                INSERT INTO automation_properties (key, value, updated_at)
                VALUES (%s, %s, now())
                ON CONFLICT (key) DO UPDATE
                SET value = EXCLUDED.value, updated_at = EXCLUDED.updated_at
                """,
                (key, value),
            )
        except (DatabaseError, RuntimeError) as e:
            logger.error("Durable tier write failed", key=key, error=str(e))
            return False
        return True

    async def invalidate(self, key: str) -> bool:
        try:
            deleted = await execute_query(
                "DELETE FROM automation_properties WHERE key = %s", (key,)
            )
        except (DatabaseError, RuntimeError) as e:
            logger.error("Durable tier delete failed", key=key, error=str(e))
            return False
        return deleted > 0
