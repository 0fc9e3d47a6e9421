"""
propertyhub/cache.py

Redis-backed key-value cache client.

Fail-open contract: every operation absorbs store errors, logs them, and
degrades to a miss (get) or a no-op (set/delete). A request must never fail
because the cache is down.

Lifecycle: one client per process, created and connected in the app
lifespan, closed on shutdown, injected into services. Without REDIS_URL the
client runs disabled and every call is a miss/no-op.
"""

from __future__ import annotations

import json
from typing import Any, Optional

import redis

from propertyhub.config import CACHE_KEY_PREFIX, IS_DEV, REDIS_SOCKET_TIMEOUT, REDIS_URL

# Keys deleted per DEL call during pattern deletion
_DELETE_BATCH = 500


class CacheClient:
    """Thin fail-open wrapper around a redis.Redis connection pool."""

    def __init__(
        self,
        url: str = REDIS_URL,
        key_prefix: str = CACHE_KEY_PREFIX,
        redis_client: Optional[redis.Redis] = None,
    ):
        self.url = url
        self.key_prefix = key_prefix
        self._client: Optional[redis.Redis] = redis_client

    @property
    def enabled(self) -> bool:
        return self._client is not None

    def connect(self) -> None:
        """Create the connection pool and ping once. Never raises."""
        if self._client is None:
            if not self.url:
                print("[CACHE] REDIS_URL not set - running without cache")
                return
            self._client = redis.Redis.from_url(
                self.url,
                decode_responses=True,
                socket_timeout=REDIS_SOCKET_TIMEOUT,
                socket_connect_timeout=REDIS_SOCKET_TIMEOUT,
                health_check_interval=30,
            )

        try:
            self._client.ping()
            print("[CACHE] Connected to Redis")
        except redis.RedisError as e:
            # Keep the client: redis-py reconnects on the next command once the store is back
            print(f"[CACHE] Redis ping failed, serving uncached until it recovers: {e}")

    def close(self) -> None:
        if self._client is None:
            return
        try:
            self._client.close()
        except redis.RedisError as e:
            print(f"[CACHE] Error closing Redis connection: {e}")
        self._client = None
        print("[CACHE] Redis connection closed")

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None on miss or any store failure."""
        if self._client is None:
            return None
        full_key = self._key(key)
        try:
            raw = self._client.get(full_key)
        except redis.RedisError as e:
            print(f"[CACHE] get error for {full_key}: {e}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            print(f"[CACHE] Discarding undecodable entry {full_key}: {e}")
            return None

    def set(self, key: str, value: Any, ttl_seconds: int) -> bool:
        """Store a JSON snapshot with a TTL. Returns False when nothing was written."""
        if self._client is None:
            return False
        full_key = self._key(key)
        try:
            payload = json.dumps(value, separators=(",", ":"))
        except (TypeError, ValueError) as e:
            print(f"[CACHE] Value for {full_key} is not JSON serializable: {e}")
            return False
        try:
            self._client.setex(full_key, ttl_seconds, payload)
        except redis.RedisError as e:
            print(f"[CACHE] set error for {full_key}: {e}")
            return False
        return True

    def delete(self, *keys: str) -> int:
        """Exact-key delete. Returns the number of keys removed (0 on failure)."""
        if self._client is None or not keys:
            return 0
        full_keys = [self._key(k) for k in keys]
        try:
            return int(self._client.delete(*full_keys))
        except redis.RedisError as e:
            print(f"[CACHE] delete error for {full_keys}: {e}")
            return 0

    def delete_pattern(self, pattern: str) -> int:
        """
        Delete every key matching a glob pattern (SCAN MATCH + DEL).

        Best-effort: a store failure part-way leaves the remaining keys to
        expire through their TTL.
        """
        if self._client is None:
            return 0
        full_pattern = self._key(pattern)
        deleted = 0
        batch = []
        try:
            for key in self._client.scan_iter(match=full_pattern, count=_DELETE_BATCH):
                batch.append(key)
                if len(batch) >= _DELETE_BATCH:
                    deleted += int(self._client.delete(*batch))
                    batch = []
            if batch:
                deleted += int(self._client.delete(*batch))
        except redis.RedisError as e:
            print(f"[CACHE] delete_pattern error for {full_pattern}: {e}")
            return deleted

        if IS_DEV:
            print(f"[CACHE] delete_pattern {full_pattern}: removed {deleted}")
        return deleted
