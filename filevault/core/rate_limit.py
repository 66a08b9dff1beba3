from __future__ import annotations

import threading
from time import monotonic, time
from typing import Dict, Tuple

from filevault.config import REDIS_URL


class RateLimiter:
    """Fixed window rate limiter with Redis or in-memory storage per client."""

    def __init__(self, limit: int, window_seconds: int = 60, namespace: str = "rate_limit") -> None:
        self.limit = max(limit, 1)
        self.window_seconds = window_seconds
        self.namespace = namespace
        self._clients: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()
        self._redis_client = self._connect_redis()

    def _connect_redis(self):
        """Return a Redis client when one is configured and reachable."""
        if not REDIS_URL:
            return None

        try:
            import redis
            client = redis.from_url(REDIS_URL)
            client.ping()
            return client
        except Exception:
            return None

    def hit(self, key: str) -> Tuple[bool, int]:
        """
        Register a hit for the given key.
        Returns (allowed, retry_after_seconds).
        """
        if self._redis_client is not None:
            return self._hit_redis(key)
        return self._hit_memory(key)

    def _hit_redis(self, key: str) -> Tuple[bool, int]:
        import redis

        now = time()
        window = int(now // self.window_seconds)
        redis_key = f"{self.namespace}:{key}:{window}"
        retry_after = max(1, int((window + 1) * self.window_seconds - now))

        try:
            pipe = self._redis_client.pipeline()
            pipe.incr(redis_key)
            pipe.expire(redis_key, self.window_seconds)
            count, _ = pipe.execute()
        except redis.RedisError:
            # Fallback to memory if Redis fails
            return self._hit_memory(key)

        if int(count) > self.limit:
            return False, retry_after
        return True, retry_after

    def _hit_memory(self, key: str) -> Tuple[bool, int]:
        now = monotonic()
        with self._lock:
            count, reset_at = self._clients.get(key, (0, now + self.window_seconds))
            if now > reset_at:
                count = 0
                reset_at = now + self.window_seconds
            if count >= self.limit:
                retry_after = max(0, int(reset_at - now))
                return False, retry_after or 1

            self._clients[key] = (count + 1, reset_at)
            retry_after = max(0, int(reset_at - now))
            return True, retry_after
