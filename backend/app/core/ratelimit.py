"""
Fixed-window request limiter backed by redis counters.
"""

from __future__ import annotations

import time

import redis.asyncio as redis

from backend.app.observability.logging import log_event


class RateLimiter:
    def __init__(self, client: redis.Redis, limit: int = 10, window_seconds: int = 10, prefix: str = "ratelimit"):
        self.client = client
        self.limit = limit
        self.window_seconds = max(1, window_seconds)
        self.prefix = prefix

    def _bucket_key(self, identifier: str) -> str:
        window = int(time.time() // self.window_seconds)
        return f"{self.prefix}:{identifier}:{window}"

    async def hit(self, identifier: str) -> bool:
        """Count one request for ``identifier``; False once the quota is used up."""
        key = self._bucket_key(identifier)
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.incr(key)
            pipe.expire(key, self.window_seconds)
            count, _ = await pipe.execute()
        allowed = count <= self.limit
        if not allowed:
            log_event("rate_limited", identifier=identifier, count=count, limit=self.limit)
        return allowed
