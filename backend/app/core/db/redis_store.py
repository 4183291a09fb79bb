"""
Redis connection helper for the key-value history store and rate limiter.
"""

from __future__ import annotations

import redis.asyncio as redis


def create_redis_client(redis_url: str) -> redis.Redis:
    # Members are stored as text lines, so responses are decoded to str.
    return redis.from_url(redis_url, encoding="utf-8", decode_responses=True)
