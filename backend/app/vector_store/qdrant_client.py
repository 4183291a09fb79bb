"""
Qdrant integration helpers.
"""

from __future__ import annotations

from qdrant_client import AsyncQdrantClient

from backend.app.core.config import Settings


def create_qdrant_client(settings: Settings) -> AsyncQdrantClient:
    kwargs = {"url": settings.qdrant_url}
    if settings.qdrant_api_key:
        kwargs["api_key"] = settings.qdrant_api_key
    return AsyncQdrantClient(**kwargs)
