"""
Conversational memory manager.

Owns two stores per companion:
- a redis sorted set per (companion, model, user) holding raw dialogue lines
  scored by insertion time (or by sequence number when seeded);
- a namespaced vector index used for long-term semantic recall.

The manager is constructed once at process start and injected into request
handlers; it never raises on a malformed key or a failed vector search.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import redis.asyncio as redis

from backend.app.observability.logging import log_event
from backend.app.vector_store.repository import CompanionVectorIndex, VectorDocument


class Embedder(Protocol):
    async def embed_query(self, text: str) -> list[float]: ...

    async def embed_documents(self, texts: list[str]) -> list[list[float]]: ...


@dataclass(frozen=True)
class CompanionKey:
    companion_id: Optional[str]
    model_name: Optional[str]
    user_id: Optional[str]

    @property
    def is_complete(self) -> bool:
        return all(
            isinstance(part, str) and part.strip()
            for part in (self.companion_id, self.model_name, self.user_id)
        )

    def redis_key(self) -> str:
        return f"{self.companion_id}-{self.model_name}-{self.user_id}"


def companion_namespace(companion_id: str) -> str:
    return f"{companion_id}.txt"


def truncate_to_byte_budget(text: str, max_bytes: int) -> str:
    """Longest prefix of ``text`` whose UTF-8 encoding fits in ``max_bytes``."""
    if max_bytes <= 0:
        return ""
    if len(text.encode("utf-8")) <= max_bytes:
        return text

    # Invariant: text[:low] fits, text[:high] does not.
    low, high = 0, len(text)
    while low < high - 1:
        mid = (low + high) // 2
        if len(text[:mid].encode("utf-8")) <= max_bytes:
            low = mid
        else:
            high = mid
    return text[:low]


class MemoryManager:
    def __init__(
        self,
        history: redis.Redis,
        vector_index: CompanionVectorIndex,
        embedder: Embedder,
        history_window: int = 100,
        vector_top_k: int = 5,
        vector_min_score: float | None = 0.7,
        vector_query_max_bytes: int = 9700,
    ):
        self.history = history
        self.vector_index = vector_index
        self.embedder = embedder
        self.history_window = history_window
        self.vector_top_k = vector_top_k
        self.vector_min_score = vector_min_score
        self.vector_query_max_bytes = vector_query_max_bytes

    def _guard(self, key: CompanionKey | None, operation: str) -> bool:
        if key is None or not key.is_complete:
            log_event("history_key_invalid", operation=operation, key=repr(key))
            return False
        return True

    async def write_to_history(self, text: str, key: CompanionKey | None) -> Any:
        if not self._guard(key, "write"):
            return ""
        score = int(time.time() * 1000)
        return await self.history.zadd(key.redis_key(), {text: score})

    async def read_latest_history(self, key: CompanionKey | None) -> str:
        if not self._guard(key, "read"):
            return ""
        now_ms = int(time.time() * 1000)
        rows = await self.history.zrange(key.redis_key(), 0, now_ms, byscore=True)
        latest = list(rows)[-self.history_window:] if self.history_window > 0 else []
        return "\n".join(latest)

    async def seed_chat_history(self, seed: str, delimiter: str, key: CompanionKey | None) -> int:
        """Insert seed lines scored 0..n-1 unless the key already has history."""
        if not self._guard(key, "seed"):
            return 0
        redis_key = key.redis_key()
        if await self.history.exists(redis_key):
            log_event("history_already_seeded", key=redis_key)
            return 0

        lines = (seed or "").split(delimiter or "\n")
        for counter, line in enumerate(lines):
            await self.history.zadd(redis_key, {line: counter})
        return len(lines)

    async def vector_search(self, query: str, namespace: str) -> list[VectorDocument]:
        try:
            truncated = truncate_to_byte_budget(query or "", self.vector_query_max_bytes)
            vector = await self.embedder.embed_query(truncated)
            return await self.vector_index.search(
                vector,
                namespace=namespace,
                top_k=self.vector_top_k,
                min_score=self.vector_min_score,
            )
        except Exception as exc:
            log_event("vector_search_failed", namespace=namespace, error=str(exc))
            return []

    async def index_documents(self, texts: list[str], namespace: str) -> int:
        """Write seed chunks into the companion namespace. Failures are absorbed."""
        chunks = [t.strip() for t in texts if t and t.strip()]
        if not chunks:
            return 0
        try:
            vectors = await self.embedder.embed_documents(chunks)
            count = await self.vector_index.add_documents(namespace, chunks, vectors)
            log_event("vector_documents_indexed", namespace=namespace, count=count)
            return count
        except Exception as exc:
            log_event("vector_index_failed", namespace=namespace, error=str(exc))
            return 0

    async def forget_namespace(self, namespace: str):
        try:
            await self.vector_index.delete_namespace(namespace)
        except Exception as exc:
            log_event("vector_namespace_delete_failed", namespace=namespace, error=str(exc))
