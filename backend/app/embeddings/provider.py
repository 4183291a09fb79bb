"""
Local sentence-transformers embedding provider.
"""

from __future__ import annotations

from threading import Lock
from typing import Any

from fastapi.concurrency import run_in_threadpool


class SentenceTransformerEmbedder:
    """Lazily loads the model on first use; encoding runs in the threadpool."""

    def __init__(self, model_name: str):
        self.model_name = model_name
        self._model: Any = None
        self._lock = Lock()

    def _load(self):
        with self._lock:
            if self._model is None:
                from sentence_transformers import SentenceTransformer

                self._model = SentenceTransformer(self.model_name)
        return self._model

    def _encode(self, texts: list[str]) -> list[list[float]]:
        model = self._load()
        vectors = model.encode(texts, normalize_embeddings=True)
        return [list(map(float, v)) for v in vectors]

    async def embed_query(self, text: str) -> list[float]:
        vectors = await run_in_threadpool(self._encode, [text])
        return vectors[0]

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        return await run_in_threadpool(self._encode, texts)
