"""
Vector storage for companion knowledge.

One Qdrant collection holds every companion; each point carries a
``namespace`` payload field and searches are filtered to a single namespace.
Documents are written once at ingestion time and read many times.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import Distance, FieldCondition, Filter, MatchValue, PointStruct, VectorParams

from backend.app.observability.logging import log_event


@dataclass
class VectorDocument:
    page_content: str
    metadata: dict[str, Any] = field(default_factory=dict)
    score: float = 0.0


def _namespace_filter(namespace: str) -> Filter:
    return Filter(must=[FieldCondition(key="namespace", match=MatchValue(value=namespace))])


def _point_id(namespace: str, text: str) -> str:
    # Re-ingesting the same chunk overwrites instead of duplicating.
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"{namespace}\n{text}"))


class CompanionVectorIndex:
    def __init__(self, client: AsyncQdrantClient, collection: str, dims: int):
        self.client = client
        self.collection = collection
        self.dims = dims
        self._collection_ready = False

    async def ensure_collection(self):
        if self._collection_ready:
            return
        if not await self.client.collection_exists(self.collection):
            await self.client.create_collection(
                collection_name=self.collection,
                vectors_config=VectorParams(size=self.dims, distance=Distance.COSINE),
            )
            log_event("qdrant_collection_created", collection=self.collection)
        self._collection_ready = True

    async def add_documents(
        self,
        namespace: str,
        texts: list[str],
        vectors: list[list[float]],
    ) -> int:
        points = [
            PointStruct(
                id=_point_id(namespace, text),
                vector=vector,
                payload={"namespace": namespace, "page_content": text},
            )
            for text, vector in zip(texts, vectors)
        ]
        if not points:
            return 0
        await self.ensure_collection()
        await self.client.upsert(collection_name=self.collection, points=points, wait=True)
        return len(points)

    async def search(
        self,
        vector: list[float],
        namespace: str,
        top_k: int,
        min_score: float | None = None,
    ) -> list[VectorDocument]:
        response = await self.client.query_points(
            collection_name=self.collection,
            query=vector,
            query_filter=_namespace_filter(namespace),
            limit=top_k,
            score_threshold=min_score,
            with_payload=True,
        )
        docs: list[VectorDocument] = []
        for point in response.points:
            payload = dict(point.payload or {})
            content = str(payload.pop("page_content", "") or "")
            if not content:
                continue
            docs.append(VectorDocument(page_content=content, metadata=payload, score=float(point.score)))
        return docs

    async def delete_namespace(self, namespace: str):
        if not await self.client.collection_exists(self.collection):
            return
        await self.client.delete(
            collection_name=self.collection,
            points_selector=_namespace_filter(namespace),
            wait=True,
        )
