"""
Process-wide resources, constructed once at startup and injected into
request handlers through ``get_resources``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fastapi import Request
from sqlalchemy import Engine
from sqlalchemy.orm import sessionmaker

from backend.app.core.config import Settings
from backend.app.observability.logging import log_event


@dataclass
class AppResources:
    settings: Settings
    engine: Engine | None
    session_factory: sessionmaker
    redis: Any
    qdrant: Any
    memory: Any
    model_client: Any
    rate_limiter: Any
    companions: Any
    pipeline: Any

    @classmethod
    def build(cls, settings: Settings) -> "AppResources":
        from backend.app.core.db.redis_store import create_redis_client
        from backend.app.core.db.relational import create_relational_engine, create_session_factory, init_relational_db
        from backend.app.core.llm.groq_client import GroqModelClient
        from backend.app.core.ratelimit import RateLimiter
        from backend.app.embeddings.provider import SentenceTransformerEmbedder
        from backend.app.memory.manager import MemoryManager
        from backend.app.orchestrator.pipeline import ChatPipeline
        from backend.app.services.companions import CompanionRepository
        from backend.app.vector_store.qdrant_client import create_qdrant_client
        from backend.app.vector_store.repository import CompanionVectorIndex

        engine = create_relational_engine(settings.database_url)
        init_relational_db(engine)
        session_factory = create_session_factory(engine)

        redis_client = create_redis_client(settings.redis_url)
        qdrant = create_qdrant_client(settings)
        memory = MemoryManager(
            history=redis_client,
            vector_index=CompanionVectorIndex(qdrant, settings.qdrant_collection, settings.embedding_dims),
            embedder=SentenceTransformerEmbedder(settings.embedding_model),
            history_window=settings.history_window,
            vector_top_k=settings.vector_top_k,
            vector_min_score=settings.vector_min_score,
            vector_query_max_bytes=settings.vector_query_max_bytes,
        )
        model_client = GroqModelClient.from_settings(settings)
        rate_limiter = RateLimiter(
            redis_client,
            limit=settings.rate_limit_requests,
            window_seconds=settings.rate_limit_window_seconds,
        )
        companions = CompanionRepository(session_factory)
        pipeline = ChatPipeline(settings, companions, memory, rate_limiter, model_client)

        log_event(
            "resources_ready",
            database=engine.url.render_as_string(hide_password=True),
            redis=settings.redis_url,
            qdrant=settings.qdrant_url,
            model=settings.groq_model,
        )
        return cls(
            settings=settings,
            engine=engine,
            session_factory=session_factory,
            redis=redis_client,
            qdrant=qdrant,
            memory=memory,
            model_client=model_client,
            rate_limiter=rate_limiter,
            companions=companions,
            pipeline=pipeline,
        )

    async def close(self):
        for name, closer in (
            ("model_client", getattr(self.model_client, "close", None)),
            ("redis", getattr(self.redis, "aclose", None)),
            ("qdrant", getattr(self.qdrant, "close", None)),
        ):
            if closer is None:
                continue
            try:
                await closer()
            except Exception as exc:
                log_event("resource_close_failed", resource=name, error=str(exc))
        if self.engine is not None:
            self.engine.dispose()
        log_event("resources_closed")


def get_resources(request: Request) -> AppResources:
    return request.app.state.resources
