"""Shared fixtures: in-memory stand-ins for the external collaborators."""

import dataclasses
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from backend.app.core.auth.jwt_auth import create_access_token
from backend.app.core.config import get_settings
from backend.app.core.db.relational import create_relational_engine, create_session_factory, init_relational_db
from backend.app.core.ratelimit import RateLimiter
from backend.app.core.resources import AppResources
from backend.app.memory.manager import MemoryManager
from backend.app.orchestrator.pipeline import ChatPipeline
from backend.app.services.companions import CompanionRepository
from backend.app.vector_store.repository import CompanionVectorIndex


class InMemorySortedSets:
    """Async double covering the redis commands the app issues."""

    def __init__(self):
        self.sets: dict[str, dict[str, float]] = {}
        self.counters: dict[str, int] = {}
        self.ttls: dict[str, int] = {}
        self.mutations = 0
        self.executed_transactions = []

    async def zadd(self, key, mapping):
        self.mutations += 1
        members = self.sets.setdefault(key, {})
        added = sum(1 for member in mapping if member not in members)
        members.update(mapping)
        return added

    async def zrange(self, key, start, end, byscore=False):
        members = sorted(self.sets.get(key, {}).items(), key=lambda item: (item[1], item[0]))
        if byscore:
            return [m for m, score in members if start <= score <= end]
        stop = None if end == -1 else end + 1
        return [m for m, _ in members[start:stop]]

    async def exists(self, *keys):
        return sum(1 for key in keys if key in self.sets or key in self.counters)

    async def incr(self, key):
        self.mutations += 1
        self.counters[key] = self.counters.get(key, 0) + 1
        return self.counters[key]

    async def expire(self, key, seconds):
        self.ttls[key] = seconds
        return True

    async def aclose(self):
        return None

    def pipeline(self, transaction=True):
        return InMemoryPipeline(self, transaction)


class InMemoryPipeline:
    """Queues commands and replays them against the owning double on execute."""

    def __init__(self, store, transaction):
        self.store = store
        self.transaction = transaction
        self.commands = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        self.commands.clear()

    def incr(self, key):
        self.commands.append((self.store.incr, (key,)))
        return self

    def expire(self, key, seconds):
        self.commands.append((self.store.expire, (key, seconds)))
        return self

    async def execute(self):
        self.store.executed_transactions.append(self.transaction)
        results = [await command(*args) for command, args in self.commands]
        self.commands.clear()
        return results


class FakeEmbedder:
    def __init__(self):
        self.queries = []

    async def embed_query(self, text):
        self.queries.append(text)
        return [0.1, 0.2, 0.3, 0.4]

    async def embed_documents(self, texts):
        return [[0.1, 0.2, 0.3, 0.4] for _ in texts]


class ScriptedModelClient:
    model = "test-model"

    def __init__(self, reply="Hello there!"):
        self.reply = reply
        self.prompts = []
        self.error = None

    async def generate(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def settings(tmp_path):
    return dataclasses.replace(
        get_settings(),
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
        jwt_secret="test-secret",
        groq_api_key="",
        rate_limit_requests=100,
        rate_limit_window_seconds=60,
        strip_commas=True,
    )


@pytest.fixture
def session_factory(settings):
    engine = create_relational_engine(settings.database_url)
    init_relational_db(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def companions(session_factory):
    return CompanionRepository(session_factory)


@pytest.fixture
def history():
    return InMemorySortedSets()


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def vector_index():
    index = AsyncMock(spec=CompanionVectorIndex)
    index.search.return_value = []
    index.add_documents.return_value = 0
    return index


@pytest.fixture
def memory(history, vector_index, embedder, settings):
    return MemoryManager(
        history=history,
        vector_index=vector_index,
        embedder=embedder,
        history_window=settings.history_window,
        vector_top_k=settings.vector_top_k,
        vector_min_score=settings.vector_min_score,
        vector_query_max_bytes=settings.vector_query_max_bytes,
    )


@pytest.fixture
def model_client():
    return ScriptedModelClient()


@pytest.fixture
def resources(settings, session_factory, history, memory, model_client, companions):
    limiter = RateLimiter(history, limit=settings.rate_limit_requests, window_seconds=settings.rate_limit_window_seconds)
    return AppResources(
        settings=settings,
        engine=None,
        session_factory=session_factory,
        redis=history,
        qdrant=None,
        memory=memory,
        model_client=model_client,
        rate_limiter=limiter,
        companions=companions,
        pipeline=ChatPipeline(settings, companions, memory, limiter, model_client),
    )


@pytest.fixture
def client(resources):
    from backend.main import create_app

    with TestClient(create_app(resources), raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(settings):
    token = create_access_token(settings, "user-1", name="Ada")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def companion(companions):
    return companions.create_companion(
        "owner-1",
        "Owner",
        {
            "name": "Sage",
            "instructions": "You are a calm philosopher who answers briefly.",
            "seed": "Human: Hi Sage\n\nSage: Hello, seeker.",
            "description": "A calm philosopher",
        },
    )
