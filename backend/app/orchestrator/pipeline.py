"""
Chat request pipeline.

RateLimit -> LoadCompanion -> PersistUserMessage -> RepetitionSignal ->
LoadOrSeedMemory -> VectorSearch -> AssemblePrompt -> InvokeModel ->
ExtractFirstLine -> PersistResponse.

Steps run strictly in order; independent I/O inside a step is gathered.
Writes made before a later failure are not rolled back.
"""

from __future__ import annotations

import asyncio
import time

from fastapi.concurrency import run_in_threadpool

from backend.app.core.config import Settings
from backend.app.core.errors import NotFound, RateLimitExceeded
from backend.app.core.llm.groq_client import GroqModelClient
from backend.app.core.ratelimit import RateLimiter
from backend.app.memory.manager import CompanionKey, MemoryManager, companion_namespace
from backend.app.memory.repetition import detect_repetition
from backend.app.observability.logging import log_event
from backend.app.orchestrator.prompt_assembler import PromptAssembler
from backend.app.orchestrator.reconciler import ResponseReconciler
from backend.app.orchestrator.types import CompanionRecord, ContextBundle, MessageRole, PipelineResult
from backend.app.services.companions import CompanionRepository


def format_dialogue(companion: CompanionRecord) -> str:
    """Role-labelled transcript of the loaded messages, oldest first."""
    lines = []
    for message in reversed(companion.messages):
        speaker = "User" if message.role == MessageRole.USER.value else companion.name
        lines.append(f"{speaker}: {message.content}")
    return "\n".join(lines)


class ChatPipeline:
    def __init__(
        self,
        settings: Settings,
        companions: CompanionRepository,
        memory: MemoryManager,
        rate_limiter: RateLimiter,
        model_client: GroqModelClient,
        assembler: PromptAssembler | None = None,
        reconciler: ResponseReconciler | None = None,
    ):
        self.settings = settings
        self.companions = companions
        self.memory = memory
        self.rate_limiter = rate_limiter
        self.model_client = model_client
        self.assembler = assembler or PromptAssembler(dialogue_window=settings.prompt_dialogue_window)
        self.reconciler = reconciler or ResponseReconciler(memory, strip_commas=settings.strip_commas)

    async def run(self, companion_id: str, user_id: str, prompt: str, identifier: str) -> PipelineResult:
        started = time.perf_counter()

        if not await self.rate_limiter.hit(identifier):
            raise RateLimitExceeded()

        companion = await run_in_threadpool(
            self.companions.get_with_recent_messages,
            companion_id,
            user_id,
            self.settings.recent_message_window,
        )
        if companion is None:
            raise NotFound()

        key = CompanionKey(companion_id=companion.id, model_name=self.model_client.model, user_id=user_id)

        _, history = await asyncio.gather(
            run_in_threadpool(self.companions.add_message, companion.id, user_id, MessageRole.USER.value, prompt),
            self.memory.read_latest_history(key),
        )

        repetition = detect_repetition(
            prompt,
            (m.content for m in companion.messages),
            threshold=self.settings.repetition_threshold,
        )

        if not history:
            await self.memory.seed_chat_history(companion.seed, self.settings.seed_delimiter, key)
            history = await self.memory.read_latest_history(key)
        user_line = f"User: {prompt}\n"
        await self.memory.write_to_history(user_line, key)

        query = "\n".join(part for part in (history, user_line) if part)
        docs = await self.memory.vector_search(query, companion_namespace(companion.id))

        context = ContextBundle(
            dialogue=format_dialogue(companion),
            semantic_context="\n".join(doc.page_content for doc in docs),
            repetition=repetition,
        )
        prompt_text = self.assembler.build(companion.name, companion.instructions, prompt, context)

        raw = await self.model_client.generate(prompt_text)

        async def persist_reply(content: str):
            return await run_in_threadpool(
                self.companions.add_message, companion.id, user_id, MessageRole.SYSTEM.value, content
            )

        reply, persisted = await self.reconciler.reconcile(raw, key, persist_reply)
        log_event(
            "chat_turn_completed",
            companion_id=companion.id,
            user_id=user_id,
            repetitive=repetition.is_repetitive,
            semantic_docs=len(docs),
            persisted=persisted,
            latency_ms=int((time.perf_counter() - started) * 1000),
        )
        return PipelineResult(reply=reply, persisted=persisted)
