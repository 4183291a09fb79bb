"""
Reconciles the raw model output back into the history and relational stores.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from backend.app.memory.manager import CompanionKey, MemoryManager


def extract_first_line(raw: str, strip_commas: bool = True) -> str:
    text = str(raw or "")
    if strip_commas:
        text = text.replace(",", "")
    return text.split("\n")[0]


class ResponseReconciler:
    def __init__(self, memory: MemoryManager, strip_commas: bool = True):
        self.memory = memory
        self.strip_commas = strip_commas

    async def reconcile(
        self,
        raw: str,
        key: CompanionKey,
        persist_message: Callable[[str], Awaitable[object]],
    ) -> tuple[str, bool]:
        """Return the streamed text and whether it was persisted."""
        reply = extract_first_line(raw, strip_commas=self.strip_commas)
        if len(reply) <= 1:
            return reply, False

        stored = reply.strip()
        await asyncio.gather(
            self.memory.write_to_history(stored, key),
            persist_message(stored),
        )
        return reply, True
