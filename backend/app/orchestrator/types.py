"""
Data structures for orchestrator pipeline layers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from backend.app.memory.repetition import RepetitionSignal


class MessageRole(str, Enum):
    USER = "user"
    SYSTEM = "system"


@dataclass
class MessageRecord:
    id: str
    role: str
    content: str
    user_id: str
    companion_id: str
    created_at: datetime


@dataclass
class CompanionRecord:
    id: str
    user_id: str
    user_name: str
    src: str
    name: str
    description: str
    instructions: str
    seed: str
    category_id: str | None
    created_at: datetime
    updated_at: datetime
    messages: list[MessageRecord] = field(default_factory=list)
    message_count: int = 0


@dataclass
class ContextBundle:
    dialogue: str = ""
    semantic_context: str = ""
    repetition: RepetitionSignal = field(default_factory=RepetitionSignal)


@dataclass
class PipelineResult:
    reply: str
    persisted: bool
