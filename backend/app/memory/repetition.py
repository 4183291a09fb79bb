"""
Lexical repetition detection between the incoming prompt and recent messages.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Iterable


@dataclass
class RepetitionSignal:
    is_repetitive: bool = False
    last_response: str = ""
    score: float = 0.0


def _words(text: str) -> list[str]:
    return [w for w in (text or "").lower().split() if w]


def word_overlap_similarity(left: str, right: str) -> float:
    """Shared word count (bag intersection) over the larger word count."""
    left_words = _words(left)
    right_words = _words(right)
    longest = max(len(left_words), len(right_words))
    if longest == 0:
        return 0.0
    shared = sum((Counter(left_words) & Counter(right_words)).values())
    return shared / longest


def detect_repetition(prompt: str, recent_messages: Iterable[str], threshold: float = 0.6) -> RepetitionSignal:
    """
    Scan ``recent_messages`` newest first and flag the first one whose
    overlap with ``prompt`` exceeds ``threshold``.
    """
    prompt_len = len(_words(prompt))
    for content in recent_messages:
        if not content:
            continue
        # Bag overlap is bounded by min/max of the two lengths.
        other_len = len(_words(content))
        longest = max(prompt_len, other_len)
        if longest == 0 or min(prompt_len, other_len) / longest <= threshold:
            continue
        score = word_overlap_similarity(prompt, content)
        if score > threshold:
            return RepetitionSignal(is_repetitive=True, last_response=content, score=score)
    return RepetitionSignal()
