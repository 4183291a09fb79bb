"""
Groq LLM Client

Single source of truth for model calls. The assembled prompt is sent as one
user-role message; every attempt runs under a wall-clock timeout and a failed
attempt is retried against the fallback model.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from groq import AsyncGroq

from backend.app.core.config import Settings
from backend.app.core.errors import UpstreamFailure
from backend.app.observability.logging import log_event


@dataclass(frozen=True)
class GenerationParams:
    max_tokens: int = 512
    temperature: float = 0.98
    top_p: float = 0.95
    presence_penalty: float | None = 1.8


class GroqModelClient:
    def __init__(
        self,
        client: Any,
        model: str,
        fallback_model: str | None = None,
        params: GenerationParams | None = None,
        timeout_seconds: float = 30.0,
        max_retries: int = 1,
    ):
        self.client = client
        self.model = model
        self.fallback_model = fallback_model or model
        self.params = params or GenerationParams()
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries

    @classmethod
    def from_settings(cls, settings: Settings) -> "GroqModelClient":
        return cls(
            client=AsyncGroq(api_key=settings.groq_api_key or None),
            model=settings.groq_model,
            fallback_model=settings.groq_fallback_model,
            params=GenerationParams(
                max_tokens=settings.llm_max_tokens,
                temperature=settings.llm_temperature,
                top_p=settings.llm_top_p,
                presence_penalty=settings.llm_presence_penalty,
            ),
            timeout_seconds=settings.llm_timeout_seconds,
            max_retries=settings.llm_max_retries,
        )

    async def _complete(self, model: str, prompt: str) -> str:
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": self.params.max_tokens,
            "temperature": self.params.temperature,
            "top_p": self.params.top_p,
        }
        if self.params.presence_penalty is not None:
            kwargs["presence_penalty"] = self.params.presence_penalty

        response = await self.client.chat.completions.create(**kwargs)
        if not response or not response.choices:
            raise RuntimeError("Empty response from Groq")
        content = response.choices[0].message.content
        if content is None:
            raise RuntimeError("Empty response from Groq")
        return content

    async def generate(self, prompt: str) -> str:
        """
        Return raw generated text.

        Raises:
            UpstreamFailure: every attempt failed or timed out.
        """
        models = [self.model] + [self.fallback_model] * self.max_retries
        last_error: Exception | None = None
        for attempt, model in enumerate(models, start=1):
            try:
                return await asyncio.wait_for(self._complete(model, prompt), timeout=self.timeout_seconds)
            except asyncio.TimeoutError as exc:
                last_error = exc
                log_event("llm_attempt_timeout", logging.WARNING, model=model, attempt=attempt,
                          timeout_seconds=self.timeout_seconds)
            except Exception as exc:
                last_error = exc
                log_event("llm_attempt_failed", logging.WARNING, model=model, attempt=attempt, error=str(exc))
        raise UpstreamFailure(f"Model call failed after {len(models)} attempt(s): {last_error!r}")

    async def close(self):
        close = getattr(self.client, "close", None)
        if close is not None:
            await close()
