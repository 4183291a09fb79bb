"""
Platform-level API endpoints for architecture and runtime inspection.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from backend.app.core.resources import AppResources, get_resources


router = APIRouter(prefix="/api/v1/platform", tags=["platform"])


@router.get("/architecture")
async def architecture():
    diagram = """POST /api/chat/{companion_id}
-> Authenticate (bearer JWT)
-> Rate Limit (redis fixed window)
-> Load Companion + recent messages (relational)
-> Persist user message  |  Read latest history (redis)
-> Repetition Signal (word-bag overlap)
-> Seed history if empty, append user line
-> Vector Search (qdrant, namespace per companion)
-> Prompt Assembly
-> LLM Invocation (groq, timeout + fallback retry)
-> First-line Extraction
-> Persist reply (redis + relational)
-> Stream"""
    return {"diagram": diagram}


@router.get("/config")
async def platform_config(resources: AppResources = Depends(get_resources)):
    settings = resources.settings
    return {
        "app_name": settings.app_name,
        "app_env": settings.app_env,
        "model": settings.groq_model,
        "fallback_model": settings.groq_fallback_model,
        "llm_timeout_seconds": settings.llm_timeout_seconds,
        "llm_max_retries": settings.llm_max_retries,
        "generation": {
            "max_tokens": settings.llm_max_tokens,
            "temperature": settings.llm_temperature,
            "top_p": settings.llm_top_p,
            "presence_penalty": settings.llm_presence_penalty,
        },
        "history_window": settings.history_window,
        "recent_message_window": settings.recent_message_window,
        "prompt_dialogue_window": settings.prompt_dialogue_window,
        "vector_db": f"qdrant:{settings.qdrant_collection}",
        "vector_top_k": settings.vector_top_k,
        "vector_min_score": settings.vector_min_score,
        "repetition_threshold": settings.repetition_threshold,
        "rate_limit": {
            "requests": settings.rate_limit_requests,
            "window_seconds": settings.rate_limit_window_seconds,
        },
    }
