"""
Chat endpoints: one POST per companion id, plus the caller's transcript.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from backend.app.core.auth.jwt_auth import AuthenticatedUser, get_current_user
from backend.app.core.errors import CompanionError, NotFound, Unexpected
from backend.app.core.resources import AppResources, get_resources
from backend.app.observability.logging import log_event


router = APIRouter(prefix="/api/chat", tags=["chat"])


class MessageResponse(BaseModel):
    id: str
    role: str
    content: str
    created_at: str


class TranscriptResponse(BaseModel):
    companion_id: str
    name: str
    src: str
    description: str
    message_count: int
    messages: list[MessageResponse]


@router.post("/{chat_id}")
async def chat(
    chat_id: str,
    request: Request,
    user: AuthenticatedUser = Depends(get_current_user),
    resources: AppResources = Depends(get_resources),
):
    identifier = f"{request.url.path}-{user.id}"
    try:
        # Body is read after auth; malformed bodies map to Unexpected.
        payload = await request.json()
        prompt = payload.get("prompt") if isinstance(payload, dict) else None
        if not isinstance(prompt, str):
            raise Unexpected("prompt must be a string")
        result = await resources.pipeline.run(chat_id, user.id, prompt, identifier)
    except CompanionError as exc:
        log_event("chat_request_rejected", companion_id=chat_id, user_id=user.id,
                  error_class=type(exc).__name__, error=str(exc))
        raise
    except Exception as exc:
        log_event("chat_request_failed", companion_id=chat_id, user_id=user.id,
                  error_class=type(exc).__name__, error=str(exc))
        raise Unexpected(str(exc)) from exc

    async def body():
        yield result.reply.encode("utf-8")

    return StreamingResponse(body(), media_type="text/plain; charset=utf-8")


@router.get("/{chat_id}", response_model=TranscriptResponse)
async def transcript(
    chat_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    resources: AppResources = Depends(get_resources),
):
    companion = await run_in_threadpool(resources.companions.get_transcript, chat_id, user.id)
    if companion is None:
        raise NotFound()
    return TranscriptResponse(
        companion_id=companion.id,
        name=companion.name,
        src=companion.src,
        description=companion.description,
        message_count=companion.message_count,
        messages=[
            MessageResponse(id=m.id, role=m.role, content=m.content, created_at=m.created_at.isoformat())
            for m in companion.messages
        ],
    )
