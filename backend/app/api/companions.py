"""
Companion browsing and management endpoints.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field, field_validator

from backend.app.core.auth.jwt_auth import AuthenticatedUser, get_current_user
from backend.app.core.errors import NotFound
from backend.app.core.resources import AppResources, get_resources
from backend.app.memory.manager import companion_namespace
from backend.app.orchestrator.types import CompanionRecord


router = APIRouter(prefix="/api", tags=["companions"])


class CompanionCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)
    instructions: str = Field(..., min_length=1)
    seed: str = ""
    description: str = ""
    src: str = ""
    category_id: Optional[str] = None


class CompanionUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    instructions: Optional[str] = Field(None, min_length=1)
    seed: Optional[str] = None
    description: Optional[str] = None
    src: Optional[str] = None
    category_id: Optional[str] = None

    @field_validator("name", "instructions", "seed", "description", "src")
    @classmethod
    def _not_null(cls, value: Optional[str]) -> str:
        # Only category_id may be cleared; the other columns are NOT NULL.
        if value is None:
            raise ValueError("field may be omitted but not null")
        return value


class CompanionResponse(BaseModel):
    id: str
    user_id: str
    user_name: str
    src: str
    name: str
    description: str
    instructions: str
    seed: str
    category_id: Optional[str]
    created_at: str
    updated_at: str
    message_count: int = 0


class CategoryResponse(BaseModel):
    id: str
    name: str


def _to_response(companion: CompanionRecord) -> CompanionResponse:
    return CompanionResponse(
        id=companion.id,
        user_id=companion.user_id,
        user_name=companion.user_name,
        src=companion.src,
        name=companion.name,
        description=companion.description,
        instructions=companion.instructions,
        seed=companion.seed,
        category_id=companion.category_id,
        created_at=companion.created_at.isoformat(),
        updated_at=companion.updated_at.isoformat(),
        message_count=companion.message_count,
    )


async def _validate_category(resources: AppResources, category_id: Optional[str]):
    if category_id and not await run_in_threadpool(resources.companions.category_exists, category_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unknown category")


async def _index_seed(resources: AppResources, companion: CompanionRecord):
    chunks = (companion.seed or "").split(resources.settings.seed_delimiter)
    await resources.memory.index_documents(chunks, companion_namespace(companion.id))


@router.get("/categories", response_model=list[CategoryResponse])
async def list_categories(resources: AppResources = Depends(get_resources)):
    rows = await run_in_threadpool(resources.companions.list_categories)
    return [CategoryResponse(**row) for row in rows]


@router.get("/companions", response_model=list[CompanionResponse])
async def list_companions(
    category_id: Optional[str] = Query(None),
    name: Optional[str] = Query(None),
    resources: AppResources = Depends(get_resources),
):
    rows = await run_in_threadpool(resources.companions.list_companions, category_id, name)
    return [_to_response(row) for row in rows]


@router.get("/companions/{companion_id}", response_model=CompanionResponse)
async def get_companion(
    companion_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    resources: AppResources = Depends(get_resources),
):
    companion = await run_in_threadpool(resources.companions.get_owned, companion_id, user.id)
    if companion is None:
        raise NotFound()
    return _to_response(companion)


@router.post("/companions", response_model=CompanionResponse, status_code=status.HTTP_201_CREATED)
async def create_companion(
    payload: CompanionCreateRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    resources: AppResources = Depends(get_resources),
):
    await _validate_category(resources, payload.category_id)
    companion = await run_in_threadpool(
        resources.companions.create_companion, user.id, user.name, payload.model_dump()
    )
    await _index_seed(resources, companion)
    return _to_response(companion)


@router.patch("/companions/{companion_id}", response_model=CompanionResponse)
async def update_companion(
    companion_id: str,
    payload: CompanionUpdateRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    resources: AppResources = Depends(get_resources),
):
    fields = payload.model_dump(exclude_unset=True)
    await _validate_category(resources, fields.get("category_id"))
    companion = await run_in_threadpool(resources.companions.update_companion, companion_id, user.id, fields)
    if companion is None:
        raise NotFound()
    if "seed" in fields:
        await resources.memory.forget_namespace(companion_namespace(companion.id))
        await _index_seed(resources, companion)
    return _to_response(companion)


@router.delete("/companions/{companion_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_companion(
    companion_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    resources: AppResources = Depends(get_resources),
):
    deleted = await run_in_threadpool(resources.companions.delete_companion, companion_id, user.id)
    if not deleted:
        raise NotFound()
    await resources.memory.forget_namespace(companion_namespace(companion_id))
