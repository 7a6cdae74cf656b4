from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from memory_wrapper.api.dependencies import get_memory_service, require_auth
from memory_wrapper.models.memory import Memory
from memory_wrapper.services.memory_service import (
    DEFAULT_LIST_LIMIT,
    DEFAULT_SEARCH_LIMIT,
    MemoryService,
)

# Every route here sits behind the authentication decision table.
router = APIRouter(
    prefix="/memory", tags=["memory"], dependencies=[Depends(require_auth)]
)

Memories = Annotated[MemoryService, Depends(get_memory_service)]

MAX_PAGE = 1000


class StoreMemoryRequest(BaseModel):
    content: str = Field(min_length=1)
    metadata: dict[str, Any] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)


class MemoryOut(BaseModel):
    id: str
    content: str
    metadata: dict[str, Any]
    tags: list[str]
    created_at: str
    updated_at: str

    @staticmethod
    def of(memory: Memory) -> MemoryOut:
        return MemoryOut(**memory.to_dict())


class StoreMemoryResponse(BaseModel):
    success: bool = True
    memory_id: str
    memory: MemoryOut


class SearchResponse(BaseModel):
    memories: list[MemoryOut]
    total: int


class ListResponse(BaseModel):
    memories: list[MemoryOut]
    total: int
    offset: int
    limit: int


class DeleteResponse(BaseModel):
    success: bool = True


class StatsResponse(BaseModel):
    mode: str
    total_memories: int
    backend: str


def _split_tags(tags: list[str] | None) -> list[str]:
    """Accept both ?tags=a&tags=b and ?tags=a,b."""
    if not tags:
        return []
    return [t.strip() for raw in tags for t in raw.split(",") if t.strip()]


@router.post("/store", response_model=StoreMemoryResponse)
def store_memory(body: StoreMemoryRequest, memories: Memories) -> StoreMemoryResponse:
    memory = memories.store(body.content, body.metadata, body.tags)
    return StoreMemoryResponse(memory_id=memory.id, memory=MemoryOut.of(memory))


@router.get("/search", response_model=SearchResponse)
def search_memories(
    memories: Memories,
    query: str | None = Query(None),
    tags: list[str] | None = Query(None),
    limit: int = Query(DEFAULT_SEARCH_LIMIT, ge=1, le=MAX_PAGE),
) -> SearchResponse:
    results = memories.search(query, _split_tags(tags), limit)
    return SearchResponse(
        memories=[MemoryOut.of(m) for m in results], total=len(results)
    )


@router.get("/list", response_model=ListResponse)
def list_memories(
    memories: Memories,
    limit: int = Query(DEFAULT_LIST_LIMIT, ge=1, le=MAX_PAGE),
    offset: int = Query(0, ge=0),
) -> ListResponse:
    page, total = memories.list(limit, offset)
    return ListResponse(
        memories=[MemoryOut.of(m) for m in page],
        total=total,
        offset=offset,
        limit=limit,
    )


@router.get("/stats", response_model=StatsResponse)
def memory_stats(memories: Memories) -> StatsResponse:
    return StatsResponse(**memories.stats())


@router.delete("/{memory_id}", response_model=DeleteResponse)
def delete_memory(memory_id: str, memories: Memories) -> DeleteResponse:
    memories.delete(memory_id)
    return DeleteResponse()
