"""Memory CRUD on top of a pluggable backend.

Modes (reported by /health and /memory/stats):
    fallback     JSON file under DATA_DIR (the add-on default)
    memory       process memory only, nothing persisted
    mcp_service  proxied to an upstream memory service (MEMORY_SERVICE_URL)

If the upstream does not answer its health check at startup the service
falls back to the JSON file, the same way the add-on always has.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from memory_wrapper.core.config import Settings
from memory_wrapper.core.errors import (
    InternalError,
    NotFoundError,
    ServiceError,
    ValidationError,
)
from memory_wrapper.core.metrics import MEMORIES_STORED, MEMORY_OPERATIONS
from memory_wrapper.models.memory import Memory
from memory_wrapper.repos.http_memory_repo import HttpMemoryRepo
from memory_wrapper.repos.memory_repo import (
    InMemoryMemoryRepo,
    JsonFileMemoryRepo,
    MemoryRepo,
)

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 10
DEFAULT_LIST_LIMIT = 50


class MemoryService:
    def __init__(self, repo: MemoryRepo, *, mode: str) -> None:
        self.repo = repo
        self.mode = mode
        self._track_count()

    @property
    def backend(self) -> str:
        return self.repo.backend_name

    def _track_count(self) -> None:
        if not isinstance(self.repo, HttpMemoryRepo):
            MEMORIES_STORED.set(self.repo.count())

    def store(
        self,
        content: str,
        metadata: dict[str, Any] | None = None,
        tags: list[str] | None = None,
    ) -> Memory:
        if not isinstance(content, str) or not content.strip():
            MEMORY_OPERATIONS.labels(operation="store", outcome="rejected").inc()
            raise ValidationError(description="content is required")

        try:
            memory = self.repo.add(
                Memory.new(content=content, metadata=metadata, tags=tags)
            )
        except ServiceError:
            MEMORY_OPERATIONS.labels(operation="store", outcome="error").inc()
            raise
        except OSError as e:
            MEMORY_OPERATIONS.labels(operation="store", outcome="error").inc()
            logger.error("Could not persist memory: %s", e)
            raise InternalError(description="could not persist memory") from e

        MEMORY_OPERATIONS.labels(operation="store", outcome="ok").inc()
        self._track_count()
        logger.info("Stored memory  id=%s tags=%s", memory.id, memory.tags)
        return memory

    def search(
        self,
        query: str | None = None,
        tags: list[str] | None = None,
        limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> list[Memory]:
        if limit < 1:
            raise ValidationError(description="limit must be >= 1")
        results = self.repo.search(query or None, tags or None, limit)
        MEMORY_OPERATIONS.labels(operation="search", outcome="ok").inc()
        logger.debug(
            "Search  query_len=%d tags=%s hits=%d",
            len(query or ""),
            tags,
            len(results),
        )
        return results

    def list(
        self, limit: int = DEFAULT_LIST_LIMIT, offset: int = 0
    ) -> tuple[list[Memory], int]:
        if limit < 1 or offset < 0:
            raise ValidationError(description="limit must be >= 1 and offset >= 0")
        page = self.repo.list(limit, offset)
        MEMORY_OPERATIONS.labels(operation="list", outcome="ok").inc()
        return page

    def delete(self, memory_id: str) -> None:
        try:
            deleted = self.repo.delete(memory_id)
        except OSError as e:
            MEMORY_OPERATIONS.labels(operation="delete", outcome="error").inc()
            logger.error("Could not persist deletion of %s: %s", memory_id, e)
            raise InternalError(description="could not persist deletion") from e
        if not deleted:
            MEMORY_OPERATIONS.labels(operation="delete", outcome="not_found").inc()
            raise NotFoundError(description="Memory not found")
        MEMORY_OPERATIONS.labels(operation="delete", outcome="ok").inc()
        self._track_count()
        logger.info("Deleted memory  id=%s", memory_id)

    def stats(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "total_memories": self.repo.count(),
            "backend": self.backend,
        }

    def close(self) -> None:
        if isinstance(self.repo, HttpMemoryRepo):
            self.repo.close()


def build_memory_service(
    settings: Settings, *, transport: httpx.BaseTransport | None = None
) -> MemoryService:
    """Pick the backend from settings; probe the upstream when one is configured."""
    if settings.memory_service_url:
        upstream = HttpMemoryRepo(
            settings.memory_service_url,
            timeout=settings.memory_service_timeout,
            transport=transport,
        )
        try:
            upstream.ping()
        except ServiceError as e:
            upstream.close()
            logger.warning(
                "Memory service at %s not available (%s), using fallback mode",
                settings.memory_service_url,
                e.error,
            )
        else:
            logger.info("Using memory service at %s", settings.memory_service_url)
            return MemoryService(upstream, mode="mcp_service")

    if settings.memory_backend == "memory":
        return MemoryService(InMemoryMemoryRepo(), mode="memory")
    return MemoryService(JsonFileMemoryRepo(settings.data_dir), mode="fallback")
