"""Health, readiness, metrics and service info endpoints.

/health is what the Home Assistant supervisor (and the add-on watchdog)
polls: it never requires credentials and always answers 200 while the
process can serve requests.  /ready additionally checks that the memory
backend answers, so a proxy can stop routing while an upstream memory
service is down.  /info is the authenticated, more detailed variant.

/metrics serves the Prometheus text format.  Like /health it is open;
restrict it at the network layer if request rates and error codes should
not be visible to other users of the add-on.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from memory_wrapper.api.dependencies import (
    get_memory_service,
    get_settings,
    require_auth,
)
from memory_wrapper.core.config import Settings
from memory_wrapper.core.errors import ServiceError
from memory_wrapper.models.principal import Principal
from memory_wrapper.services.memory_service import MemoryService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["observability"])

SERVICE_NAME = "MCP Memory Service HTTP Wrapper"
SERVICE_VERSION = "1.0.0"


@router.get("/health")
def health(
    settings: Annotated[Settings, Depends(get_settings)],
    memories: Annotated[MemoryService, Depends(get_memory_service)],
) -> dict:
    return {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "service": SERVICE_NAME,
        "mode": memories.mode,
        "oauth_enabled": settings.oauth_enabled,
        "auth_methods": settings.auth_methods,
    }


@router.get("/ready")
def ready(
    memories: Annotated[MemoryService, Depends(get_memory_service)],
) -> Response:
    try:
        memories.repo.count()
    except ServiceError as e:
        logger.warning("Readiness check failed: backend %s", e.error)
        return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(status_code=status.HTTP_200_OK)


@router.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@router.get("/info")
def info(
    settings: Annotated[Settings, Depends(get_settings)],
    memories: Annotated[MemoryService, Depends(get_memory_service)],
    principal: Annotated[Principal, Depends(require_auth)],
) -> dict:
    stats = memories.stats()
    return {
        "service": "MCP Memory Service",
        "version": SERVICE_VERSION,
        "mode": stats["mode"],
        "backend": stats["backend"],
        "total_memories": stats["total_memories"],
        "data_dir": settings.data_dir,
        "auth_method": principal.auth_method,
        "environment": {
            "cors_enabled": settings.cors_enabled,
            "auth_enabled": settings.api_key_enabled,
            "oauth_enabled": settings.oauth_enabled,
            "memory_backend": memories.backend,
            "memory_service_url": settings.memory_service_url,
        },
    }
