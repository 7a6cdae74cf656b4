from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from memory_wrapper.api.health import router as health_router
from memory_wrapper.api.memory import router as memory_router
from memory_wrapper.api.oauth import router as oauth_router
from memory_wrapper.core.config import SETTINGS, Settings
from memory_wrapper.core.errors import install_exception_handlers
from memory_wrapper.core.logging import setup_logging
from memory_wrapper.middleware.metrics import MetricsMiddleware
from memory_wrapper.middleware.request_context import RequestContextMiddleware
from memory_wrapper.repos.auth_code_repo import InMemoryAuthCodeRepo
from memory_wrapper.repos.oauth_client_repo import InMemoryOAuthClientRepo
from memory_wrapper.services.authorization_server import AuthorizationServer
from memory_wrapper.services.memory_service import build_memory_service
from memory_wrapper.services.token_service import TokenCodec

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    memory_transport: httpx.BaseTransport | None = None,
) -> FastAPI:
    """Build the app with its own stores.

    Every store (client registry, code store, memory backend) is created
    here and hung on app.state, so two apps never share state.
    memory_transport lets tests stand in for the upstream memory service.
    """
    settings = settings or SETTINGS

    memory_service = build_memory_service(settings, transport=memory_transport)
    auth_server = AuthorizationServer(
        clients=InMemoryOAuthClientRepo(),
        codes=InMemoryAuthCodeRepo(ttl_minutes=settings.auth_code_ttl_min),
        codec=TokenCodec(settings.oauth_secret_key),
        access_token_ttl_min=settings.access_token_ttl_min,
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
        try:
            yield
        finally:
            memory_service.close()

    app = FastAPI(
        title="mcp-memory-wrapper",
        lifespan=lifespan,
        docs_url="/docs" if settings.is_dev else None,
        redoc_url="/redoc" if settings.is_dev else None,
    )
    app.state.settings = settings
    app.state.memory_service = memory_service
    app.state.auth_server = auth_server

    install_exception_handlers(app)

    if settings.cors_enabled:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["GET", "POST", "PUT", "DELETE"],
            allow_headers=["Content-Type", "Authorization", "X-API-Key"],
        )

    # Middleware execution order: last-added runs first (outermost layer).
    # RequestContext (outermost) → Metrics → CORS → route handler
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestContextMiddleware)

    app.include_router(health_router)
    app.include_router(memory_router)
    if settings.oauth_enabled:
        app.include_router(oauth_router)

    logger.info(
        "mcp-memory-wrapper ready  env=%s mode=%s backend=%s oauth=%s api_key=%s cors=%s",
        settings.app_env,
        memory_service.mode,
        memory_service.backend,
        "on" if settings.oauth_enabled else "off",
        "on" if settings.api_key_enabled else "off",
        "on" if settings.cors_enabled else "off",
    )
    if settings.oauth_enabled:
        logger.info(
            "OAuth discovery at /.well-known/oauth-authorization-server/mcp, "
            "registration at /oauth/register"
        )
    return app


# Configure logging before the module-level app is built.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

app = create_app(SETTINGS)
