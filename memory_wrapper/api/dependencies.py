from __future__ import annotations

import hmac
import logging
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer

from memory_wrapper.core.config import Settings
from memory_wrapper.core.errors import AuthenticationError
from memory_wrapper.core.metrics import AUTH_DECISIONS
from memory_wrapper.models.principal import Principal
from memory_wrapper.services import token_service
from memory_wrapper.services.authorization_server import AuthorizationServer
from memory_wrapper.services.memory_service import MemoryService
from memory_wrapper.services.token_service import TokenExpiredError, TokenError

logger = logging.getLogger(__name__)

# auto_error=False: the decision table below owns every 401.
bearer_scheme = HTTPBearer(auto_error=False)
api_key_scheme = APIKeyHeader(name="X-API-Key", auto_error=False)


# ---------------------------------------------------------------------------
# Stores built by create_app() live on app.state
# ---------------------------------------------------------------------------


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_memory_service(request: Request) -> MemoryService:
    return request.app.state.memory_service


def get_auth_server(request: Request) -> AuthorizationServer:
    return request.app.state.auth_server


def _reject(method: str, error: str) -> AuthenticationError:
    AUTH_DECISIONS.labels(method=method, result=error).inc()
    return AuthenticationError(error)


def require_auth(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
    bearer: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    api_key: Annotated[str | None, Depends(api_key_scheme)],
) -> Principal:
    """Gate for protected routes. Returns the resolved Principal.

    Evaluated in order:
      1. OAuth enabled + Authorization: Bearer → token must verify and be unexpired
      2. API key auth enabled + X-API-Key      → must equal the configured key
      3. no authentication configured at all   → let the request through
      4. otherwise                             → 401 authentication_required
    """
    if settings.oauth_enabled and bearer is not None:
        codec = request.app.state.auth_server.codec
        try:
            claims = token_service.decode_access_token(codec, bearer.credentials)
        except TokenExpiredError:
            logger.warning("Expired bearer token rejected")
            raise _reject("oauth", "token_expired") from None
        except TokenError as e:
            logger.warning("Invalid bearer token rejected: %s", e)
            raise _reject("oauth", "invalid_token") from None
        principal = Principal(
            auth_method="oauth",
            client_id=claims.get("client_id") or claims.get("sub"),
            scope=claims.get("scope") or "",
            claims=claims,
        )
    elif settings.api_key_enabled and api_key is not None:
        expected = (settings.api_key or "").encode("utf-8")
        if not hmac.compare_digest(api_key.encode("utf-8"), expected):
            logger.warning("Invalid API key rejected")
            raise _reject("api_key", "invalid_api_key")
        principal = Principal(auth_method="api_key")
    elif not settings.auth_configured:
        principal = Principal(auth_method="none")
    else:
        raise _reject("none", "authentication_required")

    AUTH_DECISIONS.labels(method=principal.auth_method, result="allowed").inc()
    request.state.principal = principal
    logger.debug(
        "Request authenticated  method=%s client_id=%s",
        principal.auth_method,
        principal.client_id,
    )
    return principal
