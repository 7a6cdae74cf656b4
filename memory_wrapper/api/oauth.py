from __future__ import annotations

from typing import Annotated
from urllib.parse import unquote_plus

from fastapi import (
    APIRouter,
    Depends,
    Form,
    HTTPException,
    Query,
    Request,
    Response,
    status,
)
from fastapi.responses import RedirectResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from pydantic import BaseModel, Field

from memory_wrapper.api.dependencies import get_auth_server, get_settings
from memory_wrapper.core.config import Settings
from memory_wrapper.core.errors import InvalidClientError
from memory_wrapper.services.authorization_server import AuthorizationServer

# ---------------------------------------------------------------------------
# Authorization Server: OAuth 2.1 authorization code flow
#
# Endpoints (mounted only when OAUTH_ENABLED=true):
#   GET  /.well-known/oauth-authorization-server/mcp  RFC 8414 discovery
#   GET  /.well-known/openid-configuration/mcp        OIDC-style discovery
#   GET  /.well-known/jwks.json                       empty key set (HS256)
#   POST /oauth/register                              RFC 7591 registration
#   GET  /oauth/authorize                             code, via 302 redirect
#   POST /oauth/token                                 code -> bearer token
#   GET  /oauth/clients/{client_id}                   public client record
# ---------------------------------------------------------------------------

router = APIRouter(tags=["oauth"])

client_basic = HTTPBasic(auto_error=False)


async def basic_client_credentials(
    request: Request,
) -> HTTPBasicCredentials | None:
    # HTTPBasic raises on an undecodable header even with auto_error=False.
    try:
        return await client_basic(request)
    except HTTPException:
        raise InvalidClientError(
            description="malformed Basic authorization header"
        ) from None


AuthServer = Annotated[AuthorizationServer, Depends(get_auth_server)]
BasicCredentials = Annotated[
    HTTPBasicCredentials | None, Depends(basic_client_credentials)
]


class ClientRegistrationRequest(BaseModel):
    client_name: str = Field(min_length=1)
    redirect_uris: list[str] = Field(default_factory=list)
    grant_types: list[str] = Field(default_factory=lambda: ["authorization_code"])
    response_types: list[str] = Field(default_factory=lambda: ["code"])
    scope: str = "read write"


class ClientInfo(BaseModel):
    client_id: str
    client_name: str
    redirect_uris: list[str]
    grant_types: list[str]
    response_types: list[str]
    scope: str
    token_endpoint_auth_method: str
    created_at: str


class ClientRegistrationResponse(ClientInfo):
    # Shown exactly once, in this response.
    client_secret: str


class Token(BaseModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    scope: str


def _issuer(request: Request, settings: Settings) -> str:
    if settings.public_base_url:
        return settings.public_base_url
    return str(request.base_url).rstrip("/")


# ============================== discovery =================================


@router.get("/.well-known/oauth-authorization-server/mcp")
def authorization_server_metadata(
    request: Request,
    server: AuthServer,
    settings: Annotated[Settings, Depends(get_settings)],
) -> dict:
    return server.metadata(_issuer(request, settings))


@router.get("/.well-known/openid-configuration/mcp")
def openid_configuration(
    request: Request,
    server: AuthServer,
    settings: Annotated[Settings, Depends(get_settings)],
) -> dict:
    return server.openid_metadata(_issuer(request, settings))


@router.get("/.well-known/jwks.json")
def jwks(server: AuthServer) -> dict:
    return server.jwks()


# ============================ registration ================================


@router.post(
    "/oauth/register",
    response_model=ClientRegistrationResponse,
    status_code=status.HTTP_201_CREATED,
)
def register_client(
    body: ClientRegistrationRequest, server: AuthServer
) -> ClientRegistrationResponse:
    client = server.register(
        client_name=body.client_name,
        redirect_uris=body.redirect_uris,
        grant_types=body.grant_types,
        response_types=body.response_types,
        scope=body.scope,
    )
    return ClientRegistrationResponse(**client.to_dict())


@router.get("/oauth/clients/{client_id}", response_model=ClientInfo)
def client_info(client_id: str, server: AuthServer) -> ClientInfo:
    return ClientInfo(**server.client_info(client_id))


# ========================== GET /oauth/authorize ==========================
# Parameters are optional at the schema level so a bad request gets an OAuth
# error code (unsupported_response_type, invalid_client) instead of a generic
# validation failure.


@router.get("/oauth/authorize")
def authorize(
    server: AuthServer,
    client_id: str | None = Query(None),
    response_type: str | None = Query(None),
    redirect_uri: str | None = Query(None),
    scope: str | None = Query(None),
    state: str | None = Query(None),
) -> RedirectResponse:
    location = server.authorize(
        client_id=client_id,
        response_type=response_type,
        redirect_uri=redirect_uri,
        scope=scope,
        state=state,
    )
    return RedirectResponse(url=location, status_code=status.HTTP_302_FOUND)


# ============================ POST /oauth/token ===========================
# Client credentials come from HTTP Basic (client_secret_basic) when present,
# otherwise from the form body (client_secret_post).


@router.post("/oauth/token", response_model=Token)
def exchange_token(
    response: Response,
    server: AuthServer,
    basic: BasicCredentials,
    grant_type: str | None = Form(None),
    code: str | None = Form(None),
    redirect_uri: str | None = Form(None),
    client_id: str | None = Form(None),
    client_secret: str | None = Form(None),
) -> Token:
    if basic is not None:
        # RFC 6749 §2.3.1: credentials are form-urlencoded before base64.
        client_id = unquote_plus(basic.username)
        client_secret = unquote_plus(basic.password)

    grant = server.exchange_code(
        grant_type=grant_type,
        code=code,
        redirect_uri=redirect_uri,
        client_id=client_id,
        client_secret=client_secret,
    )
    response.headers["Cache-Control"] = "no-store"
    response.headers["Pragma"] = "no-cache"
    return Token(
        access_token=grant.access_token,
        token_type=grant.token_type,
        expires_in=grant.expires_in,
        scope=grant.scope,
    )
