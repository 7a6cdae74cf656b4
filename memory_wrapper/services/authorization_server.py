"""OAuth 2.1 authorization server: discovery, registration, authorize, token.

One flow instance moves REQUESTED -> CODE_ISSUED -> TOKEN_ISSUED; any failed
check ends it (the caller receives a ServiceError carrying the OAuth error
code and nothing is retried).

Threat model: single trusted operator.  The authorize step auto-approves
every request from a registered client; there is no consent screen and no
end-user identity.  Anyone who can reach /oauth/register can obtain a token.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from memory_wrapper.core.errors import (
    InvalidClientError,
    InvalidGrantError,
    NotFoundError,
    ServiceError,
    UnsupportedOperationError,
    ValidationError,
)
from memory_wrapper.core.metrics import OAUTH_EVENTS
from memory_wrapper.models.oauth_client import OAuthClient
from memory_wrapper.repos.auth_code_repo import AuthCodeRepo, hash_code
from memory_wrapper.repos.oauth_client_repo import OAuthClientRepo
from memory_wrapper.services import token_service
from memory_wrapper.services.token_service import TokenCodec

logger = logging.getLogger(__name__)

SCOPES_SUPPORTED = ["read", "write", "admin"]
RESPONSE_TYPES_SUPPORTED = ["code"]
GRANT_TYPES_SUPPORTED = ["authorization_code", "client_credentials"]
TOKEN_AUTH_METHODS_SUPPORTED = ["client_secret_basic", "client_secret_post"]


@dataclass(frozen=True, slots=True)
class TokenGrant:
    access_token: str
    token_type: str
    expires_in: int
    scope: str


def _with_query(uri: str, params: dict[str, str]) -> str:
    """Merge params into uri's query string (existing keys are replaced)."""
    parts = urlsplit(uri)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query = [(k, v) for k, v in query if k not in params]
    query.extend(params.items())
    return urlunsplit(parts._replace(query=urlencode(query)))


class AuthorizationServer:
    def __init__(
        self,
        *,
        clients: OAuthClientRepo,
        codes: AuthCodeRepo,
        codec: TokenCodec,
        access_token_ttl_min: int = 60,
    ) -> None:
        self.clients = clients
        self.codes = codes
        self.codec = codec
        self.access_token_ttl_min = access_token_ttl_min

    # ------------------------------------------------------------------ discovery

    def metadata(self, base_url: str) -> dict[str, Any]:
        """RFC 8414 authorization server metadata."""
        return {
            "issuer": base_url,
            "authorization_endpoint": f"{base_url}/oauth/authorize",
            "token_endpoint": f"{base_url}/oauth/token",
            "registration_endpoint": f"{base_url}/oauth/register",
            "jwks_uri": f"{base_url}/.well-known/jwks.json",
            "scopes_supported": list(SCOPES_SUPPORTED),
            "response_types_supported": list(RESPONSE_TYPES_SUPPORTED),
            "grant_types_supported": list(GRANT_TYPES_SUPPORTED),
            "token_endpoint_auth_methods_supported": list(
                TOKEN_AUTH_METHODS_SUPPORTED
            ),
        }

    def openid_metadata(self, base_url: str) -> dict[str, Any]:
        return {
            "issuer": base_url,
            "authorization_endpoint": f"{base_url}/oauth/authorize",
            "token_endpoint": f"{base_url}/oauth/token",
            "jwks_uri": f"{base_url}/.well-known/jwks.json",
            "scopes_supported": ["openid", "profile", "read", "write"],
            "response_types_supported": list(RESPONSE_TYPES_SUPPORTED),
            "subject_types_supported": ["public"],
        }

    def jwks(self) -> dict[str, Any]:
        # HS256 is symmetric: there is no public key to publish.
        return {"keys": []}

    # -------------------------------------------------------------- registration

    def register(
        self,
        *,
        client_name: str,
        redirect_uris: Iterable[str] = (),
        grant_types: Iterable[str] = ("authorization_code",),
        response_types: Iterable[str] = ("code",),
        scope: str = "read write",
    ) -> OAuthClient:
        if not client_name or not client_name.strip():
            OAUTH_EVENTS.labels(event="register", outcome="invalid_request").inc()
            raise ValidationError(
                "invalid_client_metadata", description="client_name is required"
            )
        client = self.clients.register(
            client_name=client_name,
            redirect_uris=redirect_uris,
            grant_types=grant_types,
            response_types=response_types,
            scope=scope,
        )
        OAUTH_EVENTS.labels(event="register", outcome="ok").inc()
        logger.info(
            "Registered OAuth client  name=%r client_id=%s redirect_uris=%s",
            client.client_name,
            client.client_id,
            list(client.redirect_uris),
        )
        return client

    def client_info(self, client_id: str) -> dict[str, Any]:
        info = self.clients.describe(client_id)
        if info is None:
            raise NotFoundError(description="Client not found")
        return info

    # ----------------------------------------------------------------- authorize

    def authorize(
        self,
        *,
        client_id: str | None,
        response_type: str | None,
        redirect_uri: str | None,
        scope: str | None,
        state: str | None,
    ) -> str:
        """REQUESTED -> CODE_ISSUED. Returns the redirect URL carrying the code."""
        try:
            return self._authorize(
                client_id=client_id,
                response_type=response_type,
                redirect_uri=redirect_uri,
                scope=scope,
                state=state,
            )
        except ServiceError as e:
            OAUTH_EVENTS.labels(event="authorize", outcome=e.error).inc()
            logger.warning(
                "OAuth authorize rejected  client_id=%s error=%s", client_id, e.error
            )
            raise

    def _authorize(
        self,
        *,
        client_id: str | None,
        response_type: str | None,
        redirect_uri: str | None,
        scope: str | None,
        state: str | None,
    ) -> str:
        if response_type != "code":
            raise UnsupportedOperationError("unsupported_response_type")

        client = self.clients.lookup(client_id) if client_id else None
        if client is None:
            raise InvalidClientError()

        # Exact string match only; never redirect to an unregistered URI.
        if redirect_uri is None:
            if len(client.redirect_uris) != 1:
                raise ValidationError(description="redirect_uri is required")
            redirect_uri = client.redirect_uris[0]
        elif redirect_uri not in client.redirect_uris:
            raise ValidationError(description="redirect_uri is not registered")

        granted_scope = scope if scope else client.scope

        # Auto-approve: see module docstring.
        code = self.codes.issue(
            client_id=client.client_id, redirect_uri=redirect_uri, scope=granted_scope
        )
        OAUTH_EVENTS.labels(event="authorize", outcome="ok").inc()
        logger.info(
            "OAuth authorization code issued  client_id=%s scope=%r code_hash=%s…",
            client.client_id,
            granted_scope,
            hash_code(code)[:12],
        )

        params = {"code": code}
        if state:
            params["state"] = state
        return _with_query(redirect_uri, params)

    # --------------------------------------------------------------------- token

    def exchange_code(
        self,
        *,
        grant_type: str | None,
        code: str | None,
        redirect_uri: str | None,
        client_id: str | None,
        client_secret: str | None,
    ) -> TokenGrant:
        """CODE_ISSUED -> TOKEN_ISSUED."""
        try:
            grant = self._exchange_code(
                grant_type=grant_type,
                code=code,
                redirect_uri=redirect_uri,
                client_id=client_id,
                client_secret=client_secret,
            )
        except ServiceError as e:
            OAUTH_EVENTS.labels(event="token", outcome=e.error).inc()
            logger.warning(
                "OAuth token exchange rejected  client_id=%s error=%s",
                client_id,
                e.error,
            )
            raise
        OAUTH_EVENTS.labels(event="token", outcome="ok").inc()
        return grant

    def _exchange_code(
        self,
        *,
        grant_type: str | None,
        code: str | None,
        redirect_uri: str | None,
        client_id: str | None,
        client_secret: str | None,
    ) -> TokenGrant:
        if not grant_type:
            raise ValidationError(description="grant_type is required")
        if grant_type != "authorization_code":
            raise UnsupportedOperationError("unsupported_grant_type")
        if not code:
            raise ValidationError(description="code is required")

        # The code is spent from here on, even if a later check fails.
        record = self.codes.redeem(code)

        # A code is only exchangeable by the client it was issued to.
        client = (
            self.clients.authenticate(client_id, client_secret)
            if client_id and client_secret
            else None
        )
        if client is None:
            raise InvalidClientError()
        if record.client_id != client.client_id:
            raise InvalidGrantError(description="code was issued to another client")
        if redirect_uri is not None and redirect_uri != record.redirect_uri:
            raise InvalidGrantError(description="redirect_uri mismatch")

        access_token, expires_in = token_service.create_access_token(
            self.codec,
            client_id=client.client_id,
            scope=record.scope,
            ttl_minutes=self.access_token_ttl_min,
        )
        logger.info(
            "OAuth access token issued  client_id=%s scope=%r expires_in=%d",
            client.client_id,
            record.scope,
            expires_in,
        )
        return TokenGrant(
            access_token=access_token,
            token_type="Bearer",
            expires_in=expires_in,
            scope=record.scope,
        )
