from __future__ import annotations

import hmac
import threading
from collections.abc import Iterable
from typing import Any, Protocol

from memory_wrapper.models.oauth_client import OAuthClient


class OAuthClientRepo(Protocol):
    def register(
        self,
        *,
        client_name: str,
        redirect_uris: Iterable[str],
        grant_types: Iterable[str],
        response_types: Iterable[str],
        scope: str,
    ) -> OAuthClient: ...
    def lookup(self, client_id: str) -> OAuthClient | None: ...
    def describe(self, client_id: str) -> dict[str, Any] | None: ...
    def authenticate(self, client_id: str, client_secret: str) -> OAuthClient | None: ...


class InMemoryOAuthClientRepo:
    """Dynamically registered clients, held for the process lifetime.

    There is no update, delete or revocation: a restart wipes every client.
    """

    def __init__(self) -> None:
        self._by_client_id: dict[str, OAuthClient] = {}
        self._lock = threading.Lock()

    def register(
        self,
        *,
        client_name: str,
        redirect_uris: Iterable[str] = (),
        grant_types: Iterable[str] = ("authorization_code",),
        response_types: Iterable[str] = ("code",),
        scope: str = "read write",
    ) -> OAuthClient:
        client = OAuthClient.new(
            client_name=client_name,
            redirect_uris=tuple(redirect_uris),
            grant_types=tuple(grant_types),
            response_types=tuple(response_types),
            scope=scope,
        )
        with self._lock:
            self._by_client_id[client.client_id] = client
        return client

    def lookup(self, client_id: str) -> OAuthClient | None:
        with self._lock:
            return self._by_client_id.get(client_id)

    def describe(self, client_id: str) -> dict[str, Any] | None:
        client = self.lookup(client_id)
        if client is None:
            return None
        return client.public_dict()

    def authenticate(self, client_id: str, client_secret: str) -> OAuthClient | None:
        """Return the client only if the secret matches (constant-time)."""
        client = self.lookup(client_id)
        if client is None:
            return None
        if not hmac.compare_digest(
            client.client_secret.encode("utf-8"), client_secret.encode("utf-8")
        ):
            return None
        return client

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_client_id)
