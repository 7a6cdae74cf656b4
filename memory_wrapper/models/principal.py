from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

AuthMethod = Literal["oauth", "api_key", "none"]


@dataclass(frozen=True, slots=True)
class Principal:
    """Caller identity resolved by the authentication dependency.

    auth_method says which credential let the request through:
        oauth:   a valid bearer token; client_id/scope/claims come from it
        api_key: the static X-API-Key matched
        none:    no authentication is configured on this instance
    """

    auth_method: AuthMethod
    client_id: str | None = None
    scope: str = ""
    claims: dict[str, Any] = field(default_factory=dict)
