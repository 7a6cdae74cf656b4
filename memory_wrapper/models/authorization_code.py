from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class AuthorizationCode:
    """A pending grant, keyed by the sha256 of the code handed to the client."""

    code_hash: str
    client_id: str
    redirect_uri: str
    scope: str
    expires_at: int

    def is_expired(self, now_ts: int) -> bool:
        return now_ts > self.expires_at
