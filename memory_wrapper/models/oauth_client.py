from __future__ import annotations

import secrets
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

CLIENT_ID_PREFIX = "mcp_client_"


@dataclass(frozen=True, slots=True)
class OAuthClient:
    client_id: str
    client_secret: str
    client_name: str
    redirect_uris: tuple[str, ...]
    grant_types: tuple[str, ...]
    response_types: tuple[str, ...]
    scope: str
    token_endpoint_auth_method: str
    created_at: str

    @staticmethod
    def new(
        *,
        client_name: str,
        redirect_uris: tuple[str, ...] = (),
        grant_types: tuple[str, ...] = ("authorization_code",),
        response_types: tuple[str, ...] = ("code",),
        scope: str = "read write",
    ) -> OAuthClient:
        # Credentials are generated here and nowhere else.
        return OAuthClient(
            client_id=f"{CLIENT_ID_PREFIX}{secrets.token_hex(8)}",
            client_secret=secrets.token_hex(16),
            client_name=client_name,
            redirect_uris=tuple(redirect_uris),
            grant_types=tuple(grant_types),
            response_types=tuple(response_types),
            scope=scope,
            token_endpoint_auth_method="client_secret_basic",
            created_at=datetime.now(UTC).isoformat(),
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        for key in ("redirect_uris", "grant_types", "response_types"):
            data[key] = list(data[key])
        return data

    def public_dict(self) -> dict:
        """Registration record without the secret (client introspection)."""
        data = self.to_dict()
        del data["client_secret"]
        return data
