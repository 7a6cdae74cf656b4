"""Signed access tokens (JWT, HS256).

Centralizes all token logic so oauth issuance and the protected-route
dependency share one codec and one claims schema.

PyJWT does the wire format and the signature check (constant-time via
hmac.compare_digest).  Its exception hierarchy is folded into three
errors here so the auth dependency can tell a malformed token from a
forged one from an expired one.

Key management: one symmetric secret for the process lifetime.  When
OAUTH_SECRET_KEY is not configured a random secret is generated at startup,
so every token issued before a restart stops validating after it.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

ALGORITHM = "HS256"

# Signature and structure only; registered claims pass through unchecked.
_DECODE_OPTIONS = {
    "verify_signature": True,
    "verify_exp": False,
    "verify_iat": False,
    "verify_nbf": False,
    "verify_aud": False,
    "verify_iss": False,
    "verify_sub": False,
    "verify_jti": False,
}


class TokenError(Exception):
    """Base class for every token rejection."""


class FormatError(TokenError):
    """Not a three-part token, a part is not valid base64url/JSON, or wrong alg."""


class SignatureError(TokenError):
    """Signature does not match the header and payload."""


class TokenExpiredError(TokenError):
    """Signature valid, but the exp claim is in the past."""


class TokenCodec:
    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("token signing secret must not be empty")
        self._secret = secret

    def encode(self, payload: dict[str, Any]) -> str:
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def decode(self, token: str) -> dict[str, Any]:
        """Verify the signature and return the payload.

        Raises FormatError or SignatureError.  Claims are not inspected here;
        expiry is the caller's concern (see decode_access_token).
        """
        try:
            return jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                options=_DECODE_OPTIONS,
            )
        # InvalidSignatureError subclasses DecodeError: keep it first.
        except jwt.InvalidSignatureError:
            raise SignatureError("signature mismatch") from None
        except jwt.InvalidTokenError as e:
            raise FormatError(str(e)) from None


# ---------------------------------------------------------------------------
# Access tokens
# ---------------------------------------------------------------------------


def create_access_token(
    codec: TokenCodec,
    *,
    client_id: str,
    scope: str,
    ttl_minutes: int,
) -> tuple[str, int]:
    """Mint a bearer token for a client. Returns (token, expires_in seconds)."""
    now = datetime.now(UTC)
    expires_in = ttl_minutes * 60
    payload = {
        "client_id": client_id,
        "scope": scope,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
        "sub": client_id,
    }
    return codec.encode(payload), expires_in


def decode_access_token(
    codec: TokenCodec, token: str, *, now: datetime | None = None
) -> dict[str, Any]:
    """Verify signature and expiry, return the claims.

    Raises FormatError, SignatureError, TokenExpiredError.
    """
    claims = codec.decode(token)
    exp = claims.get("exp")
    if exp is not None:
        now_ts = (now or datetime.now(UTC)).timestamp()
        if not isinstance(exp, int | float):
            raise FormatError("exp claim is not numeric")
        if now_ts > exp:
            raise TokenExpiredError("token expired")
    return claims
