from __future__ import annotations

import hashlib
import secrets
import threading
from datetime import UTC, datetime, timedelta
from typing import Protocol

from memory_wrapper.core.errors import InvalidGrantError
from memory_wrapper.models.authorization_code import AuthorizationCode


def hash_code(raw_code: str) -> str:
    return hashlib.sha256(raw_code.encode("utf-8")).hexdigest()


def _now_ts() -> int:
    return int(datetime.now(UTC).timestamp())


class AuthCodeRepo(Protocol):
    def issue(self, *, client_id: str, redirect_uri: str, scope: str) -> str: ...
    def redeem(self, raw_code: str) -> AuthorizationCode: ...


class InMemoryAuthCodeRepo:
    """Single-use, time-bounded authorization codes.

    Only the sha256 of each code is kept, so a dump of this store cannot be
    replayed against /oauth/token.
    """

    def __init__(self, ttl_minutes: int = 10) -> None:
        self._ttl = timedelta(minutes=ttl_minutes)
        self._by_code_hash: dict[str, AuthorizationCode] = {}
        self._lock = threading.Lock()

    def issue(self, *, client_id: str, redirect_uri: str, scope: str) -> str:
        raw_code = secrets.token_urlsafe(32)
        record = AuthorizationCode(
            code_hash=hash_code(raw_code),
            client_id=client_id,
            redirect_uri=redirect_uri,
            scope=scope,
            expires_at=int((datetime.now(UTC) + self._ttl).timestamp()),
        )
        with self._lock:
            self._purge_expired_locked(_now_ts())
            self._by_code_hash[record.code_hash] = record
        return raw_code

    def redeem(self, raw_code: str) -> AuthorizationCode:
        """Consume a code. Raises InvalidGrantError if unknown, used or expired.

        Lookup, expiry check and delete happen under one lock, so two
        concurrent token requests for the same code cannot both succeed.
        Unknown and already-consumed codes are indistinguishable on purpose.
        """
        code_hash = hash_code(raw_code)
        with self._lock:
            record = self._by_code_hash.pop(code_hash, None)
        if record is None:
            raise InvalidGrantError(description="authorization code is invalid")
        if record.is_expired(_now_ts()):
            raise InvalidGrantError(description="authorization code expired")
        return record

    def _purge_expired_locked(self, now_ts: int) -> int:
        expired = [h for h, r in self._by_code_hash.items() if r.is_expired(now_ts)]
        for code_hash in expired:
            del self._by_code_hash[code_hash]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_code_hash)
