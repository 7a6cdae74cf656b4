from __future__ import annotations

import os
import secrets
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]
MemoryBackend = Literal["json_file", "memory"]

_TRUTHY = ("1", "true", "yes", "on")
_FALSY = ("", "0", "false", "no", "off")


def _getenv(name: str, default: str, *aliases: str) -> str:
    # Centralize env access; the first set name wins (add-on options use MCP_ prefixes)
    for key in (name, *aliases):
        value = os.environ.get(key)
        if value is not None:
            return value.strip()
    return default.strip()


def _getbool(name: str, default: bool, *aliases: str) -> bool:
    raw = _getenv(name, "true" if default else "false", *aliases).lower()
    if raw in _TRUTHY:
        return True
    if raw in _FALSY:
        return False
    raise ValueError(f"{name} must be a boolean (got {raw!r})")


def _getint(name: str, default: int, *aliases: str, minimum: int = 1) -> int:
    raw = _getenv(name, str(default), *aliases)
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum} (got {value})")
    return value


def _getfloat(name: str, default: float) -> float:
    raw = _getenv(name, str(default))
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number (got {raw!r})") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive (got {value})")
    return value


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int

    # OAuth 2.1 authorization server
    oauth_enabled: bool
    oauth_secret_key: str
    access_token_ttl_min: int
    auth_code_ttl_min: int
    public_base_url: str | None

    # Static API key (legacy X-API-Key auth)
    api_key_enabled: bool
    api_key: str | None

    cors_enabled: bool

    # Memory storage
    data_dir: str
    memory_backend: MemoryBackend
    memory_service_url: str | None
    memory_service_timeout: float

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"

    @property
    def auth_configured(self) -> bool:
        return self.oauth_enabled or self.api_key_enabled

    @property
    def auth_methods(self) -> list[str]:
        methods = []
        if self.oauth_enabled:
            methods.append("oauth_bearer")
        if self.api_key_enabled:
            methods.append("api_key")
        return methods


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    port = _getint("PORT", 8080)

    # A generated secret means issued tokens die with the process.
    oauth_secret_key = _getenv(
        "OAUTH_SECRET_KEY", "", "MCP_OAUTH_SECRET_KEY"
    ) or secrets.token_hex(32)

    api_key_enabled = _getbool("AUTH_ENABLED", False)
    api_key = _getenv("API_KEY", "") or None
    if api_key_enabled and api_key is None:
        raise ValueError("API_KEY must be set when AUTH_ENABLED=true")

    memory_backend_raw = _getenv("MEMORY_BACKEND", "json_file").lower()
    if memory_backend_raw not in ("json_file", "memory"):
        raise ValueError(
            f"MEMORY_BACKEND must be json_file|memory (got {memory_backend_raw!r})"
        )

    public_base_url = _getenv("PUBLIC_BASE_URL", "").rstrip("/") or None
    memory_service_url = _getenv("MEMORY_SERVICE_URL", "").rstrip("/") or None

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=_getbool("LOG_JSON", False),
        port=port,
        oauth_enabled=_getbool("OAUTH_ENABLED", False, "MCP_OAUTH_ENABLED"),
        oauth_secret_key=oauth_secret_key,
        access_token_ttl_min=_getint(
            "OAUTH_ACCESS_TOKEN_EXPIRE_MINUTES",
            60,
            "MCP_OAUTH_ACCESS_TOKEN_EXPIRE_MINUTES",
        ),
        auth_code_ttl_min=_getint(
            "OAUTH_AUTHORIZATION_CODE_EXPIRE_MINUTES",
            10,
            "MCP_OAUTH_AUTHORIZATION_CODE_EXPIRE_MINUTES",
        ),
        public_base_url=public_base_url,
        api_key_enabled=api_key_enabled,
        api_key=api_key,
        cors_enabled=_getbool("CORS_ENABLED", False),
        data_dir=_getenv("DATA_DIR", "/data"),
        memory_backend=memory_backend_raw,
        memory_service_url=memory_service_url,
        memory_service_timeout=_getfloat("MEMORY_SERVICE_TIMEOUT", 30.0),
    )


# Optional: module-level singleton so imports are cheap
SETTINGS = load_settings()
