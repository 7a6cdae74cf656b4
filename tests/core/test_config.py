from __future__ import annotations

import pytest

from memory_wrapper.core.config import load_settings

_ENV_VARS = (
    "APP_ENV",
    "LOG_LEVEL",
    "LOG_JSON",
    "PORT",
    "OAUTH_ENABLED",
    "MCP_OAUTH_ENABLED",
    "OAUTH_SECRET_KEY",
    "MCP_OAUTH_SECRET_KEY",
    "OAUTH_ACCESS_TOKEN_EXPIRE_MINUTES",
    "MCP_OAUTH_ACCESS_TOKEN_EXPIRE_MINUTES",
    "OAUTH_AUTHORIZATION_CODE_EXPIRE_MINUTES",
    "MCP_OAUTH_AUTHORIZATION_CODE_EXPIRE_MINUTES",
    "AUTH_ENABLED",
    "API_KEY",
    "CORS_ENABLED",
    "DATA_DIR",
    "MEMORY_BACKEND",
    "MEMORY_SERVICE_URL",
    "MEMORY_SERVICE_TIMEOUT",
    "PUBLIC_BASE_URL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


# ---- defaults ----


def test_load_settings_defaults() -> None:
    settings = load_settings()
    assert settings.app_env == "dev"
    assert settings.log_level == "info"
    assert settings.log_json is False
    assert settings.port == 8080
    assert settings.oauth_enabled is False
    assert settings.access_token_ttl_min == 60
    assert settings.auth_code_ttl_min == 10
    assert settings.api_key_enabled is False
    assert settings.cors_enabled is False
    assert settings.data_dir == "/data"
    assert settings.memory_backend == "json_file"
    assert settings.memory_service_url is None
    assert settings.memory_service_timeout == 30.0
    assert settings.auth_configured is False
    assert settings.auth_methods == []


def test_secret_is_generated_when_unset() -> None:
    first, second = load_settings(), load_settings()
    assert len(first.oauth_secret_key) == 64
    assert first.oauth_secret_key != second.oauth_secret_key


# ---- valid values ----


def test_load_settings_respects_env_vars(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "prod")
    monkeypatch.setenv("LOG_LEVEL", "error")
    monkeypatch.setenv("PORT", "9000")
    monkeypatch.setenv("OAUTH_ENABLED", "true")
    monkeypatch.setenv("OAUTH_SECRET_KEY", "configured-secret")
    monkeypatch.setenv("OAUTH_ACCESS_TOKEN_EXPIRE_MINUTES", "15")
    monkeypatch.setenv("MEMORY_BACKEND", "memory")
    monkeypatch.setenv("MEMORY_SERVICE_URL", "http://memory:8000/")
    settings = load_settings()
    assert settings.is_prod
    assert settings.log_level == "error"
    assert settings.port == 9000
    assert settings.oauth_enabled is True
    assert settings.oauth_secret_key == "configured-secret"
    assert settings.access_token_ttl_min == 15
    assert settings.memory_backend == "memory"
    assert settings.memory_service_url == "http://memory:8000"
    assert settings.auth_methods == ["oauth_bearer"]


def test_addon_prefixed_names_are_accepted(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MCP_OAUTH_ENABLED", "yes")
    monkeypatch.setenv("MCP_OAUTH_SECRET_KEY", "addon-secret")
    settings = load_settings()
    assert settings.oauth_enabled is True
    assert settings.oauth_secret_key == "addon-secret"


def test_unprefixed_name_wins(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OAUTH_SECRET_KEY", "primary")
    monkeypatch.setenv("MCP_OAUTH_SECRET_KEY", "alias")
    assert load_settings().oauth_secret_key == "primary"


def test_api_key_auth(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AUTH_ENABLED", "true")
    monkeypatch.setenv("API_KEY", "k")
    settings = load_settings()
    assert settings.api_key_enabled is True
    assert settings.api_key == "k"
    assert settings.auth_methods == ["api_key"]


def test_load_settings_normalizes_case(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "PROD")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("MEMORY_BACKEND", "JSON_FILE")
    settings = load_settings()
    assert settings.app_env == "prod"
    assert settings.log_level == "debug"
    assert settings.memory_backend == "json_file"


# ---- invalid values ----


def test_load_settings_rejects_invalid_app_env(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("APP_ENV", "staging")
    with pytest.raises(ValueError, match="APP_ENV must be dev|test|prod"):
        load_settings()


def test_load_settings_rejects_invalid_log_level(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("LOG_LEVEL", "verbose")
    with pytest.raises(ValueError, match="LOG_LEVEL"):
        load_settings()


def test_auth_enabled_requires_api_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AUTH_ENABLED", "true")
    with pytest.raises(ValueError, match="API_KEY must be set"):
        load_settings()


@pytest.mark.parametrize(
    ("name", "value", "match"),
    [
        ("PORT", "eighty", "PORT must be an integer"),
        ("PORT", "0", "PORT must be >= 1"),
        ("OAUTH_ENABLED", "maybe", "OAUTH_ENABLED must be a boolean"),
        ("MEMORY_BACKEND", "redis", "MEMORY_BACKEND must be json_file|memory"),
        ("MEMORY_SERVICE_TIMEOUT", "-1", "MEMORY_SERVICE_TIMEOUT must be positive"),
        ("OAUTH_ACCESS_TOKEN_EXPIRE_MINUTES", "0", "must be >= 1"),
    ],
)
def test_load_settings_rejects_bad_values(
    monkeypatch: pytest.MonkeyPatch, name: str, value: str, match: str
) -> None:
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError, match=match):
        load_settings()
