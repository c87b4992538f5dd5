# pyright: reportUnknownMemberType=false
# pyright: reportUnknownVariableType=false

from __future__ import annotations

import pytest

from teamchat.core.config import Settings


def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in [
        "ENV",
        "OPENAI_MODE",
        "OPENAI_API_KEY",
        "OPENAI_BASE_URL",
        "STORAGE_BACKEND",
        "DATABASE_URL",
        "CORS_ALLOWED_ORIGINS",
        "TRUSTED_HOSTS",
        "MESSAGES_DEFAULT_LIMIT",
        "MESSAGES_MAX_LIMIT",
    ]:
        monkeypatch.delenv(key, raising=False)


def test_dev_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_env(monkeypatch)

    s = Settings()
    assert s.storage_backend == "memory"
    assert s.openai_mode == "fake"
    assert s.messages_default_limit == 50
    assert s.uploads_max_bytes == 50 * 1024 * 1024
    assert s.uploads_max_files == 10
    assert s.sqlalchemy_database_uri.startswith("postgresql+psycopg://")


def test_prod_defaults_fail(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_env(monkeypatch)
    monkeypatch.setenv("ENV", "prod")

    with pytest.raises(Exception) as excinfo:
        _ = Settings()
    msg = str(excinfo.value)
    assert "OPENAI_MODE=fake" in msg
    assert "STORAGE_BACKEND=memory" in msg


def test_prod_openai_without_key_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_env(monkeypatch)
    monkeypatch.setenv("ENV", "production")
    monkeypatch.setenv("OPENAI_MODE", "openai")
    monkeypatch.setenv("OPENAI_API_KEY", "   ")
    monkeypatch.setenv("STORAGE_BACKEND", "database")

    with pytest.raises(Exception) as excinfo:
        _ = Settings()
    assert "OPENAI_API_KEY" in str(excinfo.value)


def test_prod_complete_config_ok(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_env(monkeypatch)
    monkeypatch.setenv("ENV", "production")
    monkeypatch.setenv("OPENAI_MODE", "openai")
    monkeypatch.setenv("OPENAI_API_KEY", "not-a-real-key")
    monkeypatch.setenv("STORAGE_BACKEND", "DATABASE")
    monkeypatch.setenv("DATABASE_URL", "postgresql+psycopg://u:p@db:5432/chat")

    s = Settings()
    assert s.storage_backend == "database"
    assert s.openai_api_key_value == "not-a-real-key"
    assert s.sqlalchemy_database_uri == "postgresql+psycopg://u:p@db:5432/chat"


def test_listish_env_parsing(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_env(monkeypatch)
    monkeypatch.setenv("CORS_ALLOWED_ORIGINS", "https://a.example, https://b.example")
    monkeypatch.setenv("TRUSTED_HOSTS", '["chat.example", "localhost"]')

    s = Settings()
    assert s.cors_allowed_origins == ["https://a.example", "https://b.example"]
    assert s.trusted_hosts == ["chat.example", "localhost"]


def test_message_limits_validated(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_env(monkeypatch)
    monkeypatch.setenv("MESSAGES_DEFAULT_LIMIT", "100")
    monkeypatch.setenv("MESSAGES_MAX_LIMIT", "20")

    with pytest.raises(Exception) as excinfo:
        _ = Settings()
    assert "MESSAGES_MAX_LIMIT" in str(excinfo.value)
