# pyright: reportMissingImports=false

from __future__ import annotations

from functools import lru_cache
import json
from pathlib import Path
from typing import ClassVar, Literal, cast

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_DEFAULT_SYSTEM_PROMPT = (
    "You are the team assistant integrated into a team chat application. "
    "Give short, professional answers suited to a workplace. "
    "Be concise unless asked for a detailed explanation."
)

_DEFAULT_APOLOGY = (
    "I'm having technical difficulties right now. Try again in a moment, "
    "or contact the team directly if it's urgent."
)


class Settings(BaseSettings):
    """Environment-driven settings with local dev defaults."""

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_file=None,
        case_sensitive=False,
        extra="ignore",
    )

    api_v1_prefix: str = "/api/v1"
    ws_path: str = "/ws"
    log_level: str = "INFO"

    env: str = "dev"

    cors_allowed_origins: list[str] = Field(default_factory=list)
    trusted_hosts: list[str] = Field(default_factory=list)

    # "memory" keeps everything in-process; "database" uses SQLAlchemy.
    storage_backend: Literal["memory", "database"] = "memory"

    # Prefer DATABASE_URL when provided; otherwise construct from POSTGRES_* vars.
    database_url: str | None = None
    postgres_db: str = "teamchat"
    postgres_user: str = "teamchat"
    postgres_password: str = "teamchat"
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    database_create_schema: bool = False

    messages_default_limit: int = 50
    messages_max_limit: int = 200

    openai_mode: str = "fake"
    openai_base_url: str = "https://openrouter.ai/api/v1"
    openai_api_key: str | None = None
    openai_model: str = "qwen/qwen3-235b-a22b:free"
    openai_api: str = "chat_completions"
    openai_timeout_seconds: float = 60.0
    openai_referer: str | None = None
    openai_app_title: str = "Team Chat"

    ai_system_prompt: str = _DEFAULT_SYSTEM_PROMPT
    ai_max_tokens: int = 300
    ai_temperature: float = 0.6
    ai_turn_timeout_seconds: float = 120.0
    ai_apology_text: str = _DEFAULT_APOLOGY

    uploads_dir: Path = Path(".data/uploads")
    uploads_url_prefix: str = "/uploads"
    uploads_max_bytes: int = 50 * 1024 * 1024
    uploads_max_files: int = 10
    uploads_allowed_extensions: list[str] = Field(
        default_factory=lambda: [
            ".jpeg",
            ".jpg",
            ".png",
            ".gif",
            ".webp",
            ".mp4",
            ".mov",
            ".avi",
            ".mp3",
            ".wav",
            ".pdf",
            ".doc",
            ".docx",
            ".txt",
            ".zip",
            ".rar",
        ]
    )

    @field_validator(
        "cors_allowed_origins", "trusted_hosts", "uploads_allowed_extensions", mode="before"
    )
    @classmethod
    def _parse_listish_env(cls, v: object) -> list[str]:
        if v is None:
            return []
        if isinstance(v, list):
            v_list = cast(list[object], v)
            return [str(x).strip() for x in v_list if str(x).strip()]
        if isinstance(v, str):
            raw = v.strip()
            if raw == "":
                return []
            if raw.lstrip().startswith("["):
                try:
                    parsed: object = cast(object, json.loads(raw))
                except Exception:
                    parsed = None
                if isinstance(parsed, list):
                    parsed_list = cast(list[object], parsed)
                    return [str(x).strip() for x in parsed_list if str(x).strip()]
            parts: list[str] = []
            for chunk in raw.replace("\n", ",").replace("\t", ",").split(","):
                s = chunk.strip()
                if s:
                    parts.append(s)
            return parts
        return [str(v).strip()] if str(v).strip() else []

    @field_validator("storage_backend", mode="before")
    @classmethod
    def _normalize_storage_backend(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @property
    def sqlalchemy_database_uri(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+psycopg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def openai_api_key_value(self) -> str | None:
        if self.openai_api_key is None:
            return None
        key = self.openai_api_key.strip()
        return key if key != "" else None

    def _is_prod_env(self) -> bool:
        return self.env.strip().lower() in ("prod", "production")

    @model_validator(mode="after")
    def _validate_prod_config(self) -> "Settings":
        if not self._is_prod_env():
            return self

        problems: list[str] = []

        if self.openai_mode.strip().lower() == "fake":
            problems.append("OPENAI_MODE=fake is forbidden in production. Set OPENAI_MODE=openai.")
        elif self.openai_api_key_value is None:
            problems.append("OPENAI_API_KEY must be set in production.")

        if self.storage_backend == "memory":
            problems.append(
                "STORAGE_BACKEND=memory is forbidden in production. Set STORAGE_BACKEND=database."
            )

        if problems:
            details = "\n".join(f"- {p}" for p in problems)
            raise ValueError(
                f"Production settings validation failed (ENV={self.env!r}). Fix the following before starting the server:\n"
                + details
            )

        return self

    @model_validator(mode="after")
    def _validate_limits(self) -> "Settings":
        if self.messages_default_limit <= 0:
            raise ValueError("MESSAGES_DEFAULT_LIMIT must be > 0")
        if self.messages_max_limit < self.messages_default_limit:
            raise ValueError("MESSAGES_MAX_LIMIT must be >= MESSAGES_DEFAULT_LIMIT")
        if self.uploads_max_files <= 0:
            raise ValueError("UPLOADS_MAX_FILES must be > 0")
        if self.ai_turn_timeout_seconds <= 0:
            raise ValueError("AI_TURN_TIMEOUT_SECONDS must be > 0")
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()
