"""Configuration helpers for the content tools service."""

import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class ConfigError(RuntimeError):
    """Raised when required configuration is missing at start-up."""


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    openrouter_api_key: str | None = Field(None, alias="OPENROUTER_API_KEY")
    openrouter_base_url: str = Field(
        "https://openrouter.ai/api/v1", alias="OPENROUTER_BASE_URL"
    )
    http_referer: str = Field(
        "https://github.com/krumjahn/App",
        alias="OPENROUTER_REFERER",
        description="Sent as HTTP-Referer so OpenRouter can attribute traffic.",
    )
    app_title: str = Field("Content Tools", alias="OPENROUTER_APP_TITLE")
    title_model: str = Field(
        "deepseek/deepseek-r1-zero:free",
        alias="TITLE_MODEL",
        description="Model used for scored blog-title suggestions.",
    )
    outline_model: str = Field("openai/gpt-3.5-turbo", alias="OUTLINE_MODEL")
    article_model: str = Field("openai/gpt-3.5-turbo", alias="ARTICLE_MODEL")
    section_model: str = Field(
        "x-ai/grok-2-1212",
        alias="SECTION_MODEL",
        description="Model used when regenerating a single outline section.",
    )
    viral_model: str = Field("openai/gpt-3.5-turbo", alias="VIRAL_MODEL")

    news_api_key: str | None = Field(None, alias="NEWS_API_KEY")
    news_api_url: str = Field("https://newsapi.org/v2", alias="NEWS_API_URL")
    suggest_url: str = Field(
        "https://suggestqueries.google.com/complete/search", alias="SUGGEST_URL"
    )

    history_backend: str = Field(
        "supabase",
        alias="HISTORY_BACKEND",
        description="'supabase' (hosted table) or 'jsonl' (local files for development).",
    )
    supabase_url: str | None = Field(None, alias="SUPABASE_URL")
    supabase_key: str | None = Field(None, alias="SUPABASE_KEY")
    history_table: str = Field("history", alias="HISTORY_TABLE")
    history_data_dir: str | None = Field(
        None,
        alias="HISTORY_DATA_DIR",
        description="Storage root for the jsonl backend; defaults to data/history.",
    )

    request_timeout: float = Field(
        60.0, alias="REQUEST_TIMEOUT", description="Seconds per outbound HTTP call."
    )
    log_level: str = Field("INFO", alias="LOG_LEVEL")


def get_settings() -> Settings:
    """Return a fresh settings instance (environment is re-read each call)."""
    return Settings()


def missing_settings(settings: Settings) -> list[str]:
    """Names of required environment variables that are unset."""
    missing: list[str] = []
    if not settings.openrouter_api_key:
        missing.append("OPENROUTER_API_KEY")
    if not settings.news_api_key:
        missing.append("NEWS_API_KEY")
    backend = settings.history_backend.lower()
    if backend == "supabase":
        if not settings.supabase_url:
            missing.append("SUPABASE_URL")
        if not settings.supabase_key:
            missing.append("SUPABASE_KEY")
    elif backend != "jsonl":
        missing.append("HISTORY_BACKEND (must be 'supabase' or 'jsonl')")
    return missing


def require_settings(settings: Settings | None = None) -> Settings:
    """
    Validate configuration before first use.

    Raises ConfigError naming every missing key so the process refuses to
    start instead of failing on the first request.
    """
    settings = settings or get_settings()
    missing = missing_settings(settings)
    if missing:
        raise ConfigError(
            "Missing required configuration: "
            + ", ".join(missing)
            + ". Set them in the environment or .env file."
        )
    return settings


def configure_logging(level: str | int = "INFO") -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)
