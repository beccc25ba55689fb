from __future__ import annotations

from functools import lru_cache

from pydantic import AnyUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from recipe_importer.app.domain.models import SourceKind


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8-sig",
        case_sensitive=False,
        extra="ignore",
    )

    SUPABASE_URL: AnyUrl
    SUPABASE_SERVICE_ROLE_KEY: str
    GEMINI_API_KEY: str
    GEMINI_MODEL: str = "gemini-2.5-flash"
    YOUTUBE_API_KEY: str | None = None
    INSTAGRAM_ACCESS_TOKEN: str | None = None

    APP_ENV: str = "local"
    FRONTEND_CORS_ORIGINS: list[str] = Field(
        default_factory=lambda: ["http://localhost:8081", "http://localhost:19006"],
    )

    # Timeouts for every outbound call
    HTTP_TIMEOUT_SECONDS: float = 15.0
    MODEL_TIMEOUT_SECONDS: float = 120.0

    # Acceptance gate applied before a recipe is persisted
    VIDEO_CONFIDENCE_THRESHOLD: float = Field(default=0.5, ge=0.0, le=1.0)
    WEB_CONFIDENCE_THRESHOLD: float = Field(default=0.6, ge=0.0, le=1.0)
    IMAGE_CONFIDENCE_THRESHOLD: float = Field(default=0.6, ge=0.0, le=1.0)

    # Prompt context budgets, in characters
    TRANSCRIPT_CHAR_LIMIT: int = 25_000
    REFINEMENT_CHAR_LIMIT: int = 15_000
    WEB_HTML_CHAR_LIMIT: int = 150_000
    EXTERNAL_LINK_CHAR_LIMIT: int = 5_000
    MAX_EXTERNAL_LINKS: int = 2
    MIN_TRANSCRIPT_CHARS: int = 50

    IMPORT_WORKER_CONCURRENCY: int = Field(default=2, ge=1)
    STALE_JOB_MINUTES: int = Field(default=15, ge=1)

    def confidence_threshold(self, kind: SourceKind) -> float:
        if kind.is_video:
            return self.VIDEO_CONFIDENCE_THRESHOLD
        if kind is SourceKind.IMAGE:
            return self.IMAGE_CONFIDENCE_THRESHOLD
        return self.WEB_CONFIDENCE_THRESHOLD


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
