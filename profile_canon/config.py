"""Centralized settings: all env vars and tuning constants live here."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

# Load .env before anything reads os.getenv
load_dotenv(Path(__file__).resolve().parent / ".env")


class Settings(BaseSettings):
    """Application settings. Values come from environment variables, then defaults."""

    # ── API keys ──
    openai_api_key: str = Field(default="", alias="OPENAI_API_KEY")
    supabase_url: str = Field(default="", alias="SUPABASE_URL")
    supabase_jwt_secret: str = Field(default="", alias="SUPABASE_JWT_SECRET")

    # ── Database ──
    database_url: str = Field(default="", alias="DATABASE_URL")
    db_pool_size: int = 5
    db_max_overflow: int = 5

    # ── Server ──
    cors_origins: list[str] = Field(
        default=["http://localhost:3000"],
        alias="CORS_ORIGINS",
    )

    # ── Embeddings ──
    embedding_model: str = "text-embedding-3-small"
    # Matches the vector(768) columns shared with the Gemini-era rows
    embedding_dimensions: int = 768
    embedding_cache_size: int = 2_000

    # ── Canonical profile tuning ──
    bullet_similarity_threshold: float = Field(default=0.82, ge=0.0, le=1.0)
    max_canonical_bullets: int = 20
    max_canonical_skills: int = 60

    model_config = {"env_file": ".env", "extra": "ignore", "populate_by_name": True}

    @model_validator(mode="after")
    def _check_required_secrets(self) -> "Settings":
        """Fail fast at startup if critical secrets are missing."""
        missing = [
            name for name, value in [
                ("SUPABASE_JWT_SECRET", self.supabase_jwt_secret),
                ("SUPABASE_URL", self.supabase_url),
                ("DATABASE_URL", self.database_url),
                ("OPENAI_API_KEY", self.openai_api_key),
            ]
            if not value
        ]
        if missing:
            raise ValueError(
                f"Missing required environment variables: {', '.join(missing)}"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached singleton settings instance."""
    return Settings()
